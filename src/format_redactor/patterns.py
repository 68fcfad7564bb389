"""Pattern library — deterministic category detectors.

Every enabled category is scanned against the same text, overlapping
matches are resolved by score, and the survivors are replaced
right-to-left so earlier offsets stay valid.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .types import Category, EntityMatch, FileType, RedactionMethod

# Mask markers.  Blank runs keep CSV columns aligned and can't be
# mistaken for RTF control words.
BLOCK_MARKER = "████████"
BLANK_MARKER = " " * 9

CUSTOM_REPLACEMENT = "[REDACTED]"

REPLACEMENTS: dict[Category, str] = {
    Category.NAMES: "John Doe",
    Category.EMAILS: "user@example.com",
    Category.PHONES: "(555) 555-5555",
    Category.ADDRESSES: "123 Example Street",
    Category.SSN: "000-00-0000",
    Category.CREDIT_CARDS: "0000-0000-0000-0000",
}

# Words may be joined by a space, a tab or a non-breaking space
_NAME_GAP = r"[ \t\u00a0]"
_NAME = re.compile(rf"\b[A-Z][a-z]+(?:{_NAME_GAP}[A-Z][a-z]+)+\b")

_STREET_SUFFIX = (
    r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Court|Ct"
    r"|Lane|Ln|Way|Parkway|Pkwy)"
)

# Each pattern: (category, compiled_regex, score)
_PATTERNS: list[tuple[Category, re.Pattern, float]] = [
    (Category.CREDIT_CARDS, re.compile(r"\b(?:\d{4}-?){3}\d{4}\b"), 0.95),

    (Category.EMAILS, re.compile(
        r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b"
    ), 0.9),

    (Category.SSN, re.compile(r"\b\d{3}-?\d{2}-?\d{4}\b"), 0.85),

    # North-American: optional +1/+44 style prefix, area code with or without parens
    (Category.PHONES, re.compile(
        r"(?<![\w(])"
        r"(?:\+\d{1,2}\s)?"
        r"(?:\(\d{3}\)|\d{3})"
        r"[\s.\-]?\d{3}[\s.\-]?\d{4}\b"
    ), 0.8),

    (Category.ADDRESSES, re.compile(
        r"\b\d+\s+[A-Za-z]+\s+" + _STREET_SUFFIX + r"\b", re.IGNORECASE
    ), 0.7),
]

_NAME_SCORE = 0.6

Scanner = Callable[[str], list[EntityMatch]]


def _at_sentence_start(text: str, pos: int) -> bool:
    prefix = text[:pos]
    stripped = prefix.rstrip()
    return not stripped or stripped[-1] in ".!?:" or "\n" in prefix[len(stripped):]


def scan_names(text: str) -> list[EntityMatch]:
    """Two-or-more capitalized words in a row.

    A sentence-initial word in front of a longer run is dropped, so
    "Contact John Smith" yields "John Smith".
    """
    matches: list[EntityMatch] = []
    for m in _NAME.finditer(text):
        start, words = m.start(), re.split(_NAME_GAP, m.group())
        if len(words) > 2 and _at_sentence_start(text, start):
            start += len(words[0]) + 1
        matches.append(EntityMatch(
            entity_type=Category.NAMES.value,
            start=start,
            end=m.end(),
            text=text[start:m.end()],
            score=_NAME_SCORE,
            source="regex",
        ))
    return matches


def scan_categories(text: str, categories: Iterable[Category]) -> list[EntityMatch]:
    """Run the enabled category patterns.  Returns non-overlapping matches."""
    enabled = set(categories)
    matches: list[EntityMatch] = []
    for category, pattern, score in _PATTERNS:
        if category not in enabled:
            continue
        for m in pattern.finditer(text):
            matches.append(EntityMatch(
                entity_type=category.value,
                start=m.start(),
                end=m.end(),
                text=m.group(),
                score=score,
                source="regex",
            ))
    if Category.NAMES in enabled:
        matches.extend(scan_names(text))
    return deduplicate(matches)


def deduplicate(matches: list[EntityMatch]) -> list[EntityMatch]:
    """Remove overlapping matches, keeping higher-score ones."""
    if not matches:
        return matches
    # Sort by score desc, then by span length desc
    ranked = sorted(matches, key=lambda m: (-m.score, -(m.end - m.start)))
    taken: list[EntityMatch] = []
    used_ranges: list[tuple[int, int]] = []
    for m in ranked:
        if not any(m.start < e and m.end > s for s, e in used_ranges):
            taken.append(m)
            used_ranges.append((m.start, m.end))
    return sorted(taken, key=lambda m: m.start)


def mask_marker(file_type: FileType) -> str:
    """Marker used by mask mode for a given destination format."""
    if file_type in (FileType.CSV, FileType.RTF):
        return BLANK_MARKER
    return BLOCK_MARKER


def apply_matches(text: str, matches: list[EntityMatch], substitute: Callable[[EntityMatch], str]) -> str:
    """Replace matches right-to-left to preserve offsets."""
    result = text
    for match in sorted(matches, key=lambda m: m.start, reverse=True):
        result = result[:match.start] + substitute(match) + result[match.end:]
    return result


@dataclass
class PatternLibrary:
    """Category redaction for one request (method, categories and marker fixed)."""

    categories: frozenset[Category]
    method: RedactionMethod
    marker: str = BLOCK_MARKER
    # Extra detectors, e.g. the Presidio name layer
    scanners: list[Scanner] = field(default_factory=list)

    def scan(self, text: str) -> list[EntityMatch]:
        all_matches = scan_categories(text, self.categories)
        for scanner in self.scanners:
            all_matches.extend(scanner(text))
        return deduplicate(all_matches)

    def redact(self, text: str) -> str:
        if not text or not self.categories:
            return text
        return apply_matches(text, self.scan(text), self._substitute)

    def _substitute(self, match: EntityMatch) -> str:
        if self.method is RedactionMethod.MASK:
            return self.marker
        return REPLACEMENTS[Category(match.entity_type)]
