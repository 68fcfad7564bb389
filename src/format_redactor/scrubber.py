"""Custom-value scrubber — the last pass over every redaction path.

Runs after category redaction and after the model, so that terms the
user named explicitly are gone even when the model missed them.
"""

from __future__ import annotations
import logging
import re
from typing import Iterable

from .patterns import CUSTOM_REPLACEMENT
from .types import RedactionMethod

logger = logging.getLogger(__name__)


class CustomValueScrubber:
    """Word-bounded, case-insensitive removal of user-supplied terms."""

    __slots__ = ("_patterns", "_replacement")

    def __init__(self, values: Iterable[str], replacement: str) -> None:
        self._replacement = replacement
        self._patterns: list[re.Pattern] = []
        for value in values:
            value = value.strip()
            if not value:
                continue
            # (?<!\w) rather than \b so values ending in punctuation still match
            self._patterns.append(
                re.compile(rf"(?<!\w){re.escape(value)}(?!\w)", re.IGNORECASE)
            )

    @classmethod
    def for_method(cls, values: Iterable[str], method: RedactionMethod, marker: str) -> "CustomValueScrubber":
        replacement = marker if method is RedactionMethod.MASK else CUSTOM_REPLACEMENT
        return cls(values, replacement)

    def __bool__(self) -> bool:
        return bool(self._patterns)

    def scrub(self, text: str) -> str:
        if not self._patterns or not text:
            return text
        result = text
        for pattern in self._patterns:
            result = pattern.sub(lambda _m: self._replacement, result)
        if result != text:
            logger.debug(
                f"Custom value redaction complete: {len(self._patterns)} values, "
                f"{len(text)} -> {len(result)} chars"
            )
        return result
