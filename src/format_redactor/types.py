"""Core types."""

from __future__ import annotations
import enum
from dataclasses import dataclass, field
from pathlib import PurePath


class FileType(str, enum.Enum):
    """Closed set of formats the engine understands."""
    TEXT = "text"
    CSV = "csv"
    DOCX = "docx"
    RTF = "rtf"

    @classmethod
    def parse(cls, name: str) -> "FileType":
        name = name.strip().lower()
        if name == "pdf":
            # PDFs arrive already flattened to plain text
            return cls.TEXT
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"unsupported file type: {name!r}") from None

    @property
    def is_keyed(self) -> bool:
        return self in (FileType.DOCX, FileType.RTF)


class RedactionMethod(str, enum.Enum):
    MASK = "mask"
    REPLACE = "replace"


class Category(str, enum.Enum):
    NAMES = "names"
    EMAILS = "emails"
    PHONES = "phones"
    ADDRESSES = "addresses"
    SSN = "ssn"
    CREDIT_CARDS = "creditCards"

    @classmethod
    def parse(cls, name: str) -> "Category":
        wanted = name.strip().replace("_", "").replace("-", "").lower()
        for category in cls:
            if category.value.lower() == wanted:
                return category
        raise ValueError(f"unknown category: {name!r}")


def determine_file_type(filename: str) -> FileType:
    """Guess the format from a file name; anything unrecognised is text."""
    suffix = PurePath(filename).suffix.lower()
    return {
        ".csv": FileType.CSV,
        ".docx": FileType.DOCX,
        ".rtf": FileType.RTF,
    }.get(suffix, FileType.TEXT)


@dataclass(frozen=True, slots=True)
class EntityMatch:
    """A single detected PII entity."""
    entity_type: str       # a Category value, e.g. "emails"
    start: int
    end: int
    text: str
    score: float           # 0.0–1.0 priority when matches overlap
    source: str            # "regex" | "presidio" | "custom"


@dataclass(frozen=True, slots=True)
class RedactionOptions:
    """What to redact and how, as collected from the user."""
    method: RedactionMethod = RedactionMethod.MASK
    categories: frozenset[Category] = frozenset(Category)
    custom_values: tuple[str, ...] = ()
    use_ai: bool = False
    custom_prompt: str | None = None


@dataclass(slots=True)
class ExtractedDocument:
    """Skeleton with placeholder tokens plus the spans they stand for."""
    skeleton: str
    spans: dict[int, str] = field(default_factory=dict)  # key → original, in discovery order
    positions: dict[int, int] = field(default_factory=dict)  # key → placeholder offset in skeleton


@dataclass(frozen=True, slots=True)
class ModelRequest:
    """One logical request across the AI boundary."""
    content_to_redact: str | dict[int, str]
    method: RedactionMethod
    file_type: FileType
    include_custom_values: tuple[str, ...] = ()
    custom_prompt: str | None = None

    def to_payload(self) -> dict:
        content = self.content_to_redact
        if isinstance(content, dict):
            content = {str(k): v for k, v in content.items()}
        payload = {
            "contentToRedact": content,
            "method": self.method.value,
            "includeCustomValues": list(self.include_custom_values),
            "fileType": self.file_type.value,
        }
        if self.custom_prompt:
            payload["customPrompt"] = self.custom_prompt
        return payload


@dataclass(frozen=True, slots=True)
class ModelResponse:
    """For keyed input, redacted_content is a JSON-encoded map string."""
    redacted_content: str

    def to_payload(self) -> dict:
        return {"redactedContent": self.redacted_content}


@dataclass(frozen=True, slots=True)
class RedactionResult:
    """Result of redacting one document."""
    redacted_content: str
    pii_count: int          # heuristic estimate, not an exact detection count

    def to_payload(self) -> dict:
        return {"redactedContent": self.redacted_content, "piiCount": self.pii_count}
