"""Error hierarchy.  Every failure surfaces as one of these."""

from __future__ import annotations


class RedactionError(Exception):
    """Base class; ``kind`` names the failure category."""

    kind = "unknown"

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class MalformedInputError(RedactionError):
    """A required document payload is missing or unusable."""

    kind = "malformed-input"


class ModelResponseError(RedactionError):
    """The model returned nothing, or nothing parseable after repair."""

    kind = "model-response-invalid"


class TransportError(RedactionError):
    """The model call itself failed (network, auth, quota...)."""

    kind = "transport"


class UnresolvedSpansError(RedactionError):
    """Raised instead of falling back when strict batch resolution is on."""

    kind = "partial-resolution"

    def __init__(self, keys: list[int]) -> None:
        super().__init__(f"{len(keys)} span(s) were not returned by the model: {keys[:10]}")
        self.keys = keys
