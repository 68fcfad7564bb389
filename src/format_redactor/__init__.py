"""Format Redactor — format-aware PII redaction for text, CSV, DOCX and RTF."""

from .redactor import Redactor, RedactorConfig, count_pii
from .batch import BatchRedactor, parse_keyed_response
from .llm_client import ModelClient, OpenAIModelClient
from .patterns import PatternLibrary, scan_categories
from .scrubber import CustomValueScrubber
from .extraction import extract, reconstruct
from .config import create_redactor, load_config, load_from_yaml
from .errors import (
    RedactionError, MalformedInputError, ModelResponseError, TransportError, UnresolvedSpansError,
)
from .types import (
    Category, EntityMatch, ExtractedDocument, FileType, ModelRequest, ModelResponse,
    RedactionMethod, RedactionOptions, RedactionResult, determine_file_type,
)

__all__ = [
    "Redactor", "RedactorConfig", "count_pii",
    "BatchRedactor", "parse_keyed_response",
    "ModelClient", "OpenAIModelClient",
    "PatternLibrary", "scan_categories",
    "CustomValueScrubber",
    "extract", "reconstruct",
    "create_redactor", "load_config", "load_from_yaml",
    "RedactionError", "MalformedInputError", "ModelResponseError", "TransportError",
    "UnresolvedSpansError",
    "Category", "EntityMatch", "ExtractedDocument", "FileType", "ModelRequest",
    "ModelResponse", "RedactionMethod", "RedactionOptions", "RedactionResult",
    "determine_file_type",
]
__version__ = "0.1.0"
