"""Redactor — the main API.  Regex policy or AI policy, per file format.

Usage:
    from format_redactor import Redactor, RedactionOptions, FileType, Category

    redactor = Redactor()                       # regex only
    options = RedactionOptions(categories=frozenset({Category.EMAILS}))
    result = redactor.redact("Mail john@acme.com", FileType.TEXT, options)
    print(result.redacted_content)              # "Mail ████████"

    redactor = Redactor(client=OpenAIModelClient())   # AI path available
"""

from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass, field
from typing import assert_never

from . import csv_format, docx, extraction, rtf
from .batch import BATCH_SIZE, MAX_TEXT_CHARS, BatchRedactor
from .errors import MalformedInputError, ModelResponseError, RedactionError
from .llm_client import ModelClient
from .patterns import (
    BLOCK_MARKER, CUSTOM_REPLACEMENT, REPLACEMENTS, PatternLibrary, Scanner, mask_marker,
)
from .scrubber import CustomValueScrubber
from .types import (
    Category, ExtractedDocument, FileType, ModelRequest, RedactionOptions, RedactionResult,
)

logger = logging.getLogger(__name__)

_BLANK_RUN = re.compile(r" {7,}")


@dataclass
class RedactorConfig:
    """Configuration for the Redactor."""
    model: str = "gpt-4o-mini"
    base_url: str | None = None       # any OpenAI-compatible endpoint
    temperature: float = 0.1
    max_output_tokens: int = 8192
    timeout: float | None = None      # transport timeout, seconds
    batch_size: int = BATCH_SIZE
    max_text_chars: int = MAX_TEXT_CHARS
    # Raise instead of silently keeping original text for unresolved spans
    fail_on_unresolved: bool = False
    use_presidio: bool = False        # add Presidio PERSON hits to the name category
    language: str = "en"
    score_threshold: float = 0.35     # minimum confidence for Presidio
    custom_scanners: list[Scanner] = field(default_factory=list)


class Redactor:
    """Format-aware redaction engine.

    Regex path: the pattern library runs over extracted spans (DOCX),
    literal RTF segments, CSV cells or the whole text.
    AI path: the batch redactor gets the span map (DOCX/RTF) or the flat
    text (TEXT/CSV).
    Either way the custom-value scrubber runs last.
    """

    def __init__(self, config: RedactorConfig | None = None, client: ModelClient | None = None) -> None:
        self.config = config or RedactorConfig()
        self.client = client

    def redact(self, content: str, file_type: FileType, options: RedactionOptions) -> RedactionResult:
        """Redact one document and estimate how much PII was removed."""
        logger.debug(f"Redacting {file_type.value} ({len(content)} chars, ai={options.use_ai})")
        match file_type:
            case FileType.TEXT:
                redacted = self._redact_flat(content, file_type, options)
            case FileType.CSV:
                redacted = self._redact_csv(content, options)
            case FileType.DOCX:
                if not content.strip():
                    raise MalformedInputError("DOCX redaction requires the word/document.xml payload")
                redacted = self._redact_keyed(content, file_type, options)
            case FileType.RTF:
                if options.use_ai:
                    redacted = self._redact_keyed(content, file_type, options)
                else:
                    redacted = self._redact_rtf_segments(content, options)
            case _:
                assert_never(file_type)

        return RedactionResult(redacted_content=redacted, pii_count=count_pii(content, redacted))

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def _patterns(self, options: RedactionOptions, file_type: FileType) -> PatternLibrary:
        scanners = list(self.config.custom_scanners)
        if self.config.use_presidio and Category.NAMES in options.categories:
            from .presidio_layer import name_scanner
            scanners.append(name_scanner(
                language=self.config.language,
                score_threshold=self.config.score_threshold,
            ))
        return PatternLibrary(
            categories=frozenset(options.categories),
            method=options.method,
            marker=mask_marker(file_type),
            scanners=scanners,
        )

    def _local_pass(self, options: RedactionOptions, file_type: FileType):
        """Category redaction followed by the custom-value scrubber."""
        patterns = self._patterns(options, file_type)
        scrubber = CustomValueScrubber.for_method(options.custom_values, options.method, patterns.marker)
        return lambda text: scrubber.scrub(patterns.redact(text))

    def _batch(self) -> BatchRedactor:
        if self.client is None:
            raise RedactionError("AI redaction requested but no model client configured")
        return BatchRedactor(
            self.client,
            batch_size=self.config.batch_size,
            max_text_chars=self.config.max_text_chars,
            fail_on_unresolved=self.config.fail_on_unresolved,
        )

    def _request(self, content, file_type: FileType, options: RedactionOptions) -> ModelRequest:
        return ModelRequest(
            content_to_redact=content,
            method=options.method,
            file_type=file_type,
            include_custom_values=tuple(options.custom_values),
            custom_prompt=options.custom_prompt,
        )

    def _redact_flat(self, content: str, file_type: FileType, options: RedactionOptions) -> str:
        if options.use_ai:
            response = self._batch().handle(self._request(content, file_type, options))
            return response.redacted_content
        return self._local_pass(options, file_type)(content)

    def _redact_csv(self, content: str, options: RedactionOptions) -> str:
        if options.use_ai:
            return self._redact_flat(content, FileType.CSV, options)
        return csv_format.map_cells(content, self._local_pass(options, FileType.CSV))

    def _redact_keyed(self, content: str, file_type: FileType, options: RedactionOptions) -> str:
        document = extraction.extract(file_type, content)
        logger.debug(f"Extracted {len(document.spans)} spans from {file_type.value}")
        if not options.use_ai:
            redact = self._local_pass(options, file_type)
            redacted_map = {key: redact(text) for key, text in document.spans.items()}
            return extraction.reconstruct(file_type, document, redacted_map)

        redacted_map = self._ai_map(document, file_type, options)
        result = extraction.reconstruct(file_type, document, redacted_map)
        return self._scrub_document(result, file_type, options)

    def _scrub_document(self, content: str, file_type: FileType, options: RedactionOptions) -> str:
        """Scrub custom values from all document text, including runs never sent to the model."""
        scrubber = CustomValueScrubber.for_method(options.custom_values, options.method, mask_marker(file_type))
        if not scrubber:
            return content
        if file_type is FileType.RTF:
            return rtf.map_literal(content, scrubber.scrub)
        return docx.map_runs(content, scrubber.scrub)

    def _ai_map(self, document: ExtractedDocument, file_type: FileType, options: RedactionOptions) -> dict[int, str]:
        if not document.spans:
            return {}
        response = self._batch().handle(self._request(document.spans, file_type, options))
        try:
            decoded = json.loads(response.redacted_content)
        except json.JSONDecodeError as e:
            raise ModelResponseError("redacted span map is not valid JSON", cause=e) from e
        # Only keys the extractor produced may be substituted
        return {
            int(key): value
            for key, value in decoded.items()
            if key.isdigit() and int(key) in document.spans and isinstance(value, str)
        }

    def _redact_rtf_segments(self, content: str, options: RedactionOptions) -> str:
        return rtf.map_literal(content, self._local_pass(options, FileType.RTF))


def count_pii(original: str, redacted: str) -> int:
    """Heuristic count of redactions in the output, not an exact detection count."""
    if BLOCK_MARKER in redacted:
        return redacted.count(BLOCK_MARKER)

    count = sum(redacted.count(value) for value in REPLACEMENTS.values())
    count += redacted.count(CUSTOM_REPLACEMENT)
    # Long blank runs are mask markers in CSV and RTF output
    count += len(_BLANK_RUN.findall(redacted))

    return count or abs(len(original) - len(redacted)) // 10
