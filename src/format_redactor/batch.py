"""Batch redactor — the AI side of the redaction contract.

Keyed maps (DOCX/RTF spans) go out in fixed-size batches of
``{key, value}`` objects, one request at a time.  Replies are repaired
and parsed defensively; a batch that can't be parsed leaves its spans
at their original text.  Flat text (TEXT/CSV) is one request and any
empty reply is fatal.

Every reply is run through the custom-value scrubber before it leaves.
"""

from __future__ import annotations
import json
import logging
import re
from typing import Iterator, Mapping

from .csv_format import join_header, split_header
from .errors import MalformedInputError, ModelResponseError, UnresolvedSpansError
from .llm_client import ModelClient
from .patterns import mask_marker
from .scrubber import CustomValueScrubber
from .types import FileType, ModelRequest, ModelResponse, RedactionMethod

logger = logging.getLogger(__name__)

BATCH_SIZE = 100
MAX_TEXT_CHARS = 100_000

_JSON_ARRAY = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")
_KEY_VALUE_OBJECT = re.compile(r"\{[^{}]*\"key\"[^{}]*\"value\"[^{}]*\}")

_STRING_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t", "\b": "\\b", "\f": "\\f"}

PII_KINDS = (
    "people names, emails, phone numbers, addresses, locations, dates, "
    "education institute names, subjects, occupation details, company names, "
    "SSN, credit card numbers, account numbers, codes and any other sensitive "
    "information that can cause privacy issues"
)

_KEYED_SYSTEM_PROMPT = """You are a data redactor.
Your task is to redact all PII (personally identifiable information) in the values only by replacing PII with {replacement}.
PII includes {pii_kinds}.

IMPORTANT CONSTRAINTS:
1. ONLY return the modified JSON array and NOTHING ELSE
2. DO NOT add any headers, date stamps, explanatory text, or metadata
3. Your entire response must be a valid JSON array of objects that can be parsed directly
4. All strings MUST escape newline, tab, or control characters to remain JSON-safe (e.g., use \\n, \\t)

You must ONLY modify the text in the 'value' field of each object.
You MUST NOT change the 'key' field or add/remove any objects from the array.
DO NOT add any formatting, headers, or explanations to your output."""

_MASK_TEXT_PROMPT = (
    "Redact all PII (personally identifiable information) in the following text "
    "by replacing it with {marker} . PII includes {pii_kinds}. Return only the "
    "redacted text, maintaining the exact format of the original text "
    "(including line breaks, tabs, etc.)."
)

_REPLACE_TEXT_PROMPT = (
    "Replace all PII (personally identifiable information) in the following text "
    "with realistic fake values. PII includes {pii_kinds}. Return only the text "
    "with fake values, maintaining the exact format of the original text "
    "(including line breaks, tabs, etc.)."
)

_DELIMITER_NAMES = {"\t": "\\t"}


# ----------------------------------------------------------------------
# Response repair
# ----------------------------------------------------------------------

def escape_control_chars(raw: str) -> str:
    """Escape raw control characters that appear inside JSON strings.

    Whitespace between tokens is left alone so pretty-printed replies
    still parse.
    """
    out: list[str] = []
    in_string = escaped = False
    for ch in raw:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            elif ch < " ":
                out.append(_STRING_ESCAPES.get(ch, f"\\u{ord(ch):04x}"))
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def _candidates(text: str) -> Iterator[str]:
    if text.startswith("["):
        yield text
    m = _JSON_ARRAY.search(text)
    if m:
        yield m.group(0)
    fragments = _KEY_VALUE_OBJECT.findall(text)
    if fragments:
        yield "[" + ",".join(fragments) + "]"


def parse_keyed_response(raw: str | None) -> dict[int, str]:
    """Recover ``{key: value}`` from a model reply that should be a JSON array."""
    if not raw or not raw.strip():
        raise ModelResponseError("empty model response")

    text = raw.strip()
    data = None
    last_error: Exception | None = None
    for candidate in _candidates(text):
        try:
            data = json.loads(escape_control_chars(candidate))
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(data, list):
            break
        data = None

    if data is None:
        raise ModelResponseError(
            f"no parseable JSON array in model response ({len(text)} chars)",
            cause=last_error,
        )

    result: dict[int, str] = {}
    for item in data:
        if not isinstance(item, dict) or "key" not in item or "value" not in item:
            continue
        try:
            key = int(item["key"])
        except (TypeError, ValueError):
            continue
        if isinstance(item["value"], str):
            result[key] = item["value"]
    return result


# ----------------------------------------------------------------------
# Prompts
# ----------------------------------------------------------------------

def build_keyed_prompt(method: RedactionMethod, file_type: FileType) -> str:
    replacement = mask_marker(file_type) if method is RedactionMethod.MASK else "realistic fake values"
    return _KEYED_SYSTEM_PROMPT.format(replacement=replacement, pii_kinds=PII_KINDS)


def build_text_prompt(method: RedactionMethod, file_type: FileType, custom_prompt: str | None = None) -> str:
    if method is RedactionMethod.MASK:
        prompt = _MASK_TEXT_PROMPT.format(marker=mask_marker(file_type), pii_kinds=PII_KINDS)
    else:
        prompt = _REPLACE_TEXT_PROMPT.format(pii_kinds=PII_KINDS)
    if custom_prompt:
        prompt = f"{prompt} {custom_prompt}"
    return prompt


# ----------------------------------------------------------------------
# Redactor
# ----------------------------------------------------------------------

class BatchRedactor:
    """Runs :class:`ModelRequest` objects against an injected model client."""

    def __init__(
        self,
        client: ModelClient,
        *,
        batch_size: int = BATCH_SIZE,
        max_text_chars: int = MAX_TEXT_CHARS,
        fail_on_unresolved: bool = False,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.client = client
        self.batch_size = batch_size
        self.max_text_chars = max_text_chars
        self.fail_on_unresolved = fail_on_unresolved

    def handle(self, request: ModelRequest) -> ModelResponse:
        """Redact one request.  Keyed input comes back as a JSON-encoded map."""
        scrubber = CustomValueScrubber.for_method(
            request.include_custom_values, request.method, mask_marker(request.file_type)
        )
        content = request.content_to_redact

        if request.file_type.is_keyed:
            if not isinstance(content, Mapping):
                raise MalformedInputError(f"{request.file_type.value} redaction expects a span map")
            redacted = self.redact_map(
                content,
                method=request.method,
                file_type=request.file_type,
                custom_prompt=request.custom_prompt,
            )
            encoded = {str(k): scrubber.scrub(v) for k, v in redacted.items()}
            return ModelResponse(json.dumps(encoded, ensure_ascii=False))

        if not isinstance(content, str):
            raise MalformedInputError(f"{request.file_type.value} redaction expects text")
        text = self.redact_text(
            content,
            method=request.method,
            file_type=request.file_type,
            custom_prompt=request.custom_prompt,
        )
        return ModelResponse(scrubber.scrub(text))

    def redact_map(
        self,
        spans: Mapping[int, str],
        *,
        method: RedactionMethod,
        file_type: FileType,
        custom_prompt: str | None = None,
    ) -> dict[int, str]:
        """Redact a span map batch by batch; the result covers every input key."""
        items = list(spans.items())
        if not items:
            return {}

        system_prompt = build_keyed_prompt(method, file_type)
        total = (len(items) + self.batch_size - 1) // self.batch_size
        merged: dict[int, str] = {}

        for number, offset in enumerate(range(0, len(items), self.batch_size), start=1):
            batch = items[offset:offset + self.batch_size]
            batch_keys = {key for key, _ in batch}
            user_prompt = json.dumps(
                [{"key": key, "value": value} for key, value in batch],
                indent=2,
                ensure_ascii=False,
            )
            if custom_prompt:
                user_prompt = f"{user_prompt} User Prompt: {custom_prompt}"

            logger.debug(f"Submitting batch {number}/{total} ({len(batch)} spans)")
            reply = self.client.complete(system_prompt, user_prompt)
            try:
                parsed = parse_keyed_response(reply)
            except ModelResponseError as e:
                logger.warning(
                    f"Batch {number}/{total} could not be parsed; "
                    f"{len(batch)} spans keep their original text: {e}"
                )
                continue

            for key, value in parsed.items():
                if key in batch_keys:
                    merged[key] = value

        missing = [key for key in spans if key not in merged]
        if missing:
            if self.fail_on_unresolved:
                raise UnresolvedSpansError(missing)
            logger.warning(f"{len(missing)} of {len(items)} spans unresolved; falling back to original text")

        return {key: merged.get(key, original) for key, original in spans.items()}

    def redact_text(
        self,
        text: str,
        *,
        method: RedactionMethod,
        file_type: FileType,
        custom_prompt: str | None = None,
    ) -> str:
        """Redact flat text (or CSV) in a single request."""
        if len(text) > self.max_text_chars:
            logger.warning(
                f"Text truncated due to length limit: {len(text)} -> {self.max_text_chars} chars"
            )
            text = text[:self.max_text_chars]

        prompt = build_text_prompt(method, file_type, custom_prompt)
        header_line: str | None = None
        body = text
        if file_type is FileType.CSV:
            parts = split_header(text)
            delimiter = _DELIMITER_NAMES.get(parts.delimiter, parts.delimiter)
            prompt += (
                f'\n\nThis is a CSV file with delimiter "{delimiter}". '
                f"The columns are: {', '.join(parts.headers)}. "
                "Process each row while maintaining the CSV structure."
            )
            header_line, body = parts.header_line, parts.body

        logger.debug(f"Generated redaction prompt: {prompt}")
        reply = self.client.complete(prompt, f"Text to redact:\n{body}")
        if not reply or not reply.strip():
            raise ModelResponseError("Could not redact content: empty model response")

        if header_line is not None:
            reply = join_header(header_line, reply)
        return reply
