"""Tests for the batch redactor: batching, reply repair, flat-text requests."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import json
import logging

import pytest

from format_redactor.batch import BatchRedactor, escape_control_chars, parse_keyed_response
from format_redactor.errors import (
    MalformedInputError, ModelResponseError, TransportError, UnresolvedSpansError,
)
from format_redactor.patterns import BLANK_MARKER
from format_redactor.types import FileType, ModelRequest, RedactionMethod


class FakeClient:
    """Records every call; replies come from ``fn`` or a queue."""

    def __init__(self, replies=None, fn=None):
        self.replies = list(replies or [])
        self.fn = fn
        self.calls = []

    def complete(self, system_prompt, user_prompt):
        self.calls.append((system_prompt, user_prompt))
        if self.fn is not None:
            return self.fn(system_prompt, user_prompt)
        return self.replies.pop(0)


def _items(user_prompt):
    return json.loads(user_prompt.split(" User Prompt: ")[0])


def upper_values(system_prompt, user_prompt):
    return json.dumps([{"key": i["key"], "value": i["value"].upper()} for i in _items(user_prompt)])


def echo_values(system_prompt, user_prompt):
    return json.dumps(_items(user_prompt))


# ── Reply repair ─────────────────────────────────────────────────────

def test_parse_clean_array():
    assert parse_keyed_response('[{"key": 0, "value": "a"}, {"key": 1, "value": "b"}]') == {0: "a", 1: "b"}


def test_parse_array_wrapped_in_prose():
    raw = 'Here is the result:\n[{"key": 0, "value": "a"}]\nLet me know if you need more.'
    assert parse_keyed_response(raw) == {0: "a"}


def test_parse_array_in_code_fence():
    raw = '```json\n[\n  {"key": 4, "value": "x"}\n]\n```'
    assert parse_keyed_response(raw) == {4: "x"}


def test_parse_reassembles_fragments():
    raw = 'first {"key": 1, "value": "x"} then {"key": 2, "value": "y"} done'
    assert parse_keyed_response(raw) == {1: "x", 2: "y"}


def test_parse_raw_newline_inside_value():
    raw = '[{"key": 0, "value": "line one\nline two"}]'
    assert parse_keyed_response(raw) == {0: "line one\nline two"}


def test_parse_string_keys_and_bad_items():
    raw = '[{"key": "3", "value": "v"}, {"key": "x", "value": "w"}, {"value": "no key"}, {"key": 5, "value": 7}]'
    assert parse_keyed_response(raw) == {3: "v"}


@pytest.mark.parametrize("raw", [None, "", "   ", "I cannot help with that.", "[not json]"])
def test_parse_failures_raise(raw):
    with pytest.raises(ModelResponseError):
        parse_keyed_response(raw)


def test_escape_control_chars_only_inside_strings():
    raw = '[\n  {"value": "a\tb"}\n]'
    escaped = escape_control_chars(raw)
    assert escaped == '[\n  {"value": "a\\tb"}\n]'
    assert json.loads(escaped) == [{"value": "a\tb"}]


def test_escape_control_chars_respects_escaped_quotes():
    raw = '{"v": "say \\"hi\\"\nnow"}'
    assert json.loads(escape_control_chars(raw)) == {"v": 'say "hi"\nnow'}


# ── Keyed batches ────────────────────────────────────────────────────

def test_batches_are_sequential_and_sized():
    client = FakeClient(fn=upper_values)
    spans = {i: f"value {i}" for i in range(250)}
    result = BatchRedactor(client).redact_map(spans, method=RedactionMethod.MASK, file_type=FileType.DOCX)
    assert [len(_items(user)) for _, user in client.calls] == [100, 100, 50]
    assert result == {i: f"VALUE {i}" for i in range(250)}


def test_unparseable_batch_falls_back_to_original():
    calls = []

    def reply(system_prompt, user_prompt):
        calls.append(1)
        return upper_values(system_prompt, user_prompt) if len(calls) == 1 else "garbage"

    spans = {i: f"value {i}" for i in range(150)}
    result = BatchRedactor(FakeClient(fn=reply)).redact_map(
        spans, method=RedactionMethod.MASK, file_type=FileType.RTF,
    )
    assert list(result) == list(range(150))
    assert all(result[i] == f"VALUE {i}" for i in range(100))
    assert all(result[i] == f"value {i}" for i in range(100, 150))


def test_unresolved_spans_are_logged(caplog):
    caplog.set_level(logging.WARNING, logger="format_redactor.batch")
    client = FakeClient(replies=["nope"])
    BatchRedactor(client).redact_map({0: "text"}, method=RedactionMethod.MASK, file_type=FileType.DOCX)
    assert "could not be parsed" in caplog.text
    assert "unresolved" in caplog.text


def test_missing_key_in_reply_falls_back():
    client = FakeClient(replies=['[{"key": 0, "value": "X"}]'])
    result = BatchRedactor(client).redact_map(
        {0: "a", 1: "b"}, method=RedactionMethod.MASK, file_type=FileType.DOCX,
    )
    assert result == {0: "X", 1: "b"}


def test_keys_outside_batch_are_ignored():
    client = FakeClient(replies=['[{"key": 0, "value": "X"}, {"key": 99, "value": "Y"}]'])
    result = BatchRedactor(client).redact_map({0: "a"}, method=RedactionMethod.MASK, file_type=FileType.DOCX)
    assert result == {0: "X"}


def test_strict_mode_raises_on_unresolved():
    client = FakeClient(replies=['[{"key": 0, "value": "X"}]'])
    redactor = BatchRedactor(client, fail_on_unresolved=True)
    with pytest.raises(UnresolvedSpansError) as exc:
        redactor.redact_map({0: "a", 1: "b"}, method=RedactionMethod.MASK, file_type=FileType.DOCX)
    assert exc.value.keys == [1]
    assert exc.value.kind == "partial-resolution"


def test_transport_error_is_fatal():
    def boom(system_prompt, user_prompt):
        raise TransportError("connection refused")

    with pytest.raises(TransportError):
        BatchRedactor(FakeClient(fn=boom)).redact_map(
            {0: "a"}, method=RedactionMethod.MASK, file_type=FileType.DOCX,
        )


def test_empty_map_makes_no_calls():
    client = FakeClient()
    assert BatchRedactor(client).redact_map({}, method=RedactionMethod.MASK, file_type=FileType.DOCX) == {}
    assert client.calls == []


def test_keyed_prompt_and_custom_prompt():
    client = FakeClient(fn=echo_values)
    BatchRedactor(client).redact_map(
        {0: "a"}, method=RedactionMethod.MASK, file_type=FileType.RTF, custom_prompt="Keep city names",
    )
    system, user = client.calls[0]
    assert "ONLY return the modified JSON array" in system
    assert BLANK_MARKER in system
    assert user.endswith(" User Prompt: Keep city names")


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        BatchRedactor(FakeClient(), batch_size=0)


# ── Flat text ────────────────────────────────────────────────────────

def test_empty_flat_reply_is_fatal():
    client = FakeClient(replies=["  "])
    with pytest.raises(ModelResponseError):
        BatchRedactor(client).redact_text("hello", method=RedactionMethod.MASK, file_type=FileType.TEXT)


def test_flat_prompt_shape():
    client = FakeClient(replies=["ok"])
    result = BatchRedactor(client).redact_text(
        "Jane at jane@x.com", method=RedactionMethod.REPLACE, file_type=FileType.TEXT,
        custom_prompt="Also remove dates.",
    )
    system, user = client.calls[0]
    assert result == "ok"
    assert "realistic fake values" in system
    assert system.endswith(" Also remove dates.")
    assert user == "Text to redact:\nJane at jane@x.com"


def test_long_text_is_truncated(caplog):
    caplog.set_level(logging.WARNING, logger="format_redactor.batch")
    client = FakeClient(replies=["done"])
    BatchRedactor(client, max_text_chars=10).redact_text(
        "abcdefghijklmnop", method=RedactionMethod.MASK, file_type=FileType.TEXT,
    )
    assert client.calls[0][1] == "Text to redact:\nabcdefghij"
    assert "truncated" in caplog.text


def test_csv_header_is_kept_out_of_the_request():
    client = FakeClient(replies=["         ;         "])
    result = BatchRedactor(client).redact_text(
        "name;email\nJohn;j@x.com", method=RedactionMethod.MASK, file_type=FileType.CSV,
    )
    system, user = client.calls[0]
    assert result == "name;email\n         ;         "
    assert 'delimiter ";"' in system
    assert "The columns are: name, email" in system
    assert user == "Text to redact:\nJohn;j@x.com"


def test_csv_tab_delimiter_is_named():
    client = FakeClient(replies=["x"])
    BatchRedactor(client).redact_text("a\tb\n1\t2", method=RedactionMethod.MASK, file_type=FileType.CSV)
    assert 'delimiter "\\t"' in client.calls[0][0]


# ── Requests ─────────────────────────────────────────────────────────

def test_custom_values_scrubbed_from_model_output():
    client = FakeClient(replies=["Contract with ACME CORP signed"])
    request = ModelRequest(
        content_to_redact="Contract with Acme Corp signed",
        method=RedactionMethod.REPLACE,
        file_type=FileType.TEXT,
        include_custom_values=("Acme Corp",),
    )
    response = BatchRedactor(client).handle(request)
    assert response.redacted_content == "Contract with [REDACTED] signed"


def test_keyed_request_returns_json_map():
    client = FakeClient(fn=echo_values)
    request = ModelRequest(
        content_to_redact={0: "Acme Corp signed", 1: "nothing here"},
        method=RedactionMethod.MASK,
        file_type=FileType.RTF,
        include_custom_values=("acme corp",),
    )
    response = BatchRedactor(client).handle(request)
    assert json.loads(response.redacted_content) == {"0": f"{BLANK_MARKER} signed", "1": "nothing here"}


def test_keyed_request_needs_a_map():
    request = ModelRequest(content_to_redact="text", method=RedactionMethod.MASK, file_type=FileType.DOCX)
    with pytest.raises(MalformedInputError):
        BatchRedactor(FakeClient()).handle(request)


def test_flat_request_needs_text():
    request = ModelRequest(content_to_redact={0: "x"}, method=RedactionMethod.MASK, file_type=FileType.CSV)
    with pytest.raises(MalformedInputError):
        BatchRedactor(FakeClient()).handle(request)
