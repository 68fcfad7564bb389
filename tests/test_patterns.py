"""Tests for the pattern library and the custom-value scrubber."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from format_redactor.patterns import (
    BLANK_MARKER, BLOCK_MARKER, PatternLibrary, mask_marker, scan_categories, scan_names,
)
from format_redactor.scrubber import CustomValueScrubber
from format_redactor.types import Category, EntityMatch, FileType, RedactionMethod

ALL = frozenset(Category)


def _types(matches):
    return [m.entity_type for m in matches]


# ── Category detectors ───────────────────────────────────────────────

def test_email_detection():
    matches = scan_categories("Contact me at alice@example.com please", {Category.EMAILS})
    assert len(matches) == 1
    assert matches[0].text == "alice@example.com"
    assert matches[0].entity_type == "emails"


def test_phone_detection_with_parens():
    matches = scan_categories("Call (555) 123-4567 today", {Category.PHONES})
    assert [m.text for m in matches] == ["(555) 123-4567"]


def test_phone_detection_with_country_code():
    matches = scan_categories("Call +1 555-123-4567", {Category.PHONES})
    assert [m.text for m in matches] == ["+1 555-123-4567"]


def test_ssn_detection():
    matches = scan_categories("SSN: 123-45-6789", {Category.SSN})
    assert [m.text for m in matches] == ["123-45-6789"]


def test_credit_card_wins_over_overlapping_patterns():
    matches = scan_categories("Card: 4111-1111-1111-1111", ALL)
    assert _types(matches) == ["creditCards"]
    assert matches[0].text == "4111-1111-1111-1111"


def test_address_detection_is_case_insensitive():
    matches = scan_categories("Ship to 42 baker street now", {Category.ADDRESSES})
    assert [m.text for m in matches] == ["42 baker street"]


def test_disabled_categories_are_not_scanned():
    matches = scan_categories("john@example.com 123-45-6789", {Category.SSN})
    assert _types(matches) == ["ssn"]


def test_no_false_positive_on_clean_text():
    assert scan_categories("the weather is nice today", ALL) == []


# ── Name heuristic ───────────────────────────────────────────────────

def test_two_capitalized_words():
    assert [m.text for m in scan_names("we met Jane Doe yesterday")] == ["Jane Doe"]


def test_sentence_initial_word_dropped_from_longer_run():
    assert [m.text for m in scan_names("Contact John Smith at noon")] == ["John Smith"]


def test_names_joined_by_tab_or_nbsp():
    assert [m.text for m in scan_names("we met Jane\u00a0Doe today")] == ["Jane\u00a0Doe"]
    assert [m.text for m in scan_names("we saw Mary\tAnn Lee")] == ["Mary\tAnn Lee"]
    assert [m.text for m in scan_names("Dear\u00a0Jane\u00a0Doe, hi")] == ["Jane\u00a0Doe"]


def test_single_capitalized_word_is_not_a_name():
    assert scan_names("Hello there") == []


# ── PatternLibrary ───────────────────────────────────────────────────

def test_mask_names_and_emails():
    lib = PatternLibrary(frozenset({Category.NAMES, Category.EMAILS}), RedactionMethod.MASK)
    result = lib.redact("Contact John Smith at john@example.com")
    assert result == f"Contact {BLOCK_MARKER} at {BLOCK_MARKER}"


def test_replace_uses_canonical_values():
    lib = PatternLibrary(ALL, RedactionMethod.REPLACE)
    result = lib.redact("Mail jane@x.org or call 555-123-4567, SSN 123-45-6789")
    assert result == "Mail user@example.com or call (555) 555-5555, SSN 000-00-0000"


def test_replace_address_and_card():
    lib = PatternLibrary(ALL, RedactionMethod.REPLACE)
    assert lib.redact("Lives at 12 Main St") == "Lives at 123 Example Street"
    assert lib.redact("Card 1234123412341234") == "Card 0000-0000-0000-0000"


def test_no_categories_leaves_text_alone():
    lib = PatternLibrary(frozenset(), RedactionMethod.MASK)
    assert lib.redact("john@example.com") == "john@example.com"


def test_extra_scanner_results_are_applied():
    def scanner(text):
        i = text.find("bob")
        return [EntityMatch("names", i, i + 3, "bob", 0.65, "custom")] if i >= 0 else []

    lib = PatternLibrary(frozenset({Category.NAMES}), RedactionMethod.REPLACE, scanners=[scanner])
    assert lib.redact("ask bob") == "ask John Doe"


def test_mask_marker_per_destination():
    assert mask_marker(FileType.TEXT) == BLOCK_MARKER
    assert mask_marker(FileType.DOCX) == BLOCK_MARKER
    assert mask_marker(FileType.CSV) == BLANK_MARKER
    assert mask_marker(FileType.RTF) == BLANK_MARKER


# ── Custom-value scrubber ────────────────────────────────────────────

def test_scrub_is_case_insensitive_replace():
    scrubber = CustomValueScrubber.for_method(["Acme Corp"], RedactionMethod.REPLACE, BLOCK_MARKER)
    assert scrubber.scrub("Signed by ACME CORP today") == "Signed by [REDACTED] today"


def test_scrub_mask_uses_marker():
    scrubber = CustomValueScrubber.for_method(["secret"], RedactionMethod.MASK, BLANK_MARKER)
    assert scrubber.scrub("a Secret b") == f"a {BLANK_MARKER} b"


def test_scrub_respects_word_boundaries():
    scrubber = CustomValueScrubber(["Acme Corp"], "[REDACTED]")
    assert scrubber.scrub("Acme Corporation") == "Acme Corporation"


def test_scrub_value_with_punctuation():
    scrubber = CustomValueScrubber(["Acme Inc."], "[REDACTED]")
    assert scrubber.scrub("Acme Inc. wins") == "[REDACTED] wins"


def test_blank_custom_values_are_ignored():
    scrubber = CustomValueScrubber(["", "   "], "[REDACTED]")
    assert not scrubber
    assert scrubber.scrub("unchanged") == "unchanged"
