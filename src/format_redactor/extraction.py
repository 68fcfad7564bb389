"""Format dispatch for extraction and reconstruction."""

from __future__ import annotations
from typing import Mapping, assert_never

from . import docx, rtf
from .types import ExtractedDocument, FileType


def extract(file_type: FileType, content: str) -> ExtractedDocument:
    """Split content into a skeleton and its addressable spans.

    Flat formats have no spans: the whole string is the unit.
    """
    match file_type:
        case FileType.DOCX:
            return docx.extract_with_keys(content)
        case FileType.RTF:
            return rtf.extract_with_keys(content)
        case FileType.TEXT | FileType.CSV:
            return ExtractedDocument(skeleton=content)
        case _:
            assert_never(file_type)


def reconstruct(
    file_type: FileType,
    document: ExtractedDocument,
    redacted: Mapping[int, str],
) -> str:
    """Inverse of :func:`extract`.  Keys absent from ``redacted`` keep their original text."""
    match file_type:
        case FileType.DOCX:
            return docx.restore(document.skeleton, redacted, document.spans)
        case FileType.RTF:
            return rtf.restore(document.skeleton, redacted, document.spans, document.positions)
        case FileType.TEXT | FileType.CSV:
            return document.skeleton
        case _:
            assert_never(file_type)
