"""DOCX ``word/document.xml`` extraction and reconstruction.

Every ``<w:t>`` run is one addressable unit.  Only the text between the
tags is swapped for ``{{key}}``; the tags and all surrounding markup are
untouched, so the skeleton stays well-formed XML.
"""

from __future__ import annotations
import io
import re
import zipfile
from pathlib import Path
from typing import Callable, Mapping

from .errors import MalformedInputError
from .types import ExtractedDocument

DOCUMENT_XML = "word/document.xml"

_RUN = re.compile(r"(<w:t(?:\s[^>]*)?(?<!/)>)(.*?)(</w:t>)", re.DOTALL)
_RUN_PLACEHOLDER = re.compile(r"(<w:t(?:\s[^>]*)?(?<!/)>)\{\{(\d+)\}\}(</w:t>)")


def extract_with_keys(xml: str) -> ExtractedDocument:
    spans: dict[int, str] = {}

    def _sub(m: re.Match) -> str:
        key = len(spans)
        spans[key] = m.group(2)
        return f"{m.group(1)}{{{{{key}}}}}{m.group(3)}"

    skeleton = _RUN.sub(_sub, xml)
    return ExtractedDocument(skeleton=skeleton, spans=spans)


def restore(
    skeleton: str,
    redacted: Mapping[int, str],
    originals: Mapping[int, str] | None = None,
) -> str:
    """Put run text back; values are inserted exactly as given."""
    originals = originals or {}

    def _sub(m: re.Match) -> str:
        key = int(m.group(2))
        if key in redacted:
            value = redacted[key]
        elif key in originals:
            value = originals[key]
        else:
            return m.group(0)
        return f"{m.group(1)}{value}{m.group(3)}"

    return _RUN_PLACEHOLDER.sub(_sub, skeleton)


def map_runs(xml: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to the text of every ``<w:t>`` run; markup is untouched."""
    return _RUN.sub(lambda m: f"{m.group(1)}{fn(m.group(2))}{m.group(3)}", xml)


# ----------------------------------------------------------------------
# Archive helpers
# ----------------------------------------------------------------------

def read_document_xml(source: str | Path | bytes) -> str:
    """Pull ``word/document.xml`` out of a DOCX archive."""
    try:
        with zipfile.ZipFile(_open(source)) as zf:
            if DOCUMENT_XML not in zf.namelist():
                raise MalformedInputError(f"{DOCUMENT_XML} not found in DOCX file")
            return zf.read(DOCUMENT_XML).decode("utf-8")
    except zipfile.BadZipFile as e:
        raise MalformedInputError("not a DOCX (zip) archive", cause=e) from e


def replace_document_xml(source: str | Path | bytes, new_xml: str) -> bytes:
    """Return a copy of the archive with ``word/document.xml`` replaced."""
    out = io.BytesIO()
    try:
        with zipfile.ZipFile(_open(source)) as src:
            if DOCUMENT_XML not in src.namelist():
                raise MalformedInputError(f"Missing {DOCUMENT_XML} in DOCX file")
            with zipfile.ZipFile(out, "w", zipfile.ZIP_DEFLATED) as dst:
                for item in src.infolist():
                    if item.filename == DOCUMENT_XML:
                        dst.writestr(item, new_xml.encode("utf-8"))
                    else:
                        dst.writestr(item, src.read(item.filename))
    except zipfile.BadZipFile as e:
        raise MalformedInputError("not a DOCX (zip) archive", cause=e) from e
    return out.getvalue()


def _open(source: str | Path | bytes) -> io.BytesIO | Path:
    if isinstance(source, bytes):
        return io.BytesIO(source)
    return Path(source).expanduser()
