"""RTF tokenizer, extractors and reconstructor.

One forward scanner drives everything here.  It moves between the
Text, ControlWord, ControlSymbol, HexEscape and UnicodeEscape states
and emits tokens with their source offsets; ``walk`` layers brace
tracking on top and flags every token inside an ignored destination
(the SkipGroup state).

    extract_text       plain-text preview
    extract_with_keys  skeleton with <<NNNNNNNN>> placeholders + span map
    segment            alternating control / literal runs for regex redaction
    restore            inverse of extract_with_keys, with RTF escaping
"""

from __future__ import annotations
import enum
import re
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Mapping

from .types import ExtractedDocument

# Destinations whose content is never document text
IGNORE_GROUPS = frozenset({
    "fonttbl", "colortbl", "stylesheet", "info", "header", "footer",
    "pict", "filetbl", "datastore", "revtbl", "themedata",
    "colorschememapping",
})

_CONTROL_WORD_TEXT = {"par": "\n", "line": "\n", "tab": "\t"}
_CONTROL_SYMBOL_TEXT = {"\\": "\\", "{": "{", "}": "}", "~": "\u00a0", "_": "-", "\n": "\n", "\r": "\n"}

PLACEHOLDER = re.compile(r"<<(\d{8})>>")
MIN_SPAN_LENGTH = 4
MIN_CELL_LENGTH = 2

_TEXT = re.compile(r"[^\\{}\r\n]+")
_NEWLINES = re.compile(r"[\r\n]+")
_CONTROL_WORD = re.compile(r"\\([a-zA-Z]{1,32})(-?\d{1,10})? ?")
_HEX_ESCAPE = re.compile(r"\\'([0-9a-fA-F]{2})")
_CONTROL_LIKE = re.compile(r"[a-z]{1,32}-?\d+")


class TokenKind(enum.Enum):
    TEXT = "text"
    NEWLINE = "newline"             # raw CR/LF, not document content
    GROUP_OPEN = "group_open"
    GROUP_CLOSE = "group_close"
    CONTROL_WORD = "control_word"
    CONTROL_SYMBOL = "control_symbol"
    HEX = "hex"                     # \'XX
    UNICODE = "unicode"             # \uN plus its substitute character


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    start: int
    end: int
    name: str = ""                  # control word name or symbol character
    param: int | None = None        # numeric parameter / decoded code point
    skipped: bool = False           # inside an ignored group


@dataclass(frozen=True, slots=True)
class Segment:
    is_control: bool
    text: str


def placeholder(key: int) -> str:
    return f"<<{key:08d}>>"


# ----------------------------------------------------------------------
# Scanner
# ----------------------------------------------------------------------

def tokenize(content: str) -> Iterator[Token]:
    """Split RTF source into tokens that tile the input exactly."""
    i, n = 0, len(content)
    while i < n:
        ch = content[i]
        if ch == "{":
            yield Token(TokenKind.GROUP_OPEN, i, i + 1)
            i += 1
        elif ch == "}":
            yield Token(TokenKind.GROUP_CLOSE, i, i + 1)
            i += 1
        elif ch == "\\":
            token = _scan_control(content, i)
            yield token
            i = token.end
        elif ch in "\r\n":
            m = _NEWLINES.match(content, i)
            yield Token(TokenKind.NEWLINE, i, m.end())
            i = m.end()
        else:
            m = _TEXT.match(content, i)
            yield Token(TokenKind.TEXT, i, m.end())
            i = m.end()


def _scan_control(content: str, i: int) -> Token:
    """Scan one backslash sequence starting at ``i``."""
    m = _HEX_ESCAPE.match(content, i)
    if m:
        return Token(TokenKind.HEX, i, m.end(), name="'", param=int(m.group(1), 16))

    m = _CONTROL_WORD.match(content, i)
    if m is None:
        # Control symbol: a single non-letter after the backslash
        end = min(i + 2, len(content))
        return Token(TokenKind.CONTROL_SYMBOL, i, end, name=content[i + 1:end])

    name, param = m.group(1), m.group(2)
    if name == "u" and param is not None:
        code = int(param)
        if code < 0:
            code += 65536
        end = _skip_substitute(content, m.end())
        return Token(TokenKind.UNICODE, i, end, name=name, param=code)
    return Token(
        TokenKind.CONTROL_WORD, i, m.end(),
        name=name, param=int(param) if param is not None else None,
    )


def _skip_substitute(content: str, pos: int) -> int:
    """Consume the one fallback character that follows a \\uN escape."""
    if pos >= len(content):
        return pos
    m = _HEX_ESCAPE.match(content, pos)
    if m:
        return m.end()
    if content[pos] not in "\\{}\r\n":
        return pos + 1
    return pos


def walk(content: str) -> list[Token]:
    """Tokenize and mark everything inside ignored destination groups."""
    tokens = list(tokenize(content))
    out: list[Token] = []
    depth = 0
    skip_depth: int | None = None

    for idx, tok in enumerate(tokens):
        if tok.kind is TokenKind.GROUP_OPEN:
            depth += 1
            if skip_depth is None and _opens_ignored_group(tokens, idx):
                skip_depth = depth
            skipped = skip_depth is not None
        elif tok.kind is TokenKind.GROUP_CLOSE:
            skipped = skip_depth is not None
            if skip_depth is not None and depth <= skip_depth:
                skip_depth = None
            depth = max(depth - 1, 0)
        else:
            skipped = skip_depth is not None
        out.append(replace(tok, skipped=True) if skipped else tok)
    return out


def _opens_ignored_group(tokens: list[Token], idx: int) -> bool:
    if idx + 1 >= len(tokens):
        return False
    nxt = tokens[idx + 1]
    if nxt.kind is TokenKind.CONTROL_SYMBOL and nxt.name == "*":
        return True
    return nxt.kind is TokenKind.CONTROL_WORD and nxt.name in IGNORE_GROUPS


# ----------------------------------------------------------------------
# Plain-text preview
# ----------------------------------------------------------------------

def extract_text(content: str) -> str:
    """Decode RTF to plain text, dropping ignored groups."""
    if not content:
        return ""

    parts: list[str] = []
    for tok in walk(content):
        if tok.skipped:
            continue
        if tok.kind is TokenKind.TEXT:
            parts.append(content[tok.start:tok.end])
        elif tok.kind in (TokenKind.HEX, TokenKind.UNICODE):
            parts.append(chr(tok.param))
        elif tok.kind is TokenKind.CONTROL_WORD:
            parts.append(_CONTROL_WORD_TEXT.get(tok.name, ""))
        elif tok.kind is TokenKind.CONTROL_SYMBOL:
            parts.append(_CONTROL_SYMBOL_TEXT.get(tok.name, ""))

    text = "".join(parts)
    # \uN escapes outside the BMP arrive as surrogate pairs
    text = text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "replace")
    return text.strip()


# ----------------------------------------------------------------------
# Keyed extraction / reconstruction
# ----------------------------------------------------------------------

def _is_addressable(text: str, min_length: int) -> bool:
    """Filter out runs that are too short or only look like text."""
    if len(text) < min_length:
        return False
    if text.startswith("\\") or text in IGNORE_GROUPS:
        return False
    if _CONTROL_LIKE.fullmatch(text) or PLACEHOLDER.fullmatch(text):
        return False
    return True


def extract_with_keys(content: str) -> ExtractedDocument:
    """Replace each literal-text run with a fixed-width placeholder.

    Spans are tracked by offset during the single forward scan, so a
    run that recurs verbatim elsewhere is never replaced twice.  Only the
    trimmed run is addressed; surrounding whitespace stays in the skeleton.
    """
    if not content:
        return ExtractedDocument(skeleton="")

    spans: dict[int, str] = {}
    positions: dict[int, int] = {}
    pieces: list[str] = []
    cursor = length = 0
    in_table = False

    for tok in walk(content):
        if tok.skipped:
            continue
        if tok.kind is TokenKind.CONTROL_WORD:
            if tok.name == "intbl":
                in_table = True
            elif tok.name == "pard":
                in_table = False
            continue
        if tok.kind is not TokenKind.TEXT:
            continue

        raw = content[tok.start:tok.end]
        text = raw.strip()
        if not _is_addressable(text, MIN_CELL_LENGTH if in_table else MIN_SPAN_LENGTH):
            continue

        start = tok.start + len(raw) - len(raw.lstrip())
        key = len(spans)
        spans[key] = text
        length += start - cursor
        positions[key] = length
        pieces.append(content[cursor:start])
        pieces.append(placeholder(key))
        length += len(pieces[-1])
        cursor = start + len(text)

    pieces.append(content[cursor:])
    return ExtractedDocument(skeleton="".join(pieces), spans=spans, positions=positions)


def escape_text(text: str) -> str:
    """Escape the characters RTF treats as syntax."""
    return text.replace("\\", "\\\\").replace("{", "\\{").replace("}", "\\}")


def restore(
    skeleton: str,
    redacted: Mapping[int, str],
    originals: Mapping[int, str] | None = None,
    positions: Mapping[int, int] | None = None,
) -> str:
    """Substitute values back into an RTF skeleton.

    Keys missing from ``redacted`` fall back to ``originals``; tokens
    found in neither are left as they are.  With ``positions`` only the
    placeholders inserted by :func:`extract_with_keys` are replaced, so
    document text that merely looks like a placeholder survives.
    """
    originals = originals or {}

    def _value(key: int, token: str) -> str:
        if key in redacted:
            return escape_text(redacted[key])
        if key in originals:
            return escape_text(originals[key])
        return token

    if positions is None:
        return PLACEHOLDER.sub(lambda m: _value(int(m.group(1)), m.group(0)), skeleton)

    pieces: list[str] = []
    cursor = 0
    for key, pos in sorted(positions.items(), key=lambda item: item[1]):
        token = placeholder(key)
        pieces.append(skeleton[cursor:pos])
        pieces.append(_value(key, token))
        cursor = pos + len(token)
    pieces.append(skeleton[cursor:])
    return "".join(pieces)


# ----------------------------------------------------------------------
# Segmentation for regex redaction
# ----------------------------------------------------------------------

def segment(content: str) -> list[Segment]:
    """Split into alternating control and literal runs.

    Ignored groups count as control.  Joining the segments gives back
    the input unchanged.
    """
    runs: list[tuple[bool, int, int]] = []
    for tok in walk(content):
        is_control = tok.skipped or tok.kind not in (TokenKind.TEXT, TokenKind.NEWLINE)
        if runs and runs[-1][0] == is_control:
            runs[-1] = (is_control, runs[-1][1], tok.end)
        else:
            runs.append((is_control, tok.start, tok.end))
    return [Segment(is_control, content[start:end]) for is_control, start, end in runs]


def map_literal(content: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to literal segments only; control segments pass through."""
    return "".join(
        seg.text if seg.is_control else fn(seg.text)
        for seg in segment(content)
    )
