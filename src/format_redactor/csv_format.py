"""CSV helpers: delimiter detection, header handling, per-cell mapping."""

from __future__ import annotations
import csv
from dataclasses import dataclass
from typing import Callable

# Order is the tie-break precedence
DELIMITERS = (",", ";", "\t")


def detect_delimiter(content: str) -> str:
    """Pick the delimiter that occurs most often on the first line."""
    first_line = content.split("\n", 1)[0]
    counts = [first_line.count(d) for d in DELIMITERS]
    # max() returns the first maximal entry, so earlier delimiters win ties
    return DELIMITERS[counts.index(max(counts))]


@dataclass(frozen=True, slots=True)
class CsvParts:
    delimiter: str
    header_line: str
    headers: list[str]
    body: str


def split_header(content: str, delimiter: str | None = None) -> CsvParts:
    """Separate the header row from the data rows."""
    delimiter = delimiter or detect_delimiter(content)
    header_line, _, body = content.partition("\n")
    headers = next(csv.reader([header_line.rstrip("\r")], delimiter=delimiter), [])
    return CsvParts(delimiter=delimiter, header_line=header_line, headers=headers, body=body)


def join_header(header_line: str, body: str) -> str:
    return f"{header_line}\n{body}"


def map_cells(content: str, fn: Callable[[str], str], delimiter: str | None = None) -> str:
    """Apply ``fn`` to every cell independently, keeping rows and delimiters."""
    delimiter = delimiter or detect_delimiter(content)
    rows = []
    for line in content.split("\n"):
        rows.append(delimiter.join(fn(cell) for cell in line.split(delimiter)))
    return "\n".join(rows)
