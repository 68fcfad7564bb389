"""CLI interface for format-redactor.

Usage:
    # Mask emails and names in a text file, print JSON result
    format-redactor redact notes.txt --categories emails,names

    # Replace PII in an RTF file with the model, write the new file
    format-redactor redact letter.rtf --use-ai --method replace --output out.rtf

    # DOCX: word/document.xml is read from and written back into the archive
    format-redactor redact report.docx --custom "Acme Corp" --output report-redacted.docx

    # Plain-text preview of an RTF file
    format-redactor preview letter.rtf
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path

from . import docx, rtf
from .config import create_redactor, load_config, load_from_yaml
from .errors import RedactionError
from .types import Category, FileType, RedactionMethod, RedactionOptions, determine_file_type


def _file_type(args: argparse.Namespace) -> FileType:
    return FileType.parse(args.type) if args.type else determine_file_type(args.file)


def _read(path: str, file_type: FileType) -> str:
    if file_type is FileType.DOCX:
        return docx.read_document_xml(path)
    return Path(path).read_text(encoding="utf-8")


def _options(args: argparse.Namespace) -> RedactionOptions:
    if args.categories:
        categories = frozenset(Category.parse(c) for c in args.categories.split(",") if c.strip())
    else:
        categories = frozenset(Category)
    return RedactionOptions(
        method=RedactionMethod(args.method),
        categories=categories,
        custom_values=tuple(args.custom),
        use_ai=args.use_ai,
        custom_prompt=args.prompt or None,
    )


def cmd_redact(args: argparse.Namespace) -> None:
    """Redact a file; print JSON or write the redacted file."""
    file_type = _file_type(args)
    config = load_from_yaml(args.config) if args.config else load_config({})
    redactor = create_redactor(config, use_ai=args.use_ai)

    content = _read(args.file, file_type)
    result = redactor.redact(content, file_type, _options(args))

    if not args.output:
        json.dump(result.to_payload(), sys.stdout, ensure_ascii=False)
        sys.stdout.write("\n")
        return

    out = Path(args.output)
    if file_type is FileType.DOCX:
        out.write_bytes(docx.replace_document_xml(args.file, result.redacted_content))
    else:
        out.write_text(result.redacted_content, encoding="utf-8")
    sys.stderr.write(f"Wrote {out} ({result.pii_count} redactions)\n")


def cmd_preview(args: argparse.Namespace) -> None:
    """Print the plain text of a file (RTF control words stripped)."""
    file_type = _file_type(args)
    content = _read(args.file, file_type)
    if file_type is FileType.RTF:
        content = rtf.extract_text(content)
    sys.stdout.write(content)
    sys.stdout.write("\n")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="format-redactor",
        description="Format-aware PII redaction for text, CSV, DOCX and RTF",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p_redact = sub.add_parser("redact", parents=[common], help="Redact a file")
    p_redact.add_argument("file", help="Input file")
    p_redact.add_argument("--type", choices=[t.value for t in FileType] + ["pdf"],
                          help="Override detected file type")
    p_redact.add_argument("--method", choices=[m.value for m in RedactionMethod], default="mask")
    p_redact.add_argument("--categories", default="",
                          help="Comma-separated categories (default: all)")
    p_redact.add_argument("--custom", action="append", default=[],
                          help="Custom value to always redact (repeatable)")
    p_redact.add_argument("--use-ai", action="store_true", help="Redact with the model")
    p_redact.add_argument("--prompt", default="", help="Extra instruction for the model")
    p_redact.add_argument("--config", default="", help="YAML config path")
    p_redact.add_argument("--output", "-o", default="", help="Write redacted file here")

    p_preview = sub.add_parser("preview", parents=[common], help="Print plain text")
    p_preview.add_argument("file", help="Input file")
    p_preview.add_argument("--type", choices=[t.value for t in FileType] + ["pdf"])

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cmds = {
        "redact": cmd_redact,
        "preview": cmd_preview,
    }
    try:
        cmds[args.command](args)
    except (RedactionError, OSError, ValueError) as e:
        sys.stderr.write(f"error: {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
