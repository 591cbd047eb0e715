"""
Command-line interface for decoding .eml files.

Writes one JSON summary per message (JSON Lines): decoded headers, body lengths
and file metadata.

Usage:
    # Single file
    eml-decoder input.eml

    # Directory batch processing
    eml-decoder emails/ --output summaries.jsonl

    # Extract attachments and inline images
    eml-decoder input.eml --save-files ./files
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import structlog

from eml_decoder.config import settings
from eml_decoder.errors import EmailReadError
from eml_decoder.logging_config import setup_logging
from eml_decoder.models.email_document import Email, InlineFile
from eml_decoder.parsing.eml_parser import Parser, save_files_to_directory
from eml_decoder.version import PARSER_VERSION

logger = structlog.get_logger(__name__)


# ============================================================================
# CLI FUNCTIONS
# ============================================================================

def summarize_email(email: Email, source: Path) -> dict:
    """
    Build the JSON-serializable summary of a decoded email.

    Args:
        email: Decoded email
        source: File the email was read from

    Returns:
        Summary dict (file payloads are reported by size only)
    """
    files = []
    for kind, group in (("attached", email.attached_files), ("inline", email.inline_files)):
        for file in group:
            files.append({
                "kind": kind,
                "content_type": file.content_type.media_type,
                "disposition": file.content_disposition.disposition,
                "content_id": file.content_id if isinstance(file, InlineFile) else "",
                "filename": file.filename,
                "size_bytes": len(file.data),
            })

    return {
        "source": str(source),
        "parser_version": PARSER_VERSION,
        "headers": email.headers.model_dump(mode="json"),
        "text_length": len(email.text),
        "enriched_text_length": len(email.enriched_text),
        "html_length": len(email.html),
        "files": files,
    }


def collect_inputs(paths: Iterable[str]) -> Tuple[List[Path], List[str]]:
    """
    Expand input arguments into .eml files.

    Directories are scanned recursively for *.eml.

    Returns:
        (files to parse, arguments that do not exist)
    """
    files: List[Path] = []
    missing: List[str] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            found = sorted(path.glob("**/*.eml"))
            if not found:
                logger.warning("no_eml_files_found", directory=str(path))
            files.extend(found)
        elif path.exists():
            files.append(path)
        else:
            missing.append(raw)
    return files, missing


def write_output(summaries: List[dict], output_path: Optional[Path]) -> None:
    """Write summaries as JSON Lines to a file, or to stdout."""
    lines = [json.dumps(summary, ensure_ascii=False) for summary in summaries]

    if not output_path:
        for line in lines:
            print(line)
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")

    logger.info("output_written", path=str(output_path), count=len(summaries))


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eml-decoder",
        description="Decode .eml files and print a JSON summary per message",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s input.eml
  %(prog)s emails/ --output summaries.jsonl
  %(prog)s input.eml --save-files ./files
  %(prog)s input.eml --headers-only
        """,
    )
    parser.add_argument(
        "paths",
        nargs="+",
        help="Path(s) to .eml files or directories containing .eml files",
    )
    parser.add_argument(
        "--headers-only",
        action="store_true",
        help="Decode only the top-level headers",
    )
    parser.add_argument(
        "--without-attachments",
        action="store_true",
        help="Decode bodies but skip attached and inline files",
    )
    parser.add_argument(
        "--save-files",
        type=str,
        default=None,
        metavar="DIR",
        help="Write every collected file into DIR",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Output file path (default: stdout)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


# ============================================================================
# MAIN CLI
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit status: 0 on success, 1 when any input could not be read
    """
    args = build_arg_parser().parse_args(argv)

    run_settings = settings
    if args.verbose:
        run_settings = settings.model_copy(update={"log_level": "DEBUG"})
    setup_logging(run_settings)

    files, missing = collect_inputs(args.paths)
    for raw in missing:
        print(f"Error: Path not found: {raw}", file=sys.stderr)

    parser = Parser(
        headers_only=args.headers_only,
        skip_attachments=args.without_attachments,
        file_handler=save_files_to_directory(args.save_files) if args.save_files else None,
        settings=run_settings,
    )

    summaries = []
    failures = len(missing)
    for idx, path in enumerate(files, 1):
        if args.verbose:
            print(f"[{idx}/{len(files)}] Processing {path.name}...", file=sys.stderr)
        try:
            email = parser.parse_file(path)
        except (OSError, EmailReadError) as e:
            logger.error("file_processing_failed", file=str(path), error=str(e))
            print(f"Error: {path}: {e}", file=sys.stderr)
            failures += 1
            continue
        summaries.append(summarize_email(email, path))

    write_output(summaries, Path(args.output) if args.output else None)

    logger.info(
        "processing_completed",
        total=len(files) + len(missing),
        success=len(summaries),
        errors=failures,
    )
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
