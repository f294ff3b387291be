#!/usr/bin/env python3
"""
Render an archive JSON file into a single self-contained HTML page.

Usage:
    python -m reports.run_render output/my-group-2026-01-01T10-00-00-000Z.json
    python -m reports.run_render archive.json report.html
    python -m reports.run_render --help

Without an output path the page is written to output-html/<input basename>.html.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from archiver.storage import load_archive
from reports import render

DEFAULT_OUTPUT_DIR = "output-html"


def default_output_path(input_path: Path, output_dir: str = DEFAULT_OUTPUT_DIR) -> Path:
    return Path(output_dir).resolve() / f"{input_path.stem}.html"


def render_file(input_path: Path, output_path: Path) -> Path:
    metadata, events = load_archive(input_path)
    html = render.render_archive(metadata, events)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(html, encoding="utf-8")
    return output_path


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for HTML rendering.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = argparse.ArgumentParser(
        description="Render a Meetup archive JSON file as HTML",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("input", help="Archive JSON written by archiver.main")
    parser.add_argument(
        "output",
        nargs="?",
        help=f"Output HTML path (default: {DEFAULT_OUTPUT_DIR}/<input name>.html)",
    )
    args = parser.parse_args(argv)

    input_path = Path(args.input).resolve()
    if not input_path.exists():
        print(f"[reports] ERROR: Archive not found at {input_path}", file=sys.stderr)
        return 1

    output_path = Path(args.output).resolve() if args.output else default_output_path(input_path)

    try:
        written = render_file(input_path, output_path)
    except (OSError, ValueError) as e:
        print(f"[reports] ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    print(f"[reports] HTML written to {written}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
