#!/usr/bin/env python3
from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

from folio.epub import parse_epub_file
from folio.errors import EpubImportError
from folio.models import book_to_dict
from folio.options import options_from_env


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Parse an EPUB into ordered, self-contained chapter HTML plus book metadata."
    )
    parser.add_argument("input", help="Input EPUB file path")
    parser.add_argument("-o", "--output", help="Write JSON to this path instead of stdout")
    parser.add_argument("--diagnostics", action="store_true", help="Include non-fatal diagnostics in the output")
    parser.add_argument("--workers", type=int, help="Chapter extraction threads")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Input file not found: {input_path}", file=sys.stderr)
        return 1

    options = options_from_env()
    if args.workers:
        options = dataclasses.replace(options, max_workers=max(1, args.workers))

    try:
        book = parse_epub_file(input_path, options=options)
    except EpubImportError as exc:
        print(f"{exc.kind}: {exc}", file=sys.stderr)
        return 1

    payload = json.dumps(book_to_dict(book, include_diagnostics=args.diagnostics), ensure_ascii=False, indent=2)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
        print(f"JSON saved to: {args.output}")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
