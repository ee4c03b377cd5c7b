#!/usr/bin/env python3
"""Command-line interface for the Lua 4.0 bytecode decompiler."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from luadec import DecompileOptions, process_path, status_line
from luadec.pipeline import STATUS_FAILED, STATUS_INVALID

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="Compiled chunks or directories containing them (searched recursively)",
    )
    parser.add_argument(
        "--suffix",
        default="_d",
        help="Suffix appended to output file and directory names",
    )
    parser.add_argument(
        "--indent-spaces",
        type=int,
        default=None,
        metavar="N",
        help="Indent with N spaces instead of tabs",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Write the decompiled text without running the layout formatter",
    )
    parser.add_argument(
        "--listing",
        action="store_true",
        help="Write an instruction listing instead of decompiled source",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Write results below this directory instead of next to the inputs",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", action="store_true", help="Enable debug logging")
    verbosity.add_argument("--quiet", action="store_true", help="Only log errors")
    return parser.parse_args(argv)


def configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format=LOG_FORMAT)


def build_options(args: argparse.Namespace) -> DecompileOptions:
    options = DecompileOptions(output_suffix=args.suffix, format_output=not args.raw)
    if args.indent_spaces is not None:
        if args.indent_spaces < 0:
            raise SystemExit("--indent-spaces must not be negative")
        options.indent = " " * args.indent_spaces
    return options


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args)
    options = build_options(args)

    exit_code = 0
    for path in args.paths:
        for result in process_path(path, options, output_dir=args.output_dir, listing=args.listing):
            print(status_line(result))
            if result.status in (STATUS_INVALID, STATUS_FAILED):
                exit_code = 1
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
