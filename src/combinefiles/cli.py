"""
CLI entrypoint for combinefiles package.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core import (
    DEFAULT_OUTPUT,
    combine_files,
    load_extra_patterns,
    say,
    CombinefilesError,
)
from .ruleset import IGNORE_FILENAME, MATCHERS


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{value}'")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="combinefiles",
        description="Concatenate every non-ignored text file under a directory into one file.",
    )
    p.add_argument("root", type=Path, nargs="?", default=Path("."), help="Directory to combine")
    p.add_argument(
        "--out",
        type=Path,
        default=Path(DEFAULT_OUTPUT),
        help=f"Output file (default: {DEFAULT_OUTPUT})",
    )
    p.add_argument(
        "--ignore-file",
        default=IGNORE_FILENAME,
        help=f"Name of the per-directory ignore file (default: {IGNORE_FILENAME})",
    )
    p.add_argument(
        "--config",
        type=Path,
        help="Path to a file with extra ignore patterns (one per line)",
    )
    p.add_argument(
        "--matcher",
        choices=sorted(MATCHERS),
        default="token",
        help="Pattern matching strategy (default: token)",
    )
    p.add_argument(
        "--max-bytes",
        type=_positive_int,
        default=None,
        help="Truncate each file after this many bytes (default: no limit)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    ns = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        extra_spec = None
        if ns.config:
            extra_spec = load_extra_patterns(ns.config.resolve())
            if ns.verbose:
                say(f"Loaded extra patterns from {ns.config}")

        combine_files(
            ns.root,
            ns.out,
            ignore_filename=ns.ignore_file,
            extra_spec=extra_spec,
            matcher=ns.matcher,
            max_bytes=ns.max_bytes,
            verbose=ns.verbose,
        )
    except CombinefilesError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 130

    if not ns.verbose:
        print(f"Files have been combined into {ns.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
