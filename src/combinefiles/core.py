"""
Core logic for combinefiles package: tree walk, filtering and the combined writer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional

import pathspec
from colorama import Fore, Style, init as colorama_init

from .ruleset import IGNORE_FILENAME, RuleSet, extend_with_local, gather_ancestor_rules, path_segments

colorama_init()

logger = logging.getLogger(__name__)


# Exceptions
class CombinefilesError(Exception): ...
class InvalidRootError(CombinefilesError): ...
class ConfigFileError(CombinefilesError): ...
class OutputError(CombinefilesError): ...


# Defaults & helpers
DEFAULT_OUTPUT = "combined.txt"

# VCS metadata is never part of the combined output
DEFAULT_PATTERNS: List[str] = [
    ".git/",
    ".hg/",
    ".svn/",
]
DEFAULT_SPEC = pathspec.PathSpec.from_lines("gitwildmatch", DEFAULT_PATTERNS)

BINARY_SAMPLE_SIZE = 8000
BINARY_THRESHOLD = 0.30
_TEXT_BYTES = bytes(range(0x20, 0x7F)) + b"\t\n\v\f\r"


def say(msg: str, colour: str = "") -> None:
    line = f"[combinefiles] {msg}"
    print(f"{colour}{line}{Style.RESET_ALL}" if colour else line)


def is_binary(sample: bytes, threshold: float = BINARY_THRESHOLD) -> bool:
    """True when more than *threshold* of *sample* is outside printable ASCII and whitespace."""
    if not sample:
        return False
    odd = len(sample.translate(None, _TEXT_BYTES))
    return odd / len(sample) > threshold


def _spec_excludes(spec: "pathspec.PathSpec", rel: str, is_dir: bool) -> bool:
    # pathspec only treats a path as a directory when it ends with "/"
    return spec.match_file(rel + "/" if is_dir else rel)


# Config file handling
def load_extra_patterns(config_path: Path) -> "pathspec.PathSpec":
    """Read newline-separated patterns from *config_path* and compile them."""
    if not config_path.exists():
        raise ConfigFileError(f"Config file '{config_path}' does not exist")
    if not config_path.is_file():
        raise ConfigFileError(f"'{config_path}' is not a file")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            lines = [
                ln.strip()
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read config file '{config_path}': {e}")
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


# Tree walk
def resolve_root(root: Path) -> Path:
    try:
        root = root.resolve()
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Could not resolve root path '{root}': {e}")
    if not root.exists():
        raise InvalidRootError(f"Root directory '{root}' does not exist")
    if not root.is_dir():
        raise InvalidRootError(f"Root path '{root}' is not a directory")
    return root


def walk_tree(
    rule_set: RuleSet,
    *,
    output_name: Optional[str] = None,
    extra_spec: Optional["pathspec.PathSpec"] = None,
) -> Iterator[Path]:
    """Yield every file under ``rule_set.base`` that is not excluded.

    Entries are visited depth-first in name order.  Paths handed to the
    ignore engine are always relative to ``rule_set.base``; each directory's
    own ignore file is added to the rules only for that directory's subtree.
    Ignored directories are pruned without being listed.
    """
    root = rule_set.base
    skip_names = {rule_set.ignore_filename}
    if output_name:
        skip_names.add(output_name)

    def _walk(directory: Path, rules: RuleSet) -> Iterator[Path]:
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.warning("Could not list directory %s: %s", directory, e)
            return

        for entry in entries:
            if entry.name in skip_names:
                continue
            try:
                if entry.is_symlink() and entry.is_dir():
                    logger.debug("Not following directory symlink %s", entry)
                    continue
                is_dir = entry.is_dir()
                if not is_dir and not entry.is_file():
                    continue
            except OSError as e:
                logger.warning("Could not stat %s: %s", entry, e)
                continue

            segments = path_segments(entry, root)
            rel = "/".join(segments)
            if _spec_excludes(DEFAULT_SPEC, rel, is_dir):
                continue
            if extra_spec is not None and _spec_excludes(extra_spec, rel, is_dir):
                continue
            if rules.is_ignored(segments, is_dir):
                if logger.isEnabledFor(logging.DEBUG):
                    decisive = rules.explain(segments, is_dir)
                    logger.debug("Ignored %s%s by %s", rel, "/" if is_dir else "", decisive.describe())
                continue

            if is_dir:
                yield from _walk(entry, extend_with_local(rules, entry))
            else:
                yield entry

    yield from _walk(root, rule_set)


# Main writer
@dataclass
class CombineSummary:
    files_written: int = 0
    bytes_written: int = 0
    skipped_binary: List[str] = field(default_factory=list)
    unreadable: List[str] = field(default_factory=list)
    truncated: List[str] = field(default_factory=list)


def combine_files(
    root: Path,
    out_path: Path,
    *,
    ignore_filename: str = IGNORE_FILENAME,
    extra_spec: Optional["pathspec.PathSpec"] = None,
    matcher: str = "token",
    max_bytes: Optional[int] = None,
    verbose: bool = False,
) -> CombineSummary:
    """Write every non-ignored text file under *root* into *out_path*."""
    root = resolve_root(root)
    try:
        out_path = out_path.resolve()
    except (OSError, RuntimeError) as e:
        raise OutputError(f"Could not resolve output path '{out_path}': {e}")

    if not out_path.parent.exists():
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(f"Could not create directory '{out_path.parent}': {e}")

    rule_set = gather_ancestor_rules(root, ignore_filename=ignore_filename, matcher=matcher)
    if verbose:
        say(f"Scanning {root} ({len(rule_set)} inherited ignore rule(s)) …")

    summary = CombineSummary()
    try:
        with out_path.open("w", encoding="utf-8", newline="\n") as out_fh:
            for p in walk_tree(rule_set, output_name=out_path.name, extra_spec=extra_spec):
                if p == out_path:
                    continue
                rel = p.relative_to(root).as_posix()
                try:
                    raw = p.read_bytes()
                except OSError as e:
                    summary.unreadable.append(rel)
                    logger.warning("Could not read %s: %s", rel, e)
                    continue

                if is_binary(raw[:BINARY_SAMPLE_SIZE]):
                    summary.skipped_binary.append(rel)
                    if verbose:
                        say(f"- Skipping binary {rel}", Fore.YELLOW)
                    continue

                truncated = max_bytes is not None and len(raw) > max_bytes
                if truncated:
                    raw = raw[:max_bytes]
                    summary.truncated.append(rel)
                text = raw.decode("utf-8", errors="replace")

                out_fh.write(f"# File: {rel}\n\n")
                out_fh.write(text)
                if truncated:
                    out_fh.write("\n# [truncated]")
                out_fh.write("\n\n")
                summary.files_written += 1
                summary.bytes_written += len(raw)
    except OSError as e:
        raise OutputError(f"Could not write to output file '{out_path}': {e}")

    if verbose:
        say(
            f"Done → {out_path}. "
            f"{summary.files_written} files written, {summary.bytes_written} bytes. "
            f"{len(summary.skipped_binary)} binary, {len(summary.unreadable)} unreadable, "
            f"{len(summary.truncated)} truncated.",
            Fore.GREEN,
        )
    return summary
