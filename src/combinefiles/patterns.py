"""
Ignore-file patterns: parsing lines into rules and matching rules against paths.

A rule is matched against a path given as a sequence of components relative
to the directory the rule governs.  Two interchangeable matchers are
provided: the segment-backtracking matcher (``matches``, the default) and a
regular-expression matcher (``regex_matches``) built by ``compile_rule``.
Both honour the same semantics:

* ``*`` and ``?`` never cross a ``/``;
* a ``**`` segment spans zero or more whole components;
* a pattern is a full-path match, never a prefix match;
* a rule is *rooted* (tried only at the first component) when it starts
  with ``/`` or has a slash before its last segment, as in git.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

logger = logging.getLogger(__name__)

DOUBLE_STAR = "**"


@dataclass(frozen=True)
class Rule:
    """One non-blank, non-comment line of an ignore file."""

    pattern: str
    negate: bool = False
    directory_only: bool = False
    anchored: bool = False
    segments: Tuple[str, ...] = ()
    # Components (relative to the run's base dir) of the declaring directory.
    scope: Tuple[str, ...] = ()
    # Components from the declaring directory down to the base dir, for
    # rules read from the base dir's ancestors.
    lead: Tuple[str, ...] = ()
    source: Optional[Tuple[str, int]] = field(default=None, compare=False)

    @property
    def rooted(self) -> bool:
        return self.anchored or len(self.segments) > 1

    def describe(self) -> str:
        text = ("!" if self.negate else "") + ("/" if self.anchored else "")
        text += self.pattern + ("/" if self.directory_only else "")
        if self.source is not None:
            return f"{text} ({self.source[0]}:{self.source[1]})"
        return text


# Rule parser
def parse_line(line: str, source: Optional[Tuple[str, int]] = None) -> Optional[Rule]:
    """Parse one ignore-file line; ``None`` for blank lines and comments.

    Never raises: a malformed pattern still yields a rule, it just never
    matches anything (e.g. ``a//b`` has an empty segment).
    """
    text = line.strip()
    if not text or text.startswith("#"):
        return None

    negate = False
    if text.startswith("!"):
        negate = True
        text = text[1:].strip()

    directory_only = False
    if text.endswith("/"):
        directory_only = True
        text = text[:-1]

    anchored = False
    if text.startswith("/"):
        anchored = True
        text = text[1:]

    if not text:
        return None

    return Rule(
        pattern=text,
        negate=negate,
        directory_only=directory_only,
        anchored=anchored,
        segments=tuple(text.split("/")),
        source=source,
    )


def parse_lines(lines: Iterable[str], source: Optional[str] = None) -> List[Rule]:
    rules: List[Rule] = []
    for lineno, line in enumerate(lines, start=1):
        rule = parse_line(line, (source, lineno) if source is not None else None)
        if rule is not None:
            rules.append(rule)
    return rules


def read_ignore_file(path: Path) -> List[Rule]:
    """Parse the ignore file at *path*.

    A missing or unreadable file contributes no rules; that is not an error.
    """
    try:
        if not path.is_file():
            return []
        with path.open("r", encoding="utf-8", errors="replace") as fh:
            rules = parse_lines(fh, source=str(path))
    except OSError as e:
        logger.debug("Could not read ignore file %s: %s", path, e)
        return []
    logger.debug("Loaded %d rule(s) from %s", len(rules), path)
    return rules


# Token matcher
def match_segment(pattern_segment: str, component: str) -> bool:
    """Glob-match one path component against one pattern segment.

    Supports ``*`` (any run, possibly empty) and ``?`` (exactly one
    character); everything else is literal.  ``**`` is handled by the path
    matcher and never matches here.
    """
    if pattern_segment == DOUBLE_STAR:
        return False

    p = c = 0
    star = -1
    star_c = 0
    plen, clen = len(pattern_segment), len(component)
    while c < clen:
        ch = pattern_segment[p] if p < plen else None
        if ch == "*":
            star = p
            star_c = c
            p += 1
        elif ch is not None and (ch == "?" or ch == component[c]):
            p += 1
            c += 1
        elif star >= 0:
            # let the last star swallow one more character and retry
            p = star + 1
            star_c += 1
            c = star_c
        else:
            return False

    while p < plen and pattern_segment[p] == "*":
        p += 1
    return p == plen


# Path matcher
def _scoped(rule: Rule, path_segments: Sequence[str]) -> Optional[Tuple[str, ...]]:
    """Return the path as seen from the rule's own directory, or None if outside it."""
    path = tuple(path_segments)
    depth = len(rule.scope)
    if depth:
        if path[:depth] != rule.scope:
            return None
        path = path[depth:]
    return rule.lead + path


def matches(rule: Rule, path_segments: Sequence[str], is_directory: bool) -> bool:
    """Return True if *rule* matches the whole path *path_segments*.

    The search runs over ``(segment index, component index)`` states with an
    explicit worklist, so adversarial ``**`` nesting cannot blow the stack and
    every state is expanded at most once.
    """
    if rule.directory_only and not is_directory:
        return False
    segments = rule.segments
    if not segments:
        return False
    path = _scoped(rule, path_segments)
    if path is None:
        return False

    n, m = len(segments), len(path)
    starts = [0] if rule.rooted else range(m + 1)
    pending = [(0, j) for j in reversed(starts)]
    seen = set()

    while pending:
        state = pending.pop()
        if state in seen:
            continue
        seen.add(state)
        i, j = state
        while i < n and j < m:
            segment = segments[i]
            if segment == DOUBLE_STAR:
                if i == n - 1:
                    return True
                pending.extend((i + 1, k) for k in range(m, j - 1, -1))
                break
            if not match_segment(segment, path[j]):
                break
            i += 1
            j += 1
        else:
            if i < n:
                if all(s == DOUBLE_STAR for s in segments[i:]):
                    return True
            elif j == m:
                return True
    return False


# Regex matcher
def _translate_segment(segment: str) -> str:
    out: List[str] = []
    for ch in segment:
        if ch == "*":
            if not out or out[-1] != "[^/]*":
                out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(ch))
    return "".join(out)


def translate(rule: Rule) -> str:
    """Translate *rule* into a regex over components joined as ``a/b/c/``."""
    parts = [] if rule.rooted else ["(?:[^/]*/)*"]
    for segment in rule.segments:
        if segment == DOUBLE_STAR:
            parts.append("(?:[^/]*/)*")
        else:
            parts.append(_translate_segment(segment) + "/")
    return "".join(parts)


@lru_cache(maxsize=4096)
def compile_rule(rule: Rule) -> Optional[Pattern[str]]:
    """Compile *rule* into a regex; ``None`` (never matches) if that fails."""
    if not rule.segments:
        return None
    try:
        return re.compile(translate(rule))
    except (re.error, RecursionError, OverflowError) as e:
        logger.warning("Ignoring unusable pattern %s: %s", rule.describe(), e)
        return None


def regex_matches(rule: Rule, path_segments: Sequence[str], is_directory: bool) -> bool:
    """Same contract as ``matches``, evaluated with the compiled regex."""
    if rule.directory_only and not is_directory:
        return False
    compiled = compile_rule(rule)
    if compiled is None:
        return False
    path = _scoped(rule, path_segments)
    if path is None:
        return False
    return compiled.fullmatch("".join(c + "/" for c in path)) is not None
