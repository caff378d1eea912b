"""
Ordered rule sets and the ignore decision.

A ``RuleSet`` is the accumulated list of rules that applies inside one
directory: everything gathered from the filesystem root down to the base
directory, then each nested directory's own ignore file appended on the way
down.  Rule sets are immutable; extending one for a subdirectory returns a
new set so sibling directories never see each other's rules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .patterns import Rule, matches, read_ignore_file, regex_matches

logger = logging.getLogger(__name__)

IGNORE_FILENAME = ".gitignore"

MATCHERS: Dict[str, Callable[[Rule, Sequence[str], bool], bool]] = {
    "token": matches,
    "regex": regex_matches,
}


@dataclass(frozen=True)
class RuleSet:
    """Rules in precedence order (later rules override earlier ones).

    Attributes:
        base: Directory the candidate path segments are relative to.
        rules: Parent rules first, then child rules, file order kept.
        ignore_filename: Name of the per-directory ignore file.
        matcher: ``"token"`` or ``"regex"``; both decide identically.
    """

    base: Path
    rules: Tuple[Rule, ...] = ()
    ignore_filename: str = IGNORE_FILENAME
    matcher: str = "token"

    def __post_init__(self) -> None:
        if self.matcher not in MATCHERS:
            raise ValueError(
                f"Unknown matcher '{self.matcher}' (expected one of {', '.join(MATCHERS)})"
            )

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def extended(self, rules: Iterable[Rule]) -> "RuleSet":
        """Return a new set with *rules* appended; this set is unchanged."""
        added = tuple(rules)
        if not added:
            return self
        return replace(self, rules=self.rules + added)

    def explain(self, path_segments: Sequence[str], is_directory: bool) -> Optional[Rule]:
        """Return the last rule matching the path, or None if no rule matches."""
        match = MATCHERS[self.matcher]
        segments = tuple(path_segments)
        decisive: Optional[Rule] = None
        for rule in self.rules:
            if match(rule, segments, is_directory):
                decisive = rule
        return decisive

    def is_ignored(self, path_segments: Sequence[str], is_directory: bool) -> bool:
        """Every rule is evaluated; the last matching rule wins."""
        match = MATCHERS[self.matcher]
        segments = tuple(path_segments)
        ignored = False
        for rule in self.rules:
            if match(rule, segments, is_directory):
                ignored = not rule.negate
        return ignored


def is_ignored(rule_set: RuleSet, path_segments: Sequence[str], is_directory: bool) -> bool:
    return rule_set.is_ignored(path_segments, is_directory)


def path_segments(path: Path, base: Path) -> Tuple[str, ...]:
    """Components of *path* relative to *base* (``()`` for the base itself)."""
    return path.relative_to(base).parts


def gather_ancestor_rules(
    base_dir: Path,
    ignore_filename: str = IGNORE_FILENAME,
    matcher: str = "token",
) -> RuleSet:
    """Collect the ignore files of *base_dir* and all of its ancestors.

    Root-most rules come first and *base_dir*'s own rules last, so closer
    files override farther ones through ordinary last-match-wins.  Each
    ancestor rule carries the components leading from its directory down to
    the base, so anchored and multi-segment patterns resolve where declared.
    """
    base = Path(base_dir).resolve()
    chain: List[Path] = [base, *base.parents]
    rules: List[Rule] = []
    for directory in reversed(chain):
        lead = path_segments(base, directory)
        rules.extend(
            replace(rule, lead=lead) if lead else rule
            for rule in read_ignore_file(directory / ignore_filename)
        )
    return RuleSet(base=base, rules=tuple(rules), ignore_filename=ignore_filename, matcher=matcher)


def extend_with_local(parent: RuleSet, directory: Path) -> RuleSet:
    """Return *parent* plus the rules of *directory*'s own ignore file.

    The new rules are scoped to *directory*, so their anchored patterns
    resolve there.  *parent* is never mutated.
    """
    directory = Path(directory)
    try:
        scope = path_segments(directory, parent.base)
    except ValueError:
        logger.warning("%s is outside %s; its ignore file is not applied", directory, parent.base)
        return parent
    local = read_ignore_file(directory / parent.ignore_filename)
    return parent.extended(replace(rule, scope=scope) for rule in local)
