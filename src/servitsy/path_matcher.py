"""
=============================================================================
PATH MATCHER
=============================================================================

Matches file paths against a list of single-segment glob patterns.

Used in two places:
- the ``exclude`` policy: a hit means the path is BLOCKED
- header rules (``include`` patterns): a hit means the headers APPLY

=============================================================================
PATTERN SYNTAX
=============================================================================

    ┌─────────────────┬─────────────────────────────────────────────────┐
    │  Pattern        │  Matches segment                                │
    ├─────────────────┼─────────────────────────────────────────────────┤
    │  .env           │  exactly ".env"                                 │
    │  .*             │  any segment starting with "."                  │
    │  *.min.js       │  "app.min.js", "x.min.js"                       │
    │  !.well-known   │  negation: never matches ".well-known"          │
    │  a/b            │  (rejected: patterns never span segments)       │
    └─────────────────┴─────────────────────────────────────────────────┘

A path is tested segment by segment:

    "docs/.git/config"
       │     │     │
       ▼     ▼     ▼
     docs  .git  config      ← each segment checked on its own

    A segment PASSES if some positive pattern matches the whole segment
    and no negative pattern does. The path matches if ANY segment passes.

    With patterns [".*", "!.well-known"]:
        ".env"                      → True   (".env" passes)
        ".well-known/security.txt"  → False  (".well-known" is negated)
        "public/.hidden/a.txt"      → True   (".hidden" passes)

=============================================================================
"""

import re
from typing import List, Optional, Pattern, Union

from .utils import fwd_slash


# Characters escaped before "*" is turned into a segment wildcard
_TO_ESCAPE = re.compile(r"([\[\]\(\)\|\^\$\.\+\?])")

Matcher = Union[str, Pattern[str]]


class PathMatcher:
    """
    Per-segment glob matcher with negation.

    Example:
        matcher = PathMatcher([".*", "!.well-known"], case_sensitive=True)
        matcher.test(".env")  # True
    """

    def __init__(self, patterns: List[str], case_sensitive: bool = True):
        self.case_sensitive = case_sensitive
        self.positive: List[Matcher] = []
        self.negative: List[Matcher] = []

        for value in patterns:
            if not isinstance(value, str):
                continue
            is_negative = value.startswith("!")
            trimmed = value[1:] if is_negative else value
            pattern = self._parse(trimmed) if trimmed else None
            if pattern is not None:
                (self.negative if is_negative else self.positive).append(pattern)

    def test(self, path: str) -> bool:
        """Check if at least one segment of path matches."""
        if not self.positive:
            return False
        segments = [s for s in fwd_slash(path).split("/") if s]
        return any(self._segment_passes(segment) for segment in segments)

    def _parse(self, value: str) -> Optional[Matcher]:
        if not self.case_sensitive:
            value = value.lower()
        if "/" in value or "\\" in value:
            return None
        if "*" in value:
            source = _TO_ESCAPE.sub(r"\\\1", value).replace("*", "[^/]*")
            return re.compile(source)
        return value

    def _match(self, pattern: Matcher, segment: str) -> bool:
        if not self.case_sensitive:
            segment = segment.lower()
        if isinstance(pattern, str):
            return pattern == segment
        return pattern.fullmatch(segment) is not None

    def _segment_passes(self, segment: str) -> bool:
        if not any(self._match(p, segment) for p in self.positive):
            return False
        return not any(self._match(p, segment) for p in self.negative)

    def __repr__(self) -> str:
        return (
            f"PathMatcher(positive={self.positive!r}, negative={self.negative!r}, "
            f"case_sensitive={self.case_sensitive})"
        )
