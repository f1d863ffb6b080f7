"""Branch pattern matching.

Patterns are ``/``-separated segment templates. Each segment is either a
literal (compared case-sensitively) or ``*``, which stands for exactly one
non-empty segment and never spans a ``/``. Matching is a fixed-arity segment
comparison, so there is no regex engine and no backtracking.
"""

from typing import List

WILDCARD = "*"
SEPARATOR = "/"
MAX_PATTERN_LENGTH = 255


def _segments(value: str) -> List[str]:
    return value.split(SEPARATOR)


def matches(pattern: str, branch: str) -> bool:
    """Return True if *branch* matches *pattern*.

    >>> matches("release/*", "release/v1.0")
    True
    >>> matches("feature/*/dev", "feature/dev")
    False
    """
    if not pattern or not branch:
        return False

    pattern_segments = _segments(pattern)
    branch_segments = _segments(branch)
    if len(pattern_segments) != len(branch_segments):
        return False

    for expected, actual in zip(pattern_segments, branch_segments):
        if expected == WILDCARD:
            if not actual:
                return False
        elif expected != actual:
            return False
    return True


def wildcard_count(pattern: str) -> int:
    return sum(1 for segment in _segments(pattern) if segment == WILDCARD)


def pattern_problem(pattern: str) -> str | None:
    """Describe what is wrong with *pattern*, or None if it is well formed."""
    if not isinstance(pattern, str) or not pattern.strip():
        return "pattern must be a non-empty string"
    if len(pattern) > MAX_PATTERN_LENGTH:
        return f"pattern must be at most {MAX_PATTERN_LENGTH} characters"
    if pattern != pattern.strip():
        return "pattern must not have leading or trailing whitespace"
    for segment in _segments(pattern):
        if not segment:
            return "pattern must not contain empty segments"
        if WILDCARD in segment and segment != WILDCARD:
            return "wildcard '*' must occupy a whole segment"
    return None
