"""Exclude-pattern validation and glob matching against directory names."""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Iterable


def validate_exclude_pattern(pattern: str) -> str:
    """Return the stripped pattern or raise ``ValueError`` for unusable syntax."""

    candidate = pattern.strip()
    if not candidate:
        raise ValueError("exclude pattern must not be empty")
    if "/" in candidate or "\\" in candidate:
        raise ValueError(f"exclude pattern must match a single directory name: {pattern!r}")

    index = candidate.find("[")
    while index != -1:
        start = index + 1
        if candidate[start:start + 1] == "!":
            start += 1
        # A leading "]" is a literal member of the class.
        if candidate[start:start + 1] == "]":
            start += 1
        close = candidate.find("]", start)
        if close == -1:
            raise ValueError(f"unterminated character class in exclude pattern: {pattern!r}")
        index = candidate.find("[", close + 1)
    return candidate


def matches_pattern(name: str, pattern: str) -> bool:
    """Case-sensitive glob match of one directory name."""

    return fnmatchcase(name, pattern)


def is_excluded(name: str, patterns: Iterable[str]) -> bool:
    """Return whether the name matches any of the exclude patterns."""

    return any(matches_pattern(name, pattern) for pattern in patterns)


def merge_patterns(existing: Iterable[str], additional: Iterable[str]) -> list[str]:
    """Union two pattern lists, keeping first-seen order."""

    merged: list[str] = []
    seen: set[str] = set()
    for pattern in (*existing, *additional):
        if pattern in seen:
            continue
        seen.add(pattern)
        merged.append(pattern)
    return merged
