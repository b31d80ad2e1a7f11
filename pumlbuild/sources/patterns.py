"""Ant-style path patterns for selecting diagram sources."""

from __future__ import annotations

from fnmatch import fnmatchcase
from functools import lru_cache
from typing import Iterable


@lru_cache(maxsize=256)
def _segments(pattern: str) -> tuple[str, ...]:
    """Split a pattern into path segments.

    A trailing slash selects everything below the directory, so ``docs/``
    is read as ``docs/**``. Repeated ``**`` segments collapse into one.
    """
    normalized = pattern.replace("\\", "/").strip()
    while normalized.startswith("./"):
        normalized = normalized[2:]
    if normalized.endswith("/"):
        normalized += "**"

    segments: list[str] = []
    for segment in normalized.split("/"):
        if not segment:
            continue
        if segment == "**" and segments and segments[-1] == "**":
            continue
        segments.append(segment)
    return tuple(segments)


def _match(parts: tuple[str, ...], segments: tuple[str, ...]) -> bool:
    if not segments:
        return not parts

    head, rest = segments[0], segments[1:]
    if head == "**":
        return any(_match(parts[index:], rest) for index in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatchcase(parts[0], head) and _match(parts[1:], rest)


def matches(relative_path: str, pattern: str) -> bool:
    """Return True when a base-relative posix path matches ``pattern``.

    ``**`` matches zero or more directories; ``*``, ``?`` and ``[...]`` never
    cross a ``/``.
    """
    parts = tuple(part for part in relative_path.split("/") if part)
    return _match(parts, _segments(pattern))


def is_selected(
    relative_path: str, includes: Iterable[str], excludes: Iterable[str]
) -> bool:
    """Return True when the path matches an include and no exclude."""
    if any(matches(relative_path, pattern) for pattern in excludes):
        return False
    return any(matches(relative_path, pattern) for pattern in includes)
