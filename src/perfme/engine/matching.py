"""
Selection patterns over hierarchy paths.

A selection pattern holds one filter per path level, starting at the top-level
group:

- ``None`` matches any title at that level
- a string matches that exact title
- a list, tuple or set matches any of its titles

A pattern shorter than a path constrains only the leading levels, so
``["Sorting"]`` selects everything under the ``Sorting`` group. A pattern
longer than the path never matches it.
"""

from typing import Collection, Iterable, Optional, Sequence, Union

LevelFilter = Optional[Union[str, Collection[str]]]


def matches_level(title: str, level_filter: LevelFilter) -> bool:
    """Check one path segment against one level filter."""
    if level_filter is None:
        return True
    if isinstance(level_filter, str):
        return title == level_filter
    return title in level_filter


def matches_path_pattern(path: Sequence[str], pattern: Sequence[LevelFilter]) -> bool:
    """
    Check whether ``path`` satisfies every level of ``pattern``.

    Args:
        path: Titles from the top-level group down to a leaf
        pattern: One filter per level; may be shorter than ``path``

    Returns:
        True if each specified level matches; an empty pattern matches every path
    """
    if len(pattern) > len(path):
        return False
    return all(matches_level(title, level_filter) for title, level_filter in zip(path, pattern))


def matches_any(path: Sequence[str], patterns: Optional[Iterable[Sequence[LevelFilter]]]) -> bool:
    """OR across ``patterns``; no patterns at all selects every path."""
    patterns = list(patterns or [])
    if not patterns:
        return True
    return any(matches_path_pattern(path, pattern) for pattern in patterns)


__all__ = ['LevelFilter', 'matches_level', 'matches_path_pattern', 'matches_any']
