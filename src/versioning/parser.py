"""Version parsing and selection helpers."""

from typing import Iterable, Optional, Tuple

from .models import Version


def parse_version(raw: str) -> Version:
    """Parse ``raw`` into a Version; raises ValueError when malformed."""
    return Version(raw)


def _sort_key(raw: str) -> Tuple[Version, str]:
    # Equal versions spelled differently ("1.0" vs "1.0.0") are ordered by
    # their raw text so selection never depends on input order.
    return parse_version(raw), raw


def max_version(versions: Iterable[str]) -> str:
    """Return the highest version string of a non-empty iterable."""
    candidates = list(versions)
    if not candidates:
        raise ValueError("max_version() arg is an empty sequence")
    return max(candidates, key=_sort_key)


def sort_versions(versions: Iterable[str]) -> list:
    """Return the distinct version strings in ascending order."""
    return sorted(set(versions), key=_sort_key)


def ceiling(candidate: str, allowed: Iterable[str]) -> Optional[str]:
    """Round ``candidate`` up to the lowest allowed version not below it.

    Returns None when every allowed version is lower than ``candidate``.
    """
    wanted = parse_version(candidate)
    for raw in sort_versions(allowed):
        if parse_version(raw) >= wanted:
            return raw
    return None
