"""Module version ordering and selection helpers."""

from .models import Version
from .parser import ceiling, max_version, parse_version, sort_versions

__all__ = [
    "Version",
    "ceiling",
    "max_version",
    "parse_version",
    "sort_versions",
]
