"""Version model with a total ordering for module versions."""

import functools
import re
from typing import Tuple, Union

Identifier = Tuple[int, Union[int, str]]

_VERSION_RE = re.compile(
    r"^(?P<release>[a-zA-Z0-9.]+)"
    r"(?:-(?P<prerelease>[a-zA-Z0-9.-]+))?"
    r"(?:\+(?P<build>[a-zA-Z0-9.-]+))?$"
)

# Numeric identifiers sort before alphanumeric ones.
_NUMERIC = 0
_ALPHA = 1
_ZERO: Identifier = (_NUMERIC, 0)


def _identifier(segment: str) -> Identifier:
    if segment.isdigit():
        return (_NUMERIC, int(segment))
    return (_ALPHA, segment)


def _split(text: str, raw: str) -> Tuple[Identifier, ...]:
    segments = text.split(".")
    if any(not seg for seg in segments):
        raise ValueError(f"Invalid version '{raw}': empty identifier")
    return tuple(_identifier(seg) for seg in segments)


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


@functools.total_ordering
class Version:
    """A parsed module version.

    Release identifiers are compared pairwise with the shorter release padded
    with zeros, so ``1.0`` and ``1.0.0`` are equal. A prerelease sorts below
    the same release without one. Build metadata is ignored. The empty
    version sorts above every other version.
    """

    __slots__ = ("raw", "release", "prerelease")

    def __init__(self, raw: str):
        raw = (raw or "").strip()
        self.raw = raw
        if not raw:
            self.release: Tuple[Identifier, ...] = ()
            self.prerelease: Tuple[Identifier, ...] = ()
            return
        match = _VERSION_RE.match(raw)
        if match is None:
            raise ValueError(f"Invalid version '{raw}'")
        self.release = _split(match.group("release"), raw)
        pre = match.group("prerelease")
        self.prerelease = _split(pre, raw) if pre else ()

    @property
    def is_empty(self) -> bool:
        """True for the empty version used by non-registry overrides."""
        return not self.raw

    def _normalized_release(self) -> Tuple[Identifier, ...]:
        release = list(self.release)
        while release and release[-1] == _ZERO:
            release.pop()
        return tuple(release)

    def compare(self, other: "Version") -> int:
        """Three-way comparison returning -1, 0 or 1."""
        if self.is_empty or other.is_empty:
            return _cmp(self.is_empty, other.is_empty)

        width = max(len(self.release), len(other.release))
        left = self.release + (_ZERO,) * (width - len(self.release))
        right = other.release + (_ZERO,) * (width - len(other.release))
        result = _cmp(left, right)
        if result:
            return result

        if bool(self.prerelease) != bool(other.prerelease):
            return -1 if self.prerelease else 1
        return _cmp(self.prerelease, other.prerelease)

    def __eq__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self):
        return hash((self.is_empty, self._normalized_release(), self.prerelease))

    def __str__(self):
        return self.raw

    def __repr__(self):
        return f"Version({self.raw!r})"
