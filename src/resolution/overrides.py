"""Override table extracted from the root module."""
from __future__ import annotations

import logging
from typing import Dict, Iterator, Mapping, Optional

from .errors import ConfigurationError, ConflictingOverrideKindError, DuplicateOverrideError
from .models import (
    ArchiveOverride,
    GitOverride,
    ModuleDescriptor,
    MultipleVersionOverride,
    OverrideDirective,
    SingleVersionOverride,
    is_non_registry_override,
)

logger = logging.getLogger(__name__)


def _kind(override: OverrideDirective) -> str:
    return "path" if is_non_registry_override(override) else "version"


def _validate(override: OverrideDirective) -> None:
    if isinstance(override, (SingleVersionOverride, ArchiveOverride, GitOverride)):
        strip = override.patch_strip
        if isinstance(strip, bool) or not isinstance(strip, int) or strip < 0:
            raise ConfigurationError(
                f"Override for module '{override.module_name}': patch_strip must be a "
                f"non-negative integer, got {strip!r}"
            )
    if isinstance(override, MultipleVersionOverride) and not override.versions:
        raise ConfigurationError(
            f"multiple_version_override for module '{override.module_name}' has no versions"
        )


class OverrideTable:
    """Read-only mapping of module name to its override directive."""

    def __init__(self, overrides: Optional[Mapping[str, OverrideDirective]] = None):
        self._overrides: Dict[str, OverrideDirective] = dict(overrides or {})

    @classmethod
    def extract(
        cls,
        root: ModuleDescriptor,
        injected: Optional[Mapping[str, OverrideDirective]] = None,
    ) -> "OverrideTable":
        """Build the table from the root module's directives.

        ``injected`` overrides come from configuration; a directive declared by
        the root module for the same name takes precedence.

        Raises:
            DuplicateOverrideError: a name is overridden twice in the root module.
            ConflictingOverrideKindError: a name has both a path-style and a
                version-style override in the root module.
            ConfigurationError: a directive carries invalid values.
        """
        table: Dict[str, OverrideDirective] = {}
        for override in root.overrides:
            _validate(override)
            name = override.module_name
            existing = table.get(name)
            if existing is not None:
                if _kind(existing) != _kind(override):
                    raise ConflictingOverrideKindError(
                        f"Module '{name}' has both {type(existing).__name__} and "
                        f"{type(override).__name__}"
                    )
                raise DuplicateOverrideError(f"Multiple overrides for module '{name}'")
            table[name] = override

        for name, override in (injected or {}).items():
            _validate(override)
            if name in table:
                logger.info(
                    "Ignoring configured override for '%s'; the root module declares one", name
                )
                continue
            table[name] = override
        return cls(table)

    def get(self, name: str) -> Optional[OverrideDirective]:
        return self._overrides.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._overrides

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._overrides))

    def __len__(self) -> int:
        return len(self._overrides)

    def __eq__(self, other):
        if not isinstance(other, OverrideTable):
            return NotImplemented
        return self._overrides == other._overrides
