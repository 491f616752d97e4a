"""Abstract registry interface."""

from abc import ABC, abstractmethod
from typing import Optional

from resolution.models import ModuleKey, RepoSpec


class Registry(ABC):
    """An index of module files and repository rules keyed by module version."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Identity of this registry."""

    @abstractmethod
    def has_module(self, name: str) -> bool:
        """Return True when the registry lists module ``name`` at all."""

    @abstractmethod
    def get_module_file(self, key: ModuleKey) -> Optional[str]:
        """Return the module file text for ``key``, or None if not served."""

    @abstractmethod
    def get_repo_spec(self, key: ModuleKey, canonical_name: str) -> RepoSpec:
        """Return the repository rule that materializes ``key`` as ``canonical_name``.

        Raises:
            DescriptorNotFoundError: the registry has no source for ``key``.
        """

    def __repr__(self):
        return f"{type(self).__name__}({self.url!r})"
