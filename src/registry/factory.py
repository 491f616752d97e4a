"""Registry factory: one shared registry object per URL."""

import threading
from typing import Callable, Dict, Optional

from .base import Registry
from .index import IndexRegistry


class RegistryFactory:
    """Creates and caches registries by URL.

    ``create`` builds a registry for a URL not seen before; it defaults to
    IndexRegistry, which understands http(s), file and plain-path URLs.
    """

    def __init__(self, create: Optional[Callable[[str], Registry]] = None):
        self._create = create or IndexRegistry
        self._registries: Dict[str, Registry] = {}
        self._lock = threading.Lock()

    def register(self, registry: Registry) -> Registry:
        """Make ``registry`` the instance returned for its URL."""
        with self._lock:
            self._registries[registry.url] = registry
        return registry

    def get(self, url: str) -> Registry:
        with self._lock:
            registry = self._registries.get(url)
            if registry is None:
                registry = self._create(url)
                self._registries[url] = registry
            return registry
