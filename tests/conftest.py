"""Shared fixtures: in-memory registries and resolver construction."""

import threading
from typing import Dict, List, Optional

import pytest

from constants import CheckMode
from registry.base import Registry
from registry.factory import RegistryFactory
from resolution.models import ModuleKey, RepoSpec, ResolutionConfig
from resolution.resolver import Resolver


class FakeRegistry(Registry):
    """Registry holding module files in memory.

    Every module is materialized as a local_repository under the registry
    URL, named after its canonical repository name.
    """

    def __init__(self, url: str):
        self._url = url
        self._modules: Dict[ModuleKey, str] = {}
        self._lock = threading.Lock()
        self.module_file_requests: List[ModuleKey] = []
        self.repo_spec_requests: List[ModuleKey] = []
        self._repo_spec_failures: Dict[ModuleKey, Exception] = {}

    @property
    def url(self) -> str:
        return self._url

    def add_module(self, key: ModuleKey, text: str) -> "FakeRegistry":
        self._modules[key] = text
        return self

    def fail_repo_spec(self, key: ModuleKey, error: Exception) -> "FakeRegistry":
        """Make get_repo_spec raise ``error`` for ``key``."""
        self._repo_spec_failures[key] = error
        return self

    def has_module(self, name: str) -> bool:
        return any(key.name == name for key in self._modules)

    def get_module_file(self, key: ModuleKey) -> Optional[str]:
        with self._lock:
            self.module_file_requests.append(key)
        return self._modules.get(key)

    def get_repo_spec(self, key: ModuleKey, canonical_name: str) -> RepoSpec:
        with self._lock:
            self.repo_spec_requests.append(key)
        if key in self._repo_spec_failures:
            raise self._repo_spec_failures[key]
        return RepoSpec(
            "local_repository",
            {"name": canonical_name, "path": f"{self._url}/{canonical_name}"},
        )

    def requested_names(self) -> List[str]:
        return [key.name for key in self.module_file_requests + self.repo_spec_requests]


class FakeRegistryFactory(RegistryFactory):
    """RegistryFactory that only knows registries created through it."""

    def __init__(self):
        super().__init__(create=self._unknown)

    @staticmethod
    def _unknown(url: str) -> Registry:
        raise AssertionError(f"Unexpected registry URL {url}")

    def new_fake_registry(self, url: str) -> FakeRegistry:
        return self.register(FakeRegistry(url))


@pytest.fixture
def registry_factory():
    """A fresh factory of in-memory registries."""
    return FakeRegistryFactory()


@pytest.fixture
def make_resolver(registry_factory):
    """Build resolvers over the fake registries; closes them after the test."""
    created = []

    def _make(root_text: str, registries, **config_kwargs) -> Resolver:
        config_kwargs.setdefault("check_direct_dependencies", CheckMode.WARNING)
        config_kwargs.setdefault("compatibility_mode", CheckMode.ERROR)
        config = ResolutionConfig(registries=tuple(registries), **config_kwargs)
        resolver = Resolver(root_text, config=config, registry_factory=registry_factory)
        created.append(resolver)
        return resolver

    yield _make
    for resolver in created:
        resolver.close()
