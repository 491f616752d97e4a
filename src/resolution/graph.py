"""Dependency graph discovery.

``build`` walks the dependency edges of the root module breadth-first and
requests every reachable module file from the evaluator. It is restartable:
when module files are missing it returns None, and re-running it from the
top after they arrive replays the same walk for the modules already known.
"""
from __future__ import annotations

import dataclasses
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from registry import RegistryFactory
from versioning import ceiling

from .errors import DescriptorNotFoundError, ParseError, RegistryLookupError, VersionResolutionError
from .evaluator import Environment, Key
from .models import (
    DepEdge,
    ModuleDescriptor,
    ModuleKey,
    MultipleVersionOverride,
    OverrideDirective,
    ResolutionConfig,
    SingleVersionOverride,
    is_non_registry_override,
    override_registry,
)
from .module_file import parse_module_file
from .overrides import OverrideTable

logger = logging.getLogger(__name__)

MODULE_FILE = "module_file"


@dataclass(frozen=True)
class ModuleFileRequest:
    """Fetch ``module`` from the first of ``registries`` that serves it."""
    module: ModuleKey
    registries: Tuple[str, ...]


def module_file_key(module: ModuleKey, override: Optional[OverrideDirective],
                    config: ResolutionConfig) -> Key:
    pinned = override_registry(override)
    registries = (pinned,) if pinned else tuple(config.registries)
    return Key(MODULE_FILE, ModuleFileRequest(module, registries))


def fetch_module_file(request: ModuleFileRequest,
                      registry_factory: RegistryFactory) -> ModuleDescriptor:
    """Fetch and parse one module file, trying registries in order.

    Raises:
        DescriptorNotFoundError: a registry lists the module but not this version.
        RegistryLookupError: no registry lists the module.
        ParseError: the module file is malformed or names another module.
    """
    module = request.module
    for url in request.registries:
        registry = registry_factory.get(url)
        text = registry.get_module_file(module)
        if text is None:
            continue
        descriptor = parse_module_file(
            text, is_root=False, source=f"{url}/modules/{module.name}/{module.version}"
        )
        if descriptor.name != module.name or (
                descriptor.version and descriptor.version != module.version):
            raise ParseError(
                f"Module file for {module} from {url} declares "
                f"{descriptor.name or '<unnamed>'}@{descriptor.version or '_'}"
            )
        if is_debug_enabled(logger):
            logger.debug(
                "Fetched module file",
                extra=extra_context(
                    event="fetch",
                    component="graph",
                    action="fetch_module_file",
                    outcome="success",
                    target=str(module),
                    registry=url,
                )
            )
        return dataclasses.replace(descriptor, version=module.version, registry=url)

    for url in request.registries:
        if registry_factory.get(url).has_module(module.name):
            raise DescriptorNotFoundError(
                f"Version {module.version} of module '{module.name}' not found in registry {url}"
            )
    raise RegistryLookupError(
        f"Module '{module.name}' not found in registries: {', '.join(request.registries)}"
    )


def request_version(edge: DepEdge, override: Optional[OverrideDirective]) -> str:
    """Version actually requested for ``edge`` once ``override`` is applied.

    Raises:
        VersionResolutionError: no allowed version of a multiple-version
            override satisfies the edge.
    """
    if isinstance(override, SingleVersionOverride) and override.version:
        return override.version
    if isinstance(override, MultipleVersionOverride):
        rounded = ceiling(edge.version, override.versions)
        if rounded is None:
            raise VersionResolutionError(
                f"Module '{edge.name}' is requested at version {edge.version}, but "
                f"multiple_version_override only allows {', '.join(override.versions)}"
            )
        return rounded
    if not edge.version:
        raise VersionResolutionError(
            f"bazel_dep on '{edge.name}' has no version and the module is not overridden"
        )
    return edge.version


def followed_edges(descriptor: ModuleDescriptor, is_root: bool,
                   config: ResolutionConfig) -> List[DepEdge]:
    """Edges of ``descriptor`` that take part in resolution."""
    if is_root and config.ignore_dev_dependencies:
        return [edge for edge in descriptor.deps if not edge.dev_dependency]
    return list(descriptor.deps)


@dataclass
class DependencyGraph:
    """Every module reachable from the root before version selection.

    ``requests`` is the reverse adjacency: module name -> requested version
    -> requesting modules. Names under a non-registry override are recorded
    with the version ``""`` and have no descriptor.
    """
    root: ModuleKey
    modules: Dict[ModuleKey, ModuleDescriptor]
    requests: Dict[str, Dict[str, List[ModuleKey]]] = field(default_factory=dict)

    @property
    def root_descriptor(self) -> ModuleDescriptor:
        return self.modules[self.root]

    def requested_versions(self, name: str) -> List[str]:
        return list(self.requests.get(name, {}))

    def requesters(self, name: str, version: str) -> List[ModuleKey]:
        return list(self.requests.get(name, {}).get(version, []))


def root_key(root: ModuleDescriptor) -> ModuleKey:
    return ModuleKey(root.name, Constants.ROOT_VERSION)


def build(root: ModuleDescriptor, overrides: OverrideTable, config: ResolutionConfig,
          env: Environment) -> Optional[DependencyGraph]:
    """Discover the dependency graph; None while module files are missing."""
    start = root_key(root)
    modules: Dict[ModuleKey, ModuleDescriptor] = {start: root}
    requests: Dict[str, Dict[str, List[ModuleKey]]] = {}
    queue = deque([start])
    seen = {start}

    while queue:
        key = queue.popleft()
        for edge in followed_edges(modules[key], key == start, config):
            if root.name and edge.name == root.name:
                continue
            override = overrides.get(edge.name)
            if is_non_registry_override(override):
                requests.setdefault(edge.name, {}).setdefault("", []).append(key)
                continue
            version = request_version(edge, override)
            requests.setdefault(edge.name, {}).setdefault(version, []).append(key)

            dep_key = ModuleKey(edge.name, version)
            if dep_key in seen:
                continue
            seen.add(dep_key)
            descriptor = env.get_value(module_file_key(dep_key, override, config))
            if descriptor is None:
                continue
            modules[dep_key] = descriptor
            queue.append(dep_key)

    if env.values_missing():
        if is_debug_enabled(logger):
            logger.debug(
                "Dependency graph incomplete",
                extra=extra_context(
                    event="suspend",
                    component="graph",
                    action="build",
                    outcome="values_missing",
                    count=len(env.missing_keys),
                )
            )
        return None
    return DependencyGraph(root=start, modules=modules, requests=requests)
