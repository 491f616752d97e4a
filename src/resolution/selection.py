"""Version selection.

For every module name in the graph, picks the live versions:

* non-registry override: one live entry, canonical ``<name>~override``;
* single-version override: the pinned version (or the highest requested one
  when only patches or a registry are pinned), accepted without
  compatibility checks;
* multiple-version override: every allowed version some edge was rounded up
  to;
* otherwise: the highest requested version.

Modules that cannot be reached from the root through selected versions are
pruned afterwards. The result depends only on the graph, the overrides and
the check modes.
"""
from __future__ import annotations

import logging
import re
from collections import deque
from typing import Callable, Dict, List, Optional, Set

from constants import CheckMode
from versioning import max_version, parse_version, sort_versions

from .errors import CompatibilityLevelError, DirectDependencyError, ResolutionError
from .graph import DependencyGraph, followed_edges, request_version
from .models import (
    ArchiveOverride,
    GitOverride,
    LocalPathOverride,
    ModuleKey,
    MultipleVersionOverride,
    OverrideDirective,
    RegistryOverride,
    ResolutionConfig,
    SelectionResult,
    SingleVersionOverride,
    canonical_repo_name,
)
from .overrides import OverrideTable

logger = logging.getLogger(__name__)

_CONSTRAINT_RE = re.compile(r"^(>=|<=|>|<|-)(.+)$")


class _Reporter:
    """Applies a CheckMode to violated checks and collects warnings."""

    def __init__(self) -> None:
        self.warnings: List[str] = []

    def report(self, mode: CheckMode, error: Callable[[str], ResolutionError],
               message: str) -> None:
        if mode is CheckMode.ERROR:
            raise error(message)
        if mode is CheckMode.WARNING:
            logger.warning("%s", message)
            self.warnings.append(message)


def _selected_versions(name: str, graph: DependencyGraph,
                       override: Optional[OverrideDirective]) -> List[str]:
    requested = graph.requested_versions(name)
    if isinstance(override, (LocalPathOverride, ArchiveOverride, GitOverride)):
        return [""]
    if isinstance(override, SingleVersionOverride):
        return [override.version or max_version(requested)]
    if isinstance(override, MultipleVersionOverride):
        unused = sorted(set(override.versions) - set(requested))
        if unused:
            logger.info(
                "multiple_version_override for '%s': versions %s are not requested by any module",
                name, ", ".join(unused),
            )
        return sort_versions(requested)
    if override is None or isinstance(override, RegistryOverride):
        return [max_version(requested)]
    raise TypeError(f"Unhandled override kind {type(override).__name__} for '{name}'")


def _check_compatibility_levels(name: str, selected: str, graph: DependencyGraph,
                                reachable: Set[ModuleKey], mode: CheckMode,
                                reporter: _Reporter) -> None:
    """Compare the selected version with the versions live modules asked for."""
    chosen_key = ModuleKey(name, selected)
    chosen = graph.modules.get(chosen_key)
    if chosen is None or chosen_key not in reachable:
        return
    for version in sort_versions(graph.requested_versions(name)):
        requested = graph.modules.get(ModuleKey(name, version))
        if requested is None or requested.compatibility_level == chosen.compatibility_level:
            continue
        live_requesters = sorted(k for k in graph.requesters(name, version) if k in reachable)
        if not live_requesters:
            continue
        requesters = ", ".join(str(k) for k in live_requesters)
        reporter.report(
            mode,
            CompatibilityLevelError,
            f"{requesters} depends on {name}@{version} with compatibility level "
            f"{requested.compatibility_level}, but {name}@{selected} with compatibility "
            f"level {chosen.compatibility_level} was selected",
        )


def _satisfies(tool_version: str, constraint: str) -> bool:
    match = _CONSTRAINT_RE.match(constraint.strip())
    if match is None:
        raise CompatibilityLevelError(f"Invalid bazel_compatibility constraint '{constraint}'")
    op, operand = match.group(1), match.group(2)
    try:
        left, right = parse_version(tool_version), parse_version(operand)
    except ValueError as exc:
        raise CompatibilityLevelError(str(exc)) from exc
    if op == ">=":
        return left >= right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    if op == "<":
        return left < right
    return left != right


def select(graph: DependencyGraph, overrides: OverrideTable,
           config: ResolutionConfig) -> SelectionResult:
    """Select live versions for every module name in ``graph``.

    Raises:
        CompatibilityLevelError: incompatible versions of a module are
            requested, or a selected module rejects the tool version, and
            ``compatibility_mode`` is ERROR.
        DirectDependencyError: a direct dependency of the root resolves to a
            different version and ``check_direct_dependencies`` is ERROR.
    """
    reporter = _Reporter()
    selected: Dict[str, List[str]] = {}
    for name in sorted(graph.requests):
        override = overrides.get(name)
        selected[name] = _selected_versions(name, graph, override)

    def target(edge) -> ModuleKey:
        if graph.root.name and edge.name == graph.root.name:
            return graph.root
        override = overrides.get(edge.name)
        if isinstance(override, MultipleVersionOverride):
            return ModuleKey(edge.name, request_version(edge, override))
        return ModuleKey(edge.name, selected[edge.name][0])

    deps: Dict[ModuleKey, Dict[str, ModuleKey]] = {}
    reachable: Set[ModuleKey] = {graph.root}
    queue = deque([graph.root])
    while queue:
        key = queue.popleft()
        descriptor = graph.modules.get(key)
        if descriptor is None:
            continue
        mapping = deps.setdefault(key, {})
        for edge in followed_edges(descriptor, key == graph.root, config):
            dep_key = target(edge)
            mapping[edge.apparent_name] = dep_key
            if dep_key not in reachable:
                reachable.add(dep_key)
                queue.append(dep_key)

    for name in sorted(selected):
        override = overrides.get(name)
        if override is None or isinstance(override, RegistryOverride):
            _check_compatibility_levels(
                name, selected[name][0], graph, reachable, config.compatibility_mode, reporter
            )

    live: Dict[str, Dict[str, str]] = {}
    for name, versions in selected.items():
        kept = [v for v in versions if ModuleKey(name, v) in reachable]
        if kept:
            live[name] = {v: canonical_repo_name(name, v) for v in kept}
        else:
            logger.debug("Pruned module '%s': unreachable from the root", name)

    root = graph.root_descriptor
    for edge in followed_edges(root, True, config):
        override = overrides.get(edge.name)
        if override is not None and not isinstance(override, RegistryOverride):
            continue
        resolved = deps[graph.root].get(edge.apparent_name)
        if resolved is None or resolved == graph.root:
            continue
        if parse_version(resolved.version) != parse_version(edge.version):
            reporter.report(
                config.check_direct_dependencies,
                DirectDependencyError,
                f"For repository '{edge.apparent_name}', the root module requires module "
                f"version {edge.name}@{edge.version}, but got {resolved} in the resolved "
                "dependency graph",
            )

    if config.tool_version:
        for key in sorted(reachable):
            descriptor = graph.modules.get(key)
            if descriptor is None or key == graph.root:
                continue
            for constraint in descriptor.bazel_compatibility:
                if not _satisfies(config.tool_version, constraint):
                    reporter.report(
                        config.compatibility_mode,
                        CompatibilityLevelError,
                        f"{key} does not support tool version {config.tool_version}: "
                        f"requires {constraint}",
                    )

    modules = {
        key: descriptor for key, descriptor in graph.modules.items()
        if key in reachable and key != graph.root
    }
    logger.debug("Selected %d live modules", sum(len(v) for v in live.values()))
    return SelectionResult(
        root=graph.root,
        live=live,
        modules=modules,
        deps=deps,
        warnings=tuple(reporter.warnings),
    )
