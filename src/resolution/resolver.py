"""Resolver facade: answers repository queries for one root module.

All work runs through an Evaluator, so module files and registry rules are
fetched at most once per resolver and independent fetches run in parallel.
Build a new Resolver when the root module or configuration changes.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple, Union

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from registry import RegistryFactory

from . import graph as graph_builder
from .evaluator import Environment, Evaluator, Key
from .models import ModuleDescriptor, RepoSpec, ResolutionConfig, SelectionResult
from .module_file import parse_module_file
from .overrides import OverrideTable
from .repo_spec import REGISTRY_REPO_SPEC, fetch_repo_spec, spec_for
from .selection import select

logger = logging.getLogger(__name__)

ROOT_MODULE = "root_module"
RESOLUTION = "resolution"
REPO_SPEC = "repo_spec"
ALL_REPO_SPECS = "all_repo_specs"

_ROOT_KEY = Key(ROOT_MODULE, None)
_RESOLUTION_KEY = Key(RESOLUTION, None)


class Resolver:
    """Resolves the dependencies of one root module.

    Args:
        root_module: module file text of the root, or an already parsed
            descriptor.
        config: resolution settings; defaults to ResolutionConfig().
        registry_factory: where registries come from; defaults to index
            registries created from each configured URL.
        source: label used in parse errors for ``root_module`` text.
    """

    def __init__(
        self,
        root_module: Union[str, ModuleDescriptor],
        config: Optional[ResolutionConfig] = None,
        registry_factory: Optional[RegistryFactory] = None,
        source: str = Constants.MODULE_FILE,
    ):
        self.config = config or ResolutionConfig()
        self.registry_factory = registry_factory or RegistryFactory()
        self._root_module = root_module
        self._source = source
        self._evaluator = Evaluator(
            {
                ROOT_MODULE: self._compute_root,
                graph_builder.MODULE_FILE: self._compute_module_file,
                RESOLUTION: self._compute_resolution,
                REGISTRY_REPO_SPEC: self._compute_registry_repo_spec,
                REPO_SPEC: self._compute_repo_spec,
                ALL_REPO_SPECS: self._compute_all_repo_specs,
            },
            max_workers=self.config.max_workers,
        )

    @classmethod
    def from_file(cls, path: str, config: Optional[ResolutionConfig] = None,
                  registry_factory: Optional[RegistryFactory] = None) -> "Resolver":
        """Create a resolver for the root module file at ``path``."""
        with open(path, "r", encoding="utf-8") as fh:
            text = fh.read()
        return cls(text, config=config, registry_factory=registry_factory, source=path)

    def __enter__(self) -> "Resolver":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._evaluator.close()

    def interrupt(self) -> None:
        """Cancel in-flight evaluation; pending queries raise EvaluationInterrupted."""
        self._evaluator.interrupt()

    def refresh(self) -> None:
        """Forget every result so the next query reads the registries again."""
        logger.debug("Discarding memoized resolution results")
        self._evaluator.reset()

    # Queries

    def root(self) -> Tuple[ModuleDescriptor, OverrideTable]:
        """The parsed root module and its override table."""
        return self._evaluator.evaluate(_ROOT_KEY)

    def resolve(self) -> SelectionResult:
        """Run full resolution and return the selection."""
        return self._evaluator.evaluate(_RESOLUTION_KEY)

    def get_repo_spec(self, canonical_name: str) -> Optional[RepoSpec]:
        """RepoSpec for ``canonical_name``, or None when no live module has that name."""
        spec = self._evaluator.evaluate(Key(REPO_SPEC, canonical_name))
        if is_debug_enabled(logger):
            logger.debug(
                "Repo spec query",
                extra=extra_context(
                    event="query",
                    component="resolver",
                    action="get_repo_spec",
                    outcome="found" if spec is not None else "absent",
                    target=canonical_name,
                )
            )
        return spec

    def all_repo_specs(self) -> Dict[str, RepoSpec]:
        """RepoSpecs of every live canonical repository name."""
        return self._evaluator.evaluate(Key(ALL_REPO_SPECS, None))

    # Evaluator functions

    def _compute_root(self, key: Key, env: Environment):
        if isinstance(self._root_module, ModuleDescriptor):
            root = self._root_module
        else:
            root = parse_module_file(self._root_module, is_root=True, source=self._source)
        overrides = OverrideTable.extract(root, self.config.module_overrides)
        logger.debug("Root module '%s' declares %d overrides", root.name, len(overrides))
        return root, overrides

    def _compute_module_file(self, key: Key, env: Environment) -> ModuleDescriptor:
        return graph_builder.fetch_module_file(key.argument, self.registry_factory)

    def _compute_resolution(self, key: Key, env: Environment) -> Optional[SelectionResult]:
        root_value = env.get_value(_ROOT_KEY)
        if root_value is None:
            return None
        root, overrides = root_value
        dep_graph = graph_builder.build(root, overrides, self.config, env)
        if dep_graph is None:
            return None
        selection = select(dep_graph, overrides, self.config)
        logger.info(
            "Resolved %d modules into %d repositories",
            len(dep_graph.modules) - 1, len(selection.canonical_names()),
        )
        return selection

    def _compute_registry_repo_spec(self, key: Key, env: Environment) -> RepoSpec:
        return fetch_repo_spec(key.argument, self.registry_factory)

    def _compute_repo_spec(self, key: Key, env: Environment) -> Optional[RepoSpec]:
        root_value = env.get_value(_ROOT_KEY)
        selection = env.get_value(_RESOLUTION_KEY)
        if env.values_missing():
            return None
        _, overrides = root_value
        return spec_for(key.argument, selection, overrides, env)

    def _compute_all_repo_specs(self, key: Key, env: Environment) -> Optional[Dict[str, RepoSpec]]:
        selection = env.get_value(_RESOLUTION_KEY)
        if selection is None:
            return None
        specs = {}
        for name in selection.canonical_names():
            spec = env.get_value(Key(REPO_SPEC, name))
            if spec is not None:
                specs[name] = spec
        if env.values_missing():
            return None
        return specs
