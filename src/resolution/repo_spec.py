"""Repository spec synthesis for canonical repository names."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from registry import RegistryFactory

from .evaluator import Environment, Key
from .models import (
    ArchiveOverride,
    GitOverride,
    LocalPathOverride,
    ModuleKey,
    MultipleVersionOverride,
    RegistryOverride,
    RepoSpec,
    SelectionResult,
    SingleVersionOverride,
    parse_canonical_name,
)
from .overrides import OverrideTable

logger = logging.getLogger(__name__)

REGISTRY_REPO_SPEC = "registry_repo_spec"


@dataclass(frozen=True)
class RepoSpecRequest:
    """Ask ``registry`` for the rule materializing ``module`` as ``canonical_name``."""
    registry: str
    module: ModuleKey
    canonical_name: str


def fetch_repo_spec(request: RepoSpecRequest, registry_factory: RegistryFactory) -> RepoSpec:
    """Fetch the registry's repository rule and force its ``name`` attribute."""
    registry = registry_factory.get(request.registry)
    base = registry.get_repo_spec(request.module, request.canonical_name)
    attrs = dict(base.attributes)
    attrs["name"] = request.canonical_name
    return RepoSpec(base.rule_class_name, attrs, bzl_file=base.bzl_file)


def patch_attributes(patches: Sequence[str], patch_cmds: Sequence[str],
                     patch_strip: int) -> Dict[str, Any]:
    """Attributes applying local patches; empty when there is nothing to apply."""
    if not patches and not patch_cmds:
        return {}
    return {
        "patches": list(patches),
        "patch_cmds": list(patch_cmds),
        "patch_args": [f"-p{patch_strip or 0}"],
    }


def _archive_spec(name: str, override: ArchiveOverride) -> RepoSpec:
    attrs: Dict[str, Any] = {
        "name": name,
        "urls": list(override.urls),
        "integrity": override.integrity,
        "strip_prefix": override.strip_prefix,
    }
    attrs.update(patch_attributes(override.patches, override.patch_cmds, override.patch_strip))
    return RepoSpec("http_archive", attrs, bzl_file=Constants.HTTP_BZL)


def _git_spec(name: str, override: GitOverride) -> RepoSpec:
    attrs: Dict[str, Any] = {
        "name": name,
        "remote": override.remote,
        "commit": override.commit,
    }
    attrs.update(patch_attributes(override.patches, override.patch_cmds, override.patch_strip))
    return RepoSpec("git_repository", attrs, bzl_file=Constants.GIT_BZL)


def spec_for(name: str, selection: SelectionResult, overrides: OverrideTable,
             env: Environment) -> Optional[RepoSpec]:
    """Build the RepoSpec for canonical repository ``name``.

    Returns None for names that are not live. Also returns None while the
    registry rule has not been fetched yet; callers tell the two apart with
    ``env.values_missing()``.
    """
    parsed = parse_canonical_name(name)
    if parsed is None:
        return None
    module_name, _ = parsed
    key = selection.key_for(name)
    if module_name not in selection.live or key is None:
        return None

    override = overrides.get(module_name)
    if isinstance(override, LocalPathOverride):
        return RepoSpec("local_repository", {"name": name, "path": override.path})
    if isinstance(override, ArchiveOverride):
        return _archive_spec(name, override)
    if isinstance(override, GitOverride):
        return _git_spec(name, override)
    if not (override is None or isinstance(
            override, (SingleVersionOverride, MultipleVersionOverride, RegistryOverride))):
        raise TypeError(f"Unhandled override kind {type(override).__name__} for '{module_name}'")

    descriptor = selection.modules[key]
    base = env.get_value(Key(REGISTRY_REPO_SPEC, RepoSpecRequest(descriptor.registry, key, name)))
    if base is None:
        return None

    spec = base
    if isinstance(override, SingleVersionOverride) and override.has_patches:
        attrs = dict(base.attributes)
        attrs.update(patch_attributes(override.patches, override.patch_cmds, override.patch_strip))
        spec = RepoSpec(base.rule_class_name, attrs, bzl_file=base.bzl_file)

    if is_debug_enabled(logger):
        logger.debug(
            "Synthesized repo spec",
            extra=extra_context(
                event="decision",
                component="repo_spec",
                action="spec_for",
                outcome=spec.rule_class_name,
                target=name,
            )
        )
    return spec
