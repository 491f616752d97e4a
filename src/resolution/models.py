"""Data models for module resolution."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from constants import CheckMode, Constants


@dataclass(frozen=True, order=True)
class ModuleKey:
    """Identity of one module instance in the dependency graph."""
    name: str
    version: str

    def __str__(self):
        if self.version == Constants.ROOT_VERSION:
            return f"<root> {self.name}".rstrip()
        return f"{self.name}@{self.version or '_'}"


@dataclass(frozen=True)
class DepEdge:
    """A ``bazel_dep`` declared by a module."""
    name: str
    version: str
    repo_name: str = ""
    dev_dependency: bool = False

    @property
    def apparent_name(self) -> str:
        """Name the depending module uses to refer to this dependency."""
        return self.repo_name or self.name


@dataclass(frozen=True)
class LocalPathOverride:
    """Use a directory on disk instead of any registry version."""
    module_name: str
    path: str


@dataclass(frozen=True)
class ArchiveOverride:
    """Use an archive download instead of any registry version."""
    module_name: str
    urls: Tuple[str, ...]
    integrity: str = ""
    strip_prefix: str = ""
    patches: Tuple[str, ...] = ()
    patch_cmds: Tuple[str, ...] = ()
    patch_strip: int = 0


@dataclass(frozen=True)
class GitOverride:
    """Use a git commit instead of any registry version."""
    module_name: str
    remote: str
    commit: str
    patches: Tuple[str, ...] = ()
    patch_cmds: Tuple[str, ...] = ()
    patch_strip: int = 0


@dataclass(frozen=True)
class SingleVersionOverride:
    """Pin a module to one version, optionally from a registry and patched."""
    module_name: str
    version: str = ""
    registry: str = ""
    patches: Tuple[str, ...] = ()
    patch_cmds: Tuple[str, ...] = ()
    patch_strip: int = 0

    @property
    def has_patches(self) -> bool:
        return bool(self.patches or self.patch_cmds)


@dataclass(frozen=True)
class MultipleVersionOverride:
    """Keep several versions of a module alive at once."""
    module_name: str
    versions: Tuple[str, ...]
    registry: str = ""


@dataclass(frozen=True)
class RegistryOverride:
    """Pin which registry serves a module name."""
    module_name: str
    registry_url: str


OverrideDirective = Union[
    LocalPathOverride,
    ArchiveOverride,
    GitOverride,
    SingleVersionOverride,
    MultipleVersionOverride,
    RegistryOverride,
]

# Overrides that replace the registry entirely; their modules are never fetched.
NON_REGISTRY_OVERRIDES = (LocalPathOverride, ArchiveOverride, GitOverride)


def is_non_registry_override(override: Optional[OverrideDirective]) -> bool:
    return isinstance(override, NON_REGISTRY_OVERRIDES)


def override_registry(override: Optional[OverrideDirective]) -> str:
    """Registry URL pinned by ``override``, or an empty string."""
    if isinstance(override, RegistryOverride):
        return override.registry_url
    if isinstance(override, (SingleVersionOverride, MultipleVersionOverride)):
        return override.registry
    return ""


@dataclass(frozen=True)
class ModuleDescriptor:
    """A parsed module file. Never mutated after parsing."""
    name: str
    version: str
    compatibility_level: int = 0
    deps: Tuple[DepEdge, ...] = ()
    overrides: Tuple[OverrideDirective, ...] = ()
    repo_name: str = ""
    bazel_compatibility: Tuple[str, ...] = ()
    registry: str = ""

    @property
    def key(self) -> ModuleKey:
        return ModuleKey(self.name, self.version)


@dataclass(frozen=True)
class RepoSpec:
    """Rule class plus attributes needed to materialize one repository.

    ``attributes`` always carries ``name``, the canonical repository name.
    Treat instances as read-only values.
    """
    rule_class_name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    bzl_file: Optional[str] = None

    @property
    def name(self) -> str:
        return self.attributes.get("name", "")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        result: Dict[str, Any] = {"rule_class": self.rule_class_name}
        if self.bzl_file:
            result["bzl_file"] = self.bzl_file
        result["attributes"] = {
            key: list(value) if isinstance(value, tuple) else value
            for key, value in self.attributes.items()
        }
        return result


@dataclass(frozen=True)
class ResolutionConfig:
    """Settings frozen for the duration of one resolution pass."""
    registries: Tuple[str, ...] = (Constants.DEFAULT_REGISTRY,)
    module_overrides: Mapping[str, OverrideDirective] = field(default_factory=dict)
    ignore_dev_dependencies: bool = False
    check_direct_dependencies: CheckMode = CheckMode.WARNING
    compatibility_mode: CheckMode = CheckMode.ERROR
    tool_version: Optional[str] = None
    max_workers: int = Constants.MAX_WORKERS


@dataclass
class SelectionResult:
    """Outcome of version selection.

    ``live`` maps each module name to its live versions, in ascending order,
    and each live version to its canonical repository name. Modules under a
    non-registry override have the single live version ``""``.
    """
    root: ModuleKey
    live: Dict[str, Dict[str, str]]
    modules: Dict[ModuleKey, ModuleDescriptor]
    deps: Dict[ModuleKey, Dict[str, ModuleKey]]
    warnings: Tuple[str, ...] = ()
    _by_canonical: Dict[str, ModuleKey] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._by_canonical = {
            canonical: ModuleKey(name, version)
            for name, versions in self.live.items()
            for version, canonical in versions.items()
        }

    def canonical_names(self) -> List[str]:
        """Every live canonical repository name, sorted."""
        return sorted(self._by_canonical)

    def key_for(self, canonical_name: str) -> Optional[ModuleKey]:
        """The live module behind ``canonical_name``, if any."""
        return self._by_canonical.get(canonical_name)

    def canonical_name(self, key: ModuleKey) -> Optional[str]:
        if key == self.root:
            return ""
        return self.live.get(key.name, {}).get(key.version)

    def live_versions(self, name: str) -> List[str]:
        return list(self.live.get(name, {}))

    def repo_mapping(self, key: ModuleKey) -> Dict[str, str]:
        """Apparent repository names visible to ``key`` mapped to canonical names."""
        mapping = {}
        for apparent, dep_key in self.deps.get(key, {}).items():
            canonical = self.canonical_name(dep_key)
            if canonical is not None:
                mapping[apparent] = canonical
        return mapping


def canonical_repo_name(name: str, version: str) -> str:
    """``<name>~<version>``, or ``<name>~override`` for the empty version."""
    suffix = version or Constants.OVERRIDE_MARKER
    return f"{name}{Constants.CANONICAL_SEPARATOR}{suffix}"


def parse_canonical_name(canonical_name: str) -> Optional[Tuple[str, str]]:
    """Split a canonical name into (module name, version or override marker).

    Returns None when the name does not have the canonical shape.
    """
    name, sep, suffix = canonical_name.partition(Constants.CANONICAL_SEPARATOR)
    if not sep or not name or not suffix or Constants.CANONICAL_SEPARATOR in suffix:
        return None
    return name, suffix
