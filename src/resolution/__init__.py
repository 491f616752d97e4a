"""Module dependency resolution.

- module_file.py: module file parser
- overrides.py: override table extracted from the root module
- graph.py: dependency graph discovery
- selection.py: version selection
- repo_spec.py: repository specs for canonical names
- evaluator.py: restart-based memoizing evaluator
- resolver.py: the Resolver facade, imported from resolution.resolver
"""

from .errors import (
    CompatibilityLevelError,
    ConfigurationError,
    ConflictingOverrideKindError,
    DescriptorNotFoundError,
    DirectDependencyError,
    DuplicateOverrideError,
    EvaluationInterrupted,
    FetchError,
    ParseError,
    RegistryLookupError,
    ResolutionError,
    VersionResolutionError,
)
from .models import (
    ArchiveOverride,
    DepEdge,
    GitOverride,
    LocalPathOverride,
    ModuleDescriptor,
    ModuleKey,
    MultipleVersionOverride,
    RegistryOverride,
    RepoSpec,
    ResolutionConfig,
    SelectionResult,
    SingleVersionOverride,
)

__all__ = [
    "ArchiveOverride",
    "CompatibilityLevelError",
    "ConfigurationError",
    "ConflictingOverrideKindError",
    "DepEdge",
    "DescriptorNotFoundError",
    "DirectDependencyError",
    "DuplicateOverrideError",
    "EvaluationInterrupted",
    "FetchError",
    "GitOverride",
    "LocalPathOverride",
    "ModuleDescriptor",
    "ModuleKey",
    "MultipleVersionOverride",
    "ParseError",
    "RegistryLookupError",
    "RegistryOverride",
    "RepoSpec",
    "ResolutionConfig",
    "ResolutionError",
    "SelectionResult",
    "SingleVersionOverride",
    "VersionResolutionError",
]
