"""Exception taxonomy for module resolution."""


class ResolutionError(Exception):
    """Base class for every failure raised while resolving modules."""


class ParseError(ResolutionError):
    """A module file could not be parsed."""


class RegistryLookupError(ResolutionError):
    """No configured registry serves the requested module name."""


class DescriptorNotFoundError(ResolutionError):
    """A registry knows the module name but not the requested version."""


class FetchError(ResolutionError):
    """A registry could not be read.

    ``transient`` tells the caller whether retrying later may succeed.
    """

    def __init__(self, message: str, *, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class ConfigurationError(ResolutionError):
    """Root module or resolver configuration is malformed."""


class DuplicateOverrideError(ConfigurationError):
    """The same module name is overridden more than once."""


class ConflictingOverrideKindError(ConfigurationError):
    """A module name has both a path-style and a version-style override."""


class VersionResolutionError(ResolutionError):
    """A requested version cannot be satisfied by a multiple-version override."""


class CompatibilityLevelError(ResolutionError):
    """Selection would mix incompatible versions of a module."""


class DirectDependencyError(ResolutionError):
    """A direct dependency of the root resolved to a different version."""


class EvaluationInterrupted(ResolutionError):
    """Evaluation was cancelled before a complete result was available."""
