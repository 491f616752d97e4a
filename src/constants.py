"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    RESOLUTION_ERROR = 3
    CONFIG_ERROR = 4


class CheckMode(Enum):
    """Severity setting for a resolution-time consistency check.

    Args:
        Enum (string): How a violated check is reported.
    """

    ERROR = "error"
    WARNING = "warning"
    OFF = "off"

    @classmethod
    def parse(cls, value):
        """Return the mode for a case-insensitive name or an existing member."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_REGISTRY = "https://bcr.bazel.build"
    MODULE_FILE = "MODULE.bazel"
    REGISTRY_CONFIG_FILE = "bazel_registry.json"
    METADATA_FILE = "metadata.json"
    SOURCE_FILE = "source.json"

    # Canonical repository names are "<module>~<version>" or "<module>~override".
    CANONICAL_SEPARATOR = "~"
    OVERRIDE_MARKER = "override"
    ROOT_VERSION = "root"

    HTTP_BZL = "@bazel_tools//tools/build_defs/repo:http.bzl"
    GIT_BZL = "@bazel_tools//tools/build_defs/repo:git.bzl"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "MODRESOLVE_LOG_LEVEL"
    ENV_REGISTRIES = "MODRESOLVE_REGISTRIES"
    ENV_CONFIG = "MODRESOLVE_CONFIG"

    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300

    MAX_WORKERS = 8
