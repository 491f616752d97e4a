"""Resolver configuration from YAML, environment and CLI arguments.

Precedence, highest first: CLI arguments, environment variables, the YAML
config file, built-in defaults. The result is a frozen ResolutionConfig.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from jsonschema import Draft7Validator

from constants import CheckMode, Constants
from resolution.errors import ConfigurationError
from resolution.models import LocalPathOverride, OverrideDirective, ResolutionConfig

logger = logging.getLogger(__name__)

_MODES = [mode.value for mode in CheckMode]

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "registries": {"type": "array", "items": {"type": "string", "minLength": 1}},
        "module_overrides": {
            "type": "object",
            "additionalProperties": {"type": "string", "minLength": 1},
        },
        "ignore_dev_dependencies": {"type": "boolean"},
        "check_direct_dependencies": {"type": "string", "enum": _MODES},
        "compatibility_mode": {"type": "string", "enum": _MODES},
        "tool_version": {"type": ["string", "null"]},
        "max_workers": {"type": "integer", "minimum": 1},
    },
}

_CONFIG_VALIDATOR = Draft7Validator(CONFIG_SCHEMA)


def load_yaml_config(path: str) -> Dict[str, Any]:
    """Load and validate the YAML config file at ``path``.

    Raises:
        ConfigurationError: the file is missing, unreadable, not YAML, or
            does not match the config schema.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Config file {path} is not valid YAML: {exc}") from exc

    if data is None:
        return {}
    errors = sorted(_CONFIG_VALIDATOR.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        where = "/".join(str(p) for p in first.path) or "<root>"
        raise ConfigurationError(f"Invalid config file {path} at '{where}': {first.message}")
    return data


def parse_module_override(token: str) -> Tuple[str, OverrideDirective]:
    """Parse ``NAME=PATH`` into a local path override."""
    name, sep, path = token.partition("=")
    name, path = name.strip(), path.strip()
    if not sep or not name or not path:
        raise ConfigurationError(f"Invalid module override '{token}': expected NAME=PATH")
    return name, LocalPathOverride(module_name=name, path=path)


def _parse_mode(value: Any, setting: str) -> CheckMode:
    try:
        return CheckMode.parse(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid value '{value}' for {setting}: expected one of {', '.join(_MODES)}"
        ) from exc


def build_config(args: Any = None, environ: Optional[Mapping[str, str]] = None) -> ResolutionConfig:
    """Merge defaults, YAML, environment and CLI arguments into a ResolutionConfig."""
    environ = os.environ if environ is None else environ
    config_path = getattr(args, "CONFIG", None) or environ.get(Constants.ENV_CONFIG)
    data = load_yaml_config(config_path) if config_path else {}
    if config_path:
        logger.debug("Loaded config file %s", config_path)

    registries = tuple(data.get("registries") or (Constants.DEFAULT_REGISTRY,))
    env_registries = environ.get(Constants.ENV_REGISTRIES)
    if env_registries:
        registries = tuple(r.strip() for r in env_registries.split(",") if r.strip())
    if getattr(args, "REGISTRIES", None):
        registries = tuple(args.REGISTRIES)

    module_overrides: Dict[str, OverrideDirective] = {
        name: LocalPathOverride(module_name=name, path=path)
        for name, path in (data.get("module_overrides") or {}).items()
    }
    for token in getattr(args, "MODULE_OVERRIDES", None) or []:
        name, override = parse_module_override(token)
        module_overrides[name] = override

    ignore_dev = bool(data.get("ignore_dev_dependencies", False))
    if getattr(args, "IGNORE_DEV_DEPS", False):
        ignore_dev = True

    check_direct = _parse_mode(
        getattr(args, "CHECK_DIRECT_DEPS", None)
        or data.get("check_direct_dependencies", CheckMode.WARNING.value),
        "check_direct_dependencies",
    )
    compatibility = _parse_mode(
        getattr(args, "COMPATIBILITY_MODE", None)
        or data.get("compatibility_mode", CheckMode.ERROR.value),
        "compatibility_mode",
    )
    tool_version = getattr(args, "TOOL_VERSION", None) or data.get("tool_version")

    max_workers = getattr(args, "MAX_WORKERS", None)
    if max_workers is None:
        max_workers = data.get("max_workers", Constants.MAX_WORKERS)
    if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
        raise ConfigurationError(f"Invalid max_workers {max_workers!r}: expected a positive integer")

    if not registries:
        raise ConfigurationError("At least one registry must be configured")

    return ResolutionConfig(
        registries=registries,
        module_overrides=module_overrides,
        ignore_dev_dependencies=ignore_dev,
        check_direct_dependencies=check_direct,
        compatibility_mode=compatibility,
        tool_version=tool_version,
        max_workers=max_workers,
    )
