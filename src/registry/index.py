"""Index registry: a directory tree served over HTTP or from disk.

Layout::

    bazel_registry.json                     optional; mirrors, module_base_path
    modules/<name>/metadata.json            lists the module
    modules/<name>/<version>/MODULE.bazel   module file
    modules/<name>/<version>/source.json    how to fetch the sources
    modules/<name>/<version>/patches/*      patches named by source.json
"""
from __future__ import annotations

import json
import logging
import os
import threading
from typing import Any, Callable, Dict, Optional

from jsonschema import Draft7Validator

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from resolution.errors import DescriptorNotFoundError, ParseError
from resolution.models import ModuleKey, RepoSpec

from .base import Registry
from .http import is_remote, join_url, local_path, read_url

logger = logging.getLogger(__name__)

REGISTRY_CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "mirrors": {"type": "array", "items": {"type": "string"}},
        "module_base_path": {"type": "string"},
    },
}

SOURCE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "type": {"enum": ["archive", "local_path", "git_repository"]},
        "url": {"type": "string", "minLength": 1},
        "integrity": {"type": "string"},
        "strip_prefix": {"type": "string"},
        "patches": {"type": "object", "additionalProperties": {"type": "string"}},
        "patch_strip": {"type": "integer", "minimum": 0},
        "path": {"type": "string", "minLength": 1},
        "remote": {"type": "string", "minLength": 1},
        "commit": {"type": "string"},
        "tag": {"type": "string"},
        "init_submodules": {"type": "boolean"},
    },
    "allOf": [
        {
            "if": {"properties": {"type": {"const": "local_path"}}, "required": ["type"]},
            "then": {"required": ["path"]},
        },
        {
            "if": {"properties": {"type": {"const": "git_repository"}}, "required": ["type"]},
            "then": {"required": ["remote"]},
        },
        {
            "if": {
                "anyOf": [
                    {"not": {"required": ["type"]}},
                    {"properties": {"type": {"const": "archive"}}},
                ]
            },
            "then": {"required": ["url"]},
        },
    ],
}

_REGISTRY_CONFIG_VALIDATOR = Draft7Validator(REGISTRY_CONFIG_SCHEMA)
_SOURCE_VALIDATOR = Draft7Validator(SOURCE_SCHEMA)


def _load_json(text: str, where: str, validator: Draft7Validator) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"{where}: invalid JSON: {exc}") from exc
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        path = "/".join(str(p) for p in first.path)
        raise ParseError(f"{where}: invalid at '{path}': {first.message}")
    return data


def _mirrored(url: str, mirrors) -> list:
    """Mirror URLs first, then the original URL."""
    scheme_sep = url.find("://")
    tail = url[scheme_sep + 3:] if scheme_sep >= 0 else url
    return [f"{mirror.rstrip('/')}/{tail}" for mirror in mirrors] + [url]


class IndexRegistry(Registry):
    """Registry backed by the index layout, over HTTP or on disk."""

    def __init__(self, url: str, reader: Callable[[str], Optional[str]] = read_url):
        self._url = url.rstrip("/") or url
        self._reader = reader
        self._config: Optional[Dict[str, Any]] = None
        self._config_lock = threading.Lock()

    @property
    def url(self) -> str:
        return self._url

    def _module_url(self, key_name: str, *parts: str) -> str:
        return join_url(self._url, "modules", key_name, *parts)

    def _registry_config(self) -> Dict[str, Any]:
        with self._config_lock:
            if self._config is None:
                where = join_url(self._url, Constants.REGISTRY_CONFIG_FILE)
                text = self._reader(where)
                self._config = (
                    _load_json(text, where, _REGISTRY_CONFIG_VALIDATOR) if text else {}
                )
            return self._config

    def has_module(self, name: str) -> bool:
        return self._reader(self._module_url(name, Constants.METADATA_FILE)) is not None

    def get_module_file(self, key: ModuleKey) -> Optional[str]:
        return self._reader(self._module_url(key.name, key.version, Constants.MODULE_FILE))

    def get_repo_spec(self, key: ModuleKey, canonical_name: str) -> RepoSpec:
        where = self._module_url(key.name, key.version, Constants.SOURCE_FILE)
        text = self._reader(where)
        if text is None:
            raise DescriptorNotFoundError(
                f"Registry {self._url} has no source for module {key}"
            )
        source = _load_json(text, where, _SOURCE_VALIDATOR)
        kind = source.get("type", "archive")

        if kind == "local_path":
            spec = self._local_path_spec(source, canonical_name)
        elif kind == "git_repository":
            spec = self._git_spec(source, canonical_name)
        else:
            spec = self._archive_spec(key, source, canonical_name)

        if is_debug_enabled(logger):
            logger.debug(
                "Registry repo rule",
                extra=extra_context(
                    event="decision",
                    component="index_registry",
                    action="get_repo_spec",
                    outcome=spec.rule_class_name,
                    target=str(key),
                )
            )
        return spec

    def _archive_spec(self, key: ModuleKey, source: Dict[str, Any],
                      canonical_name: str) -> RepoSpec:
        mirrors = self._registry_config().get("mirrors", [])
        attrs: Dict[str, Any] = {
            "name": canonical_name,
            "urls": _mirrored(source["url"], mirrors),
            "integrity": source.get("integrity", ""),
            "strip_prefix": source.get("strip_prefix", ""),
        }
        patches = source.get("patches") or {}
        if patches:
            attrs["remote_patches"] = {
                self._module_url(key.name, key.version, "patches", patch): integrity
                for patch, integrity in sorted(patches.items())
            }
            attrs["remote_patch_strip"] = source.get("patch_strip", 0)
        return RepoSpec("http_archive", attrs, bzl_file=Constants.HTTP_BZL)

    def _local_path_spec(self, source: Dict[str, Any], canonical_name: str) -> RepoSpec:
        path = source["path"]
        if not os.path.isabs(path):
            base = self._registry_config().get("module_base_path", "")
            if not is_remote(self._url):
                base = os.path.join(local_path(self._url), base)
            path = os.path.normpath(os.path.join(base, path))
        return RepoSpec("local_repository", {"name": canonical_name, "path": path})

    def _git_spec(self, source: Dict[str, Any], canonical_name: str) -> RepoSpec:
        attrs: Dict[str, Any] = {"name": canonical_name, "remote": source["remote"]}
        for field_name in ("commit", "tag", "strip_prefix", "init_submodules"):
            if field_name in source:
                attrs[field_name] = source[field_name]
        return RepoSpec("git_repository", attrs, bzl_file=Constants.GIT_BZL)
