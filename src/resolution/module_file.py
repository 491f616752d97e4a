"""Module file parser.

Module files are written in a Starlark subset that is also valid Python
syntax, so the text is parsed with ``ast`` and every call argument must be a
literal. Only top-level calls are recognized; anything else is a ParseError.
"""
from __future__ import annotations

import ast
import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from versioning import parse_version

from .errors import ConfigurationError, ParseError
from .models import (
    ArchiveOverride,
    DepEdge,
    GitOverride,
    LocalPathOverride,
    ModuleDescriptor,
    MultipleVersionOverride,
    OverrideDirective,
    RegistryOverride,
    SingleVersionOverride,
)

logger = logging.getLogger(__name__)

# Calls that configure extensions and toolchains; resolution does not use them.
IGNORED_CALLS = frozenset({
    "use_extension",
    "use_repo",
    "register_toolchains",
    "register_execution_platforms",
})

OVERRIDE_CALLS = frozenset({
    "single_version_override",
    "multiple_version_override",
    "local_path_override",
    "archive_override",
    "git_override",
})

_ALLOWED_KWARGS = {
    "module": {"name", "version", "compatibility_level", "repo_name", "bazel_compatibility"},
    "bazel_dep": {"name", "version", "repo_name", "dev_dependency"},
    "single_version_override": {
        "module_name", "version", "registry", "patches", "patch_cmds", "patch_strip",
    },
    "multiple_version_override": {"module_name", "versions", "registry"},
    "local_path_override": {"module_name", "path"},
    "archive_override": {
        "module_name", "urls", "integrity", "strip_prefix", "patches", "patch_cmds",
        "patch_strip",
    },
    "git_override": {"module_name", "remote", "commit", "patches", "patch_cmds", "patch_strip"},
}


class _Call:
    """Literal keyword arguments of one top-level call."""

    def __init__(self, func: str, kwargs: Dict[str, Any], lineno: int, source: str):
        self.func = func
        self.kwargs = kwargs
        self.where = f"{source}:{lineno}"

    def fail(self, message: str) -> ParseError:
        return ParseError(f"{self.where}: {_func_label(self.func)}: {message}")

    def string(self, name: str, default: Optional[str] = None) -> str:
        value = self.kwargs.get(name, default)
        if value is None:
            raise self.fail(f"missing required argument '{name}'")
        if not isinstance(value, str):
            raise self.fail(f"'{name}' must be a string, got {type(value).__name__}")
        return value

    def strings(self, name: str) -> Tuple[str, ...]:
        value = self.kwargs.get(name, [])
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise self.fail(f"'{name}' must be a list of strings")
        if not all(isinstance(item, str) for item in value):
            raise self.fail(f"'{name}' must be a list of strings")
        return tuple(value)

    def integer(self, name: str, default: int = 0) -> int:
        value = self.kwargs.get(name, default)
        if isinstance(value, bool) or not isinstance(value, int):
            raise self.fail(f"'{name}' must be an integer")
        return value

    def boolean(self, name: str, default: bool = False) -> bool:
        value = self.kwargs.get(name, default)
        if not isinstance(value, bool):
            raise self.fail(f"'{name}' must be a boolean")
        return value

    def patch_strip(self) -> int:
        value = self.kwargs.get("patch_strip", 0)
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigurationError(
                f"{self.where}: {_func_label(self.func)}: 'patch_strip' must be a "
                f"non-negative integer, got {value!r}"
            )
        return value


def _func_label(func: str) -> str:
    return f"{func}()"


def _literal(node: ast.AST, func: str, source: str) -> Any:
    try:
        return ast.literal_eval(node)
    except (ValueError, SyntaxError) as exc:
        raise ParseError(
            f"{source}:{getattr(node, 'lineno', '?')}: {_func_label(func)}: "
            "arguments must be literals"
        ) from exc


def _read_call(node: ast.Call, func: str, source: str) -> _Call:
    if node.args:
        raise ParseError(
            f"{source}:{node.lineno}: {_func_label(func)}: positional arguments are not supported"
        )
    kwargs: Dict[str, Any] = {}
    allowed = _ALLOWED_KWARGS[func]
    for keyword in node.keywords:
        if keyword.arg is None or keyword.arg not in allowed:
            raise ParseError(
                f"{source}:{node.lineno}: {_func_label(func)}: "
                f"unexpected argument '{keyword.arg or '**'}'"
            )
        kwargs[keyword.arg] = _literal(keyword.value, func, source)
    return _Call(func, kwargs, node.lineno, source)


def _check_version(call: _Call, version: str) -> str:
    try:
        parse_version(version)
    except ValueError as exc:
        raise call.fail(str(exc)) from exc
    return version


def _build_override(call: _Call) -> OverrideDirective:
    module_name = call.string("module_name")
    if call.func == "local_path_override":
        return LocalPathOverride(module_name=module_name, path=call.string("path"))
    if call.func == "archive_override":
        urls = call.strings("urls")
        if not urls:
            raise call.fail("'urls' must not be empty")
        return ArchiveOverride(
            module_name=module_name,
            urls=urls,
            integrity=call.string("integrity", ""),
            strip_prefix=call.string("strip_prefix", ""),
            patches=call.strings("patches"),
            patch_cmds=call.strings("patch_cmds"),
            patch_strip=call.patch_strip(),
        )
    if call.func == "git_override":
        return GitOverride(
            module_name=module_name,
            remote=call.string("remote"),
            commit=call.string("commit"),
            patches=call.strings("patches"),
            patch_cmds=call.strings("patch_cmds"),
            patch_strip=call.patch_strip(),
        )
    if call.func == "multiple_version_override":
        versions = call.strings("versions")
        if len(versions) < 2:
            raise call.fail("'versions' must name at least two versions")
        for version in versions:
            _check_version(call, version)
        return MultipleVersionOverride(
            module_name=module_name,
            versions=versions,
            registry=call.string("registry", ""),
        )
    # single_version_override
    version = _check_version(call, call.string("version", ""))
    registry = call.string("registry", "")
    patches = call.strings("patches")
    patch_cmds = call.strings("patch_cmds")
    patch_strip = call.patch_strip()
    if registry and not (version or patches or patch_cmds):
        return RegistryOverride(module_name=module_name, registry_url=registry)
    return SingleVersionOverride(
        module_name=module_name,
        version=version,
        registry=registry,
        patches=patches,
        patch_cmds=patch_cmds,
        patch_strip=patch_strip,
    )


def _call_name(node: ast.AST) -> Optional[str]:
    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
        return node.func.id
    return None


def parse_module_file(text: str, *, is_root: bool = False,
                      source: str = "MODULE.bazel") -> ModuleDescriptor:
    """Parse module file ``text`` into a ModuleDescriptor.

    Override directives and dev dependencies only apply to the root module;
    for any other module they are dropped.
    """
    try:
        tree = ast.parse(text, filename=source)
    except SyntaxError as exc:
        raise ParseError(f"{source}:{exc.lineno}: syntax error: {exc.msg}") from exc

    module_call: Optional[_Call] = None
    deps: List[DepEdge] = []
    seen_deps: Set[str] = set()
    overrides: List[OverrideDirective] = []
    extension_proxies: Set[str] = set()

    for stmt in tree.body:
        if isinstance(stmt, ast.Assign) and _call_name(stmt.value) == "use_extension":
            for target in stmt.targets:
                if not isinstance(target, ast.Name):
                    raise ParseError(f"{source}:{stmt.lineno}: unsupported assignment target")
                extension_proxies.add(target.id)
            continue

        if not isinstance(stmt, ast.Expr) or not isinstance(stmt.value, ast.Call):
            raise ParseError(f"{source}:{stmt.lineno}: only top-level calls are supported")

        node = stmt.value
        if isinstance(node.func, ast.Attribute):
            base = node.func.value
            if isinstance(base, ast.Name) and base.id in extension_proxies:
                continue
            raise ParseError(f"{source}:{stmt.lineno}: unsupported method call")

        func = _call_name(node)
        if func in IGNORED_CALLS:
            continue
        if func not in _ALLOWED_KWARGS:
            raise ParseError(f"{source}:{stmt.lineno}: unknown function '{func}'")

        call = _read_call(node, func, source)
        if func == "module":
            if module_call is not None:
                raise call.fail("module() may only be called once")
            module_call = call
        elif func == "bazel_dep":
            edge = DepEdge(
                name=call.string("name"),
                version=_check_version(call, call.string("version", "")),
                repo_name=call.string("repo_name", ""),
                dev_dependency=call.boolean("dev_dependency"),
            )
            if edge.name in seen_deps:
                raise call.fail(f"duplicate bazel_dep for module '{edge.name}'")
            seen_deps.add(edge.name)
            if edge.dev_dependency and not is_root:
                continue
            deps.append(edge)
        elif func in OVERRIDE_CALLS:
            override = _build_override(call)
            if is_root:
                overrides.append(override)

    name = version = repo_name = ""
    compatibility_level = 0
    bazel_compatibility: Tuple[str, ...] = ()
    if module_call is not None:
        name = module_call.string("name", "")
        version = _check_version(module_call, module_call.string("version", ""))
        repo_name = module_call.string("repo_name", "")
        compatibility_level = module_call.integer("compatibility_level")
        bazel_compatibility = module_call.strings("bazel_compatibility")

    if is_debug_enabled(logger):
        logger.debug(
            "Parsed module file",
            extra=extra_context(
                event="parse",
                component="module_file",
                action="parse_module_file",
                outcome="success",
                target=source,
                deps=len(deps),
                overrides=len(overrides),
            )
        )

    return ModuleDescriptor(
        name=name,
        version=version,
        compatibility_level=compatibility_level,
        deps=tuple(deps),
        overrides=tuple(overrides),
        repo_name=repo_name,
        bazel_compatibility=bazel_compatibility,
    )
