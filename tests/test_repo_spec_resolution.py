"""End-to-end tests for resolving canonical repository names into repo specs."""

import pytest

from resolution.errors import DescriptorNotFoundError, ParseError, RegistryLookupError
from resolution.models import ModuleKey, RepoSpec

REGISTRY = "/usr/local/modules"


class TestGetRepoSpec:
    """Resolve canonical names against an in-memory registry."""

    def test_registry_module(self, registry_factory, make_resolver):
        """A transitive dependency resolves to the registry's rule."""
        registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"),
                        "module(name='bbb', version='1.0');bazel_dep(name='ccc',version='2.0')") \
            .add_module(ModuleKey("ccc", "2.0"), "module(name='ccc', version='2.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\nbazel_dep(name='bbb',version='1.0')",
            [REGISTRY],
        )

        assert resolver.get_repo_spec("ccc~2.0") == RepoSpec(
            "local_repository",
            {"name": "ccc~2.0", "path": "/usr/local/modules/ccc~2.0"},
        )
        assert resolver.get_repo_spec("ccc~9.9") is None

    def test_local_path_override(self, registry_factory, make_resolver):
        """A local path override replaces the registry version entirely."""
        registry = registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"),
                        "module(name='bbb', version='1.0');bazel_dep(name='ccc',version='2.0')") \
            .add_module(ModuleKey("ccc", "2.0"), "module(name='ccc', version='2.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\n"
            "bazel_dep(name='bbb',version='1.0')\n"
            "local_path_override(module_name='ccc',path='/foo/bar/C')",
            [REGISTRY],
        )

        assert resolver.get_repo_spec("ccc~override") == RepoSpec(
            "local_repository",
            {"name": "ccc~override", "path": "/foo/bar/C"},
        )
        assert resolver.get_repo_spec("ccc~2.0") is None
        assert "ccc" not in registry.requested_names()

    def test_single_version_override_with_patches(self, registry_factory, make_resolver):
        """The pinned version is fetched and the patch attributes are merged in."""
        registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"),
                        "module(name='bbb', version='1.0');bazel_dep(name='ccc',version='2.0')") \
            .add_module(ModuleKey("ccc", "2.0"), "module(name='ccc', version='2.0')") \
            .add_module(ModuleKey("ccc", "3.0"), "module(name='ccc', version='3.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\n"
            "bazel_dep(name='bbb',version='1.0')\n"
            "single_version_override(\n"
            "  module_name='ccc',version='3.0',patches=['//:foo.patch'], patch_cmds=['echo hi'],"
            " patch_strip=1)",
            [REGISTRY],
        )

        assert resolver.get_repo_spec("ccc~3.0") == RepoSpec(
            "local_repository",
            {
                "name": "ccc~3.0",
                "path": "/usr/local/modules/ccc~3.0",
                "patches": ["//:foo.patch"],
                "patch_cmds": ["echo hi"],
                "patch_args": ["-p1"],
            },
        )
        assert resolver.get_repo_spec("ccc~2.0") is None

    def test_multiple_version_override(self, registry_factory, make_resolver):
        """Every allowed version that is requested stays live."""
        registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"),
                        "module(name='bbb', version='1.0');bazel_dep(name='ddd',version='1.0')") \
            .add_module(ModuleKey("ccc", "2.0"),
                        "module(name='ccc', version='2.0');bazel_dep(name='ddd',version='2.0')") \
            .add_module(ModuleKey("ddd", "1.0"), "module(name='ddd', version='1.0')") \
            .add_module(ModuleKey("ddd", "2.0"), "module(name='ddd', version='2.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\n"
            "bazel_dep(name='bbb',version='1.0')\n"
            "bazel_dep(name='ccc',version='2.0')\n"
            "multiple_version_override(module_name='ddd',versions=['1.0','2.0'])",
            [REGISTRY],
        )

        assert resolver.get_repo_spec("ddd~2.0") == RepoSpec(
            "local_repository",
            {"name": "ddd~2.0", "path": "/usr/local/modules/ddd~2.0"},
        )
        assert resolver.get_repo_spec("ddd~1.0") == RepoSpec(
            "local_repository",
            {"name": "ddd~1.0", "path": "/usr/local/modules/ddd~1.0"},
        )
        assert resolver.resolve().live_versions("ddd") == ["1.0", "2.0"]

    def test_not_found(self, registry_factory, make_resolver):
        """Names that are not live canonical names resolve to nothing."""
        registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"), "module(name='bbb', version='1.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\nbazel_dep(name='bbb',version='1.0')",
            [REGISTRY],
        )

        assert resolver.get_repo_spec("C") is None
        assert resolver.get_repo_spec("zzz~1.0") is None
        assert resolver.get_repo_spec("bbb~") is None

    def test_repeated_queries_are_equal(self, registry_factory, make_resolver):
        """Querying twice yields equal specs and fetches the rule once."""
        registry = registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"), "module(name='bbb', version='1.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\nbazel_dep(name='bbb',version='1.0')",
            [REGISTRY],
        )

        first = resolver.get_repo_spec("bbb~1.0")
        second = resolver.get_repo_spec("bbb~1.0")

        assert first == second
        assert registry.repo_spec_requests == [ModuleKey("bbb", "1.0")]

    def test_all_repo_specs(self, registry_factory, make_resolver):
        """Every live canonical name gets a spec."""
        registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"),
                        "module(name='bbb', version='1.0');bazel_dep(name='ccc',version='2.0')") \
            .add_module(ModuleKey("ccc", "2.0"), "module(name='ccc', version='2.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\n"
            "bazel_dep(name='bbb',version='1.0')\n"
            "bazel_dep(name='eee',version='1.0')\n"
            "archive_override(module_name='eee', urls=['https://example.com/eee.zip'],"
            " integrity='sha256-abc', strip_prefix='eee-1.0')",
            [REGISTRY],
        )

        specs = resolver.all_repo_specs()

        assert sorted(specs) == ["bbb~1.0", "ccc~2.0", "eee~override"]
        assert specs["eee~override"] == RepoSpec(
            "http_archive",
            {
                "name": "eee~override",
                "urls": ["https://example.com/eee.zip"],
                "integrity": "sha256-abc",
                "strip_prefix": "eee-1.0",
            },
            bzl_file="@bazel_tools//tools/build_defs/repo:http.bzl",
        )

    def test_git_override_with_patches(self, registry_factory, make_resolver):
        registry_factory.new_fake_registry(REGISTRY)
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\n"
            "bazel_dep(name='fff',version='')\n"
            "git_override(module_name='fff', remote='https://example.com/fff.git',"
            " commit='abc123', patches=['//:fff.patch'])",
            [REGISTRY],
        )

        spec = resolver.get_repo_spec("fff~override")

        assert spec.rule_class_name == "git_repository"
        assert spec.attributes == {
            "name": "fff~override",
            "remote": "https://example.com/fff.git",
            "commit": "abc123",
            "patches": ["//:fff.patch"],
            "patch_cmds": [],
            "patch_args": ["-p0"],
        }


class TestResolutionErrors:
    """Failures abort the query and are reported with the right type."""

    def test_unknown_module(self, registry_factory, make_resolver):
        registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"),
                        "module(name='bbb', version='1.0');bazel_dep(name='nope',version='1.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\nbazel_dep(name='bbb',version='1.0')",
            [REGISTRY],
        )

        with pytest.raises(RegistryLookupError):
            resolver.get_repo_spec("bbb~1.0")

    def test_missing_version(self, registry_factory, make_resolver):
        registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"), "module(name='bbb', version='1.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\nbazel_dep(name='bbb',version='2.0')",
            [REGISTRY],
        )

        with pytest.raises(DescriptorNotFoundError):
            resolver.resolve()

    def test_malformed_module_file(self, registry_factory, make_resolver):
        registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"), "module(name='bbb', version='1.0'")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\nbazel_dep(name='bbb',version='1.0')",
            [REGISTRY],
        )

        with pytest.raises(ParseError):
            resolver.get_repo_spec("bbb~1.0")
        # The failure is memoized and reported again.
        with pytest.raises(ParseError):
            resolver.get_repo_spec("bbb~1.0")

    def test_rule_failure_is_scoped_to_one_name(self, registry_factory, make_resolver):
        """A failed repository rule fetch only fails queries for that name."""
        registry = registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"), "module(name='bbb', version='1.0')") \
            .add_module(ModuleKey("ccc", "1.0"), "module(name='ccc', version='1.0')") \
            .fail_repo_spec(ModuleKey("bbb", "1.0"),
                            DescriptorNotFoundError("no source for bbb@1.0"))
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\n"
            "bazel_dep(name='bbb',version='1.0')\n"
            "bazel_dep(name='ccc',version='1.0')",
            [REGISTRY],
        )

        with pytest.raises(DescriptorNotFoundError, match="bbb@1.0"):
            resolver.get_repo_spec("bbb~1.0")

        assert resolver.get_repo_spec("ccc~1.0") == RepoSpec(
            "local_repository",
            {"name": "ccc~1.0", "path": "/usr/local/modules/ccc~1.0"},
        )
        assert resolver.resolve().canonical_names() == ["bbb~1.0", "ccc~1.0"]
        with pytest.raises(DescriptorNotFoundError):
            resolver.get_repo_spec("bbb~1.0")
        assert registry.repo_spec_requests.count(ModuleKey("bbb", "1.0")) == 1

    def test_refresh_refetches(self, registry_factory, make_resolver):
        """After a refresh, module files and rules are read again."""
        registry = registry_factory.new_fake_registry(REGISTRY) \
            .add_module(ModuleKey("bbb", "1.0"), "module(name='bbb', version='1.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\nbazel_dep(name='bbb',version='1.0')",
            [REGISTRY],
        )

        first = resolver.get_repo_spec("bbb~1.0")
        resolver.refresh()
        second = resolver.get_repo_spec("bbb~1.0")

        assert first == second
        assert registry.module_file_requests == [ModuleKey("bbb", "1.0")] * 2
        assert registry.repo_spec_requests == [ModuleKey("bbb", "1.0")] * 2

    def test_later_registry_serves_module(self, registry_factory, make_resolver):
        """Registries are tried in order until one serves the module."""
        registry_factory.new_fake_registry("/first")
        registry_factory.new_fake_registry("/second") \
            .add_module(ModuleKey("bbb", "1.0"), "module(name='bbb', version='1.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\nbazel_dep(name='bbb',version='1.0')",
            ["/first", "/second"],
        )

        spec = resolver.get_repo_spec("bbb~1.0")

        assert spec.attributes["path"] == "/second/bbb~1.0"

    def test_registry_pinned_by_override(self, registry_factory, make_resolver):
        first = registry_factory.new_fake_registry("/first") \
            .add_module(ModuleKey("bbb", "1.0"), "module(name='bbb', version='1.0')")
        registry_factory.new_fake_registry("/pinned") \
            .add_module(ModuleKey("bbb", "1.0"), "module(name='bbb', version='1.0')")
        resolver = make_resolver(
            "module(name='aaa',version='0.1')\n"
            "bazel_dep(name='bbb',version='1.0')\n"
            "single_version_override(module_name='bbb', registry='/pinned')",
            ["/first"],
        )

        spec = resolver.get_repo_spec("bbb~1.0")

        assert spec.attributes["path"] == "/pinned/bbb~1.0"
        assert first.module_file_requests == []
