"""Tests for rendering and writing the generated module."""

import os
import unittest
from datetime import datetime, timezone

import pytest

from buildstamp.config import BuildConfig, Capability
from buildstamp.emitter import literal, render, write_artifact
from buildstamp.errors import BuildIOError
from buildstamp.model import (
    BuildDescriptor,
    DependencyRecord,
    DependencySource,
    EnvironmentInfo,
    Profile,
    SemVer,
    TimeFormat,
    Timestamp,
    VcsInfo,
)

ALL = frozenset(Capability)
HASH = "0123456789abcdef0123456789abcdef01234567"


def load(source):
    """Execute generated source and return its constants."""
    namespace = {}
    exec(compile(source, "_built.py", "exec"), namespace)
    return {k: v for k, v in namespace.items() if k.isupper()}


def full_descriptor():
    return BuildDescriptor(
        environment=EnvironmentInfo(
            compiler_info="CPython 3.12.4",
            target_triple="linux-x86_64",
            host_triple="linux-x86_64",
            profile=Profile.RELEASE,
            profile_name="release",
            features=frozenset({"yaml", "fast", "json"}),
            pkg_name="demo",
            pkg_version="1.4.0-beta.2",
            pkg_authors=("Ada", "Grace"),
            num_jobs=4,
            debug=False,
        ),
        vcs_info=VcsInfo(
            commit_hash=HASH,
            short_hash=HASH[:8],
            dirty=False,
            head_ref="refs/heads/main",
            describe="v1.4.0-beta.2",
            commit_time=Timestamp(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)),
        ),
        dependencies=(
            DependencyRecord("idna", "3.10", DependencySource.REGISTRY),
            DependencyRecord("idna", "2.10", DependencySource.REGISTRY),
            DependencyRecord("tool", "2024.1", DependencySource.GIT),
        ),
        version_info=SemVer(1, 4, 0, "beta.2"),
        dependency_versions=(
            ("idna", SemVer(3, 10, 0)),
            ("idna", "2.10"),
            ("tool", "2024.1"),
        ),
        build_time=Timestamp(datetime(2024, 3, 9, 14, 5, 7, tzinfo=timezone.utc)),
    )


class TestRender(unittest.TestCase):

    def test_deterministic(self):
        config = BuildConfig(capabilities=ALL)
        self.assertEqual(render(full_descriptor(), config), render(full_descriptor(), config))

    def test_feature_order_does_not_matter(self):
        config = BuildConfig(capabilities=frozenset())
        env_a = EnvironmentInfo("c", "t", features=frozenset(["b", "a", "c"]))
        env_b = EnvironmentInfo("c", "t", features=frozenset(["c", "a", "b"]))
        self.assertEqual(
            render(BuildDescriptor(env_a), config),
            render(BuildDescriptor(env_b), config),
        )

    def test_values_round_trip(self):
        values = load(render(full_descriptor(), BuildConfig(capabilities=ALL)))
        self.assertEqual(values["COMPILER"], "CPython 3.12.4")
        self.assertEqual(values["PROFILE"], "release")
        self.assertEqual(values["FEATURES"], ("fast", "json", "yaml"))
        self.assertEqual(values["FEATURES_STR"], "fast, json, yaml")
        self.assertEqual(values["PKG_AUTHORS"], ("Ada", "Grace"))
        self.assertIs(values["DEBUG"], False)
        self.assertEqual(values["NUM_JOBS"], 4)
        self.assertEqual(values["GIT_COMMIT_HASH"], HASH)
        self.assertEqual(values["GIT_COMMIT_HASH_SHORT"], HASH[:8])
        self.assertIs(values["GIT_DIRTY"], False)
        self.assertEqual(values["GIT_BRANCH"], "main")
        self.assertEqual(values["GIT_COMMIT_TIME"], "2024-01-02T03:04:05+00:00")
        self.assertEqual(
            values["DEPENDENCIES"],
            (("idna", "3.10", "registry"), ("idna", "2.10", "registry"), ("tool", "2024.1", "git")),
        )
        self.assertEqual(values["DEPENDENCIES_STR"], "idna 3.10, idna 2.10, tool 2024.1")
        self.assertEqual(values["PKG_VERSION_MAJOR"], 1)
        self.assertEqual(values["PKG_VERSION_MINOR"], 4)
        self.assertEqual(values["PKG_VERSION_PATCH"], 0)
        self.assertEqual(values["PKG_VERSION_PRE"], "beta.2")
        self.assertIsNone(values["PKG_VERSION_BUILD"])
        self.assertEqual(
            values["PKG_VERSION_INFO"],
            {"major": 1, "minor": 4, "patch": 0, "pre_release": "beta.2", "build_metadata": None},
        )
        self.assertEqual(
            values["DEPENDENCY_VERSIONS"],
            (("idna", (3, 10, 0, None, None)), ("idna", "2.10"), ("tool", "2024.1")),
        )
        self.assertEqual(values["BUILT_TIME_UTC"], "2024-03-09T14:05:07+00:00")
        self.assertEqual(values["BUILT_TIME_EPOCH"], 1709993107)

    def test_time_format_applies_to_all_timestamps(self):
        config = BuildConfig(capabilities=ALL, time_format=TimeFormat.DATE)
        values = load(render(full_descriptor(), config))
        self.assertEqual(values["BUILT_TIME_UTC"], "2024-03-09")
        self.assertEqual(values["GIT_COMMIT_TIME"], "2024-01-02")

    def test_emission_order(self):
        source = render(full_descriptor(), BuildConfig(capabilities=ALL))
        positions = [source.index(f"\n{name}:") for name in (
            "PKG_NAME", "COMPILER", "FEATURES_STR", "GIT_COMMIT_HASH",
            "DEPENDENCIES", "PKG_VERSION_MAJOR", "BUILT_TIME_UTC",
        )]
        self.assertEqual(positions, sorted(positions))

    def test_disabled_groups_are_omitted(self):
        values = load(render(full_descriptor(), BuildConfig(capabilities=frozenset())))
        self.assertIn("COMPILER", values)
        for name in ("GIT_COMMIT_HASH", "DEPENDENCIES", "PKG_VERSION_MAJOR", "BUILT_TIME_UTC"):
            self.assertNotIn(name, values)

    def test_unavailable_values_are_none_not_empty(self):
        descriptor = BuildDescriptor(EnvironmentInfo("c", "t"))
        values = load(render(descriptor, BuildConfig(capabilities=ALL)))
        for name in ("GIT_COMMIT_HASH", "GIT_DIRTY", "GIT_BRANCH", "DEPENDENCIES",
                     "PKG_VERSION_MAJOR", "PKG_VERSION_INFO", "DEPENDENCY_VERSIONS",
                     "BUILT_TIME_UTC", "HOST", "PKG_NAME"):
            self.assertIsNone(values[name], name)
        self.assertEqual(values["FEATURES"], ())
        self.assertEqual(values["FEATURES_STR"], "")

    def test_empty_string_is_kept(self):
        env = EnvironmentInfo("c", "t", pkg_description="")
        values = load(render(BuildDescriptor(env), BuildConfig(capabilities=frozenset())))
        self.assertEqual(values["PKG_DESCRIPTION"], "")

    def test_dependency_versions_need_lock_file_capability(self):
        config = BuildConfig(capabilities=frozenset({Capability.SEMVER}))
        values = load(render(full_descriptor(), config))
        self.assertIn("PKG_VERSION_MAJOR", values)
        self.assertNotIn("DEPENDENCY_VERSIONS", values)

    def test_generated_module_documents_constants(self):
        source = render(full_descriptor(), BuildConfig(capabilities=ALL))
        self.assertTrue(source.startswith("# Auto-generated at build time"))
        self.assertIn("#: The full hash of the commit that was built.\nGIT_COMMIT_HASH: Optional[str] = ", source)


@pytest.mark.parametrize("text", [
    "",
    "plain",
    'quote " and \' both',
    "back\\slash",
    "new\nline\ttab\rreturn",
    "\x00\x1f\x7f",
    "café ☃ \U0001f680",
    " separator",
    '"""triple"""',
])
def test_string_literals_round_trip(text):
    assert eval(literal(text)) == text


@pytest.mark.parametrize("value", [
    None,
    True,
    0,
    -3,
    (),
    ("one",),
    (("a", 1), ("b", None)),
    ("x", (1, 2, 3, None, "rc.1")),
    {"major": 1, "pre": None},
])
def test_literals_round_trip(value):
    assert eval(literal(value)) == value


def test_literal_rejects_unknown_types():
    with pytest.raises(TypeError):
        literal(1.5j)


def test_write_artifact(tmp_path):
    target = tmp_path / "pkg" / "_built.py"
    config = BuildConfig(capabilities=ALL)
    write_artifact(full_descriptor(), target, config)
    first = target.read_bytes()
    write_artifact(full_descriptor(), target, config)
    assert target.read_bytes() == first
    assert first.decode("utf-8") == render(full_descriptor(), config)
    assert [p.name for p in target.parent.iterdir()] == ["_built.py"]


@pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root can write anywhere")
def test_unwritable_output(tmp_path):
    locked = tmp_path / "locked"
    locked.mkdir()
    existing = locked / "_built.py"
    existing.write_text("OLD = 1\n", encoding="utf-8")
    locked.chmod(0o555)
    try:
        with pytest.raises(BuildIOError) as excinfo:
            write_artifact(full_descriptor(), existing)
        assert excinfo.value.probe == "emit"
        assert existing.read_text(encoding="utf-8") == "OLD = 1\n"
        assert [p.name for p in locked.iterdir()] == ["_built.py"]
    finally:
        locked.chmod(0o755)


def test_output_path_is_a_directory(tmp_path):
    target = tmp_path / "_built.py"
    target.mkdir()
    with pytest.raises(BuildIOError):
        write_artifact(full_descriptor(), target)
    assert [p.name for p in tmp_path.iterdir()] == ["_built.py"]
