"""Tests for layered configuration."""

import json
import unittest
from pathlib import Path

import pytest

from buildstamp.config import (
    BuildConfig,
    Capability,
    load_config,
    load_project_settings,
    load_user_settings,
    parse_capabilities,
    parse_time_format,
)
from buildstamp.errors import ConfigurationError
from buildstamp.model import TimeFormat


class TestParsing(unittest.TestCase):

    def test_capability_spellings(self):
        self.assertEqual(
            parse_capabilities(["vcs", "lock_file", "LockFile", "SEMVER"]),
            frozenset({Capability.VCS, Capability.LOCK_FILE, Capability.SEMVER}),
        )

    def test_comma_separated(self):
        self.assertEqual(
            parse_capabilities("vcs, semver"),
            frozenset({Capability.VCS, Capability.SEMVER}),
        )
        self.assertEqual(parse_capabilities(""), frozenset())

    def test_unknown_capability(self):
        with self.assertRaises(ConfigurationError) as ctx:
            parse_capabilities(["vcs", "telemetry"])
        self.assertIn("telemetry", str(ctx.exception))
        self.assertEqual(ctx.exception.probe, "config")

    def test_time_formats(self):
        self.assertEqual(parse_time_format("RFC-3339"), TimeFormat.RFC3339)
        self.assertEqual(parse_time_format("date-time"), TimeFormat.DATETIME)
        with self.assertRaises(ConfigurationError):
            parse_time_format("unix")


class TestOverrides(unittest.TestCase):

    def test_defaults(self):
        config = BuildConfig()
        self.assertEqual(
            config.capabilities,
            frozenset({Capability.VCS, Capability.LOCK_FILE, Capability.TIMESTAMP}),
        )
        self.assertFalse(config.enabled(Capability.SEMVER))
        self.assertEqual(config.time_format, TimeFormat.RFC3339)
        self.assertEqual(config.short_hash_length, 8)

    def test_with_and_without(self):
        config = BuildConfig().with_overrides({"with": ["semver"], "without": ["lock-file"]})
        self.assertEqual(
            config.capabilities,
            frozenset({Capability.VCS, Capability.SEMVER, Capability.TIMESTAMP}),
        )

    def test_capabilities_replace(self):
        config = BuildConfig().with_overrides({"capabilities": ["semver"]})
        self.assertEqual(config.capabilities, frozenset({Capability.SEMVER}))

    def test_other_settings(self):
        config = BuildConfig().with_overrides({
            "time-format": "date",
            "lock-files": ["poetry.lock"],
            "short-hash-length": 12,
            "vcs-timeout": 3,
        })
        self.assertEqual(config.time_format, TimeFormat.DATE)
        self.assertEqual(config.lock_files, ("poetry.lock",))
        self.assertEqual(config.short_hash_length, 12)
        self.assertEqual(config.vcs_timeout, 3.0)

    def test_invalid_values(self):
        for overrides in (
            {"short-hash-length": 2},
            {"short-hash-length": True},
            {"vcs-timeout": 0},
            {"lock-files": [""]},
            {"colour": "blue"},
        ):
            with self.assertRaises(ConfigurationError, msg=str(overrides)):
                BuildConfig().with_overrides(overrides)

    def test_config_is_immutable(self):
        config = BuildConfig()
        config.with_overrides({"capabilities": []})
        self.assertTrue(config.enabled(Capability.VCS))


def test_project_settings(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "demo"\n\n[tool.buildstamp]\ncapabilities = ["vcs", "semver"]\ntime-format = "date"\n',
        encoding="utf-8",
    )
    config = load_config(tmp_path)
    assert config.capabilities == frozenset({Capability.VCS, Capability.SEMVER})
    assert config.time_format == TimeFormat.DATE


def test_project_without_table(tmp_path):
    (tmp_path / "pyproject.toml").write_text('[project]\nname = "demo"\n', encoding="utf-8")
    assert load_project_settings(tmp_path) == {}
    assert load_project_settings(tmp_path / "missing") == {}


def test_invalid_project_settings_are_errors(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        '[tool.buildstamp]\ncapabilities = ["nope"]\n', encoding="utf-8"
    )
    with pytest.raises(ConfigurationError):
        load_config(tmp_path)


def test_malformed_pyproject(tmp_path):
    (tmp_path / "pyproject.toml").write_text('[tool.buildstamp\n', encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_project_settings(tmp_path)


@pytest.mark.parametrize("content", ['tool = "x"\n', '[tool]\nbuildstamp = 3\n'])
def test_tool_entries_must_be_tables(tmp_path, content):
    (tmp_path / "pyproject.toml").write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError) as excinfo:
        load_project_settings(tmp_path)
    assert excinfo.value.probe == "config"


def test_user_settings_layer(tmp_path, isolated_user_settings):
    isolated_user_settings.write_text(json.dumps({"time-format": "datetime", "with": ["semver"]}), encoding="utf-8")
    config = load_config(tmp_path)
    assert config.time_format == TimeFormat.DATETIME
    assert config.enabled(Capability.SEMVER)


def test_project_and_explicit_layers_win(tmp_path, isolated_user_settings):
    isolated_user_settings.write_text(json.dumps({"time-format": "datetime"}), encoding="utf-8")
    (tmp_path / "pyproject.toml").write_text('[tool.buildstamp]\ntime-format = "date"\n', encoding="utf-8")
    assert load_config(tmp_path).time_format == TimeFormat.DATE
    assert load_config(tmp_path, {"time_format": "rfc3339"}).time_format == TimeFormat.RFC3339


def test_broken_user_settings_are_ignored(tmp_path, isolated_user_settings, caplog):
    isolated_user_settings.write_text("{not json", encoding="utf-8")
    assert load_user_settings(isolated_user_settings) == {}
    assert load_config(tmp_path) == BuildConfig()
    assert "Could not load user settings" in caplog.text


def test_invalid_user_values_are_ignored(tmp_path, isolated_user_settings, caplog):
    isolated_user_settings.write_text(json.dumps({"capabilities": ["bogus"]}), encoding="utf-8")
    assert load_config(tmp_path) == BuildConfig()
    assert "Ignoring user settings" in caplog.text


def test_user_settings_not_an_object(isolated_user_settings):
    isolated_user_settings.write_text("[1, 2]", encoding="utf-8")
    assert load_user_settings(Path(isolated_user_settings)) == {}
