"""Hatchling build hook that writes the build information module.

Enable it in the consuming project's ``pyproject.toml``::

    [build-system]
    requires = ["hatchling", "buildstamp"]
    build-backend = "hatchling.build"

    [tool.hatch.build.hooks.buildstamp]
    path = "mypackage/_built.py"
    capabilities = ["vcs", "lock-file", "timestamp"]
    time-format = "rfc3339"
"""

from __future__ import annotations

import logging
import os
import platform
import sysconfig
from pathlib import Path
from typing import Any, Dict

from hatchling.builders.hooks.plugin.interface import BuildHookInterface
from hatchling.plugin import hookimpl

from .constants import Defaults, EnvVars
from .errors import BuildstampError, ConfigurationError
from .pipeline import generate

logger = logging.getLogger(__name__)

# Hook options passed through to the configuration layer
_CONFIG_OPTIONS = ("capabilities", "with", "without", "time-format", "lock-files",
                   "short-hash-length", "vcs-timeout")


def interpreter_identity() -> str:
    return f"{platform.python_implementation()} {platform.python_version()}"


def _metadata_env(metadata: Any) -> Dict[str, str]:
    """BUILD_PKG_* values from the project metadata."""
    values = {
        EnvVars.PKG_NAME: metadata.name,
        EnvVars.PKG_VERSION: metadata.version,
    }
    core = getattr(metadata, "core", None)
    if core is not None:
        if core.description:
            values[EnvVars.PKG_DESCRIPTION] = core.description
        authors = [a.get("name") or a.get("email") for a in core.authors or []]
        if any(authors):
            values[EnvVars.PKG_AUTHORS] = ", ".join(a for a in authors if a)
        urls = {k.lower(): v for k, v in (core.urls or {}).items()}
        if "homepage" in urls:
            values[EnvVars.PKG_HOMEPAGE] = urls["homepage"]
        for key in ("repository", "source"):
            if key in urls:
                values[EnvVars.PKG_REPOSITORY] = urls[key]
                break
        license_expression = getattr(core, "license_expression", None) or getattr(core, "license", None)
        if isinstance(license_expression, str) and license_expression:
            values[EnvVars.PKG_LICENSE] = license_expression
    return {k: v for k, v in values.items() if v}


class BuildstampBuildHook(BuildHookInterface):
    """Generate the build information module before files are collected."""

    PLUGIN_NAME = "buildstamp"

    def artifact_path(self) -> str:
        path = self.config.get("path")
        if path:
            return str(path)
        package = self.metadata.name.replace("-", "_").replace(".", "_").lower()
        return f"{package}/{Defaults.ARTIFACT_NAME}"

    def build_environment(self, version: str) -> Dict[str, str]:
        """Environment for the probes; real environment variables win."""
        env = dict(os.environ)
        platform_tag = sysconfig.get_platform()
        profile = self.config.get("profile") or ("debug" if version == "editable" else "release")
        defaults = {
            EnvVars.COMPILER: interpreter_identity(),
            EnvVars.TARGET: self.config.get("target") or platform_tag,
            EnvVars.HOST: platform_tag,
            EnvVars.PROFILE: profile,
            EnvVars.SOURCE_DIR: self.root,
        }
        defaults.update(_metadata_env(self.metadata))
        for key, value in defaults.items():
            env.setdefault(key, value)
        features = self.config.get("features")
        if features and EnvVars.FEATURES not in os.environ:
            if isinstance(features, str):
                env[EnvVars.FEATURES] = features
            elif isinstance(features, list) and all(isinstance(f, str) for f in features):
                env[EnvVars.FEATURES] = ",".join(features)
            else:
                raise ConfigurationError(
                    f"Hook option 'features' must be a string or a list of strings, got {features!r}",
                    probe="config",
                )
        return env

    def initialize(self, version: str, build_data: Dict[str, Any]) -> None:
        """Generate the module and add it to the build artifacts."""
        relative = self.artifact_path()
        overrides = {k: self.config[k] for k in _CONFIG_OPTIONS if k in self.config}
        try:
            generate(
                out_path=Path(self.root) / relative,
                env=self.build_environment(version),
                source_dir=self.root,
                overrides=overrides,
            )
        except BuildstampError as e:
            logger.error(f"buildstamp: {e.probe or 'build'} failed: {e}")
            raise
        build_data.setdefault("artifacts", []).append(relative)


@hookimpl
def hatch_register_build_hook():
    return BuildstampBuildHook
