"""Run the enabled probes and merge their results into one descriptor."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Mapping, Optional

from .config import BuildConfig, Capability
from .environment import read_environment
from .errors import BuildstampError
from .lockfile import probe_lock_file
from .model import BuildDescriptor
from .result import Unavailable, unwrap_or_none
from .semver import parse_dependency_version, probe_version
from .timestamp import capture_timestamp
from .vcs import probe_vcs

logger = logging.getLogger(__name__)


def _run(probe: str, call: Callable):
    """Call a probe, tagging any failure with the probe's name."""
    try:
        result = call()
    except BuildstampError as e:
        if e.probe is None or e.probe == "environment":
            e.probe = probe
        raise
    if isinstance(result, Unavailable):
        logger.info(f"{probe}: unavailable ({result.reason})")
    return result


def collect(
    config: BuildConfig,
    env: Mapping[str, str],
    source_dir: Optional[Path] = None,
) -> BuildDescriptor:
    """Build the descriptor for this build.

    Args:
        config: Resolved configuration; decides which probes run.
        env: Build environment variables.
        source_dir: Where to look for the repository and lock file.
            Defaults to BUILD_SOURCE_DIR, then the current directory.

    Raises:
        ConfigurationError: A required baseline variable is missing.
        ParseError: The lock file or the package version is malformed.
        BuildIOError: A repository or lock file exists but is unreadable.
    """
    environment = _run("environment", lambda: read_environment(env))
    root = Path(source_dir or environment.source_dir or os.getcwd())

    vcs_info = None
    if config.enabled(Capability.VCS):
        vcs_info = unwrap_or_none(_run("vcs", lambda: probe_vcs(
            root,
            env=env,
            timeout=config.vcs_timeout,
            short_hash_length=config.short_hash_length,
        )))

    dependencies = None
    if config.enabled(Capability.LOCK_FILE):
        dependencies = unwrap_or_none(_run("lock-file", lambda: probe_lock_file(root, config.lock_files)))

    version_info = None
    dependency_versions = None
    if config.enabled(Capability.SEMVER):
        version_info = unwrap_or_none(_run("semver", lambda: probe_version(environment.pkg_version)))
        if dependencies is not None:
            dependency_versions = tuple(
                (record.name, parse_dependency_version(record.version)) for record in dependencies
            )

    build_time = None
    if config.enabled(Capability.TIMESTAMP):
        build_time = _run("timestamp", lambda: capture_timestamp(env))

    return BuildDescriptor(
        environment=environment,
        vcs_info=vcs_info,
        dependencies=dependencies,
        version_info=version_info,
        dependency_versions=dependency_versions,
        build_time=build_time,
    )
