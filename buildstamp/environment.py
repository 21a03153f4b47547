"""Read the baseline build facts from the build environment.

The build system (the Hatchling hook, a Makefile, a CI job) exposes the
facts as environment variables; see :class:`buildstamp.constants.EnvVars`.
Compiler identity and target are required, everything else is optional.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional, Tuple

from .constants import CI_PLATFORMS, EnvVars
from .errors import ConfigurationError
from .model import EnvironmentInfo, Profile

logger = logging.getLogger(__name__)

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _get(env: Mapping[str, str], name: str) -> Optional[str]:
    """Return a stripped variable, treating blank values as unset."""
    value = env.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require(env: Mapping[str, str], name: str, what: str) -> str:
    value = _get(env, name)
    if value is None:
        raise ConfigurationError(f"Required variable {name} ({what}) is not set")
    return value


def parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def normalize_feature(name: str) -> str:
    return name.strip().lower().replace("_", "-")


def read_features(env: Mapping[str, str]) -> frozenset:
    """Collect features from the list variable and the per-feature variables."""
    features = set()
    listed = _get(env, EnvVars.FEATURES)
    if listed:
        features.update(normalize_feature(f) for f in re.split(r"[\s,]+", listed) if f)
    for key in env:
        if key.startswith(EnvVars.FEATURE_PREFIX) and len(key) > len(EnvVars.FEATURE_PREFIX):
            features.add(normalize_feature(key[len(EnvVars.FEATURE_PREFIX):]))
    return frozenset(features)


def detect_ci(env: Mapping[str, str]) -> Optional[str]:
    for variable, expected, platform_name in CI_PLATFORMS:
        value = env.get(variable)
        if value is None:
            continue
        if expected is None or value.strip().lower() == expected:
            return platform_name
    return None


def _split_authors(value: Optional[str]) -> Tuple[str, ...]:
    # Cargo joins authors with ':', PEP 621 tooling with ','
    if not value:
        return ()
    return tuple(a.strip() for a in re.split(r"[:,]", value) if a.strip())


def read_environment(env: Mapping[str, str]) -> EnvironmentInfo:
    """Read the baseline fields.

    Args:
        env: Mapping of environment variables, usually ``os.environ``.

    Returns:
        The populated EnvironmentInfo.

    Raises:
        ConfigurationError: compiler identity or target is missing, or an
            optional variable holds a value of the wrong type.
    """
    compiler = _require(env, EnvVars.COMPILER, "compiler identity")
    target = _require(env, EnvVars.TARGET, "target triple")

    profile_name = _get(env, EnvVars.PROFILE)

    debug = None
    raw_debug = _get(env, EnvVars.DEBUG)
    if raw_debug is not None:
        debug = parse_bool(raw_debug, EnvVars.DEBUG)

    num_jobs = None
    raw_jobs = _get(env, EnvVars.NUM_JOBS)
    if raw_jobs is not None:
        try:
            num_jobs = int(raw_jobs)
        except ValueError:
            raise ConfigurationError(
                f"{EnvVars.NUM_JOBS} must be an integer, got {raw_jobs!r}"
            ) from None

    info = EnvironmentInfo(
        compiler_info=compiler,
        target_triple=target,
        host_triple=_get(env, EnvVars.HOST),
        profile=Profile.from_name(profile_name),
        profile_name=profile_name,
        features=read_features(env),
        out_dir=_get(env, EnvVars.OUT_DIR),
        source_dir=_get(env, EnvVars.SOURCE_DIR),
        opt_level=_get(env, EnvVars.OPT_LEVEL),
        debug=debug,
        num_jobs=num_jobs,
        ci_platform=detect_ci(env),
        pkg_name=_get(env, EnvVars.PKG_NAME),
        pkg_version=_get(env, EnvVars.PKG_VERSION),
        pkg_authors=_split_authors(_get(env, EnvVars.PKG_AUTHORS)),
        pkg_description=_get(env, EnvVars.PKG_DESCRIPTION),
        pkg_homepage=_get(env, EnvVars.PKG_HOMEPAGE),
        pkg_repository=_get(env, EnvVars.PKG_REPOSITORY),
        pkg_license=_get(env, EnvVars.PKG_LICENSE),
    )
    logger.debug(f"Build environment: {info.compiler_info} -> {info.target_triple} ({info.profile.value})")
    return info
