"""Build configuration: which probes run and how values are rendered.

Configuration is layered, later layers winning:

1. Built-in defaults.
2. Per-user defaults in ``settings.json`` in the platform's user config
   directory. A broken file is logged and ignored.
3. The ``[tool.buildstamp]`` table of the project's ``pyproject.toml``.
   Invalid values there are errors.
4. Explicit overrides from the command line or the build hook options.
"""

from __future__ import annotations

import json
import logging
import tomllib
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple, Union

import platformdirs

from .constants import Defaults
from .errors import ConfigurationError
from .model import TimeFormat

logger = logging.getLogger(__name__)


class Capability(Enum):
    VCS = "vcs"
    LOCK_FILE = "lock-file"
    SEMVER = "semver"
    TIMESTAMP = "timestamp"

    @classmethod
    def parse(cls, name: str) -> "Capability":
        normalized = str(name).strip().lower().replace("_", "-")
        if normalized == "lockfile":
            normalized = "lock-file"
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(c.value for c in cls)
            raise ConfigurationError(f"Unknown capability {name!r} (expected one of: {valid})", probe="config") from None


def parse_capabilities(names: Union[str, Iterable[str]]) -> FrozenSet[Capability]:
    """Parse capability names from a list or a comma separated string."""
    if isinstance(names, str):
        names = [n for n in names.replace(" ", ",").split(",") if n]
    return frozenset(Capability.parse(n) for n in names)


def parse_time_format(name: str) -> TimeFormat:
    try:
        return TimeFormat(str(name).strip().lower().replace("-", ""))
    except ValueError:
        valid = ", ".join(t.value for t in TimeFormat)
        raise ConfigurationError(f"Unknown time format {name!r} (expected one of: {valid})", probe="config") from None


@dataclass(frozen=True)
class BuildConfig:
    capabilities: FrozenSet[Capability] = field(
        default_factory=lambda: parse_capabilities(Defaults.CAPABILITIES)
    )
    time_format: TimeFormat = TimeFormat(Defaults.TIME_FORMAT)
    lock_files: Tuple[str, ...] = Defaults.LOCK_FILES
    short_hash_length: int = Defaults.SHORT_HASH_LENGTH
    vcs_timeout: float = Defaults.VCS_TIMEOUT

    def enabled(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def with_overrides(self, overrides: Mapping[str, Any]) -> "BuildConfig":
        """Return a copy with the given settings applied.

        Keys use either ``-`` or ``_``. ``with`` and ``without`` add to or
        remove from the current capability set.

        Raises:
            ConfigurationError: A key is unknown or a value is invalid.
        """
        changes: Dict[str, Any] = {}
        capabilities = set(self.capabilities)
        for raw_key, value in overrides.items():
            if value is None:
                continue
            key = raw_key.replace("-", "_")
            if key == "capabilities":
                capabilities = set(parse_capabilities(value))
            elif key == "with":
                capabilities |= parse_capabilities(value)
            elif key == "without":
                capabilities -= parse_capabilities(value)
            elif key == "time_format":
                changes["time_format"] = parse_time_format(value)
            elif key == "lock_files":
                if isinstance(value, str):
                    value = [value]
                if not all(isinstance(v, str) and v for v in value):
                    raise ConfigurationError("lock-files must be a list of file names", probe="config")
                changes["lock_files"] = tuple(value)
            elif key == "short_hash_length":
                if isinstance(value, bool) or not isinstance(value, int) or not 4 <= value <= 40:
                    raise ConfigurationError("short-hash-length must be an integer from 4 to 40", probe="config")
                changes["short_hash_length"] = value
            elif key == "vcs_timeout":
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                    raise ConfigurationError("vcs-timeout must be a positive number of seconds", probe="config")
                changes["vcs_timeout"] = float(value)
            else:
                raise ConfigurationError(f"Unknown setting {raw_key!r}", probe="config")
        changes["capabilities"] = frozenset(capabilities)
        return replace(self, **changes)


def user_settings_path() -> Path:
    return Path(platformdirs.user_config_dir(Defaults.APP_NAME)) / Defaults.USER_SETTINGS_FILE


def load_user_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load per-user defaults.

    Returns:
        The settings dictionary, or an empty dict if the file is missing
        or cannot be used.
    """
    path = path or user_settings_path()
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Could not load user settings from {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"User settings file {path} has invalid format (not an object), ignoring")
        return {}
    return data


def load_project_settings(source_dir: Union[str, Path]) -> Dict[str, Any]:
    """Read ``[tool.buildstamp]`` from ``<source_dir>/pyproject.toml``.

    Raises:
        ConfigurationError: pyproject.toml exists but is not valid TOML, or
            the table is not a table.
    """
    pyproject = Path(source_dir) / "pyproject.toml"
    if not pyproject.is_file():
        return {}
    try:
        with open(pyproject, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid {pyproject}: {e}", probe="config") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {pyproject}: {e}", probe="config") from e
    tool = data.get("tool", {})
    if not isinstance(tool, dict):
        raise ConfigurationError(f"[tool] in {pyproject} must be a table", probe="config")
    table = tool.get("buildstamp", {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"[tool.buildstamp] in {pyproject} must be a table", probe="config")
    return table


def load_config(
    source_dir: Union[str, Path, None] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    user_settings: Optional[Path] = None,
) -> BuildConfig:
    """Resolve the configuration for one build."""
    config = BuildConfig()

    user = load_user_settings(user_settings)
    if user:
        try:
            config = config.with_overrides(user)
        except ConfigurationError as e:
            logger.warning(f"Ignoring user settings: {e}")

    if source_dir is not None:
        config = config.with_overrides(load_project_settings(source_dir))

    if overrides:
        config = config.with_overrides(overrides)

    logger.debug(
        f"Capabilities: {', '.join(sorted(c.value for c in config.capabilities)) or 'none'}"
    )
    return config
