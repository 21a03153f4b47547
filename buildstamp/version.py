from __future__ import annotations

import importlib.metadata
from pathlib import Path
from typing import NamedTuple, Optional

from .errors import BuildstampError
from .result import Present
from .vcs import probe_vcs


class VersionInfo(NamedTuple):
    version: Optional[str]
    commit: Optional[str]
    dirty: bool


def _installed_version() -> Optional[str]:
    try:
        return importlib.metadata.version("buildstamp")
    except importlib.metadata.PackageNotFoundError:
        return None


def _from_source_checkout() -> tuple[Optional[str], bool]:
    # Only meaningful when running from a git checkout of buildstamp itself
    here = Path(__file__).resolve().parent
    if not (here.parent / "pyproject.toml").is_file():
        return None, False
    try:
        result = probe_vcs(here, timeout=2.0)
    except BuildstampError:
        return None, False
    if isinstance(result, Present):
        return result.value.short_hash, result.value.dirty
    return None, False


def get_version_info() -> VersionInfo:
    commit, dirty = _from_source_checkout()
    return VersionInfo(version=_installed_version(), commit=commit, dirty=dirty)


def get_version_string() -> str:
    info = get_version_info()
    text = f"buildstamp {info.version or 'unknown'}"
    if info.commit:
        dirty_suffix = "-dirty" if info.dirty else ""
        text += f" ({info.commit}{dirty_suffix})"
    return text
