"""Serialize a BuildDescriptor into a Python module of constants.

Layout of the generated module:

* a header comment and a ``typing`` import,
* the baseline group (package metadata, toolchain, profile, features),
* then, each only when its capability is enabled, the VCS, dependency,
  version and timestamp groups, in that order.

Every constant is annotated and preceded by a ``#:`` comment. Inside an
enabled group a value that could not be collected is ``None``; an empty
string always means the value really is empty. Strings are written with
``repr()`` so the literal evaluates to exactly the collected text, and
unordered inputs (features) are sorted, so the same descriptor always
renders to the same bytes.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, List, NamedTuple, Optional, Union

from .config import BuildConfig, Capability
from .errors import BuildIOError
from .model import BuildDescriptor, SemVer, TimeFormat

logger = logging.getLogger(__name__)

HEADER = "# Auto-generated at build time by buildstamp. Do not edit.\n"
IMPORTS = "from typing import Dict, Optional, Tuple, Union\n"

_SEMVER_TUPLE = "Tuple[int, int, int, Optional[str], Optional[str]]"


class Constant(NamedTuple):
    name: str
    annotation: str
    value: Any
    doc: str


def literal(value: Any, indent: int = 0) -> str:
    """Render a value as Python source that evaluates back to it.

    Supports None, bool, int, str, tuples and dicts of those. Tuples with
    more than one element whose items are themselves tuples are laid out
    one item per line.
    """
    if value is None or isinstance(value, bool):
        return repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return repr(value)
    if isinstance(value, tuple):
        if not value:
            return "()"
        if len(value) == 1:
            return f"({literal(value[0], indent)},)"
        if all(isinstance(v, tuple) for v in value):
            pad = " " * (indent + 4)
            items = "".join(f"{pad}{literal(v, indent + 4)},\n" for v in value)
            return f"(\n{items}{' ' * indent})"
        return "(" + ", ".join(literal(v, indent) for v in value) + ")"
    if isinstance(value, dict):
        items = ", ".join(f"{literal(k, indent)}: {literal(v, indent)}" for k, v in value.items())
        return "{" + items + "}"
    raise TypeError(f"Cannot render {type(value).__name__} as a literal")


def _baseline(descriptor: BuildDescriptor) -> List[Constant]:
    env = descriptor.environment
    features = env.sorted_features
    return [
        Constant("PKG_NAME", "Optional[str]", env.pkg_name, "The package name."),
        Constant("PKG_VERSION", "Optional[str]", env.pkg_version, "The declared package version."),
        Constant("PKG_AUTHORS", "Tuple[str, ...]", env.pkg_authors, "The package authors."),
        Constant("PKG_DESCRIPTION", "Optional[str]", env.pkg_description, "The package description."),
        Constant("PKG_HOMEPAGE", "Optional[str]", env.pkg_homepage, "The package homepage."),
        Constant("PKG_REPOSITORY", "Optional[str]", env.pkg_repository, "The package source repository URL."),
        Constant("PKG_LICENSE", "Optional[str]", env.pkg_license, "The package license expression."),
        Constant("COMPILER", "str", env.compiler_info, "The compiler or interpreter that built the package."),
        Constant("TARGET", "str", env.target_triple, "The platform the package was built for."),
        Constant("HOST", "Optional[str]", env.host_triple, "The platform the build ran on."),
        Constant("PROFILE", "str", env.profile.value, 'The build profile: "debug", "release" or "other".'),
        Constant("PROFILE_NAME", "Optional[str]", env.profile_name, "The profile name as given to the build."),
        Constant("OPT_LEVEL", "Optional[str]", env.opt_level, "The optimization level."),
        Constant("DEBUG", "Optional[bool]", env.debug, "Whether debug information was enabled."),
        Constant("NUM_JOBS", "Optional[int]", env.num_jobs, "The parallelism the build used."),
        Constant("CI_PLATFORM", "Optional[str]", env.ci_platform, "The CI service that ran the build, if any."),
        Constant("FEATURES", "Tuple[str, ...]", features, "The enabled features, sorted."),
        Constant("FEATURES_STR", "str", ", ".join(features), "The enabled features as a comma separated string."),
    ]


def _vcs(descriptor: BuildDescriptor, time_format: TimeFormat) -> List[Constant]:
    info = descriptor.vcs_info
    commit_time = None
    if info is not None and info.commit_time is not None:
        commit_time = info.commit_time.format(time_format)
    return [
        Constant("GIT_COMMIT_HASH", "Optional[str]", info and info.commit_hash,
                 "The full hash of the commit that was built."),
        Constant("GIT_COMMIT_HASH_SHORT", "Optional[str]", info and info.short_hash,
                 "The abbreviated commit hash."),
        Constant("GIT_DIRTY", "Optional[bool]", info and info.dirty,
                 "Whether the working tree differed from the commit."),
        Constant("GIT_HEAD_REF", "Optional[str]", info and info.head_ref,
                 "The reference HEAD pointed to (e.g. refs/heads/main); None when detached."),
        Constant("GIT_BRANCH", "Optional[str]", info and info.branch,
                 "The branch name; None when HEAD was detached."),
        Constant("GIT_VERSION", "Optional[str]", info and info.describe,
                 "HEAD's tag, or the abbreviated hash if HEAD was not tagged."),
        Constant("GIT_COMMIT_TIME", "Optional[str]", commit_time,
                 "The commit time of HEAD in UTC."),
    ]


def _dependencies(descriptor: BuildDescriptor) -> List[Constant]:
    deps = descriptor.dependencies
    records = None
    summary = None
    if deps is not None:
        records = tuple((d.name, d.version, d.source.value) for d in deps)
        summary = ", ".join(str(d) for d in deps)
    return [
        Constant("DEPENDENCIES", "Optional[Tuple[Tuple[str, str, str], ...]]", records,
                 "Locked dependencies as (name, version, source), in lock file order."),
        Constant("DEPENDENCIES_STR", "Optional[str]", summary,
                 "The locked dependencies as a comma separated string."),
    ]


def _semver_value(version: Union[SemVer, str]):
    if isinstance(version, SemVer):
        return version.as_tuple()
    return version


def _version(descriptor: BuildDescriptor, config: BuildConfig) -> List[Constant]:
    v = descriptor.version_info
    info = None
    if v is not None:
        info = {
            "major": v.major,
            "minor": v.minor,
            "patch": v.patch,
            "pre_release": v.pre_release,
            "build_metadata": v.build_metadata,
        }
    constants = [
        Constant("PKG_VERSION_MAJOR", "Optional[int]", v and v.major, "Major part of the package version."),
        Constant("PKG_VERSION_MINOR", "Optional[int]", v and v.minor, "Minor part of the package version."),
        Constant("PKG_VERSION_PATCH", "Optional[int]", v and v.patch, "Patch part of the package version."),
        Constant("PKG_VERSION_PRE", "Optional[str]", v and v.pre_release,
                 "Pre-release part of the package version."),
        Constant("PKG_VERSION_BUILD", "Optional[str]", v and v.build_metadata,
                 "Build metadata of the package version."),
        Constant("PKG_VERSION_INFO", "Optional[Dict[str, Union[int, str, None]]]", info,
                 "The package version by component."),
    ]
    if config.enabled(Capability.LOCK_FILE):
        versions = None
        if descriptor.dependency_versions is not None:
            versions = tuple((name, _semver_value(ver)) for name, ver in descriptor.dependency_versions)
        constants.append(Constant(
            "DEPENDENCY_VERSIONS",
            f"Optional[Tuple[Tuple[str, Union[{_SEMVER_TUPLE}, str]], ...]]",
            versions,
            "Dependency versions as (major, minor, patch, pre, build), or the raw string if not semver.",
        ))
    return constants


def _timestamp(descriptor: BuildDescriptor, time_format: TimeFormat) -> List[Constant]:
    t = descriptor.build_time
    return [
        Constant("BUILT_TIME_UTC", "Optional[str]", t and t.format(time_format), "The build time in UTC."),
        Constant("BUILT_TIME_EPOCH", "Optional[int]", t and t.epoch, "The build time as seconds since the epoch."),
    ]


def constants_for(descriptor: BuildDescriptor, config: BuildConfig) -> List[Constant]:
    """All constants to emit, in emission order."""
    constants = _baseline(descriptor)
    if config.enabled(Capability.VCS):
        constants += _vcs(descriptor, config.time_format)
    if config.enabled(Capability.LOCK_FILE):
        constants += _dependencies(descriptor)
    if config.enabled(Capability.SEMVER):
        constants += _version(descriptor, config)
    if config.enabled(Capability.TIMESTAMP):
        constants += _timestamp(descriptor, config.time_format)
    return constants


def render(descriptor: BuildDescriptor, config: Optional[BuildConfig] = None) -> str:
    """Render the generated module source."""
    config = config or BuildConfig()
    lines = [HEADER, '"""Build information captured at build time."""\n', "\n", IMPORTS]
    for constant in constants_for(descriptor, config):
        lines.append("\n")
        lines.append(f"#: {constant.doc}\n")
        lines.append(f"{constant.name}: {constant.annotation} = {literal(constant.value)}\n")
    return "".join(lines)


def write_artifact(
    descriptor: BuildDescriptor,
    path: Union[str, Path],
    config: Optional[BuildConfig] = None,
) -> Path:
    """Write the generated module atomically.

    The source is rendered first and written to a temporary file next to
    the target, which then replaces the target. On failure the temporary
    file is removed and any existing artifact is left as it was.

    Raises:
        BuildIOError: The target cannot be written.
    """
    path = Path(path)
    content = render(descriptor, config)
    temp_filename = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            newline="\n",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as temp_file:
            temp_filename = temp_file.name
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.chmod(temp_filename, 0o644)
        os.replace(temp_filename, path)
    except OSError as e:
        if temp_filename is not None and os.path.exists(temp_filename):
            try:
                os.remove(temp_filename)
            except OSError as cleanup_error:
                logger.warning(f"Could not remove temporary file {temp_filename}: {cleanup_error}")
        raise BuildIOError(f"Cannot write {path}: {e.strerror or e}", path=str(path), probe="emit") from e
    logger.info(f"Wrote build information to {path}")
    return path
