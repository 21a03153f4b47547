"""Version control facts for the build: commit, branch, dirty state.

The repository is located by walking up from the source directory and is
queried through the ``git`` executable. Anything short of an unreadable
repository degrades to Unavailable: a tarball build has no history and must
still succeed.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, NamedTuple, Optional, Union

from .constants import Defaults, EnvVars
from .environment import parse_bool
from .errors import BuildIOError, ConfigurationError
from .model import Timestamp, VcsInfo
from .result import Present, ProbeResult, Unavailable

logger = logging.getLogger(__name__)

_HASH = re.compile(r"[0-9a-f]{40}|[0-9a-f]{64}")

# Variables that would make git look somewhere other than the discovered repository
_GIT_LOCATION_VARS = ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE", "GIT_CEILING_DIRECTORIES")


class GitUnavailable(Exception):
    """A git command could not produce the requested fact."""


class VcsOverrides(NamedTuple):
    commit_hash: Optional[str] = None
    short_hash: Optional[str] = None
    head_ref: Optional[str] = None
    dirty: Optional[bool] = None
    describe: Optional[str] = None


def read_overrides(env: Mapping[str, str]) -> VcsOverrides:
    """Read BUILD_OVERRIDE_GIT_* variables.

    Raises:
        ConfigurationError: An override holds a malformed value.
    """

    def get(name: str) -> Optional[str]:
        value = env.get(EnvVars.OVERRIDE_PREFIX + name)
        if value is None or not value.strip():
            return None
        return value.strip()

    commit = get("GIT_COMMIT_HASH")
    if commit is not None:
        commit = commit.lower()
        if not _HASH.fullmatch(commit):
            raise ConfigurationError(
                f"{EnvVars.OVERRIDE_PREFIX}GIT_COMMIT_HASH is not a full commit hash: {commit!r}",
                probe="vcs",
            )
    short = get("GIT_COMMIT_HASH_SHORT")
    if short is not None:
        short = short.lower()
        if commit is not None and not commit.startswith(short):
            raise ConfigurationError(
                f"{EnvVars.OVERRIDE_PREFIX}GIT_COMMIT_HASH_SHORT is not a prefix of the commit hash",
                probe="vcs",
            )
    dirty = get("GIT_DIRTY")
    return VcsOverrides(
        commit_hash=commit,
        short_hash=short,
        head_ref=get("GIT_HEAD_REF"),
        dirty=parse_bool(dirty, EnvVars.OVERRIDE_PREFIX + "GIT_DIRTY") if dirty is not None else None,
        describe=get("GIT_VERSION"),
    )


def find_repository(start: Union[str, Path]) -> Optional[Path]:
    """Return the working tree root enclosing ``start``, or None.

    A ``.git`` directory or a ``.git`` file (worktrees, submodules) marks
    the root.

    Raises:
        BuildIOError: The marker exists but cannot be read.
    """
    current = Path(start).resolve()
    for directory in (current, *current.parents):
        marker = directory / ".git"
        if not os.path.lexists(marker):
            continue
        mode = os.R_OK | os.X_OK if marker.is_dir() else os.R_OK
        if not os.access(marker, mode):
            raise BuildIOError(f"Repository metadata is not readable: {marker}", path=str(marker), probe="vcs")
        return directory
    return None


def _git_env(root: Path) -> Dict[str, str]:
    env = {k: v for k, v in os.environ.items() if k not in _GIT_LOCATION_VARS}
    # Keep git from walking past a broken repository into an enclosing one
    env["GIT_CEILING_DIRECTORIES"] = str(root.parent)
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["LC_ALL"] = "C"
    return env


def _run_git(args: List[str], cwd: Path, timeout: float) -> subprocess.CompletedProcess:
    """Run a git command, raising GitUnavailable if git cannot be run at all."""
    command = ["git", "--no-optional-locks", *args]
    logger.debug(f"Running {' '.join(command)} in {cwd}")
    try:
        return subprocess.run(
            command,
            cwd=str(cwd),
            env=_git_env(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise GitUnavailable("git executable not found") from None
    except subprocess.TimeoutExpired:
        raise GitUnavailable(f"git {args[0]} timed out after {timeout}s") from None
    except OSError as e:
        raise GitUnavailable(f"git {args[0]} could not run: {e}") from None


def _output(args: List[str], cwd: Path, timeout: float) -> str:
    result = _run_git(args, cwd, timeout)
    if result.returncode != 0:
        detail = result.stderr.decode(errors="replace").strip()
        raise GitUnavailable(f"git {args[0]} failed: {detail or result.returncode}")
    return result.stdout.decode(errors="replace").strip()


def read_head_commit(root: Path, timeout: float) -> str:
    commit = _output(["rev-parse", "--verify", "-q", "HEAD^{commit}"], root, timeout).lower()
    if not _HASH.fullmatch(commit):
        raise GitUnavailable(f"unexpected HEAD hash {commit!r}")
    return commit


def read_head_ref(root: Path, timeout: float) -> Optional[str]:
    """Full name of the branch HEAD points to, None when detached."""
    result = _run_git(["symbolic-ref", "-q", "HEAD"], root, timeout)
    if result.returncode == 1:
        return None
    if result.returncode != 0:
        raise GitUnavailable("git symbolic-ref failed")
    return result.stdout.decode(errors="replace").strip() or None


def read_dirty(root: Path, timeout: float) -> bool:
    """True if anything differs from HEAD: modified, staged, deleted or untracked.

    Ignored files do not count.
    """
    status = _output(["status", "--porcelain", "--untracked-files=normal"], root, timeout)
    return bool(status)


def read_commit_time(root: Path, timeout: float) -> Optional[Timestamp]:
    try:
        raw = _output(["show", "-s", "--format=%ct", "HEAD"], root, timeout)
        return Timestamp.from_epoch(int(raw))
    except (GitUnavailable, ValueError, OverflowError, OSError) as e:
        logger.info(f"Commit time unavailable: {e}")
        return None


def read_describe(root: Path, timeout: float) -> Optional[str]:
    """HEAD's tag, or the abbreviated hash when HEAD is not tagged."""
    try:
        return _output(["describe", "--tags", "--always"], root, timeout) or None
    except GitUnavailable as e:
        logger.info(f"git describe unavailable: {e}")
        return None


def probe_vcs(
    source_dir: Union[str, Path],
    env: Optional[Mapping[str, str]] = None,
    timeout: float = Defaults.VCS_TIMEOUT,
    short_hash_length: int = Defaults.SHORT_HASH_LENGTH,
) -> "ProbeResult[VcsInfo]":
    """Collect VcsInfo for the repository enclosing ``source_dir``.

    Args:
        source_dir: Directory to start the upward search from.
        env: Environment holding BUILD_OVERRIDE_GIT_* values.
        timeout: Seconds allowed for each git invocation.
        short_hash_length: Length of the abbreviated commit hash.

    Returns:
        Present(VcsInfo), or Unavailable when there is no usable repository
        and the overrides do not name a commit.

    Raises:
        BuildIOError: Repository metadata exists but is not readable.
        ConfigurationError: An override is malformed.
    """
    overrides = read_overrides(env or {})
    commit = overrides.commit_hash
    head_ref = overrides.head_ref
    dirty = overrides.dirty
    describe = overrides.describe
    commit_time = None

    needs_repo = None in (commit, head_ref, dirty, describe)
    if needs_repo:
        root = find_repository(source_dir)
        if root is None:
            if commit is None:
                return Unavailable(f"no git repository at or above {source_dir}")
            logger.info("No git repository; using overridden VCS values only")
        else:
            try:
                if commit is None:
                    commit = read_head_commit(root, timeout)
                    commit_time = read_commit_time(root, timeout)
                if head_ref is None:
                    head_ref = read_head_ref(root, timeout)
                if dirty is None:
                    dirty = read_dirty(root, timeout)
                if describe is None:
                    describe = read_describe(root, timeout)
            except GitUnavailable as e:
                if overrides.commit_hash is None:
                    return Unavailable(str(e))
                logger.info(f"Repository unusable ({e}); using overridden VCS values only")

    if commit is None:
        return Unavailable("no commit hash")

    info = VcsInfo(
        commit_hash=commit,
        short_hash=overrides.short_hash or commit[:short_hash_length],
        dirty=bool(dirty),
        head_ref=head_ref,
        describe=describe,
        commit_time=commit_time,
    )
    logger.debug(f"VCS: {info.short_hash} dirty={info.dirty} ref={info.head_ref}")
    return Present(info)
