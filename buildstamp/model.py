from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Optional, Tuple, Union


class Profile(Enum):
    DEBUG = "debug"
    RELEASE = "release"
    OTHER = "other"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "Profile":
        if name is None:
            return cls.OTHER
        try:
            return cls(name.strip().lower())
        except ValueError:
            return cls.OTHER


class TimeFormat(Enum):
    DATE = "date"
    DATETIME = "datetime"
    RFC3339 = "rfc3339"


@dataclass(frozen=True)
class Timestamp:
    """An instant in UTC. Formatting is chosen when it is rendered."""

    instant: datetime

    def __post_init__(self):
        if self.instant.tzinfo is None:
            raise ValueError("Timestamp requires a timezone-aware datetime")
        utc = self.instant.astimezone(timezone.utc).replace(microsecond=0)
        object.__setattr__(self, "instant", utc)

    @classmethod
    def from_epoch(cls, seconds: int) -> "Timestamp":
        return cls(datetime.fromtimestamp(seconds, tz=timezone.utc))

    @property
    def epoch(self) -> int:
        return int(self.instant.timestamp())

    def format(self, time_format: TimeFormat) -> str:
        if time_format is TimeFormat.DATE:
            return self.instant.strftime("%Y-%m-%d")
        if time_format is TimeFormat.DATETIME:
            return self.instant.strftime("%Y-%m-%d %H:%M:%S UTC")
        return self.instant.isoformat(timespec="seconds")


@dataclass(frozen=True)
class VcsInfo:
    commit_hash: str
    short_hash: str
    dirty: bool
    head_ref: Optional[str] = None  # None when HEAD is detached
    describe: Optional[str] = None
    commit_time: Optional[Timestamp] = None

    @property
    def branch(self) -> Optional[str]:
        if self.head_ref is None:
            return None
        prefix = "refs/heads/"
        if self.head_ref.startswith(prefix):
            return self.head_ref[len(prefix):]
        return self.head_ref


class DependencySource(Enum):
    REGISTRY = "registry"
    GIT = "git"
    PATH = "path"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DependencyRecord:
    name: str
    version: str
    source: DependencySource = DependencySource.UNKNOWN

    def __post_init__(self):
        if not self.name:
            raise ValueError("Dependency name must not be empty")

    def __str__(self) -> str:
        return f"{self.name} {self.version}"


@dataclass(frozen=True)
class SemVer:
    major: int
    minor: int
    patch: int
    pre_release: Optional[str] = None
    build_metadata: Optional[str] = None

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre_release is not None:
            text += f"-{self.pre_release}"
        if self.build_metadata is not None:
            text += f"+{self.build_metadata}"
        return text

    def as_tuple(self) -> Tuple[int, int, int, Optional[str], Optional[str]]:
        return (self.major, self.minor, self.patch, self.pre_release, self.build_metadata)

    def _precedence_key(self):
        # A version without pre-release sorts after any pre-release of it.
        # Numeric identifiers sort before alphanumeric ones.
        if self.pre_release is None:
            pre = (1,)
        else:
            pre = (0,) + tuple(
                (0, int(part), "") if part.isdigit() else (1, 0, part)
                for part in self.pre_release.split(".")
            )
        return (self.major, self.minor, self.patch, pre)

    def __lt__(self, other: "SemVer") -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._precedence_key() < other._precedence_key()

    def __le__(self, other: "SemVer") -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._precedence_key() <= other._precedence_key()

    def __gt__(self, other: "SemVer") -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._precedence_key() > other._precedence_key()

    def __ge__(self, other: "SemVer") -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._precedence_key() >= other._precedence_key()


# A dependency version that did not parse as semver is kept as the raw string
DependencyVersion = Union[SemVer, str]


@dataclass(frozen=True)
class EnvironmentInfo:
    """Baseline facts that every build has."""

    compiler_info: str
    target_triple: str
    host_triple: Optional[str] = None
    profile: Profile = Profile.OTHER
    profile_name: Optional[str] = None
    features: FrozenSet[str] = frozenset()
    out_dir: Optional[str] = None
    source_dir: Optional[str] = None
    opt_level: Optional[str] = None
    debug: Optional[bool] = None
    num_jobs: Optional[int] = None
    ci_platform: Optional[str] = None
    pkg_name: Optional[str] = None
    pkg_version: Optional[str] = None
    pkg_authors: Tuple[str, ...] = ()
    pkg_description: Optional[str] = None
    pkg_homepage: Optional[str] = None
    pkg_repository: Optional[str] = None
    pkg_license: Optional[str] = None

    @property
    def sorted_features(self) -> Tuple[str, ...]:
        return tuple(sorted(self.features))


@dataclass(frozen=True)
class BuildDescriptor:
    """Everything collected for one build invocation.

    Optional fields are either complete or None; a probe that could not
    report anything leaves its field None.
    """

    environment: EnvironmentInfo
    vcs_info: Optional[VcsInfo] = None
    dependencies: Optional[Tuple[DependencyRecord, ...]] = None
    version_info: Optional[SemVer] = None
    dependency_versions: Optional[Tuple[Tuple[str, DependencyVersion], ...]] = None
    build_time: Optional[Timestamp] = None

    @property
    def compiler_info(self) -> str:
        return self.environment.compiler_info

    @property
    def target_triple(self) -> str:
        return self.environment.target_triple

    @property
    def host_triple(self) -> Optional[str]:
        return self.environment.host_triple

    @property
    def profile(self) -> Profile:
        return self.environment.profile

    @property
    def features(self) -> FrozenSet[str]:
        return self.environment.features
