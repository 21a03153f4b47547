"""buildstamp - embed build information in a generated Python module."""

from .aggregate import collect
from .config import BuildConfig, Capability, load_config
from .emitter import render, write_artifact
from .errors import BuildIOError, BuildstampError, ConfigurationError, ParseError
from .model import (
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
from .pipeline import generate
from .result import Present, Unavailable
from .semver import parse_semver

__all__ = [
    'BuildConfig',
    'BuildDescriptor',
    'BuildIOError',
    'BuildstampError',
    'Capability',
    'ConfigurationError',
    'DependencyRecord',
    'DependencySource',
    'EnvironmentInfo',
    'ParseError',
    'Present',
    'Profile',
    'SemVer',
    'TimeFormat',
    'Timestamp',
    'Unavailable',
    'VcsInfo',
    'collect',
    'generate',
    'load_config',
    'parse_semver',
    'render',
    'write_artifact',
]
