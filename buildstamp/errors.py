"""Exception types raised while collecting and emitting build information.

Only real failures are exceptions. An optional input that simply does not
exist (no repository, no lock file) is reported as
:class:`buildstamp.result.Unavailable` instead.
"""

from __future__ import annotations

from typing import Optional


class BuildstampError(Exception):
    """Base class for all buildstamp failures.

    Attributes:
        probe: Name of the category that failed ("environment", "vcs",
            "lock-file", "semver", "timestamp", "emit" or "config").
    """

    probe: Optional[str] = None

    def __init__(self, message: str, probe: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if probe is not None:
            self.probe = probe

    def __str__(self) -> str:
        return self.message


class ConfigurationError(BuildstampError):
    """A required environment value is missing or configuration is invalid."""

    probe = "environment"


class ParseError(BuildstampError):
    """A present input (lock file, version string) is malformed.

    Attributes:
        source: File path or input text that failed to parse.
        line: 1-based line of the first violation, if known.
        column: 1-based column of the first violation, if known.
        offset: 0-based character offset of the first violation, if known.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        offset: Optional[int] = None,
        probe: Optional[str] = None,
    ):
        self.source = source
        self.line = line
        self.column = column
        self.offset = offset
        super().__init__(message, probe=probe)

    def __str__(self) -> str:
        where = []
        if self.source is not None:
            where.append(str(self.source))
        if self.line is not None:
            where.append(f"line {self.line}")
            if self.column is not None:
                where.append(f"column {self.column}")
        elif self.offset is not None:
            where.append(f"offset {self.offset}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message


class BuildIOError(BuildstampError):
    """The output cannot be written, or a present input cannot be read."""

    probe = "emit"

    def __init__(self, message: str, path: Optional[str] = None, probe: Optional[str] = None):
        self.path = path
        super().__init__(message, probe=probe)
