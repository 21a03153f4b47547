"""Semantic version parsing (major.minor.patch[-pre][+build])."""

from __future__ import annotations

import logging
import re
from typing import Optional

from .errors import ParseError
from .model import DependencyVersion, SemVer
from .result import Present, ProbeResult, Unavailable

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"0|[1-9][0-9]*")
_IDENTIFIER = re.compile(r"[0-9A-Za-z-]+")


def _fail(text: str, message: str, offset: int) -> ParseError:
    return ParseError(
        f"Invalid semantic version {text!r}: {message}",
        source=text,
        offset=offset,
        probe="semver",
    )


def _parse_core_number(text: str, part: str, offset: int, label: str) -> int:
    if not part:
        raise _fail(text, f"empty {label} version", offset)
    if not part.isdigit() or not part.isascii():
        bad = next(i for i, c in enumerate(part) if not ("0" <= c <= "9"))
        raise _fail(text, f"{label} version must be a number", offset + bad)
    if not _NUMBER.fullmatch(part):
        raise _fail(text, f"{label} version has a leading zero", offset)
    return int(part)


def _check_identifiers(text: str, segment: str, offset: int, label: str, numeric_rule: bool) -> None:
    position = offset
    for ident in segment.split("."):
        if not ident:
            raise _fail(text, f"empty {label} identifier", position)
        if not _IDENTIFIER.fullmatch(ident):
            bad = next(i for i, c in enumerate(ident) if not _IDENTIFIER.fullmatch(c))
            raise _fail(text, f"invalid character in {label}", position + bad)
        if numeric_rule and ident.isdigit() and not _NUMBER.fullmatch(ident):
            raise _fail(text, f"numeric {label} identifier has a leading zero", position)
        position += len(ident) + 1


def parse_semver(text: str) -> SemVer:
    """Parse a semantic version string.

    Args:
        text: Version such as ``1.4.0-beta.2+build.5``.

    Returns:
        The parsed SemVer; ``str()`` of it gives back ``text``.

    Raises:
        ParseError: The text does not follow the semver grammar. ``offset``
            points at the first offending character.
    """
    if not isinstance(text, str):
        raise ParseError(f"Version must be a string, got {type(text).__name__}", probe="semver")

    build = None
    core_and_pre = text
    plus = text.find("+")
    if plus != -1:
        core_and_pre, build = text[:plus], text[plus + 1:]

    pre = None
    dash = core_and_pre.find("-")
    core = core_and_pre
    if dash != -1:
        core, pre = core_and_pre[:dash], core_and_pre[dash + 1:]

    parts = core.split(".")
    if len(parts) != 3:
        raise _fail(text, "expected major.minor.patch", min(len(core), len(text)))

    numbers = []
    offset = 0
    for part, label in zip(parts, ("major", "minor", "patch")):
        numbers.append(_parse_core_number(text, part, offset, label))
        offset += len(part) + 1

    if pre is not None:
        _check_identifiers(text, pre, len(core) + 1, "pre-release", numeric_rule=True)
    if build is not None:
        _check_identifiers(text, build, len(core_and_pre) + 1, "build metadata", numeric_rule=False)

    return SemVer(numbers[0], numbers[1], numbers[2], pre, build)


def probe_version(version: Optional[str]) -> "ProbeResult[SemVer]":
    """Parse the package's own declared version.

    A missing version is unavailable; a malformed one is an error.
    """
    if version is None:
        return Unavailable("no package version declared")
    return Present(parse_semver(version))


def parse_dependency_version(text: str) -> DependencyVersion:
    """Parse a dependency version, keeping the raw string if it is not semver."""
    try:
        return parse_semver(text)
    except ParseError as e:
        logger.debug(f"Keeping opaque dependency version: {e}")
        return text
