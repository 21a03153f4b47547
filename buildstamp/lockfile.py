"""Dependency records from the project's lock file.

Understands the TOML lock files of uv (``uv.lock``), PEP 751
(``pylock.toml``) and Poetry (``poetry.lock``), as well as Cargo-style
string sources. Records keep the order of the file; the same name may
appear several times at different versions.
"""

from __future__ import annotations

import logging
import os
import re
import tomllib
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from .constants import Defaults
from .errors import BuildIOError, ParseError
from .model import DependencyRecord, DependencySource
from .result import Present, ProbeResult, Unavailable

logger = logging.getLogger(__name__)

PROBE = "lock-file"

# Lock file flavours, chosen by file name
UV = "uv"
PYLOCK = "pylock"
POETRY = "poetry"

_STRING_SOURCE_KINDS = {
    "registry": DependencySource.REGISTRY,
    "sparse": DependencySource.REGISTRY,
    "git": DependencySource.GIT,
    "path": DependencySource.PATH,
}

_TABLE_SOURCE_KEYS = (
    ("registry", DependencySource.REGISTRY),
    ("index", DependencySource.REGISTRY),
    ("git", DependencySource.GIT),
    ("vcs", DependencySource.GIT),
    ("path", DependencySource.PATH),
    ("directory", DependencySource.PATH),
    ("editable", DependencySource.PATH),
    ("virtual", DependencySource.PATH),
)

_POETRY_SOURCE_TYPES = {
    "git": DependencySource.GIT,
    "directory": DependencySource.PATH,
    "file": DependencySource.PATH,
    "legacy": DependencySource.REGISTRY,
}

_TOML_POSITION = re.compile(r"\s*\(at line (\d+), column (\d+)\)\s*$")


def lock_flavor(path: Union[str, Path]) -> str:
    name = Path(path).name
    if name == "poetry.lock":
        return POETRY
    if name == "pylock.toml" or (name.startswith("pylock.") and name.endswith(".toml")):
        return PYLOCK
    return UV


def classify_source(source, flavor: str = UV) -> DependencySource:
    """Map a lock entry's declared origin to a DependencySource."""
    if source is None:
        # Poetry omits the source for the default index; uv and Cargo omit
        # it only for local workspace members.
        return DependencySource.REGISTRY if flavor == POETRY else DependencySource.PATH
    if isinstance(source, str):
        kind, plus, _ = source.partition("+")
        if plus:
            return _STRING_SOURCE_KINDS.get(kind, DependencySource.UNKNOWN)
        return DependencySource.UNKNOWN
    if isinstance(source, dict):
        if flavor == POETRY and "type" in source:
            return _POETRY_SOURCE_TYPES.get(str(source["type"]), DependencySource.UNKNOWN)
        for key, kind in _TABLE_SOURCE_KEYS:
            if key in source:
                return kind
    return DependencySource.UNKNOWN


def _classify_pylock(entry: dict) -> DependencySource:
    if "vcs" in entry:
        return DependencySource.GIT
    if "directory" in entry:
        return DependencySource.PATH
    if "index" in entry or "wheels" in entry or "sdist" in entry:
        return DependencySource.REGISTRY
    return DependencySource.UNKNOWN


def _offset_of_line(text: str, line: int) -> int:
    offset = 0
    for _ in range(line - 1):
        newline = text.find("\n", offset)
        if newline == -1:
            break
        offset = newline + 1
    return offset


def _entry_header_lines(text: str, key: str) -> List[int]:
    header = re.compile(r"^\s*\[\[\s*" + re.escape(key) + r"\s*\]\]\s*(#.*)?$")
    return [number for number, line in enumerate(text.splitlines(), start=1) if header.match(line)]


def _decode_error(error: tomllib.TOMLDecodeError, text: str, path: str) -> ParseError:
    # Python 3.14 exposes the position directly; older versions only in the message
    message = getattr(error, "msg", None) or str(error)
    line = getattr(error, "lineno", None)
    column = getattr(error, "colno", None)
    offset = getattr(error, "pos", None)
    match = _TOML_POSITION.search(message)
    if match:
        message = message[: match.start()]
        if line is None:
            line, column = int(match.group(1)), int(match.group(2))
    if offset is None and line is not None:
        offset = _offset_of_line(text, line) + (column or 1) - 1
    return ParseError(
        f"Malformed lock file: {message}",
        source=path,
        line=line,
        column=column,
        offset=offset,
        probe=PROBE,
    )


def parse_lock_file(text: str, path: Union[str, Path] = "uv.lock") -> Tuple[DependencyRecord, ...]:
    """Parse lock file text into dependency records.

    Args:
        text: Contents of the lock file.
        path: File name; selects the lock file flavour and labels errors.

    Returns:
        Records in file order.

    Raises:
        ParseError: The TOML is malformed or an entry is structurally
            invalid. The error carries the line of the first violation.
    """
    path = str(path)
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise _decode_error(e, text, path) from e

    flavor = lock_flavor(path)
    key = "packages" if flavor == PYLOCK else "package"
    entries = data.get(key, [])
    headers = _entry_header_lines(text, key)

    def violation(message: str, index: Optional[int] = None) -> ParseError:
        line = None
        if index is None:
            found = re.search(r"^\s*\[*\s*" + re.escape(key) + r"\b", text, re.MULTILINE)
            if found:
                line = text.count("\n", 0, found.start()) + 1
        elif index < len(headers):
            line = headers[index]
        return ParseError(
            f"Malformed lock file: {message}",
            source=path,
            line=line,
            offset=_offset_of_line(text, line) if line is not None else None,
            probe=PROBE,
        )

    if not isinstance(entries, list):
        raise violation(f"'{key}' must be an array of tables")

    records = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise violation(f"entry {index + 1} of '{key}' is not a table", index)
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            raise violation(f"entry {index + 1} of '{key}' has no name", index)
        name = name.strip()

        if flavor == PYLOCK:
            source = _classify_pylock(entry)
        else:
            source = classify_source(entry.get("source"), flavor)

        version = entry.get("version")
        if version is None:
            if source in (DependencySource.PATH, DependencySource.GIT):
                logger.debug(f"Skipping {name}: {source.value} dependency without a version")
                continue
            raise violation(f"'{name}' has no version", index)
        if not isinstance(version, str):
            raise violation(f"'{name}' has a non-string version", index)
        records.append(DependencyRecord(name=name, version=version, source=source))

    return tuple(records)


def find_lock_file(start: Union[str, Path], names: Iterable[str] = Defaults.LOCK_FILES) -> Optional[Path]:
    """Find the nearest lock file at or above ``start``.

    The search stops at the root of the enclosing repository, so a lock
    file belonging to an unrelated outer project is never picked up.
    """
    names = tuple(names)
    current = Path(start).resolve()
    for directory in (current, *current.parents):
        for name in names:
            candidate = directory / name
            if candidate.is_file():
                return candidate
        if os.path.lexists(directory / ".git"):
            break
    return None


def probe_lock_file(
    source_dir: Union[str, Path],
    names: Iterable[str] = Defaults.LOCK_FILES,
) -> "ProbeResult[Tuple[DependencyRecord, ...]]":
    """Read dependency records from the lock file, if there is one.

    Raises:
        BuildIOError: The lock file exists but cannot be read.
        ParseError: The lock file is malformed.
    """
    path = find_lock_file(source_dir, names)
    if path is None:
        return Unavailable(f"no lock file at or above {source_dir}")
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError("Lock file is not valid UTF-8", source=str(path), offset=e.start, probe=PROBE) from e
    except OSError as e:
        raise BuildIOError(f"Cannot read lock file {path}: {e}", path=str(path), probe=PROBE) from e
    records = parse_lock_file(text, path)
    logger.info(f"Read {len(records)} dependencies from {path}")
    return Present(records)
