"""buildstamp CLI entry point.

Allows running via `python -m buildstamp` and provides the console script
defined in `pyproject.toml`. Meant to be called from a build step, with
the build environment exported as BUILD_* variables.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .errors import BuildstampError
from .pipeline import generate
from .version import get_version_string


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="buildstamp",
        description="Write build information as a Python module of constants.",
    )
    parser.add_argument("--out", "-o", help="Output file (default: $BUILD_OUT_DIR/_built.py)")
    parser.add_argument("--source-dir", help="Project directory (default: $BUILD_SOURCE_DIR or cwd)")
    parser.add_argument(
        "--capabilities",
        help="Comma separated probes to run, replacing the configured set "
        "(vcs, lock-file, semver, timestamp)",
    )
    parser.add_argument("--with", dest="with_", action="append", default=[], metavar="CAP",
                        help="Enable a probe (repeatable)")
    parser.add_argument("--without", action="append", default=[], metavar="CAP",
                        help="Disable a probe (repeatable)")
    parser.add_argument("--time-format", choices=("date", "datetime", "rfc3339"),
                        help="How timestamps are rendered")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Log probe results (-vv for git commands)")
    parser.add_argument("--version", "-V", action="store_true", help="Print the version and exit")
    return parser


def _overrides(args: argparse.Namespace) -> dict:
    overrides = {}
    if args.capabilities is not None:
        overrides["capabilities"] = args.capabilities
    if args.with_:
        overrides["with"] = args.with_
    if args.without:
        overrides["without"] = args.without
    if args.time_format:
        overrides["time_format"] = args.time_format
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.version:
        print(get_version_string())
        return 0

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(name)s: %(levelname)s: %(message)s")

    try:
        generate(out_path=args.out, source_dir=args.source_dir, overrides=_overrides(args))
    except BuildstampError as e:
        print(f"buildstamp: {e.probe or 'build'} failed: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
