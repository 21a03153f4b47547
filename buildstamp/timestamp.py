"""Capture the build time once per build."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from .constants import EnvVars
from .errors import ConfigurationError
from .model import Timestamp

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def capture_timestamp(
    env: Optional[Mapping[str, str]] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Timestamp:
    """Capture the build instant.

    SOURCE_DATE_EPOCH, when set, replaces the clock so that reproducible
    builds embed a fixed time.

    Args:
        env: Environment mapping to look for SOURCE_DATE_EPOCH in.
        clock: Returns the current timezone-aware time; defaults to UTC now.

    Raises:
        ConfigurationError: SOURCE_DATE_EPOCH is set but is not an integer
            or is outside the range of representable dates.
    """
    if env is not None:
        raw = (env.get(EnvVars.SOURCE_DATE_EPOCH) or "").strip()
        if raw:
            try:
                seconds = int(raw)
            except ValueError:
                raise ConfigurationError(
                    f"{EnvVars.SOURCE_DATE_EPOCH} must be an integer, got {raw!r}",
                    probe="timestamp",
                ) from None
            logger.debug(f"Using {EnvVars.SOURCE_DATE_EPOCH}={seconds}")
            try:
                return Timestamp.from_epoch(seconds)
            except (OverflowError, OSError, ValueError) as e:
                raise ConfigurationError(
                    f"{EnvVars.SOURCE_DATE_EPOCH} is out of range: {seconds} ({e})",
                    probe="timestamp",
                ) from None
    return Timestamp((clock or _utc_now)())
