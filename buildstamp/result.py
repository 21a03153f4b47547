"""Outcome of an optional probe: a value, or nothing to report."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Present(Generic[T]):
    value: T


@dataclass(frozen=True)
class Unavailable:
    """The input does not exist in this environment. Never an error."""

    reason: str = "unavailable"


ProbeResult = Union[Present[T], Unavailable]


def unwrap_or_none(result: "ProbeResult[T]") -> Optional[T]:
    if isinstance(result, Present):
        return result.value
    return None
