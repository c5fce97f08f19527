"""Result of one coordinated fetch. Exactly one variant per attempt."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    payload: T
    kind: str = field(default="success", init=False)


@dataclass(frozen=True)
class FallbackSuccess(Generic[T]):
    payload: T
    source_tag: str
    kind: str = field(default="fallback_success", init=False)


@dataclass(frozen=True)
class TimedOut:
    kind: str = field(default="timed_out", init=False)


@dataclass(frozen=True)
class Failure:
    reason: str
    kind: str = field(default="failure", init=False)


FetchOutcome = Union[Success[Any], FallbackSuccess[Any], TimedOut, Failure]
