"""Outcome values returned by the task store.

Expected outcomes (invalid input, missing rows, persistence faults) come back
as one of these values instead of an exception, so the HTTP layer can map each
variant to a status code without try/except chains.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Invalid:
    """Client data violated one or more field constraints."""

    errors: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NotFound:
    """No task exists for the requested id."""


@dataclass(frozen=True)
class StoreFailure:
    """The persistence layer raised; `cause` is kept for logging only."""

    operation: str
    cause: BaseException


StoreResult = Union[Ok[T], Invalid, NotFound, StoreFailure]
