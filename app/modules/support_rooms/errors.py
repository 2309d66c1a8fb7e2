"""Typed outcomes for the room allocator and membership ledger.

Failures inside the core are returned as values; only the persistence layer
raises (``PersistenceError``), and ``guarded`` turns that into an outcome.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RoomErrorKind(str, Enum):
    GROUP_NOT_FOUND = "group_not_found"
    INVALID_STAGE = "invalid_stage"
    GROUP_ARCHIVED = "group_archived"
    ALREADY_MEMBER = "already_member"
    NOT_A_MEMBER = "not_a_member"
    LOCK_TIMEOUT = "lock_timeout"
    CAPACITY_RACE_DETECTED = "capacity_race_detected"
    PERSISTENCE_FAILURE = "persistence_failure"


# Only these may be retried unchanged by the caller
RETRYABLE_KINDS = frozenset({RoomErrorKind.PERSISTENCE_FAILURE})


class PersistenceError(Exception):
    """Raised by a room store when a unit of work could not be committed."""


@dataclass(frozen=True)
class RoomError:
    kind: RoomErrorKind
    message: str

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[RoomError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: RoomErrorKind, message: str) -> "Outcome[T]":
        return cls(error=RoomError(kind=kind, message=message))


def guarded(call: Callable[[], T]) -> Outcome[T]:
    """Run a store call, turning a PersistenceError into a failed outcome."""
    try:
        return Outcome.success(call())
    except PersistenceError as e:
        logger.error(f"Persistence failure: {e}")
        return Outcome.failure(RoomErrorKind.PERSISTENCE_FAILURE, str(e))
