"""Per-key serialization points for room joins and leaves.

Every key maps to one ``threading.Lock``; unrelated keys never contend.
Entries are reference counted and dropped once no thread holds or waits on them.
"""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

logger = logging.getLogger(__name__)

LockKey = Tuple[str, ...]


class LockTimeout(Exception):
    """Raised when a serialization point could not be acquired in time."""


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self):
        self.lock = threading.Lock()
        self.refs = 0


class KeyedLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[LockKey, _Entry] = {}

    def _checkout(self, key: LockKey) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.refs += 1
            return entry

    def _checkin(self, key: LockKey) -> None:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                return
            entry.refs -= 1
            if entry.refs <= 0:
                del self._entries[key]

    def active_keys(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, *keys: LockKey, timeout: float) -> Iterator[None]:
        """Acquire all keys in sorted order within one shared deadline.

        Nothing is mutated before every key is held, so a timeout leaves no state behind.
        """
        ordered = sorted(set(keys))
        deadline = time.monotonic() + timeout
        acquired = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                remaining = max(0.0, deadline - time.monotonic())
                if not entry.lock.acquire(timeout=remaining):
                    self._checkin(key)
                    logger.warning(f"Timed out after {timeout}s waiting for lock {key}")
                    raise LockTimeout(f"Timed out waiting for {key}")
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key)


def stage_key(group_id: str, stage: str) -> LockKey:
    return ("stage", group_id, stage)


def member_key(group_id: str, user_id: str) -> LockKey:
    return ("member", group_id, user_id)
