"""Room Lifecycle Manager: the only writer of ``Room.status`` and ``Room.member_count``.

    OPEN  --(member_count reaches capacity)-->  FULL
    FULL  --(member_count drops below capacity)-->  OPEN
    OPEN/FULL --(member_count reaches 0)-->  CLOSING  -->  CLOSED

CLOSED is terminal. Every room handed to a unit of work carries the version it was
read at plus one, so the store can refuse it when another worker wrote the row first.
"""
import logging
import threading
import uuid
from typing import Dict, Iterator, List, Optional, Tuple

from app.modules.support_rooms.errors import Outcome, RoomErrorKind, guarded
from app.modules.support_rooms.models import Room, RoomStatus
from app.modules.support_rooms.store import RoomStore

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    RoomStatus.OPEN: {RoomStatus.FULL, RoomStatus.CLOSING},
    RoomStatus.FULL: {RoomStatus.OPEN, RoomStatus.CLOSING},
    RoomStatus.CLOSING: {RoomStatus.CLOSED},
    RoomStatus.CLOSED: set(),
}


def can_transition(current: RoomStatus, target: RoomStatus) -> bool:
    return current == target or target in _TRANSITIONS[current]


class RoomLifecycleManager:
    def __init__(self, store: RoomStore):
        self.store = store
        self._cache_lock = threading.Lock()
        # (group_id, stage) -> rooms of that key, oldest first; read and filled under the stage lock only
        self._rooms_cache: Dict[Tuple[str, str], List[Room]] = {}
        self._draining: Dict[str, Room] = {}

    def _observed(self, room: Room) -> Room:
        with self._cache_lock:
            return self._draining.get(room.id, room)

    def get_room(self, room_id: str) -> Outcome[Optional[Room]]:
        outcome = guarded(lambda: self.store.get_room(room_id))
        if outcome.ok and outcome.value is not None:
            return Outcome.success(self._observed(outcome.value))
        return outcome

    def rooms_for_group(self, group_id: str) -> Outcome[List[Room]]:
        outcome = guarded(lambda: self.store.list_rooms(group_id))
        if not outcome.ok:
            return outcome
        return Outcome.success([self._observed(room) for room in outcome.value])

    def get_open_rooms(self, group_id: str, stage: str) -> Outcome[Iterator[Room]]:
        """Lazy oldest-first sequence of OPEN rooms with free capacity.

        Built fresh on every call; do not hold on to it across a commit.
        """
        key = (group_id, stage)
        with self._cache_lock:
            rooms = self._rooms_cache.get(key)
        if rooms is None:
            loaded = guarded(lambda: self.store.list_rooms(group_id, stage))
            if not loaded.ok:
                return Outcome(error=loaded.error)
            rooms = sorted(loaded.value, key=lambda r: r.sort_key)
            with self._cache_lock:
                self._rooms_cache[key] = rooms

        def _iter() -> Iterator[Room]:
            for room in rooms:
                if room.status == RoomStatus.OPEN and room.has_space:
                    yield room

        return Outcome.success(_iter())

    def invalidate(self, group_id: str, stage: str) -> None:
        with self._cache_lock:
            self._rooms_cache.pop((group_id, stage), None)

    def open_room(self, group_id: str, stage: str, capacity: int) -> Outcome[Room]:
        numbered = guarded(lambda: self.store.next_room_number(group_id, stage))
        if not numbered.ok:
            return Outcome(error=numbered.error)
        room = Room(
            id=str(uuid.uuid4()),
            group_id=group_id,
            stage=stage,
            room_number=numbered.value,
            capacity=capacity,
        )
        logger.info(f"Opening room #{room.room_number} ({room.id}) for {group_id}/{stage}, capacity {capacity}")
        return Outcome.success(room)

    def occupy(self, room: Room) -> Outcome[Room]:
        """Room with one more member; FULL once capacity is reached."""
        if room.status != RoomStatus.OPEN or not room.has_space:
            return self._race(room, "occupy")
        count = room.member_count + 1
        status = RoomStatus.FULL if count >= room.capacity else RoomStatus.OPEN
        return self._move(room, status, member_count=count, version=room.version + 1)

    def vacate(self, room: Room) -> Outcome[Room]:
        """Room with one member fewer.

        A room that empties passes through CLOSING, which readers observe until
        ``settle`` is called, and is returned CLOSED for the unit of work.
        """
        if room.status not in (RoomStatus.OPEN, RoomStatus.FULL) or room.member_count <= 0:
            return self._race(room, "vacate")
        count = room.member_count - 1
        if count > 0:
            status = RoomStatus.OPEN if count < room.capacity else room.status
            return self._move(room, status, member_count=count, version=room.version + 1)

        closing = self._move(room, RoomStatus.CLOSING, member_count=0, version=room.version + 1)
        if not closing.ok:
            return closing
        with self._cache_lock:
            self._draining[room.id] = closing.value
        logger.info(f"Room {room.id} emptied, closing")
        return self._move(closing.value, RoomStatus.CLOSED)

    def settle(self, room_id: str) -> None:
        """Drop the CLOSING marker once the unit of work committed or rolled back."""
        with self._cache_lock:
            self._draining.pop(room_id, None)

    def _move(self, room: Room, target: RoomStatus, **changes) -> Outcome[Room]:
        if not can_transition(room.status, target):
            return self._race(room, f"move to {target.value}")
        return Outcome.success(room.with_changes(status=target, **changes))

    def _race(self, room: Room, action: str) -> Outcome[Room]:
        message = (
            f"Cannot {action} room {room.id}: status={room.status.value} "
            f"member_count={room.member_count} capacity={room.capacity}"
        )
        logger.critical(f"Room invariant violated, serialization point bypassed? {message}")
        return Outcome.failure(RoomErrorKind.CAPACITY_RACE_DETECTED, message)
