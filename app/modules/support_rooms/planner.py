"""Room Capacity Planner.

Places a joining user into the oldest OPEN room of a (group, stage) that still
has space, opening a new room when none does. Every join and leave for a
(group, stage) runs under that key's lock, together with the (group, user)
lock that keeps a user to one active room per group. Room and membership
rows are then written as one unit of work.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from app.config import settings
from app.modules.support_groups.catalog import GroupCatalog
from app.modules.support_rooms.errors import Outcome, PersistenceError, RoomErrorKind, guarded
from app.modules.support_rooms.ledger import MembershipLedger
from app.modules.support_rooms.lifecycle import RoomLifecycleManager
from app.modules.support_rooms.locks import KeyedLocks, LockTimeout, member_key, stage_key
from app.modules.support_rooms.models import Membership, Room, UnitOfWork
from app.modules.support_rooms.store import RoomStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Placement:
    room: Room
    membership: Membership
    already_member: bool = False


class RoomCapacityPlanner:
    def __init__(
        self,
        store: RoomStore,
        catalog: GroupCatalog,
        ledger: MembershipLedger,
        lifecycle: RoomLifecycleManager,
        locks: Optional[KeyedLocks] = None,
        lock_timeout: Optional[float] = None,
        default_capacity: Optional[int] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.ledger = ledger
        self.lifecycle = lifecycle
        self.locks = locks or KeyedLocks()
        self.lock_timeout = settings.room_lock_timeout_seconds if lock_timeout is None else lock_timeout
        self.default_capacity = default_capacity or settings.max_room_members

    def join(self, group_id: str, stage: str, user_id: str) -> Outcome[Placement]:
        found = guarded(lambda: self.catalog.find_group(group_id))
        if not found.ok:
            return Outcome(error=found.error)
        group = found.value
        if group is None:
            return Outcome.failure(RoomErrorKind.GROUP_NOT_FOUND, f"Support group {group_id} not found")
        if group.is_archived:
            return Outcome.failure(RoomErrorKind.GROUP_ARCHIVED, f"Support group {group_id} is archived")
        if not group.offers_stage(stage):
            return Outcome.failure(
                RoomErrorKind.INVALID_STAGE,
                f"Invalid stage '{stage}'. Must be one of: {', '.join(group.stage_names())}",
            )
        capacity = group.capacity_for(stage, self.default_capacity)

        try:
            with self.locks.hold(stage_key(group_id, stage), member_key(group_id, user_id), timeout=self.lock_timeout):
                return self._join_locked(group_id, stage, user_id, capacity)
        except LockTimeout as e:
            return Outcome.failure(RoomErrorKind.LOCK_TIMEOUT, str(e))

    def _join_locked(self, group_id: str, stage: str, user_id: str, capacity: int) -> Outcome[Placement]:
        existing = self.ledger.active_membership_for(user_id, group_id)
        if not existing.ok:
            return Outcome(error=existing.error)
        if existing.value is not None:
            membership = existing.value
            if membership.stage != stage:
                return Outcome.failure(
                    RoomErrorKind.ALREADY_MEMBER,
                    f"User {user_id} already occupies room {membership.room_id} of group {group_id}",
                )
            current = self.lifecycle.get_room(membership.room_id)
            if not current.ok:
                return Outcome(error=current.error)
            return Outcome.success(Placement(room=current.value, membership=membership, already_member=True))

        selected = self._select_room(group_id, stage)
        if not selected.ok:
            return Outcome(error=selected.error)
        room = selected.value
        if room is None:
            opened = self.lifecycle.open_room(group_id, stage, capacity)
            if not opened.ok:
                return Outcome(error=opened.error)
            room = opened.value

        occupied = self.lifecycle.occupy(room)
        if not occupied.ok:
            return Outcome(error=occupied.error)
        previous = self.ledger.membership(user_id, room.id)
        if not previous.ok:
            return Outcome(error=previous.error)
        membership = self.ledger.admit(user_id, room, previous.value)

        committed = self._commit(group_id, stage, UnitOfWork(rooms=[occupied.value], memberships=[membership]))
        if not committed.ok:
            return Outcome(error=committed.error)
        logger.info(
            f"User {user_id} joined room #{room.room_number} ({room.id}) of {group_id}/{stage}: "
            f"{occupied.value.member_count}/{room.capacity} {occupied.value.status.value}"
        )
        return Outcome.success(Placement(room=occupied.value, membership=membership))

    def _select_room(self, group_id: str, stage: str) -> Outcome[Optional[Room]]:
        """Oldest open room with space, or None.

        The cached room list only reflects this process's writes; a candidate is
        checked against its row and the list reloaded once when they disagree.
        """
        candidates = self.lifecycle.get_open_rooms(group_id, stage)
        if not candidates.ok:
            return Outcome(error=candidates.error)
        room = next(candidates.value, None)
        if room is not None:
            current = self.lifecycle.get_room(room.id)
            if not current.ok:
                return Outcome(error=current.error)
            if current.value is not None and current.value.version == room.version:
                return Outcome.success(room)
            logger.info(f"Cached view of room {room.id} is stale, reloading {group_id}/{stage}")

        self.lifecycle.invalidate(group_id, stage)
        candidates = self.lifecycle.get_open_rooms(group_id, stage)
        if not candidates.ok:
            return Outcome(error=candidates.error)
        return Outcome.success(next(candidates.value, None))

    def leave(self, room_id: str, user_id: str) -> Outcome[Room]:
        found = self.lifecycle.get_room(room_id)
        if not found.ok:
            return found
        if found.value is None:
            return Outcome.failure(RoomErrorKind.NOT_A_MEMBER, f"User {user_id} is not a member of room {room_id}")
        group_id, stage = found.value.key

        try:
            with self.locks.hold(stage_key(group_id, stage), member_key(group_id, user_id), timeout=self.lock_timeout):
                return self._leave_locked(room_id, user_id)
        except LockTimeout as e:
            return Outcome.failure(RoomErrorKind.LOCK_TIMEOUT, str(e))

    def _leave_locked(self, room_id: str, user_id: str) -> Outcome[Room]:
        existing = self.ledger.membership(user_id, room_id)
        if not existing.ok:
            return Outcome(error=existing.error)
        if existing.value is None:
            return Outcome.failure(RoomErrorKind.NOT_A_MEMBER, f"User {user_id} is not a member of room {room_id}")

        # Re-read under the lock; the pre-lock read only located the key
        current = self.lifecycle.get_room(room_id)
        if not current.ok:
            return current

        released = self.ledger.release(existing.value)
        if released is None:
            return current

        room = current.value
        vacated = self.lifecycle.vacate(room)
        if not vacated.ok:
            return vacated
        try:
            committed = self._commit(room.group_id, room.stage, UnitOfWork(rooms=[vacated.value], memberships=[released]))
        finally:
            self.lifecycle.settle(room_id)
        if not committed.ok:
            return Outcome(error=committed.error)
        logger.info(
            f"User {user_id} left room {room_id}: "
            f"{vacated.value.member_count}/{room.capacity} {vacated.value.status.value}"
        )
        return Outcome.success(vacated.value)

    def _commit(self, group_id: str, stage: str, unit: UnitOfWork) -> Outcome[None]:
        try:
            self.store.commit(unit)
            return Outcome.success()
        except PersistenceError as e:
            logger.error(f"Rolled back room unit of work for {group_id}/{stage}: {e}")
            return Outcome.failure(RoomErrorKind.PERSISTENCE_FAILURE, str(e))
        finally:
            self.lifecycle.invalidate(group_id, stage)
