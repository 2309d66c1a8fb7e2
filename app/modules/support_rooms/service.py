import logging
import time
from typing import Callable, List, Optional, TypeVar

from fastapi import HTTPException

from app.config import settings
from app.modules.support_groups.catalog import GroupCatalog
from app.modules.support_rooms.errors import Outcome, RoomError, RoomErrorKind
from app.modules.support_rooms.ledger import MembershipLedger
from app.modules.support_rooms.lifecycle import RoomLifecycleManager
from app.modules.support_rooms.locks import KeyedLocks
from app.modules.support_rooms.models import Room
from app.modules.support_rooms.planner import RoomCapacityPlanner
from app.modules.support_rooms.schemas import (
    GroupStats, JoinRoomResponse, LeaveRoomResponse, MyRoomResponse,
    RoomMembersResponse, RoomResponse
)
from app.modules.support_rooms.stats import StatsAggregator
from app.modules.support_rooms.store import RoomStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STATUS_CODES = {
    RoomErrorKind.GROUP_NOT_FOUND: 404,
    RoomErrorKind.NOT_A_MEMBER: 404,
    RoomErrorKind.INVALID_STAGE: 400,
    RoomErrorKind.GROUP_ARCHIVED: 409,
    RoomErrorKind.ALREADY_MEMBER: 409,
    RoomErrorKind.LOCK_TIMEOUT: 503,
    RoomErrorKind.PERSISTENCE_FAILURE: 503,
    RoomErrorKind.CAPACITY_RACE_DETECTED: 500,
}


def raise_for_error(error: RoomError) -> None:
    detail = {"error": error.kind.value, "message": error.message, "retryable": error.retryable}
    if error.kind == RoomErrorKind.CAPACITY_RACE_DETECTED:
        detail["message"] = "Internal room allocation error"
    raise HTTPException(status_code=_STATUS_CODES.get(error.kind, 500), detail=detail)


def to_room_response(room: Room) -> RoomResponse:
    return RoomResponse(
        id=room.id,
        group_id=room.group_id,
        stage=room.stage,
        room_number=room.room_number,
        capacity=room.capacity,
        member_count=room.member_count,
        status=room.status.value,
        created_at=room.created_at,
        updated_at=room.updated_at,
    )


class SupportRoomService:
    def __init__(
        self,
        store: RoomStore,
        catalog: GroupCatalog,
        locks: Optional[KeyedLocks] = None,
        max_retries: Optional[int] = None,
        retry_base_delay_ms: Optional[int] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.ledger = MembershipLedger(store)
        self.lifecycle = RoomLifecycleManager(store)
        self.planner = RoomCapacityPlanner(store, catalog, self.ledger, self.lifecycle, locks=locks)
        self.stats = StatsAggregator(self.lifecycle)
        self.max_retries = settings.room_max_retries if max_retries is None else max_retries
        self.retry_base_delay_ms = settings.room_retry_base_delay_ms if retry_base_delay_ms is None else retry_base_delay_ms

    def _with_retries(self, action: str, attempt_fn: Callable[[], Outcome[T]]) -> Outcome[T]:
        """Retry persistence failures with exponential backoff; every other outcome is final."""
        attempts = max(1, self.max_retries)
        for attempt in range(attempts):
            outcome = attempt_fn()
            if outcome.ok or not outcome.error.retryable or attempt == attempts - 1:
                return outcome
            delay = self.retry_base_delay_ms * (2 ** attempt) / 1000
            logger.warning(f"{action} attempt {attempt + 1}/{attempts} failed ({outcome.error.message}), retrying in {delay:.2f}s")
            time.sleep(delay)
        return outcome

    def join(self, group_id: str, stage: str, user_id: str) -> JoinRoomResponse:
        """Place user in a room of the group's stage"""
        outcome = self._with_retries("Join", lambda: self.planner.join(group_id, stage, user_id))
        if not outcome.ok:
            raise_for_error(outcome.error)
        placement = outcome.value
        return JoinRoomResponse(
            room_id=placement.room.id,
            room=to_room_response(placement.room),
            newly_joined=not placement.already_member,
            already_member=placement.already_member,
        )

    def leave(self, room_id: str, user_id: str) -> LeaveRoomResponse:
        """Leave a room; repeating a leave is a no-op"""
        outcome = self._with_retries("Leave", lambda: self.planner.leave(room_id, user_id))
        if not outcome.ok:
            raise_for_error(outcome.error)
        return LeaveRoomResponse(room_id=room_id)

    def get_room(self, room_id: str) -> RoomResponse:
        outcome = self.lifecycle.get_room(room_id)
        if not outcome.ok:
            raise_for_error(outcome.error)
        if outcome.value is None:
            raise HTTPException(status_code=404, detail="Room not found")
        return to_room_response(outcome.value)

    def list_members(self, room_id: str) -> RoomMembersResponse:
        outcome = self.ledger.list_members(room_id)
        if not outcome.ok:
            raise_for_error(outcome.error)
        return RoomMembersResponse(room_id=room_id, count=len(outcome.value), members=outcome.value)

    def my_rooms(self, user_id: str) -> List[MyRoomResponse]:
        outcome = self.ledger.memberships_for_user(user_id)
        if not outcome.ok:
            raise_for_error(outcome.error)
        return [
            MyRoomResponse(
                group_id=m.group_id,
                room_id=m.room_id,
                stage=m.stage,
                role_in_room=m.role_in_room,
                joined_at=m.joined_at,
            )
            for m in outcome.value
        ]

    def group_stats(self, group_id: str) -> GroupStats:
        outcome = self.stats.group_stats(group_id)
        if not outcome.ok:
            raise_for_error(outcome.error)
        return outcome.value
