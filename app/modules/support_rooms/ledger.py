"""Membership Ledger: the only writer of ``Membership.active``."""
import logging
from dataclasses import replace
from typing import List, Optional

from app.modules.support_rooms.errors import Outcome, guarded
from app.modules.support_rooms.models import Membership, Room, utcnow
from app.modules.support_rooms.store import RoomStore

logger = logging.getLogger(__name__)


class MembershipLedger:
    def __init__(self, store: RoomStore):
        self.store = store

    def active_membership_for(self, user_id: str, group_id: str) -> Outcome[Optional[Membership]]:
        """The single active membership of a user in a group, if any."""
        return guarded(lambda: self.store.find_active_membership(user_id, group_id))

    def membership(self, user_id: str, room_id: str) -> Outcome[Optional[Membership]]:
        return guarded(lambda: self.store.get_membership(user_id, room_id))

    def list_members(self, room_id: str) -> Outcome[List[str]]:
        return guarded(lambda: [m.user_id for m in self.store.list_room_members(room_id)])

    def memberships_for_user(self, user_id: str) -> Outcome[List[Membership]]:
        return guarded(lambda: self.store.list_user_memberships(user_id))

    def admit(self, user_id: str, room: Room, previous: Optional[Membership] = None) -> Membership:
        """Active membership row for ``user_id`` in ``room``.

        A user who left this room earlier gets the same (user_id, room_id) row back, reactivated.
        """
        if previous is not None:
            return replace(previous, joined_at=utcnow(), left_at=None, active=True)
        return Membership(
            user_id=user_id,
            room_id=room.id,
            group_id=room.group_id,
            stage=room.stage,
        )

    def release(self, membership: Membership) -> Optional[Membership]:
        """Deactivated copy of ``membership``, or None when it is already inactive."""
        if not membership.active:
            logger.debug(f"Membership {membership.key} already inactive, nothing to release")
            return None
        return replace(membership, active=False, left_at=utcnow())
