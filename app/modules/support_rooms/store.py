"""Persistence for rooms and memberships.

Both stores expose the same contract: point reads by primary key plus an
all-or-nothing ``commit`` of a ``UnitOfWork``. Any failure is raised as
``PersistenceError`` and leaves no partial state behind.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from supabase import Client

from app.modules.support_rooms.errors import PersistenceError
from app.modules.support_rooms.models import Membership, Room, UnitOfWork

logger = logging.getLogger(__name__)


class RoomStore(ABC):
    @abstractmethod
    def get_room(self, room_id: str) -> Optional[Room]:
        raise NotImplementedError

    @abstractmethod
    def list_rooms(self, group_id: str, stage: Optional[str] = None) -> List[Room]:
        raise NotImplementedError

    @abstractmethod
    def next_room_number(self, group_id: str, stage: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_membership(self, user_id: str, room_id: str) -> Optional[Membership]:
        raise NotImplementedError

    @abstractmethod
    def find_active_membership(self, user_id: str, group_id: str) -> Optional[Membership]:
        raise NotImplementedError

    @abstractmethod
    def list_room_members(self, room_id: str) -> List[Membership]:
        """Active memberships of one room, earliest joined first."""
        raise NotImplementedError

    @abstractmethod
    def list_user_memberships(self, user_id: str) -> List[Membership]:
        """Active memberships of one user, latest joined first."""
        raise NotImplementedError

    @abstractmethod
    def commit(self, unit: UnitOfWork) -> None:
        raise NotImplementedError


class SupabaseRoomStore(RoomStore):
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_room(self, room_id: str) -> Optional[Room]:
        try:
            result = self.supabase.table("support_rooms")\
                .select("*")\
                .eq("id", room_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise PersistenceError(f"Failed to read room {room_id}: {e}") from e
        return Room.from_row(result.data[0]) if result.data else None

    def list_rooms(self, group_id: str, stage: Optional[str] = None) -> List[Room]:
        try:
            query = self.supabase.table("support_rooms")\
                .select("*")\
                .eq("support_group_id", group_id)
            if stage is not None:
                query = query.eq("stage", stage)
            result = query.order("created_at").order("room_number").execute()
        except Exception as e:
            raise PersistenceError(f"Failed to list rooms for group {group_id}: {e}") from e
        return [Room.from_row(row) for row in result.data or []]

    def next_room_number(self, group_id: str, stage: str) -> int:
        try:
            result = self.supabase.table("support_rooms")\
                .select("room_number")\
                .eq("support_group_id", group_id)\
                .eq("stage", stage)\
                .order("room_number", desc=True)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise PersistenceError(f"Failed to read room numbers: {e}") from e
        return (result.data[0]["room_number"] + 1) if result.data else 1

    def get_membership(self, user_id: str, room_id: str) -> Optional[Membership]:
        try:
            result = self.supabase.table("support_room_members")\
                .select("*")\
                .eq("user_id", user_id)\
                .eq("room_id", room_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise PersistenceError(f"Failed to read membership: {e}") from e
        return Membership.from_row(result.data[0]) if result.data else None

    def find_active_membership(self, user_id: str, group_id: str) -> Optional[Membership]:
        # The partial unique index guarantees at most one row
        try:
            result = self.supabase.table("support_room_members")\
                .select("*")\
                .eq("user_id", user_id)\
                .eq("support_group_id", group_id)\
                .eq("active", True)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise PersistenceError(f"Failed to read active membership: {e}") from e
        return Membership.from_row(result.data[0]) if result.data else None

    def list_room_members(self, room_id: str) -> List[Membership]:
        try:
            result = self.supabase.table("support_room_members")\
                .select("*")\
                .eq("room_id", room_id)\
                .eq("active", True)\
                .order("joined_at")\
                .execute()
        except Exception as e:
            raise PersistenceError(f"Failed to list members of room {room_id}: {e}") from e
        return [Membership.from_row(row) for row in result.data or []]

    def list_user_memberships(self, user_id: str) -> List[Membership]:
        try:
            result = self.supabase.table("support_room_members")\
                .select("*")\
                .eq("user_id", user_id)\
                .eq("active", True)\
                .order("joined_at", desc=True)\
                .execute()
        except Exception as e:
            raise PersistenceError(f"Failed to list memberships of user {user_id}: {e}") from e
        return [Membership.from_row(row) for row in result.data or []]

    def commit(self, unit: UnitOfWork) -> None:
        if unit.is_empty():
            return
        try:
            self.supabase.rpc("commit_support_room_unit", {
                "p_rooms": [room.to_row() for room in unit.rooms],
                "p_memberships": [m.to_row() for m in unit.memberships],
            }).execute()
        except Exception as e:
            raise PersistenceError(f"Room unit of work rolled back: {e}") from e


class InMemoryRoomStore(RoomStore):
    """Process-local store with the same constraints as the Postgres schema."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rooms: Dict[str, Room] = {}
        self._memberships: Dict[Tuple[str, str], Membership] = {}
        self._active_index: Dict[Tuple[str, str], Tuple[str, str]] = {}

    def get_room(self, room_id: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(room_id)

    def list_rooms(self, group_id: str, stage: Optional[str] = None) -> List[Room]:
        with self._lock:
            rooms = [
                r for r in self._rooms.values()
                if r.group_id == group_id and (stage is None or r.stage == stage)
            ]
        return sorted(rooms, key=lambda r: r.sort_key)

    def next_room_number(self, group_id: str, stage: str) -> int:
        with self._lock:
            numbers = [
                r.room_number for r in self._rooms.values()
                if r.group_id == group_id and r.stage == stage
            ]
        return max(numbers, default=0) + 1

    def get_membership(self, user_id: str, room_id: str) -> Optional[Membership]:
        with self._lock:
            return self._memberships.get((user_id, room_id))

    def find_active_membership(self, user_id: str, group_id: str) -> Optional[Membership]:
        with self._lock:
            key = self._active_index.get((user_id, group_id))
            return self._memberships[key] if key else None

    def list_room_members(self, room_id: str) -> List[Membership]:
        with self._lock:
            members = [m for m in self._memberships.values() if m.room_id == room_id and m.active]
        return sorted(members, key=lambda m: m.joined_at)

    def list_user_memberships(self, user_id: str) -> List[Membership]:
        with self._lock:
            members = [m for m in self._memberships.values() if m.user_id == user_id and m.active]
        return sorted(members, key=lambda m: m.joined_at, reverse=True)

    def commit(self, unit: UnitOfWork) -> None:
        with self._lock:
            rooms = dict(self._rooms)
            memberships = dict(self._memberships)
            active_index = dict(self._active_index)

            for room in unit.rooms:
                self._check_room(room, rooms)
                rooms[room.id] = room

            for membership in unit.memberships:
                if membership.room_id not in rooms:
                    raise PersistenceError(f"Membership references unknown room {membership.room_id}")
                index_key = (membership.user_id, membership.group_id)
                current = active_index.get(index_key)
                if membership.active:
                    if current is not None and current != membership.key:
                        raise PersistenceError(
                            f"User {membership.user_id} already has an active membership in group {membership.group_id}"
                        )
                    active_index[index_key] = membership.key
                elif current == membership.key:
                    del active_index[index_key]
                memberships[membership.key] = membership

            self._rooms = rooms
            self._memberships = memberships
            self._active_index = active_index

    @staticmethod
    def _check_room(room: Room, rooms: Dict[str, Room]) -> None:
        current = rooms.get(room.id)
        if current is not None and room.version != current.version + 1:
            raise PersistenceError(
                f"Stale room {room.id}: stored version {current.version}, write based on {room.version - 1}"
            )
        if room.capacity <= 0:
            raise PersistenceError(f"Room {room.id} has non-positive capacity")
        if not 0 <= room.member_count <= room.capacity:
            raise PersistenceError(
                f"Room {room.id} member_count {room.member_count} outside 0..{room.capacity}"
            )
        if room.id not in rooms:
            for other in rooms.values():
                if other.key == room.key and other.room_number == room.room_number:
                    raise PersistenceError(
                        f"Room number {room.room_number} already used for {room.group_id}/{room.stage}"
                    )
