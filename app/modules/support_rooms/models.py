# Supabase tables: support_rooms, support_room_members
# This file documents the expected database schema and the in-process value types
# Writes go through the commit_support_room_unit RPC so a join/leave is one transaction

"""
Expected Supabase table structure:

support_rooms:
- id: uuid (primary key)
- support_group_id: uuid (foreign key to support_groups.id, not null)
- stage: text (not null)
- room_number: integer (not null) - sequential per (support_group_id, stage), starting at 1
- capacity: integer (not null, check capacity > 0)
- member_count: integer (not null, default 0, check 0 <= member_count <= capacity)
- status: text (not null, default: 'open') - values: open, full, closing, closed
- created_at: timestamptz (default: now())
- updated_at: timestamptz (nullable)
- version: integer (not null, default 1) - bumped by every write of the row
- unique constraint on (support_group_id, stage, room_number)

support_room_members:
- user_id: uuid (not null)
- room_id: uuid (foreign key to support_rooms.id, not null)
- support_group_id: uuid (denormalized from support_rooms, not null)
- stage: text (denormalized from support_rooms, not null)
- role_in_room: text (not null, default: 'member')
- joined_at: timestamptz (not null)
- left_at: timestamptz (nullable)
- active: boolean (not null, default true)
- primary key (user_id, room_id)
- unique index on (user_id, support_group_id) where active

commit_support_room_unit(p_rooms jsonb, p_memberships jsonb) returns void:
- plpgsql, runs in the caller's transaction
- inserts every element of p_rooms into support_rooms; on conflict (id) it updates only
  where support_rooms.version = excluded.version - 1 and raises 'stale room' when no row matched
  (another worker wrote the room since it was read)
- upserts every element of p_memberships into support_room_members on conflict (user_id, room_id)
- a stale room or any constraint violation aborts the whole unit
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class RoomStatus(str, Enum):
    OPEN = "open"
    FULL = "full"
    CLOSING = "closing"
    CLOSED = "closed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class Room:
    id: str
    group_id: str
    stage: str
    room_number: int
    capacity: int
    member_count: int = 0
    status: RoomStatus = RoomStatus.OPEN
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def key(self) -> tuple:
        return (self.group_id, self.stage)

    @property
    def has_space(self) -> bool:
        return self.member_count < self.capacity

    @property
    def sort_key(self) -> tuple:
        """Oldest first; room_number then id break createdAt ties."""
        return (self.created_at, self.room_number, self.id)

    def with_changes(self, **changes) -> "Room":
        return replace(self, updated_at=utcnow(), **changes)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "support_group_id": self.group_id,
            "stage": self.stage,
            "room_number": self.room_number,
            "capacity": self.capacity,
            "member_count": self.member_count,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "version": self.version,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Room":
        return cls(
            id=row["id"],
            group_id=row["support_group_id"],
            stage=row["stage"],
            room_number=row["room_number"],
            capacity=row["capacity"],
            member_count=row["member_count"],
            status=RoomStatus(row["status"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row.get("updated_at")),
            version=row.get("version", 0),
        )


@dataclass(frozen=True)
class Membership:
    user_id: str
    room_id: str
    group_id: str
    stage: str
    role_in_room: str = "member"
    joined_at: datetime = field(default_factory=utcnow)
    left_at: Optional[datetime] = None
    active: bool = True

    @property
    def key(self) -> tuple:
        return (self.user_id, self.room_id)

    def to_row(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "room_id": self.room_id,
            "support_group_id": self.group_id,
            "stage": self.stage,
            "role_in_room": self.role_in_room,
            "joined_at": self.joined_at.isoformat(),
            "left_at": self.left_at.isoformat() if self.left_at else None,
            "active": self.active,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Membership":
        return cls(
            user_id=row["user_id"],
            room_id=row["room_id"],
            group_id=row["support_group_id"],
            stage=row["stage"],
            role_in_room=row.get("role_in_room") or "member",
            joined_at=_parse_ts(row["joined_at"]),
            left_at=_parse_ts(row.get("left_at")),
            active=bool(row["active"]),
        )


@dataclass
class UnitOfWork:
    """Room and membership rows written together or not at all."""
    rooms: List[Room] = field(default_factory=list)
    memberships: List[Membership] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.rooms and not self.memberships
