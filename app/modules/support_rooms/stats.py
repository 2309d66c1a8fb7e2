"""Stats Aggregator: advisory per-group counts derived from room state.

Never takes a serialization lock; each call works from one point-in-time
listing of the group's rooms.
"""
import logging
from typing import Dict

from app.modules.support_rooms.errors import Outcome
from app.modules.support_rooms.lifecycle import RoomLifecycleManager
from app.modules.support_rooms.models import RoomStatus
from app.modules.support_rooms.schemas import GroupStats, StageStats

logger = logging.getLogger(__name__)


class StatsAggregator:
    def __init__(self, lifecycle: RoomLifecycleManager):
        self.lifecycle = lifecycle

    def group_stats(self, group_id: str) -> Outcome[GroupStats]:
        snapshot = self.lifecycle.rooms_for_group(group_id)
        if not snapshot.ok:
            return Outcome(error=snapshot.error)
        rooms = [r for r in snapshot.value if r.status != RoomStatus.CLOSED]

        by_stage: Dict[str, StageStats] = {}
        total_members = 0
        total_capacity = 0
        for room in rooms:
            total_members += room.member_count
            total_capacity += room.capacity
            entry = by_stage.setdefault(room.stage, StageStats(stage=room.stage, room_count=0, total_members=0))
            entry.room_count += 1
            entry.total_members += room.member_count

        room_count = len(rooms)
        return Outcome.success(GroupStats(
            group_id=group_id,
            active_room_count=room_count,
            total_active_members=total_members,
            average_occupancy=total_members / room_count if room_count else 0,
            capacity_utilization=total_members / total_capacity if total_capacity else 0,
            rooms_by_stage=list(by_stage.values()),
        ))
