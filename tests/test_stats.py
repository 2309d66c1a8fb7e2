import pytest

from app.modules.support_rooms.models import RoomStatus


def test_stats_for_unknown_or_empty_group_are_zero(service):
    stats = service.stats.group_stats("g2").value
    assert stats.active_room_count == 0
    assert stats.total_active_members == 0
    assert stats.average_occupancy == 0
    assert stats.capacity_utilization == 0
    assert stats.rooms_by_stage == []


def test_stats_count_open_and_full_rooms(planner, service):
    for user in ("u1", "u2", "u3"):
        planner.join("g1", "s1", user)
    planner.join("g1", "s2", "u4")

    stats = service.stats.group_stats("g1").value
    assert stats.active_room_count == 3
    assert stats.total_active_members == 4
    assert stats.average_occupancy == pytest.approx(4 / 3)
    # capacities: 2 + 2 for s1, 3 for s2
    assert stats.capacity_utilization == pytest.approx(4 / 7)
    by_stage = {s.stage: (s.room_count, s.total_members) for s in stats.rooms_by_stage}
    assert by_stage == {"s1": (2, 3), "s2": (1, 1)}


def test_stats_skip_closed_rooms(planner, service, store):
    room = planner.join("g1", "s1", "u1").value.room
    planner.join("g1", "s2", "u2")
    planner.leave(room.id, "u1")
    assert store.get_room(room.id).status == RoomStatus.CLOSED

    stats = service.stats.group_stats("g1").value
    assert stats.active_room_count == 1
    assert stats.total_active_members == 1
    assert stats.average_occupancy == 1
