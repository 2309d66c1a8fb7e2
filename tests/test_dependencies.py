import pytest

from app.config import settings
from app.core.dependencies import RoomServices
from app.modules.support_rooms.store import InMemoryRoomStore


@pytest.fixture
def memory_backend(monkeypatch):
    monkeypatch.setattr(settings, "room_store_backend", "memory")
    monkeypatch.setattr(settings, "memory_groups", "anxiety:Anxiety, grief")
    RoomServices.reset()
    yield
    RoomServices.reset()


def test_memory_groups_setting_is_parsed(monkeypatch):
    monkeypatch.setattr(settings, "memory_groups", "anxiety:Anxiety, grief ,,")
    assert settings.get_memory_groups_list() == [("anxiety", "Anxiety"), ("grief", "grief")]


def test_memory_backend_serves_seeded_groups(memory_backend):
    service = RoomServices.get_service()
    assert isinstance(service.store, InMemoryRoomStore)
    assert RoomServices.get_service() is service
    assert [g.id for g in service.catalog.list_groups()] == ["anxiety", "grief"]

    placed = service.join("anxiety", "beginner", "u1")
    assert placed.newly_joined
    assert placed.room.capacity == settings.max_room_members
    assert service.list_members(placed.room_id).members == ["u1"]
