import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from app.core.dependencies import get_current_user_id, get_support_room_service
from app.main import app
from app.modules.support_groups.catalog import InMemoryGroupCatalog
from app.modules.support_groups.schemas import StageConfig, SupportGroup
from app.modules.support_rooms.errors import PersistenceError
from app.modules.support_rooms.service import SupportRoomService
from app.modules.support_rooms.store import InMemoryRoomStore


class FlakyRoomStore(InMemoryRoomStore):
    """Fails the next ``failures`` commits, then behaves normally."""

    def __init__(self, failures: int = 0):
        super().__init__()
        self.failures = failures
        self.commit_calls = 0

    def commit(self, unit):
        self.commit_calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("connection reset")
        super().commit(unit)


def make_catalog() -> InMemoryGroupCatalog:
    return InMemoryGroupCatalog([
        SupportGroup(
            id="g1",
            name="Anxiety",
            stages=[StageConfig(stage="s1", position=0, capacity=2), StageConfig(stage="s2", position=1, capacity=3)],
        ),
        SupportGroup(id="g2", name="Grief", stages=[StageConfig(stage="s1", position=0, capacity=2)]),
        SupportGroup(id="g3", name="Burnout"),
        SupportGroup(id="old", name="Retired", stages=[StageConfig(stage="s1", capacity=2)], is_archived=True),
    ])


@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def store():
    return FlakyRoomStore()


@pytest.fixture
def service(store, catalog):
    return SupportRoomService(store, catalog, max_retries=3, retry_base_delay_ms=0)


@pytest.fixture
def planner(service):
    return service.planner


def fake_current_user(request: Request) -> dict:
    user = {"id": request.headers.get("X-User-Id", "anonymous"), "app_metadata": {}}
    if request.headers.get("X-Super-User") == "1":
        user["app_metadata"] = {"type": "super_user"}
    return user


@pytest.fixture
def client(service):
    app.dependency_overrides[get_support_room_service] = lambda: service
    app.dependency_overrides[get_current_user_id] = fake_current_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
