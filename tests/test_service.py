import pytest
from fastapi import HTTPException


def test_join_retries_persistence_failures(service, store):
    store.failures = 2
    response = service.join("g1", "s1", "u1")

    assert response.newly_joined
    assert response.room.member_count == 1
    assert store.commit_calls == 3


def test_join_gives_up_after_max_retries(service, store):
    store.failures = 10
    with pytest.raises(HTTPException) as exc:
        service.join("g1", "s1", "u1")

    assert exc.value.status_code == 503
    assert exc.value.detail["error"] == "persistence_failure"
    assert exc.value.detail["retryable"] is True
    assert store.commit_calls == 3
    assert store.list_rooms("g1") == []


def test_invalid_requests_are_not_retried(service, store):
    service.join("g1", "s1", "u1")
    calls = store.commit_calls

    with pytest.raises(HTTPException) as exc:
        service.join("g1", "s2", "u1")
    assert exc.value.status_code == 409
    assert exc.value.detail["error"] == "already_member"
    assert exc.value.detail["retryable"] is False

    with pytest.raises(HTTPException) as exc:
        service.leave("unknown", "u1")
    assert exc.value.status_code == 404
    assert store.commit_calls == calls


def test_leave_retries_then_succeeds(service, store):
    room_id = service.join("g1", "s1", "u1").room_id
    store.failures = 1

    assert service.leave(room_id, "u1").ok
    assert service.get_room(room_id).status == "closed"


def test_my_rooms_and_members(service):
    first = service.join("g1", "s1", "u1")
    service.join("g1", "s1", "u2")
    service.join("g2", "s1", "u1")

    assert service.list_members(first.room_id).members == ["u1", "u2"]
    mine = service.my_rooms("u1")
    assert {(r.group_id, r.stage) for r in mine} == {("g1", "s1"), ("g2", "s1")}
    assert first.room_id in {r.room_id for r in mine}
