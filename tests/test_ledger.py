import pytest

from app.modules.support_rooms.errors import PersistenceError
from app.modules.support_rooms.ledger import MembershipLedger
from app.modules.support_rooms.models import Room, UnitOfWork
from app.modules.support_rooms.store import InMemoryRoomStore


@pytest.fixture
def rooms():
    return [
        Room(id="r1", group_id="g1", stage="s1", room_number=1, capacity=2, member_count=1),
        Room(id="r2", group_id="g1", stage="s2", room_number=1, capacity=2, member_count=1),
        Room(id="r3", group_id="g2", stage="s1", room_number=1, capacity=2, member_count=1),
    ]


def test_admit_and_lookup(rooms):
    store = InMemoryRoomStore()
    ledger = MembershipLedger(store)
    membership = ledger.admit("u1", rooms[0])
    store.commit(UnitOfWork(rooms=[rooms[0]], memberships=[membership]))

    active = ledger.active_membership_for("u1", "g1")
    assert active.ok
    assert active.value.room_id == "r1"
    assert ledger.active_membership_for("u1", "g2").value is None
    assert ledger.list_members("r1").value == ["u1"]


def test_release_is_idempotent(rooms):
    store = InMemoryRoomStore()
    ledger = MembershipLedger(store)
    store.commit(UnitOfWork(rooms=[rooms[0]], memberships=[ledger.admit("u1", rooms[0])]))

    released = ledger.release(ledger.membership("u1", "r1").value)
    assert released.active is False
    assert released.left_at is not None
    store.commit(UnitOfWork(memberships=[released]))

    assert ledger.release(ledger.membership("u1", "r1").value) is None
    assert ledger.active_membership_for("u1", "g1").value is None
    assert ledger.list_members("r1").value == []


def test_readmit_reuses_membership_row(rooms):
    store = InMemoryRoomStore()
    ledger = MembershipLedger(store)
    first = ledger.admit("u1", rooms[0])
    store.commit(UnitOfWork(rooms=[rooms[0]], memberships=[first]))
    store.commit(UnitOfWork(memberships=[ledger.release(first)]))

    again = ledger.admit("u1", rooms[0], ledger.membership("u1", "r1").value)
    assert again.key == first.key
    assert again.active and again.left_at is None


def test_store_rejects_second_active_membership_in_group(rooms):
    store = InMemoryRoomStore()
    ledger = MembershipLedger(store)
    store.commit(UnitOfWork(rooms=rooms, memberships=[ledger.admit("u1", rooms[0])]))

    with pytest.raises(PersistenceError):
        store.commit(UnitOfWork(memberships=[ledger.admit("u1", rooms[1])]))

    # other groups are independent
    store.commit(UnitOfWork(memberships=[ledger.admit("u1", rooms[2])]))
    assert {m.room_id for m in ledger.memberships_for_user("u1").value} == {"r1", "r3"}


def test_failed_commit_leaves_no_partial_state(rooms):
    store = InMemoryRoomStore()
    ledger = MembershipLedger(store)
    overfull = Room(id="r9", group_id="g1", stage="s1", room_number=9, capacity=1, member_count=2)

    with pytest.raises(PersistenceError):
        store.commit(UnitOfWork(rooms=[rooms[0], overfull], memberships=[ledger.admit("u1", rooms[0])]))

    assert store.get_room("r1") is None
    assert ledger.membership("u1", "r1").value is None
