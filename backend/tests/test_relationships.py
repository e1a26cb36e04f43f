# tests/test_relationships.py
"""
Relationship manager tests.

Run directly against the in-memory store:
- two-way link consistency after link / unlink
- NotFound / Conflict / Forbidden ordering and messages
- cascade unlink on boat deletion, including partial failure
- the documented link race and its repair by reconciliation
"""
from __future__ import annotations

import pytest

from cargo_tracker.core.errors import Conflict, Forbidden, NotFound
from cargo_tracker.models.boat import Boat
from cargo_tracker.models.load import Load
from cargo_tracker.services.relationships import (
    ALREADY_ON_ANOTHER_BOAT,
    ALREADY_ON_THIS_BOAT,
    BOAT_AND_LOAD_MISSING,
    BOAT_MISSING,
    LOAD_MISSING,
    NOT_ON_THIS_BOAT,
    CascadeUnlinkError,
    PartialLinkError,
    cascade_unlink_all,
    link,
    reconcile_all,
    unlink,
)
from cargo_tracker.store.base import BOAT, LOAD, DocumentStoreError, Entity, Query, StoreKey, key_equals
from cargo_tracker.store.memory import MemoryDocumentStore


def _add_boat(store, name="Sea Witch", owner="u1") -> StoreKey:
    boat = Boat.from_request({"name": name, "type": "Catamaran", "length": 28}, owner=owner)
    boat.key = store.allocate_key(BOAT)
    store.insert(boat.to_entity())
    return boat.key


def _add_load(store, content="LEGO Blocks") -> StoreKey:
    load = Load.from_request({"volume": 5, "content": content, "creation_date": "10/18/2021"})
    load.key = store.allocate_key(LOAD)
    store.insert(load.to_entity())
    return load.key


def _boat(store, key) -> Boat:
    return Boat.from_entity(store.get(key))


def _load(store, key) -> Load:
    return Load.from_entity(store.get(key))


def _assert_consistent(store):
    """For every boat B and load L: L.carrier == B.key iff B.loads contains L.key."""
    boats = [Boat.from_entity(e) for e in store.run_query(Query(BOAT))]
    loads = [Load.from_entity(e) for e in store.run_query(Query(LOAD))]
    for boat in boats:
        for load in loads:
            assert key_equals(load.carrier, boat.key) == boat.carries(load.key)


class FailingStore:
    """Wraps a store and fails ``update`` for chosen keys."""

    def __init__(self, inner, fail_updates_for=()):
        self._inner = inner
        self.fail_updates_for = list(fail_updates_for)

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def update(self, entity: Entity) -> None:
        if any(key_equals(entity.key, k) for k in self.fail_updates_for):
            raise DocumentStoreError("ProvisionedThroughputExceededException", "slow down")
        self._inner.update(entity)


class StaleReadStore:
    """Serves a fixed snapshot for one key, as a request that read before a concurrent write would."""

    def __init__(self, inner, key: StoreKey, snapshot: Entity):
        self._inner = inner
        self._key = key
        self._snapshot = snapshot

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def get(self, key: StoreKey):
        if key_equals(key, self._key):
            return Entity(key=self._snapshot.key, data=dict(self._snapshot.data))
        return self._inner.get(key)


@pytest.fixture()
def store():
    return MemoryDocumentStore()


# ---------------------------------------------------------------------------
# link
# ---------------------------------------------------------------------------


def test_link_updates_both_sides(store):
    boat_key = _add_boat(store)
    load_key = _add_load(store)

    link(store, boat_key, load_key, "u1")

    assert _boat(store, boat_key).carries(load_key)
    assert key_equals(_load(store, load_key).carrier, boat_key)
    _assert_consistent(store)


def test_link_twice_to_same_boat_is_this_boat_conflict(store):
    boat_key = _add_boat(store)
    load_key = _add_load(store)
    link(store, boat_key, load_key, "u1")

    with pytest.raises(Conflict) as exc:
        link(store, boat_key, load_key, "u1")
    assert exc.value.message == ALREADY_ON_THIS_BOAT
    assert exc.value.status_code == 403
    assert _boat(store, boat_key).loads == [load_key]


def test_link_to_other_boat_is_another_boat_conflict(store):
    first = _add_boat(store)
    second = _add_boat(store, name="Black Pearl")
    load_key = _add_load(store)
    link(store, first, load_key, "u1")

    with pytest.raises(Conflict) as exc:
        link(store, second, load_key, "u1")
    assert exc.value.message == ALREADY_ON_ANOTHER_BOAT


def test_link_conflict_is_reported_before_ownership(store):
    boat_key = _add_boat(store, owner="u1")
    load_key = _add_load(store)
    link(store, boat_key, load_key, "u1")

    with pytest.raises(Conflict):
        link(store, boat_key, load_key, "u2")


def test_link_requires_boat_owner(store):
    boat_key = _add_boat(store, owner="u1")
    load_key = _add_load(store)

    with pytest.raises(Forbidden):
        link(store, boat_key, load_key, "u2")

    assert _boat(store, boat_key).loads == []
    assert _load(store, load_key).carrier is None


@pytest.mark.parametrize(
    "boat_exists,load_exists,message",
    [
        (False, False, BOAT_AND_LOAD_MISSING),
        (False, True, BOAT_MISSING),
        (True, False, LOAD_MISSING),
    ],
)
def test_link_reports_which_side_is_missing(store, boat_exists, load_exists, message):
    boat_key = _add_boat(store) if boat_exists else StoreKey(BOAT, 999)
    load_key = _add_load(store) if load_exists else StoreKey(LOAD, 999)

    with pytest.raises(NotFound) as exc:
        link(store, boat_key, load_key, "u1")
    assert exc.value.message == message


def test_failed_load_write_raises_partial_link_and_reconcile_repairs(store):
    boat_key = _add_boat(store)
    load_key = _add_load(store)
    flaky = FailingStore(store, fail_updates_for=[load_key])

    with pytest.raises(PartialLinkError) as exc:
        link(flaky, boat_key, load_key, "u1")
    assert exc.value.status_code == 503

    # Boat was written first and is now ahead of the load.
    assert _boat(store, boat_key).carries(load_key)
    assert _load(store, load_key).carrier is None

    report = reconcile_all(store)

    assert report.dropped_from_boats == [(boat_key, load_key)]
    assert _boat(store, boat_key).loads == []
    _assert_consistent(store)


def test_failed_boat_write_changes_nothing(store):
    boat_key = _add_boat(store)
    load_key = _add_load(store)
    flaky = FailingStore(store, fail_updates_for=[boat_key])

    with pytest.raises(DocumentStoreError):
        link(flaky, boat_key, load_key, "u1")

    assert _boat(store, boat_key).loads == []
    assert _load(store, load_key).carrier is None


# ---------------------------------------------------------------------------
# unlink
# ---------------------------------------------------------------------------


def test_unlink_clears_both_sides(store):
    boat_key = _add_boat(store)
    load_key = _add_load(store)
    other_key = _add_load(store, content="Bananas")
    link(store, boat_key, load_key, "u1")
    link(store, boat_key, other_key, "u1")

    unlink(store, boat_key, load_key, "u1")

    assert _boat(store, boat_key).loads == [other_key]
    assert _load(store, load_key).carrier is None
    _assert_consistent(store)


def test_unlink_unassigned_load_is_not_on_this_boat(store):
    boat_key = _add_boat(store)
    load_key = _add_load(store)

    with pytest.raises(Conflict) as exc:
        unlink(store, boat_key, load_key, "u1")
    assert exc.value.message == NOT_ON_THIS_BOAT


def test_unlink_load_on_other_boat_is_not_on_this_boat(store):
    first = _add_boat(store)
    second = _add_boat(store, name="Black Pearl")
    load_key = _add_load(store)
    link(store, second, load_key, "u1")

    with pytest.raises(Conflict) as exc:
        unlink(store, first, load_key, "u1")
    assert exc.value.message == NOT_ON_THIS_BOAT


def test_unlink_requires_boat_owner(store):
    boat_key = _add_boat(store, owner="u1")
    load_key = _add_load(store)
    link(store, boat_key, load_key, "u1")

    with pytest.raises(Forbidden):
        unlink(store, boat_key, load_key, "u2")
    assert _boat(store, boat_key).carries(load_key)


def test_failed_unlink_load_write_is_repaired_by_reconcile(store):
    boat_key = _add_boat(store)
    load_key = _add_load(store)
    link(store, boat_key, load_key, "u1")

    with pytest.raises(PartialLinkError):
        unlink(FailingStore(store, fail_updates_for=[load_key]), boat_key, load_key, "u1")
    assert key_equals(_load(store, load_key).carrier, boat_key)

    report = reconcile_all(store)

    assert report.cleared_carriers == [load_key]
    assert _load(store, load_key).carrier is None
    _assert_consistent(store)


# ---------------------------------------------------------------------------
# cascade
# ---------------------------------------------------------------------------


def test_cascade_with_no_loads_is_a_noop(store):
    boat_key = _add_boat(store)
    assert cascade_unlink_all(store, _boat(store, boat_key)) == []


def test_cascade_releases_every_load(store):
    boat_key = _add_boat(store)
    load_keys = [_add_load(store, content=f"Crate {i}") for i in range(3)]
    for key in load_keys:
        link(store, boat_key, key, "u1")

    released = cascade_unlink_all(store, _boat(store, boat_key))

    assert released == load_keys
    assert all(_load(store, key).carrier is None for key in load_keys)


def test_cascade_skips_missing_and_moved_loads(store):
    boat_key = _add_boat(store)
    other_boat = _add_boat(store, name="Black Pearl")
    gone = _add_load(store, content="Gone")
    moved = _add_load(store, content="Moved")
    kept = _add_load(store, content="Kept")
    for key in (gone, moved, kept):
        link(store, boat_key, key, "u1")

    store.delete(gone)
    moved_load = _load(store, moved)
    moved_load.carrier = other_boat
    store.update(moved_load.to_entity())

    released = cascade_unlink_all(store, _boat(store, boat_key))

    assert released == [kept]
    assert key_equals(_load(store, moved).carrier, other_boat)


def test_cascade_attempts_every_load_and_reports_all_failures(store):
    boat_key = _add_boat(store)
    load_keys = [_add_load(store, content=f"Crate {i}") for i in range(4)]
    for key in load_keys:
        link(store, boat_key, key, "u1")
    flaky = FailingStore(store, fail_updates_for=[load_keys[0], load_keys[2]])

    with pytest.raises(CascadeUnlinkError) as exc:
        cascade_unlink_all(flaky, _boat(store, boat_key))

    failed = [key for key, _ in exc.value.failures]
    assert failed == [load_keys[0], load_keys[2]]
    assert exc.value.status_code == 503
    assert f"{load_keys[0].id}, {load_keys[2].id}" in exc.value.message
    # The others were still released.
    assert _load(store, load_keys[1]).carrier is None
    assert _load(store, load_keys[3]).carrier is None


# ---------------------------------------------------------------------------
# race
# ---------------------------------------------------------------------------


def test_concurrent_links_of_one_load_last_write_wins(store):
    """
    Two requests read the load before either writes; both pass the carrier
    check. The second load write wins and the first boat keeps a stale entry.
    """
    boat_a = _add_boat(store, name="Alpha", owner="u1")
    boat_b = _add_boat(store, name="Bravo", owner="u2")
    load_key = _add_load(store)
    unassigned = store.get(load_key)

    link(StaleReadStore(store, load_key, unassigned), boat_a, load_key, "u1")
    link(StaleReadStore(store, load_key, unassigned), boat_b, load_key, "u2")

    assert key_equals(_load(store, load_key).carrier, boat_b)
    assert _boat(store, boat_a).carries(load_key)
    assert _boat(store, boat_b).carries(load_key)

    report = reconcile_all(store)

    assert report.dropped_from_boats == [(boat_a, load_key)]
    _assert_consistent(store)


def test_reconcile_dry_run_writes_nothing(store):
    boat_key = _add_boat(store)
    load_key = _add_load(store)
    with pytest.raises(PartialLinkError):
        link(FailingStore(store, fail_updates_for=[load_key]), boat_key, load_key, "u1")

    report = reconcile_all(store, dry_run=True)

    assert report.changed
    assert _boat(store, boat_key).carries(load_key)
