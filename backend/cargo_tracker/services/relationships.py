# cargo_tracker/services/relationships.py
"""
Boat <-> Load link management.

A link lives in two documents: the Boat's ``loads`` list and the Load's
``carrier`` key. The store only guarantees single-document atomicity, so
every link/unlink is two independent writes:

    1. write the Boat
    2. write the Load

The Boat is always written first. If step 2 fails the Boat is ahead of the
Load; PartialLinkError is raised and ``reconcile_all`` (scripts/reconcile_links.py)
repairs the pair later.

No locking is done. Two concurrent links of the same Load can both pass the
carrier check; the last Load write wins and the losing Boat keeps a stale
entry until reconciliation drops it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from cargo_tracker.core.errors import Conflict, Forbidden, NotFound, ServiceUnavailable
from cargo_tracker.models.boat import Boat
from cargo_tracker.models.load import Load
from cargo_tracker.store.base import (
    BOAT,
    LOAD,
    DocumentStore,
    DocumentStoreError,
    Query,
    StoreKey,
    key_equals,
)

logger = logging.getLogger(__name__)

BOAT_AND_LOAD_MISSING = "The specified boat and load does not exist"
BOAT_MISSING = "The specified boat does not exist"
LOAD_MISSING = "The specified load does not exist"
ALREADY_ON_THIS_BOAT = "The specified load has already been assigned to this boat."
ALREADY_ON_ANOTHER_BOAT = "The specified load has already been assigned to another boat."
NOT_ON_THIS_BOAT = "The specified load is not on this boat."
NOT_BOAT_OWNER = "You are not the owner of this boat."


class PartialLinkError(ServiceUnavailable):
    """The Boat write went through but the matching Load write did not."""

    def __init__(self, boat_key: StoreKey, load_key: StoreKey) -> None:
        super().__init__(
            f"Boat {boat_key.id} was updated but load {load_key.id} could not be. "
            "Please retry the request."
        )
        self.boat_key = boat_key
        self.load_key = load_key


class CascadeUnlinkError(ServiceUnavailable):
    """One or more loads could not be released from a boat being deleted."""

    def __init__(self, boat_key: StoreKey, failures: list[tuple[StoreKey, Exception]]) -> None:
        ids = ", ".join(str(k.id) for k, _ in failures)
        super().__init__(
            f"Could not unload loads {ids} from boat {boat_key.id}. The boat was not deleted."
        )
        self.boat_key = boat_key
        self.failures = failures


@dataclass
class ReconcileReport:
    dropped_from_boats: list[tuple[StoreKey, StoreKey]] = field(default_factory=list)
    cleared_carriers: list[StoreKey] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.dropped_from_boats or self.cleared_carriers)


def _fetch_pair(store: DocumentStore, boat_key: StoreKey, load_key: StoreKey) -> tuple[Boat, Load]:
    boat_entity = store.get(boat_key)
    load_entity = store.get(load_key)

    if boat_entity is None and load_entity is None:
        raise NotFound(BOAT_AND_LOAD_MISSING)
    if boat_entity is None:
        raise NotFound(BOAT_MISSING)
    if load_entity is None:
        raise NotFound(LOAD_MISSING)

    return Boat.from_entity(boat_entity), Load.from_entity(load_entity)


def _write_pair(store: DocumentStore, boat: Boat, load: Load) -> None:
    store.update(boat.to_entity())
    try:
        store.update(load.to_entity())
    except DocumentStoreError as exc:
        logger.error(
            "Link state diverged: boat %s written, load %s not (%s). Run reconciliation.",
            boat.key.id,
            load.key.id,
            exc,
        )
        raise PartialLinkError(boat.key, load.key) from exc


def link(store: DocumentStore, boat_key: StoreKey, load_key: StoreKey, requester_sub: str) -> tuple[Boat, Load]:
    """Put a load on a boat. Only the boat's owner may do this."""
    boat, load = _fetch_pair(store, boat_key, load_key)

    if load.carrier is not None:
        if key_equals(load.carrier, boat_key):
            raise Conflict(ALREADY_ON_THIS_BOAT)
        raise Conflict(ALREADY_ON_ANOTHER_BOAT)

    if boat.owner != requester_sub:
        raise Forbidden(NOT_BOAT_OWNER)

    if not boat.carries(load_key):
        boat.add_load(load_key)
    load.carrier = boat_key
    _write_pair(store, boat, load)

    logger.info("Load %s linked to boat %s", load_key.id, boat_key.id)
    return boat, load


def unlink(store: DocumentStore, boat_key: StoreKey, load_key: StoreKey, requester_sub: str) -> tuple[Boat, Load]:
    """Take a load off a boat. The load must currently be on that boat."""
    boat, load = _fetch_pair(store, boat_key, load_key)

    if not key_equals(load.carrier, boat_key):
        raise Conflict(NOT_ON_THIS_BOAT)

    if boat.owner != requester_sub:
        raise Forbidden(NOT_BOAT_OWNER)

    boat.remove_load(load_key)
    load.carrier = None
    _write_pair(store, boat, load)

    logger.info("Load %s unlinked from boat %s", load_key.id, boat_key.id)
    return boat, load


def cascade_unlink_all(store: DocumentStore, boat: Boat) -> list[StoreKey]:
    """
    Release every load of a boat that is about to be deleted.

    Each load is handled on its own; one failure does not stop the rest. All
    failures are collected and raised together as CascadeUnlinkError once
    every load has been attempted. Returns the keys that were released.
    """
    released: list[StoreKey] = []
    failures: list[tuple[StoreKey, Exception]] = []

    for load_key in list(boat.loads):
        try:
            entity = store.get(load_key)
            if entity is None:
                continue
            load = Load.from_entity(entity)
            if not key_equals(load.carrier, boat.key):
                # Moved to another boat by a racing request; leave it alone.
                continue
            load.carrier = None
            store.update(load.to_entity())
            released.append(load_key)
        except DocumentStoreError as exc:
            logger.warning("Failed to unload load %s from boat %s: %s", load_key.id, boat.key.id, exc)
            failures.append((load_key, exc))

    if failures:
        raise CascadeUnlinkError(boat.key, failures)
    return released


def reconcile_boat(store: DocumentStore, boat: Boat, *, dry_run: bool = False) -> list[StoreKey]:
    """Drop entries from ``boat.loads`` whose load is gone or points elsewhere."""
    stale: list[StoreKey] = []
    for load_key in boat.loads:
        entity = store.get(load_key)
        if entity is None or not key_equals(Load.from_entity(entity).carrier, boat.key):
            stale.append(load_key)

    if stale and not dry_run:
        for load_key in stale:
            boat.remove_load(load_key)
        store.update(boat.to_entity())
    return stale


def reconcile_load(store: DocumentStore, load: Load, *, dry_run: bool = False) -> bool:
    """Clear ``load.carrier`` when that boat is gone or does not list the load."""
    if load.carrier is None:
        return False
    entity = store.get(load.carrier)
    if entity is not None and Boat.from_entity(entity).carries(load.key):
        return False

    if not dry_run:
        load.carrier = None
        store.update(load.to_entity())
    return True


def reconcile_all(store: DocumentStore, *, dry_run: bool = False) -> ReconcileReport:
    """
    Sweep every boat and load and restore the two-way link invariant.

    Meant to run offline: a sweep that overlaps a live link request can undo
    that request's first write.
    """
    report = ReconcileReport()

    for entity in store.run_query(Query(BOAT)):
        boat = Boat.from_entity(entity)
        for load_key in reconcile_boat(store, boat, dry_run=dry_run):
            report.dropped_from_boats.append((boat.key, load_key))

    for entity in store.run_query(Query(LOAD)):
        load = Load.from_entity(entity)
        if reconcile_load(store, load, dry_run=dry_run):
            report.cleared_carriers.append(load.key)

    logger.info(
        "Reconciliation %s: %d stale boat entries, %d stale carriers",
        "dry run" if dry_run else "done",
        len(report.dropped_from_boats),
        len(report.cleared_carriers),
    )
    return report
