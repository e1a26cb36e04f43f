from __future__ import annotations

import logging
from typing import Any, Mapping

from cargo_tracker.core.errors import Forbidden, NotFound, ValidationError
from cargo_tracker.models.boat import Boat
from cargo_tracker.models.fields import is_valid_int, is_valid_name
from cargo_tracker.models.load import Load
from cargo_tracker.store.base import LOAD, DocumentStore, Query, StoreKey

logger = logging.getLogger(__name__)

LOAD_NOT_FOUND = "No load with this load_id exists"
INVALID_LOAD_ID = "The load_id you specified is not valid."
MISSING_ATTRIBUTES = "The request object is missing at least one of the required attributes"
NOTHING_TO_UPDATE = "The request object does not contain any attributes to update"
CARRIER_NOT_OWNED = "This load is on a boat owned by someone else."
INVALID_CONTENT = (
    "The load content is invalid. Content must be 1-40 alphanumeric characters long, "
    "contain no special symbols except spaces."
)
INVALID_VOLUME = "The load volume is invalid. Volumes must be an integer."
INVALID_CREATION_DATE = "The load creation_date is invalid. Dates must be a non-empty string."


def parse_load_key(raw: str) -> StoreKey:
    key = StoreKey.parse(LOAD, raw)
    if key is None:
        raise ValidationError(INVALID_LOAD_ID)
    return key


def require_load(store: DocumentStore, key: StoreKey, base_url: str | None = None) -> Load:
    entity = store.get(key)
    if entity is None:
        raise NotFound(LOAD_NOT_FOUND)
    return Load.from_entity(entity, base_url)


def validate_fields(fields: Mapping[str, Any]) -> None:
    if "volume" in fields and not is_valid_int(fields["volume"]):
        raise ValidationError(INVALID_VOLUME)
    if "content" in fields and not is_valid_name(fields["content"]):
        raise ValidationError(INVALID_CONTENT)
    if "creation_date" in fields:
        value = fields["creation_date"]
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(INVALID_CREATION_DATE)


def get_carrier(store: DocumentStore, load: Load) -> Boat | None:
    """The boat the load is on, or None if it is unassigned or the boat is gone."""
    if load.carrier is None:
        return None
    entity = store.get(load.carrier)
    return Boat.from_entity(entity) if entity else None


def require_carrier_access(store: DocumentStore, load: Load, sub: str | None) -> Boat | None:
    """A load on someone else's boat may only be changed through that boat's owner."""
    carrier = get_carrier(store, load)
    if carrier is not None and carrier.owner != sub:
        raise Forbidden(CARRIER_NOT_OWNED)
    return carrier


def create_load(store: DocumentStore, fields: Mapping[str, Any]) -> Load:
    if not Load.has_all_fields(fields):
        raise ValidationError(MISSING_ATTRIBUTES)
    validate_fields(fields)

    load = Load.from_request(fields)
    load.key = store.allocate_key(LOAD)
    store.insert(load.to_entity())
    logger.info("Load %s created", load.key.id)
    return load


def update_load(store: DocumentStore, load: Load, fields: Mapping[str, Any], *, replace: bool) -> Load:
    if replace and not Load.has_all_fields(fields):
        raise ValidationError(MISSING_ATTRIBUTES)
    validate_fields(fields)

    changed = load.update_all_fields(fields) if replace else load.update_fields(fields)
    if not changed:
        raise ValidationError(NOTHING_TO_UPDATE)

    store.update(load.to_entity())
    return load


def delete_load(store: DocumentStore, load: Load, carrier: Boat | None = None) -> None:
    """
    Delete a load. If it is on a boat, the boat's entry is removed first so a
    failed delete never leaves a boat pointing at nothing.
    """
    if carrier is None:
        carrier = get_carrier(store, load)
    if carrier is not None and carrier.carries(load.key):
        carrier.remove_load(load.key)
        store.update(carrier.to_entity())
    store.delete(load.key)
    logger.info("Load %s deleted", load.key.id)


def loads_on_boat(store: DocumentStore, boat: Boat, base_url: str | None = None) -> list[Load]:
    out: list[Load] = []
    for key in boat.loads:
        entity = store.get(key)
        if entity is None:
            logger.warning("Boat %s lists missing load %s", boat.key.id, key.id)
            continue
        out.append(Load.from_entity(entity, base_url))
    return out


def loads_query() -> Query:
    return Query(LOAD)


def count_loads(store: DocumentStore) -> int:
    return store.count(loads_query())
