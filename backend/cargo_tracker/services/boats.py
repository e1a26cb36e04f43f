from __future__ import annotations

import logging
from typing import Any, Mapping

from cargo_tracker.core.errors import Forbidden, NotFound, ValidationError
from cargo_tracker.models.boat import Boat
from cargo_tracker.models.fields import is_valid_int, is_valid_name
from cargo_tracker.services.relationships import NOT_BOAT_OWNER, cascade_unlink_all
from cargo_tracker.store.base import BOAT, DocumentStore, Query, StoreKey

logger = logging.getLogger(__name__)

BOAT_NOT_FOUND = "No boat with this boat_id exists"
INVALID_BOAT_ID = "The boat_id you specified is not valid."
MISSING_ATTRIBUTES = "The request object is missing at least one of the required attributes"
NOTHING_TO_UPDATE = "The request object does not contain any attributes to update"
DUPLICATE_NAME = "A boat with this name already exists."
INVALID_NAME = (
    "The boat name is invalid. Names must be 1-40 alphanumeric characters long, "
    "contain no special symbols except spaces."
)
INVALID_TYPE = (
    "The boat type is invalid. Names must be 1-40 alphanumeric characters long, "
    "contain no special symbols except spaces."
)
INVALID_LENGTH = "The boat length is invalid. Lengths must be an integer."


def parse_boat_key(raw: str) -> StoreKey:
    key = StoreKey.parse(BOAT, raw)
    if key is None:
        raise ValidationError(INVALID_BOAT_ID)
    return key


def get_boat(store: DocumentStore, key: StoreKey, base_url: str | None = None) -> Boat | None:
    entity = store.get(key)
    return Boat.from_entity(entity, base_url) if entity else None


def require_boat(store: DocumentStore, key: StoreKey, base_url: str | None = None) -> Boat:
    boat = get_boat(store, key, base_url)
    if boat is None:
        raise NotFound(BOAT_NOT_FOUND)
    return boat


def require_owner(boat: Boat, sub: str | None) -> None:
    if boat.owner != sub:
        raise Forbidden(NOT_BOAT_OWNER)


def validate_fields(fields: Mapping[str, Any]) -> None:
    """Check whichever of name/type/length are present."""
    if "name" in fields and not is_valid_name(fields["name"]):
        raise ValidationError(INVALID_NAME)
    if "type" in fields and not is_valid_name(fields["type"]):
        raise ValidationError(INVALID_TYPE)
    if "length" in fields and not is_valid_int(fields["length"]):
        raise ValidationError(INVALID_LENGTH)


def name_taken(store: DocumentStore, name: Any, exclude: StoreKey | None = None) -> bool:
    """
    True if another boat already uses ``name``. Case-sensitive.

    Check-then-write: two requests racing with the same name can both pass.
    """
    if name is None:
        return False
    matches = store.run_query(Query(BOAT).where("name", str(name)))
    return any(exclude is None or e.key.id != exclude.id for e in matches)


def _require_unique_name(store: DocumentStore, fields: Mapping[str, Any], exclude: StoreKey | None) -> None:
    if "name" in fields and name_taken(store, fields["name"], exclude):
        raise Forbidden(DUPLICATE_NAME)


def create_boat(store: DocumentStore, fields: Mapping[str, Any], owner: str) -> Boat:
    if not Boat.has_all_fields(fields):
        raise ValidationError(MISSING_ATTRIBUTES)
    validate_fields(fields)
    _require_unique_name(store, fields, exclude=None)

    boat = Boat.from_request(fields, owner)
    boat.key = store.allocate_key(BOAT)
    store.insert(boat.to_entity())
    logger.info("Boat %s created by %s", boat.key.id, owner)
    return boat


def update_boat(store: DocumentStore, boat: Boat, fields: Mapping[str, Any], *, replace: bool) -> Boat:
    """
    PATCH (``replace=False``) or PUT (``replace=True``) a boat the caller owns.

    Nothing is written unless the whole request is acceptable.
    """
    if replace and not Boat.has_all_fields(fields):
        raise ValidationError(MISSING_ATTRIBUTES)
    validate_fields(fields)
    _require_unique_name(store, fields, exclude=boat.key)

    changed = boat.update_all_fields(fields) if replace else boat.update_fields(fields)
    if not changed:
        raise ValidationError(NOTHING_TO_UPDATE)

    store.update(boat.to_entity())
    return boat


def delete_boat(store: DocumentStore, boat: Boat) -> None:
    """Unload every load, then delete. A failed unload leaves the boat in place."""
    released = cascade_unlink_all(store, boat)
    store.delete(boat.key)
    logger.info("Boat %s deleted, %d loads released", boat.key.id, len(released))


def boats_query(owner: str | None = None) -> Query:
    query = Query(BOAT)
    return query.where("owner", owner) if owner is not None else query


def count_boats(store: DocumentStore, owner: str | None = None) -> int:
    return store.count(boats_query(owner))
