# cargo_tracker/services/users.py
"""
User helpers.

Users are keyed by store id but identified by the provider ``sub``; every
lookup from a token goes through ``get_user_by_sub``.
"""
from __future__ import annotations

import logging
from typing import Optional

from cargo_tracker.core.errors import NotFound, ValidationError
from cargo_tracker.models.user import User
from cargo_tracker.store.base import USER, DocumentStore, Query, StoreKey

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "No user with this user_id exists"
INVALID_USER_ID = "The user_id you specified is not valid."


def parse_user_key(raw: str) -> StoreKey:
    key = StoreKey.parse(USER, raw)
    if key is None:
        raise ValidationError(INVALID_USER_ID)
    return key


def get_user_by_sub(store: DocumentStore, sub: str) -> Optional[User]:
    """Look up a user by their identity-provider subject."""
    matches = store.run_query(Query(USER).where("sub", sub).window(0, 1))
    return User.from_entity(matches[0]) if matches else None


def is_registered(store: DocumentStore, sub: str | None) -> bool:
    if not sub:
        return False
    return get_user_by_sub(store, sub) is not None


def require_user(store: DocumentStore, key: StoreKey, base_url: str | None = None) -> User:
    entity = store.get(key)
    if entity is None:
        raise NotFound(USER_NOT_FOUND)
    return User.from_entity(entity, base_url)


def create_user(store: DocumentStore, user: User) -> User:
    """
    Insert a new user record.

    Callers check ``is_registered`` first; this does not guard against two
    signups for the same ``sub`` racing each other.
    """
    user.key = store.allocate_key(USER)
    store.insert(user.to_entity())
    logger.info("Registered user %s as %s", user.sub, user.key.id)
    return user


def list_users(store: DocumentStore, base_url: str | None = None) -> list[User]:
    return [User.from_entity(e, base_url) for e in store.run_query(Query(USER))]


def count_users(store: DocumentStore) -> int:
    return store.count(Query(USER))
