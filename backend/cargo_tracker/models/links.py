from __future__ import annotations

from cargo_tracker.store.base import StoreKey

BOATS = "boats"
LOADS = "loads"
USERS = "users"


def self_link(base_url: str, collection: str, key: StoreKey) -> str:
    """Canonical URL of a stored document: {protocol}://{host}/{collection}/{id}."""
    return f"{base_url}/{collection}/{key.id}"


def boat_url(base_url: str, key: StoreKey) -> str:
    return self_link(base_url, BOATS, key)


def load_url(base_url: str, key: StoreKey) -> str:
    return self_link(base_url, LOADS, key)


def user_url(base_url: str, key: StoreKey) -> str:
    return self_link(base_url, USERS, key)
