# cargo_tracker/store/base.py
"""
Document store contract.

The application talks to its persistence layer only through this module:
- StoreKey: (kind, numeric id) identity of a stored document
- Entity: a key plus the stored fields
- Query: kind + equality filters + offset/limit
- DocumentStore: key-based CRUD and queries, single-document atomicity only

Implementations live in dynamo.py (production) and memory.py (local dev / tests).
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Protocol


BOAT = "Boat"
LOAD = "Load"
USER = "User"


class DocumentStoreError(Exception):
    """Raised when the backing store fails or is unreachable."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class DocumentMissingError(DocumentStoreError):
    """Raised when updating a document that does not exist."""

    def __init__(self, key: "StoreKey") -> None:
        super().__init__("DocumentMissing", f"No {key.kind} with id {key.id} exists")
        self.key = key


class DocumentExistsError(DocumentStoreError):
    """Raised when inserting a document under a key that is already taken."""

    def __init__(self, key: "StoreKey") -> None:
        super().__init__("DocumentExists", f"{key.kind} {key.id} already exists")
        self.key = key


@dataclass(frozen=True)
class StoreKey:
    kind: str
    id: int

    def __post_init__(self) -> None:
        if not isinstance(self.id, int) or isinstance(self.id, bool) or self.id < 1:
            raise ValueError(f"Store ids are positive integers, got {self.id!r}")

    @classmethod
    def parse(cls, kind: str, raw: str | int) -> StoreKey | None:
        """Build a key from a path parameter. Returns None for anything that is not a positive int."""
        try:
            value = int(str(raw).strip(), 10)
        except (TypeError, ValueError):
            return None
        if value < 1:
            return None
        return cls(kind, value)


def key_equals(a: StoreKey | None, b: StoreKey | None) -> bool:
    """Two keys denote the same document iff kind and numeric id both match."""
    if a is None or b is None:
        return False
    return a.kind == b.kind and a.id == b.id


@dataclass
class Entity:
    key: StoreKey
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Query:
    kind: str
    filters: tuple[tuple[str, Any], ...] = ()
    offset: int = 0
    limit: int | None = None

    def where(self, name: str, value: Any) -> Query:
        return replace(self, filters=self.filters + ((name, value),))

    def window(self, offset: int, limit: int | None) -> Query:
        return replace(self, offset=max(0, offset), limit=limit)

    def matches(self, data: dict[str, Any]) -> bool:
        return all(data.get(name) == value for name, value in self.filters)


class DocumentStore(Protocol):
    def allocate_key(self, kind: str) -> StoreKey:
        ...

    def get(self, key: StoreKey) -> Entity | None:
        ...

    def insert(self, entity: Entity) -> None:
        ...

    def update(self, entity: Entity) -> None:
        ...

    def delete(self, key: StoreKey) -> None:
        ...

    def run_query(self, query: Query) -> list[Entity]:
        ...

    def count(self, query: Query) -> int:
        ...
