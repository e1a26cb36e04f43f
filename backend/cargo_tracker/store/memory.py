from __future__ import annotations

import copy
import threading
from collections import defaultdict

from cargo_tracker.store.base import (
    DocumentExistsError,
    DocumentMissingError,
    Entity,
    Query,
    StoreKey,
)


class MemoryDocumentStore:
    """
    Process-local store used for local development and the test-suite.

    Mirrors the DynamoDB backend's observable behaviour: per-kind id sequences,
    results ordered by id, copies handed out so callers never share state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._docs: dict[str, dict[int, dict]] = defaultdict(dict)
        self._sequences: dict[str, int] = defaultdict(int)

    def allocate_key(self, kind: str) -> StoreKey:
        with self._lock:
            self._sequences[kind] += 1
            return StoreKey(kind, self._sequences[kind])

    def get(self, key: StoreKey) -> Entity | None:
        with self._lock:
            data = self._docs[key.kind].get(key.id)
            if data is None:
                return None
            return Entity(key=key, data=copy.deepcopy(data))

    def insert(self, entity: Entity) -> None:
        with self._lock:
            if entity.key.id in self._docs[entity.key.kind]:
                raise DocumentExistsError(entity.key)
            self._docs[entity.key.kind][entity.key.id] = copy.deepcopy(entity.data)

    def update(self, entity: Entity) -> None:
        with self._lock:
            if entity.key.id not in self._docs[entity.key.kind]:
                raise DocumentMissingError(entity.key)
            self._docs[entity.key.kind][entity.key.id] = copy.deepcopy(entity.data)

    def delete(self, key: StoreKey) -> None:
        with self._lock:
            self._docs[key.kind].pop(key.id, None)

    def run_query(self, query: Query) -> list[Entity]:
        with self._lock:
            matched = [
                Entity(key=StoreKey(query.kind, doc_id), data=copy.deepcopy(data))
                for doc_id, data in sorted(self._docs[query.kind].items())
                if query.matches(data)
            ]
        end = None if query.limit is None else query.offset + query.limit
        return matched[query.offset:end]

    def count(self, query: Query) -> int:
        return len(self.run_query(query.window(0, None)))
