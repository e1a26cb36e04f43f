"""
Document store package.

- base.py: keys, entities, queries and the DocumentStore protocol
- dynamo.py: DynamoDB single-table backend (production)
- memory.py: in-process backend (local dev, tests)
"""
from cargo_tracker.store.base import (
    BOAT,
    LOAD,
    USER,
    DocumentStore,
    DocumentStoreError,
    Entity,
    Query,
    StoreKey,
    key_equals,
)

__all__ = [
    "BOAT",
    "LOAD",
    "USER",
    "DocumentStore",
    "DocumentStoreError",
    "Entity",
    "Query",
    "StoreKey",
    "build_store",
    "key_equals",
]


def build_store(settings) -> DocumentStore:
    if settings.DOCUMENT_STORE == "dynamodb":
        from cargo_tracker.store.dynamo import build_dynamo_store

        return build_dynamo_store(
            settings.DYNAMODB_TABLE,
            region=settings.AWS_REGION,
            endpoint_url=settings.DYNAMODB_ENDPOINT_URL,
        )
    if settings.DOCUMENT_STORE == "memory":
        from cargo_tracker.store.memory import MemoryDocumentStore

        return MemoryDocumentStore()
    raise RuntimeError(f"Unknown DOCUMENT_STORE: {settings.DOCUMENT_STORE!r}")
