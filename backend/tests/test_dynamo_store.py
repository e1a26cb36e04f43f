from __future__ import annotations

import boto3
import pytest
from botocore.stub import ANY, Stubber

from cargo_tracker.store.base import (
    BOAT,
    LOAD,
    DocumentExistsError,
    DocumentMissingError,
    DocumentStoreError,
    Entity,
    Query,
    StoreKey,
)
from cargo_tracker.store.dynamo import DynamoDocumentStore, deserialize_item, serialize_item

TABLE = "cargo-tracker"


def _client():
    return boto3.client("dynamodb", region_name="us-east-1")


def _boat_item(boat_id: int, name: str, owner: str = "u1", loads: list[int] | None = None) -> dict:
    return {
        "kind": {"S": BOAT},
        "id": {"N": str(boat_id)},
        "name": {"S": name},
        "type": {"S": "Catamaran"},
        "length": {"N": "28"},
        "owner": {"S": owner},
        "loads": {"L": [{"M": {"kind": {"S": LOAD}, "id": {"N": str(i)}}} for i in (loads or [])]},
    }


def test_serialize_round_trips_keys_and_numbers():
    entity = Entity(
        key=StoreKey(BOAT, 3),
        data={"name": "Sea Witch", "length": 28, "loads": [StoreKey(LOAD, 9)], "owner": "u1"},
    )

    item = serialize_item(entity)

    assert item["kind"] == {"S": BOAT}
    assert item["id"] == {"N": "3"}
    assert item["loads"] == {"L": [{"M": {"kind": {"S": LOAD}, "id": {"N": "9"}}}]}
    restored = deserialize_item(item)
    assert restored.key == StoreKey(BOAT, 3)
    assert restored.data["length"] == 28
    assert isinstance(restored.data["length"], int)
    assert restored.data["loads"] == [StoreKey(LOAD, 9)]


def test_null_carrier_survives_serialization():
    entity = Entity(key=StoreKey(LOAD, 1), data={"volume": 5, "carrier": None})

    item = serialize_item(entity)

    assert item["carrier"] == {"NULL": True}
    assert deserialize_item(item).data["carrier"] is None


def test_allocate_key_uses_atomic_counter():
    client = _client()
    store = DynamoDocumentStore(client, TABLE)
    stubber = Stubber(client)
    stubber.add_response(
        "update_item",
        {"Attributes": {"value": {"N": "42"}}},
        {
            "TableName": TABLE,
            "Key": {"kind": {"S": "__sequence__#Boat"}, "id": {"N": "0"}},
            "UpdateExpression": "ADD #value :one",
            "ExpressionAttributeNames": {"#value": "value"},
            "ExpressionAttributeValues": {":one": {"N": "1"}},
            "ReturnValues": "UPDATED_NEW",
        },
    )

    with stubber:
        key = store.allocate_key(BOAT)

    assert key == StoreKey(BOAT, 42)
    stubber.assert_no_pending_responses()


def test_get_returns_entity_or_none():
    client = _client()
    store = DynamoDocumentStore(client, TABLE)
    stubber = Stubber(client)
    stubber.add_response(
        "get_item",
        {"Item": _boat_item(1, "Sea Witch", loads=[4])},
        {"TableName": TABLE, "Key": {"kind": {"S": BOAT}, "id": {"N": "1"}}, "ConsistentRead": True},
    )
    stubber.add_response("get_item", {}, {"TableName": TABLE, "Key": ANY, "ConsistentRead": True})

    with stubber:
        found = store.get(StoreKey(BOAT, 1))
        missing = store.get(StoreKey(BOAT, 2))

    assert found.data["name"] == "Sea Witch"
    assert found.data["loads"] == [StoreKey(LOAD, 4)]
    assert missing is None


def test_insert_refuses_existing_key():
    client = _client()
    store = DynamoDocumentStore(client, TABLE)
    stubber = Stubber(client)
    stubber.add_client_error("put_item", service_error_code="ConditionalCheckFailedException")

    with stubber, pytest.raises(DocumentExistsError):
        store.insert(Entity(key=StoreKey(BOAT, 1), data={"name": "Sea Witch"}))


def test_update_refuses_missing_document():
    client = _client()
    store = DynamoDocumentStore(client, TABLE)
    stubber = Stubber(client)
    stubber.add_client_error("put_item", service_error_code="ConditionalCheckFailedException")

    with stubber, pytest.raises(DocumentMissingError):
        store.update(Entity(key=StoreKey(LOAD, 7), data={"volume": 1}))


def test_service_errors_become_store_errors():
    client = _client()
    store = DynamoDocumentStore(client, TABLE)
    stubber = Stubber(client)
    stubber.add_client_error(
        "delete_item",
        service_error_code="ProvisionedThroughputExceededException",
        service_message="Slow down",
    )

    with stubber, pytest.raises(DocumentStoreError) as excinfo:
        store.delete(StoreKey(BOAT, 1))

    assert excinfo.value.code == "ProvisionedThroughputExceededException"


def test_query_windows_across_pages():
    client = _client()
    store = DynamoDocumentStore(client, TABLE)
    stubber = Stubber(client)
    expected = {
        "TableName": TABLE,
        "KeyConditionExpression": "#kind = :kind",
        "ExpressionAttributeNames": {"#kind": "kind", "#f0": "owner"},
        "ExpressionAttributeValues": {":kind": {"S": BOAT}, ":f0": {"S": "u1"}},
        "FilterExpression": "#f0 = :f0",
        "ConsistentRead": True,
    }
    stubber.add_response(
        "query",
        {
            "Items": [_boat_item(1, "A"), _boat_item(2, "B")],
            "LastEvaluatedKey": {"kind": {"S": BOAT}, "id": {"N": "2"}},
        },
        expected,
    )
    stubber.add_response(
        "query",
        {"Items": [_boat_item(3, "C"), _boat_item(4, "D")]},
        {**expected, "ExclusiveStartKey": {"kind": {"S": BOAT}, "id": {"N": "2"}}},
    )

    with stubber:
        page = store.run_query(Query(BOAT).where("owner", "u1").window(1, 2))

    assert [e.data["name"] for e in page] == ["B", "C"]


def test_query_stops_reading_once_window_is_full():
    client = _client()
    store = DynamoDocumentStore(client, TABLE)
    stubber = Stubber(client)
    stubber.add_response(
        "query",
        {
            "Items": [_boat_item(1, "A"), _boat_item(2, "B")],
            "LastEvaluatedKey": {"kind": {"S": BOAT}, "id": {"N": "2"}},
        },
    )

    with stubber:
        page = store.run_query(Query(BOAT).window(0, 2))

    assert [e.key.id for e in page] == [1, 2]
    stubber.assert_no_pending_responses()


def test_count_sums_pages():
    client = _client()
    store = DynamoDocumentStore(client, TABLE)
    stubber = Stubber(client)
    stubber.add_response(
        "query",
        {"Count": 3, "LastEvaluatedKey": {"kind": {"S": LOAD}, "id": {"N": "3"}}},
    )
    stubber.add_response("query", {"Count": 2})

    with stubber:
        total = store.count(Query(LOAD))

    assert total == 5


def test_query_filter_on_key_value():
    client = _client()
    store = DynamoDocumentStore(client, TABLE)
    stubber = Stubber(client)
    stubber.add_response(
        "query",
        {"Items": []},
        {
            "TableName": TABLE,
            "KeyConditionExpression": "#kind = :kind",
            "ExpressionAttributeNames": {"#kind": "kind", "#f0": "carrier"},
            "ExpressionAttributeValues": {
                ":kind": {"S": LOAD},
                ":f0": {"M": {"kind": {"S": BOAT}, "id": {"N": "5"}}},
            },
            "FilterExpression": "#f0 = :f0",
            "ConsistentRead": True,
        },
    )

    with stubber:
        assert store.run_query(Query(LOAD).where("carrier", StoreKey(BOAT, 5))) == []


@pytest.mark.parametrize("length", [10**39, 1.5])
def test_unstorable_values_become_store_errors(length):
    client = _client()
    store = DynamoDocumentStore(client, TABLE)
    entity = Entity(key=StoreKey(BOAT, 1), data={"name": "Sea Witch", "length": length})

    with Stubber(client), pytest.raises(DocumentStoreError) as excinfo:
        store.insert(entity)

    assert excinfo.value.code == "SerializationError"
    with pytest.raises(DocumentStoreError):
        serialize_item(entity)
