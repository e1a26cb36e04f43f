from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterator

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from cargo_tracker.store.base import (
    DocumentExistsError,
    DocumentMissingError,
    DocumentStoreError,
    Entity,
    Query,
    StoreKey,
)

logger = logging.getLogger(__name__)

SEQUENCE_PREFIX = "__sequence__#"

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _to_wire(value: Any) -> Any:
    if isinstance(value, StoreKey):
        return {"kind": value.kind, "id": value.id}
    if isinstance(value, list):
        return [_to_wire(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_wire(v) for k, v in value.items()}
    return value


def _from_wire(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, list):
        return [_from_wire(v) for v in value]
    if isinstance(value, dict):
        if set(value) == {"kind", "id"} and isinstance(value["kind"], str):
            return StoreKey(value["kind"], int(value["id"]))
        return {k: _from_wire(v) for k, v in value.items()}
    return value


def _serialize_value(value: Any) -> dict[str, Any]:
    try:
        return _serializer.serialize(_to_wire(value))
    except (TypeError, ArithmeticError) as exc:
        # Decimal context errors (Inexact, Rounded) land here for numbers past 38 digits.
        raise DocumentStoreError("SerializationError", f"Cannot serialize value: {exc!r}") from exc


def serialize_item(entity: Entity) -> dict[str, Any]:
    item = {name: _serialize_value(v) for name, v in entity.data.items()}
    item["kind"] = {"S": entity.key.kind}
    item["id"] = {"N": str(entity.key.id)}
    return item


def deserialize_item(item: dict[str, Any]) -> Entity:
    key = StoreKey(item["kind"]["S"], int(item["id"]["N"]))
    data = {
        name: _from_wire(_deserializer.deserialize(raw))
        for name, raw in item.items()
        if name not in ("kind", "id")
    }
    return Entity(key=key, data=data)


def _translate_error(exc: ClientError) -> DocumentStoreError:
    error = exc.response.get("Error", {})
    code = error.get("Code", "DynamoDBError")
    message = error.get("Message", str(exc))
    return DocumentStoreError(code=code, message=message)


def _is_condition_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


@dataclass(frozen=True)
class DynamoDocumentStore:
    """
    Single-table DynamoDB backend.

    Partition key ``kind`` (S), sort key ``id`` (N). Every operation touches one
    item, so the only atomicity on offer is per document.
    """

    client: BaseClient
    table_name: str

    def allocate_key(self, kind: str) -> StoreKey:
        try:
            response = self.client.update_item(
                TableName=self.table_name,
                Key={"kind": {"S": f"{SEQUENCE_PREFIX}{kind}"}, "id": {"N": "0"}},
                UpdateExpression="ADD #value :one",
                ExpressionAttributeNames={"#value": "value"},
                ExpressionAttributeValues={":one": {"N": "1"}},
                ReturnValues="UPDATED_NEW",
            )
        except ClientError as exc:
            raise _translate_error(exc) from exc
        except BotoCoreError as exc:
            raise DocumentStoreError("Unavailable", str(exc)) from exc
        return StoreKey(kind, int(response["Attributes"]["value"]["N"]))

    def get(self, key: StoreKey) -> Entity | None:
        try:
            response = self.client.get_item(
                TableName=self.table_name,
                Key={"kind": {"S": key.kind}, "id": {"N": str(key.id)}},
                ConsistentRead=True,
            )
        except ClientError as exc:
            raise _translate_error(exc) from exc
        except BotoCoreError as exc:
            raise DocumentStoreError("Unavailable", str(exc)) from exc
        item = response.get("Item")
        if not item:
            return None
        return deserialize_item(item)

    def insert(self, entity: Entity) -> None:
        try:
            self.client.put_item(
                TableName=self.table_name,
                Item=serialize_item(entity),
                ConditionExpression="attribute_not_exists(#id)",
                ExpressionAttributeNames={"#id": "id"},
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise DocumentExistsError(entity.key) from exc
            raise _translate_error(exc) from exc
        except BotoCoreError as exc:
            raise DocumentStoreError("Unavailable", str(exc)) from exc

    def update(self, entity: Entity) -> None:
        try:
            self.client.put_item(
                TableName=self.table_name,
                Item=serialize_item(entity),
                ConditionExpression="attribute_exists(#id)",
                ExpressionAttributeNames={"#id": "id"},
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise DocumentMissingError(entity.key) from exc
            raise _translate_error(exc) from exc
        except BotoCoreError as exc:
            raise DocumentStoreError("Unavailable", str(exc)) from exc

    def delete(self, key: StoreKey) -> None:
        try:
            self.client.delete_item(
                TableName=self.table_name,
                Key={"kind": {"S": key.kind}, "id": {"N": str(key.id)}},
            )
        except ClientError as exc:
            raise _translate_error(exc) from exc
        except BotoCoreError as exc:
            raise DocumentStoreError("Unavailable", str(exc)) from exc

    def run_query(self, query: Query) -> list[Entity]:
        wanted = None if query.limit is None else query.offset + query.limit
        results: list[Entity] = []
        for item in self._iter_items(query):
            results.append(deserialize_item(item))
            if wanted is not None and len(results) >= wanted:
                break
        return results[query.offset:wanted]

    def count(self, query: Query) -> int:
        total = 0
        for page in self._iter_pages(query, select_count=True):
            total += int(page.get("Count", 0))
        return total

    def _iter_items(self, query: Query) -> Iterator[dict[str, Any]]:
        for page in self._iter_pages(query):
            yield from page.get("Items", [])

    def _iter_pages(self, query: Query, *, select_count: bool = False) -> Iterator[dict[str, Any]]:
        params = self._query_params(query)
        if select_count:
            params["Select"] = "COUNT"
        while True:
            try:
                page = self.client.query(**params)
            except ClientError as exc:
                raise _translate_error(exc) from exc
            except BotoCoreError as exc:
                raise DocumentStoreError("Unavailable", str(exc)) from exc
            yield page
            last_key = page.get("LastEvaluatedKey")
            if not last_key:
                return
            params["ExclusiveStartKey"] = last_key

    def _query_params(self, query: Query) -> dict[str, Any]:
        names = {"#kind": "kind"}
        values: dict[str, Any] = {":kind": {"S": query.kind}}
        conditions: list[str] = []
        for idx, (name, value) in enumerate(query.filters):
            names[f"#f{idx}"] = name
            values[f":f{idx}"] = _serialize_value(value)
            conditions.append(f"#f{idx} = :f{idx}")

        params: dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": "#kind = :kind",
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
            "ConsistentRead": True,
        }
        if conditions:
            params["FilterExpression"] = " AND ".join(conditions)
        return params


def build_dynamo_store(table_name: str, *, region: str, endpoint_url: str = "") -> DynamoDocumentStore:
    if not table_name:
        raise RuntimeError("DYNAMODB_TABLE is not configured")
    client = boto3.client(
        "dynamodb",
        region_name=region or None,
        endpoint_url=endpoint_url or None,
    )
    logger.info("Using DynamoDB table %s (region=%s)", table_name, region or "default")
    return DynamoDocumentStore(client=client, table_name=table_name)
