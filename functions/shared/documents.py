"""
Document store over DynamoDB.

Each collection is one table keyed by a string `pk` (the document id).
Writes understand two directives:

- SERVER_TIMESTAMP: replaced with the current UTC time (ISO-8601).
- ArrayUnion(values): merged into a string set with DynamoDB ADD, so
  repeated or concurrent unions never duplicate a value.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import DecimalException
from typing import Any, Iterable, Optional

from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from .errors import PersistenceError

logger = logging.getLogger(__name__)

# Raised by boto3 while serializing floats, NaN/Infinity or numbers
# beyond DynamoDB's 38 digits of precision
SERIALIZATION_ERRORS = (TypeError, DecimalException)

_serializer = TypeSerializer()


def is_storable(value: Any) -> bool:
    """Whether DynamoDB can hold the value exactly as given."""
    try:
        _serializer.serialize(value)
    except SERIALIZATION_ERRORS:
        return False
    return True


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class ArrayUnion:
    """Write directive: add values to a set-valued field."""

    def __init__(self, values: Iterable[str]):
        self.values = frozenset(v for v in values if isinstance(v, str) and v)

    def __repr__(self) -> str:
        return f"ArrayUnion({sorted(self.values)!r})"


@dataclass
class Document:
    """A stored document: its id plus the remaining fields."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)


_QUERY_OPS = {
    "==": "eq",
    "!=": "ne",
    "<": "lt",
    "<=": "lte",
    ">": "gt",
    ">=": "gte",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _resolve(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return _now_iso()
    if isinstance(value, ArrayUnion):
        return set(value.values)
    return value


def _build_item(doc_id: str, fields: dict) -> dict:
    item = {"pk": doc_id}
    for name, value in fields.items():
        resolved = _resolve(value)
        # DynamoDB cannot store empty sets
        if isinstance(resolved, set) and not resolved:
            continue
        item[name] = resolved
    return item


def _to_document(item: dict) -> Document:
    data = dict(item)
    doc_id = data.pop("pk")
    return Document(id=doc_id, data=data)


class DocumentStore:
    """Collection-oriented access to the billing tables.

    Args:
        dynamodb: boto3 DynamoDB resource
        tables: mapping of collection name -> table name
    """

    def __init__(self, dynamodb, tables: dict[str, str]):
        self._dynamodb = dynamodb
        self._tables = dict(tables)

    def table(self, collection: str):
        try:
            table_name = self._tables[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None
        return self._dynamodb.Table(table_name)

    def get(self, collection: str, doc_id: str, consistent: bool = False) -> Optional[Document]:
        """Fetch one document, or None if it does not exist.

        With consistent the read reflects every write acknowledged before it.
        """
        try:
            response = self.table(collection).get_item(Key={"pk": doc_id}, ConsistentRead=consistent)
        except ClientError as e:
            raise PersistenceError(f"Failed to read {collection}/{doc_id}: {e}", "get") from e
        item = response.get("Item")
        return _to_document(item) if item else None

    def set(self, collection: str, doc_id: str, fields: dict, merge: bool = False) -> None:
        """Write a document.

        Without merge the document is replaced. With merge only the given
        fields change; every other attribute on the item is preserved.
        """
        if not merge:
            self._put(collection, _build_item(doc_id, fields))
            return

        set_parts = []
        add_parts = []
        names = {}
        values = {}
        for i, (name, value) in enumerate(fields.items()):
            if isinstance(value, ArrayUnion) and not value.values:
                continue
            names[f"#f{i}"] = name
            if isinstance(value, ArrayUnion):
                add_parts.append(f"#f{i} :v{i}")
            else:
                set_parts.append(f"#f{i} = :v{i}")
            values[f":v{i}"] = _resolve(value)

        if not set_parts and not add_parts:
            return

        expr_parts = []
        if set_parts:
            expr_parts.append("SET " + ", ".join(set_parts))
        if add_parts:
            expr_parts.append("ADD " + ", ".join(add_parts))

        try:
            self.table(collection).update_item(
                Key={"pk": doc_id},
                UpdateExpression=" ".join(expr_parts),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            raise PersistenceError(f"Failed to update {collection}/{doc_id}: {e}", "set") from e
        except SERIALIZATION_ERRORS as e:
            raise PersistenceError(f"Cannot store {collection}/{doc_id}: {e}", "set") from e

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        """Merge fields into an existing document."""
        self.set(collection, doc_id, fields, merge=True)

    def create(self, collection: str, doc_id: str, fields: dict) -> bool:
        """Create a document only if the id is unused.

        Returns:
            True if created, False if a document already existed.
        """
        item = _build_item(doc_id, fields)
        try:
            self.table(collection).put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(pk)",
            )
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise PersistenceError(f"Failed to create {collection}/{doc_id}: {e}", "create") from e
        except SERIALIZATION_ERRORS as e:
            raise PersistenceError(f"Cannot store {collection}/{doc_id}: {e}", "create") from e

    def add(self, collection: str, fields: dict) -> str:
        """Insert a document under a generated id and return the id."""
        doc_id = uuid.uuid4().hex
        self._put(collection, _build_item(doc_id, fields))
        return doc_id

    def delete(self, collection: str, doc_id: str) -> None:
        try:
            self.table(collection).delete_item(Key={"pk": doc_id})
        except ClientError as e:
            raise PersistenceError(f"Failed to delete {collection}/{doc_id}: {e}", "delete") from e

    def query(
        self,
        collection: str,
        field_name: str,
        op: str,
        value: Any,
        index_name: Optional[str] = None,
    ) -> list[Document]:
        """Find documents where `field_name op value`.

        Equality lookups can go through a GSI keyed on the field; anything
        else falls back to a filtered scan. Both paths follow pagination.
        """
        try:
            method = _QUERY_OPS[op]
        except KeyError:
            raise ValueError(f"Unsupported query operator: {op}") from None

        table = self.table(collection)
        if index_name:
            if op != "==":
                raise ValueError("Index queries only support equality")
            kwargs = {
                "IndexName": index_name,
                "KeyConditionExpression": Key(field_name).eq(value),
            }
            fetch = table.query
        else:
            kwargs = {"FilterExpression": getattr(Attr(field_name), method)(value)}
            fetch = table.scan

        documents = []
        try:
            response = fetch(**kwargs)
            documents.extend(_to_document(item) for item in response.get("Items", []))

            while "LastEvaluatedKey" in response:
                response = fetch(ExclusiveStartKey=response["LastEvaluatedKey"], **kwargs)
                documents.extend(_to_document(item) for item in response.get("Items", []))
        except ClientError as e:
            raise PersistenceError(f"Failed to query {collection} on {field_name}: {e}", "query") from e

        return documents

    def _put(self, collection: str, item: dict) -> None:
        try:
            self.table(collection).put_item(Item=item)
        except ClientError as e:
            raise PersistenceError(f"Failed to write {collection}/{item['pk']}: {e}", "put") from e
        except SERIALIZATION_ERRORS as e:
            raise PersistenceError(f"Cannot store {collection}/{item['pk']}: {e}", "put") from e
