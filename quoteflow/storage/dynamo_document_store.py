"""DynamoDB-backed document store.

Each logical collection maps to one table keyed by ``id``. Ordered queries go
through a global secondary index named ``<field>-created-index`` whose
partition key is the first equality predicate and whose sort key is the ISO
``created`` string; remaining predicates become a filter expression.
"""

import logging
import threading
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from ..errors import NotFoundError, StoreError
from .base import DocumentStore, Listener, StartAfter, Subscription
from .instant import to_wire

logger = logging.getLogger(__name__)


def _to_dynamo(value: Any) -> Any:
    """DynamoDB rejects floats; store them as Decimal."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    return value


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value


class DynamoDocumentStore(DocumentStore):
    """Document store over one DynamoDB table per collection."""

    def __init__(
        self,
        table_names: Dict[str, str],
        region: Optional[str] = None,
        dynamodb=None,
        poll_interval: float = 5.0,
    ):
        """Initialize with table names.

        Args:
            table_names: Mapping of logical collection name to table name
            region: AWS region
            dynamodb: Optional DynamoDB resource (for testing)
            poll_interval: Seconds between re-queries for live listeners
        """
        self.dynamodb = dynamodb or boto3.resource("dynamodb", region_name=region)
        self.table_names = dict(table_names)
        self.poll_interval = poll_interval
        self._tables: Dict[str, Any] = {}

    def _table(self, collection: str):
        if collection not in self._tables:
            self._tables[collection] = self.dynamodb.Table(self.table_names.get(collection, collection))
        return self._tables[collection]

    def get(self, collection: str, item_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self._table(collection).get_item(Key={"id": item_id}, ConsistentRead=True)
        except ClientError as e:
            logger.error(f"Error reading {collection}/{item_id}: {str(e)}")
            raise StoreError(f"Failed to read {collection}/{item_id}", original_error=e)

        if "Item" not in response:
            return None
        return _from_dynamo(response["Item"])

    def put(self, collection: str, item_id: str, item: Dict[str, Any]) -> None:
        record = dict(item)
        record["id"] = item_id
        try:
            self._table(collection).put_item(Item=_to_dynamo(record))
            logger.info(f"Put {collection}/{item_id}")
        except ClientError as e:
            logger.error(f"Error writing {collection}/{item_id}: {str(e)}")
            raise StoreError(f"Failed to write {collection}/{item_id}", original_error=e)

    def update_fields(self, collection: str, item_id: str, fields: Dict[str, Any]) -> None:
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        assignments = []

        for i, (path, value) in enumerate(fields.items()):
            parts = path.split(".", 1)
            placeholders = []
            for j, part in enumerate(parts):
                name = f"#f{i}_{j}"
                names[name] = part
                placeholders.append(name)
            values[f":v{i}"] = _to_dynamo(value)
            assignments.append(f"{'.'.join(placeholders)} = :v{i}")

        try:
            self._table(collection).update_item(
                Key={"id": item_id},
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise NotFoundError(f"{collection}/{item_id} not found", identifier=item_id)
            logger.error(f"Error updating {collection}/{item_id}: {str(e)}")
            raise StoreError(f"Failed to update {collection}/{item_id}", original_error=e)

    def query(
        self,
        collection: str,
        where: Dict[str, Any],
        limit: Optional[int] = None,
        start_after: Optional[StartAfter] = None,
    ) -> List[Dict[str, Any]]:
        if not where:
            raise StoreError("DynamoDB queries need at least one equality predicate")

        partition_field, partition_value = next(iter(where.items()))
        kwargs: Dict[str, Any] = {
            "IndexName": f"{partition_field}-created-index",
            "KeyConditionExpression": Key(partition_field).eq(partition_value),
            "ScanIndexForward": False,
        }

        filters = None
        for field_name, value in list(where.items())[1:]:
            condition = Attr(field_name).eq(value)
            filters = condition if filters is None else filters & condition
        if filters is not None:
            kwargs["FilterExpression"] = filters
        if limit is not None:
            kwargs["Limit"] = limit
        if start_after is not None:
            created, last_id = start_after
            kwargs["ExclusiveStartKey"] = {
                "id": last_id,
                partition_field: partition_value,
                "created": to_wire(created),
            }

        items: List[Dict[str, Any]] = []
        try:
            # Limit applies before the filter expression, so keep paging
            while True:
                response = self._table(collection).query(**kwargs)
                items.extend(_from_dynamo(item) for item in response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key or (limit is not None and len(items) >= limit):
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Error querying {collection} with {where}: {str(e)}")
            raise StoreError(f"Failed to query {collection}", original_error=e)

        return items[:limit] if limit is not None else items

    def listen(
        self,
        collection: str,
        where: Dict[str, Any],
        callback: Listener,
        limit: Optional[int] = None,
        start_after: Optional[StartAfter] = None,
    ) -> Subscription:
        """Poll the query and deliver results whenever they differ from the last delivery."""
        stop = threading.Event()
        initial = self.query(collection, where, limit=limit, start_after=start_after)
        callback(initial)

        def _poll():
            last = initial
            while not stop.wait(self.poll_interval):
                try:
                    current = self.query(collection, where, limit=limit, start_after=start_after)
                except StoreError as e:
                    logger.warning(f"Live query on {collection} failed, retrying next tick: {e}")
                    continue
                if current != last:
                    last = current
                    callback(current)

        poller = threading.Thread(target=_poll, name=f"listen-{collection}", daemon=True)
        poller.start()
        return Subscription(stop.set, description=f"{collection}:{where}")
