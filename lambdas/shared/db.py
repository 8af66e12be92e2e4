"""DynamoDB client wrapper for single-table design."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import boto3
from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

logger = Logger(child=True)


def convert_floats_to_decimal(obj: Any) -> Any:
    """Recursively convert floats to Decimal for DynamoDB compatibility.

    DynamoDB does not support Python float types. This function converts
    all floats in nested dicts/lists to Decimal.

    Args:
        obj: Any Python object (dict, list, or primitive)

    Returns:
        The object with all floats converted to Decimal
    """
    if isinstance(obj, float):
        return Decimal(str(obj))
    elif isinstance(obj, dict):
        return {k: convert_floats_to_decimal(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_floats_to_decimal(item) for item in obj]
    return obj


def convert_decimals(obj: Any) -> Any:
    """Recursively convert DynamoDB Decimals back to int or float.

    Args:
        obj: Item or attribute value read from DynamoDB

    Returns:
        The object with integral Decimals as int and the rest as float
    """
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    elif isinstance(obj, dict):
        return {k: convert_decimals(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_decimals(item) for item in obj]
    return obj


class DynamoDBClient:
    """DynamoDB client wrapper with consistent error handling and logging.

    Implements single-table design patterns with PK/SK composite keys.
    Items are returned with Decimals already converted to native numbers.
    """

    def __init__(self, table_name: str) -> None:
        """Initialize with table name.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource("dynamodb")
        self.table = self.dynamodb.Table(table_name)

    def put_item(self, pk: str, sk: str, data: dict[str, Any]) -> dict[str, Any]:
        """Put an item into the table, replacing any existing item.

        Args:
            pk: Partition key value
            sk: Sort key value
            data: Additional attributes to store

        Returns:
            The complete item that was stored
        """
        now = datetime.now(UTC).isoformat()
        item = {
            "PK": pk,
            "SK": sk,
            **convert_floats_to_decimal(data),
            "updated_at": now,
        }

        if "created_at" not in item:
            item["created_at"] = now

        try:
            self.table.put_item(Item=item)
            logger.info("Item stored", extra={"pk": pk, "sk": sk})
            return item
        except ClientError as e:
            logger.error("Failed to put item", extra={"error": str(e), "pk": pk, "sk": sk})
            raise

    def put_item_if(
        self,
        pk: str,
        sk: str,
        data: dict[str, Any],
        condition: str,
        values: dict[str, Any],
    ) -> bool:
        """Put an item only if a condition on the stored item holds.

        Args:
            pk: Partition key value
            sk: Sort key value
            data: Additional attributes to store
            condition: DynamoDB ConditionExpression
            values: ExpressionAttributeValues for the condition

        Returns:
            True if stored, False if the condition failed
        """
        item = {
            "PK": pk,
            "SK": sk,
            **convert_floats_to_decimal(data),
            "updated_at": datetime.now(UTC).isoformat(),
        }
        try:
            self.table.put_item(
                Item=item,
                ConditionExpression=condition,
                ExpressionAttributeValues=convert_floats_to_decimal(values),
            )
            logger.info("Item stored", extra={"pk": pk, "sk": sk})
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.info("Conditional put rejected", extra={"pk": pk, "sk": sk})
                return False
            logger.error("Failed to put item", extra={"error": str(e), "pk": pk, "sk": sk})
            raise

    def get_item(self, pk: str, sk: str) -> dict[str, Any] | None:
        """Get a single item by PK and SK.

        Args:
            pk: Partition key value
            sk: Sort key value

        Returns:
            Item dict or None if not found
        """
        try:
            response = self.table.get_item(Key={"PK": pk, "SK": sk})
            item = response.get("Item")
            if item:
                logger.debug("Item found", extra={"pk": pk, "sk": sk})
                return convert_decimals(item)
            return None
        except ClientError as e:
            logger.error("Failed to get item", extra={"error": str(e), "pk": pk, "sk": sk})
            raise

    def query_by_pk(
        self,
        pk: str,
        sk_prefix: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Query items by partition key with optional SK prefix.

        Items come back in ascending sort-key order.

        Args:
            pk: Partition key value
            sk_prefix: Optional sort key prefix filter
            limit: Maximum items to return

        Returns:
            List of matching items
        """
        try:
            params: dict[str, Any] = {
                "KeyConditionExpression": "PK = :pk",
                "ExpressionAttributeValues": {":pk": pk},
                "Limit": limit,
            }

            if sk_prefix:
                params["KeyConditionExpression"] += " AND begins_with(SK, :sk)"
                params["ExpressionAttributeValues"][":sk"] = sk_prefix

            response = self.table.query(**params)
            items = [convert_decimals(item) for item in response.get("Items", [])]
            logger.debug("Query complete", extra={"pk": pk, "count": len(items)})
            return items
        except ClientError as e:
            logger.error("Failed to query", extra={"error": str(e), "pk": pk})
            raise

    def delete_item(
        self,
        pk: str,
        sk: str,
        condition: str = "attribute_exists(PK)",
        values: dict[str, Any] | None = None,
    ) -> bool:
        """Delete an item by PK and SK.

        Args:
            pk: Partition key value
            sk: Sort key value
            condition: ConditionExpression the stored item must satisfy
            values: ExpressionAttributeValues for the condition

        Returns:
            True if deleted, False if not found or the condition failed
        """
        params: dict[str, Any] = {"Key": {"PK": pk, "SK": sk}, "ConditionExpression": condition}
        if values:
            params["ExpressionAttributeValues"] = values
        try:
            self.table.delete_item(**params)
            logger.info("Item deleted", extra={"pk": pk, "sk": sk})
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.warning("Item not found for delete", extra={"pk": pk, "sk": sk})
                return False
            logger.error("Failed to delete", extra={"error": str(e), "pk": pk, "sk": sk})
            raise

    def delete_by_prefix(self, pk: str, sk_prefix: str, limit: int = 1000) -> int:
        """Delete every item under a partition key whose SK has a prefix.

        Args:
            pk: Partition key value
            sk_prefix: Sort key prefix to match
            limit: Maximum items to delete in one call

        Returns:
            Number of items deleted
        """
        items = self.query_by_pk(pk, sk_prefix=sk_prefix, limit=limit)
        try:
            with self.table.batch_writer() as batch:
                for item in items:
                    batch.delete_item(Key={"PK": item["PK"], "SK": item["SK"]})
        except ClientError as e:
            logger.error(
                "Failed to batch delete",
                extra={"error": str(e), "pk": pk, "sk_prefix": sk_prefix},
            )
            raise
        logger.info(
            "Items deleted by prefix",
            extra={"pk": pk, "sk_prefix": sk_prefix, "count": len(items)},
        )
        return len(items)
