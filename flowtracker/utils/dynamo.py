"""
DynamoDB utility functions for data access.
"""
import os
from typing import Dict, List, Optional, Any
import boto3
from boto3.dynamodb.conditions import Key

# Singleton instance
_dynamo_instance = None

def get_dynamo() -> 'DynamoDBClient':
    """
    Get or create singleton DynamoDB client instance.

    Lambda containers reuse the client across invocations. Services never
    call this themselves; the caller builds a ``DynamoRepository`` from it
    and injects the repository.

    Example:
        repository = DynamoRepository(get_dynamo())
        service = CycleTrackerService(repository)

    Returns:
        DynamoDBClient: Singleton instance of DynamoDB client

    Raises:
        EnvironmentError: If TRACKER_TABLE_NAME environment variable is not set
    """
    global _dynamo_instance
    if _dynamo_instance is None:
        try:
            table_name = os.environ['TRACKER_TABLE_NAME']
        except KeyError:
            raise EnvironmentError(
                "TRACKER_TABLE_NAME environment variable not set. "
                "This variable must be set to the DynamoDB table name."
            )
        _dynamo_instance = DynamoDBClient(table_name)
    return _dynamo_instance

class DynamoDBClient:
    """Client for interacting with DynamoDB table."""

    def __init__(self, table_name: str, table=None):
        if table is None:
            table = boto3.resource('dynamodb').Table(table_name)
        self.table = table

    def put_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """
        Put a single item into the table.

        Args:
            item: Dictionary containing item attributes

        Returns:
            Response from DynamoDB
        """
        return self.table.put_item(Item=item)

    def get_item(self, key: Dict[str, str]) -> Optional[Dict[str, Any]]:
        """
        Get a single item from the table.

        Args:
            key: Dictionary containing partition key and sort key

        Returns:
            Item if found, None otherwise
        """
        response = self.table.get_item(Key=key)
        return response.get('Item')

    def query_items(
        self,
        partition_key: str,
        partition_value: str,
        sort_key_condition: Optional[Key] = None
    ) -> List[Dict[str, Any]]:
        """
        Query items using partition key and optional sort key condition.

        Follows pagination until every matching item is read.

        Args:
            partition_key: Name of partition key
            partition_value: Value of partition key
            sort_key_condition: Optional sort key condition

        Returns:
            List of matching items
        """
        key_condition = Key(partition_key).eq(partition_value)
        if sort_key_condition is not None:
            key_condition = key_condition & sort_key_condition

        kwargs = {"KeyConditionExpression": key_condition}
        items = []
        while True:
            response = self.table.query(**kwargs)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def delete_item(self, key: Dict[str, str]) -> Dict[str, Any]:
        """
        Delete an item from the table.

        Args:
            key: Dictionary containing partition key and sort key

        Returns:
            Response from DynamoDB
        """
        return self.table.delete_item(Key=key)

def create_pk(user_id: str) -> str:
    """Create partition key from user ID."""
    return f"USER#{user_id}"

def create_flow_sk(date_str: str) -> str:
    """Create sort key for flow events (one per user and day)."""
    return f"FLOW#{date_str}"

def create_cycle_sk(cycle_id: str) -> str:
    """Create sort key for cycles."""
    return f"CYCLE#{cycle_id}"

def create_settings_sk() -> str:
    """Create sort key for the user's settings item."""
    return "SETTINGS"

def create_pointer_pk(kind: str, item_id: str) -> str:
    """
    Create partition key for an id pointer item.

    Pointer items map a flow event or cycle id back to the owning user's
    partition so records can be fetched and deleted by id alone.

    Args:
        kind: Record kind, "FLOW" or "CYCLE"
        item_id: Record identifier

    Returns:
        Partition key in format "{kind}ID#{item_id}"
    """
    return f"{kind}ID#{item_id}"

POINTER_SK = "OWNER"
