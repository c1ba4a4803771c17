"""
DynamoDB repository using a single-table design.

Item layout (PK / SK):
    USER#<user_id> / FLOW#<yyyy-MM-dd>   flow event, one per user and day
    USER#<user_id> / CYCLE#<cycle_id>    cycle
    USER#<user_id> / SETTINGS            user settings
    FLOWID#<id> / OWNER                  pointer from event id to its user and date
    CYCLEID#<id> / OWNER                 pointer from cycle id to its user

Transactions keep an undo journal of the items each write replaced and
restore them in reverse order when the block raises.
"""
import threading
from contextlib import contextmanager
from datetime import date
from functools import wraps
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import botocore.exceptions
from aws_lambda_powertools import Logger
from boto3.dynamodb.conditions import Key

from flowtracker.models.cycle import Cycle
from flowtracker.models.flow import FlowEvent, FlowIntensity, FlowSource
from flowtracker.models.settings import UserSettings
from flowtracker.repositories.base import Repository
from flowtracker.services.exceptions import RepositoryError, TransactionRollbackError
from flowtracker.utils.dates import format_date
from flowtracker.utils.dynamo import (
    POINTER_SK,
    DynamoDBClient,
    create_cycle_sk,
    create_flow_sk,
    create_pk,
    create_pointer_pk,
    create_settings_sk,
)

logger = Logger()

ItemKey = Dict[str, str]


def translate_client_errors(f: Callable) -> Callable:
    """
    Decorator turning botocore client errors into RepositoryError.

    Args:
        f: Repository method to wrap

    Returns:
        Wrapped method
    """
    @wraps(f)
    def wrapped(self, *args, **kwargs):
        try:
            return f(self, *args, **kwargs)
        except botocore.exceptions.ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            error_msg = e.response.get('Error', {}).get('Message')
            logger.error("DynamoDB access error", extra={
                "operation": f.__name__,
                "error_code": error_code,
                "error_message": error_msg,
            })
            raise RepositoryError(f"DynamoDB error ({error_code}): {error_msg}") from e
    return wrapped


def _event_to_item(event: FlowEvent) -> Dict[str, Any]:
    item = {
        "PK": create_pk(event.user_id),
        "SK": create_flow_sk(format_date(event.date)),
        "id": event.id,
        "user_id": event.user_id,
        "date": format_date(event.date),
        "intensity": event.intensity.value,
        "source": event.source.value,
    }
    if event.cycle_id is not None:
        item["cycle_id"] = event.cycle_id
    return item


def _item_to_event(item: Dict[str, Any]) -> FlowEvent:
    return FlowEvent(
        id=item["id"],
        user_id=item["user_id"],
        cycle_id=item.get("cycle_id"),
        date=item["date"],
        intensity=FlowIntensity(item["intensity"]),
        source=FlowSource(item.get("source", FlowSource.USER.value)),
    )


def _cycle_to_item(cycle: Cycle) -> Dict[str, Any]:
    item = {
        "PK": create_pk(cycle.user_id),
        "SK": create_cycle_sk(cycle.id),
        "id": cycle.id,
        "user_id": cycle.user_id,
        "start_date": format_date(cycle.start_date),
    }
    if cycle.end_date is not None:
        item["end_date"] = format_date(cycle.end_date)
    if cycle.notes is not None:
        item["notes"] = cycle.notes
    return item


def _item_to_cycle(item: Dict[str, Any]) -> Cycle:
    return Cycle(
        id=item["id"],
        user_id=item["user_id"],
        start_date=item["start_date"],
        end_date=item.get("end_date"),
        notes=item.get("notes"),
    )


def _pointer_key(kind: str, item_id: str) -> ItemKey:
    return {"PK": create_pointer_pk(kind, item_id), "SK": POINTER_SK}


class DynamoRepository(Repository):
    """Repository backed by the tracker DynamoDB table."""

    def __init__(self, dynamo: DynamoDBClient):
        self.dynamo = dynamo
        self._local = threading.local()

    # -- low level writes, journaled inside transactions --

    @property
    def _journal(self) -> Optional[List[Tuple[ItemKey, Optional[Dict[str, Any]]]]]:
        return getattr(self._local, "journal", None)

    def _remember(self, key: ItemKey) -> None:
        if self._journal is not None:
            self._journal.append((key, self.dynamo.get_item(key)))

    def _write(self, item: Dict[str, Any]) -> None:
        self._remember({"PK": item["PK"], "SK": item["SK"]})
        self.dynamo.put_item(item)

    def _remove(self, key: ItemKey) -> None:
        self._remember(key)
        self.dynamo.delete_item(key)

    # -- flow events --

    @translate_client_errors
    def list_flow_events(
        self,
        user_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[FlowEvent]:
        if start is not None and end is not None:
            condition = Key("SK").between(
                create_flow_sk(format_date(start)), create_flow_sk(format_date(end))
            )
        elif start is not None:
            condition = Key("SK").between(create_flow_sk(format_date(start)), create_flow_sk("9999-12-31"))
        elif end is not None:
            condition = Key("SK").between(create_flow_sk("0000-01-01"), create_flow_sk(format_date(end)))
        else:
            condition = Key("SK").begins_with("FLOW#")

        items = self.dynamo.query_items(
            partition_key="PK",
            partition_value=create_pk(user_id),
            sort_key_condition=condition
        )
        return sorted((_item_to_event(i) for i in items), key=lambda e: e.date)

    @translate_client_errors
    def get_flow_event(self, user_id: str, day: date) -> Optional[FlowEvent]:
        item = self.dynamo.get_item({
            "PK": create_pk(user_id),
            "SK": create_flow_sk(format_date(day))
        })
        return _item_to_event(item) if item else None

    @translate_client_errors
    def put_flow_event(self, event: FlowEvent) -> FlowEvent:
        item = _event_to_item(event)
        existing = self.dynamo.get_item({"PK": item["PK"], "SK": item["SK"]})
        if existing and existing["id"] != event.id:
            self._remove(_pointer_key("FLOW", existing["id"]))

        self._write(item)
        self._write({
            **_pointer_key("FLOW", event.id),
            "user_id": event.user_id,
            "date": item["date"],
        })
        return event

    @translate_client_errors
    def delete_flow_event(self, event_id: str) -> bool:
        pointer_key = _pointer_key("FLOW", event_id)
        pointer = self.dynamo.get_item(pointer_key)
        if not pointer:
            return False

        event_key = {
            "PK": create_pk(pointer["user_id"]),
            "SK": create_flow_sk(pointer["date"])
        }
        item = self.dynamo.get_item(event_key)
        if item and item["id"] == event_id:
            self._remove(event_key)
        self._remove(pointer_key)
        return True

    # -- cycles --

    @translate_client_errors
    def list_cycles(self, user_id: str) -> List[Cycle]:
        items = self.dynamo.query_items(
            partition_key="PK",
            partition_value=create_pk(user_id),
            sort_key_condition=Key("SK").begins_with("CYCLE#")
        )
        return [_item_to_cycle(i) for i in items]

    def _cycle_key(self, cycle_id: str) -> Optional[ItemKey]:
        pointer = self.dynamo.get_item(_pointer_key("CYCLE", cycle_id))
        if not pointer:
            return None
        return {"PK": create_pk(pointer["user_id"]), "SK": create_cycle_sk(cycle_id)}

    @translate_client_errors
    def get_cycle(self, cycle_id: str) -> Optional[Cycle]:
        key = self._cycle_key(cycle_id)
        if key is None:
            return None
        item = self.dynamo.get_item(key)
        return _item_to_cycle(item) if item else None

    @translate_client_errors
    def create_cycle(self, cycle: Cycle) -> Cycle:
        self._write(_cycle_to_item(cycle))
        self._write({**_pointer_key("CYCLE", cycle.id), "user_id": cycle.user_id})
        return cycle

    @translate_client_errors
    def update_cycle(self, cycle_id: str, patch: Dict[str, Any]) -> Optional[Cycle]:
        cycle = self.get_cycle(cycle_id)
        if cycle is None:
            return None
        updated = Cycle(**{**cycle.model_dump(), **patch})
        self._write(_cycle_to_item(updated))
        return updated

    @translate_client_errors
    def delete_cycle(self, cycle_id: str) -> bool:
        key = self._cycle_key(cycle_id)
        if key is None:
            return False
        self._remove(key)
        self._remove(_pointer_key("CYCLE", cycle_id))
        return True

    # -- settings --

    @translate_client_errors
    def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        item = self.dynamo.get_item({"PK": create_pk(user_id), "SK": create_settings_sk()})
        if not item:
            return None
        return UserSettings(
            user_id=user_id,
            cycle_length=int(item["cycle_length"]) if item.get("cycle_length") is not None else None,
            period_length=int(item["period_length"]) if item.get("period_length") is not None else None,
        )

    @translate_client_errors
    def put_user_settings(self, settings: UserSettings) -> UserSettings:
        item = {
            "PK": create_pk(settings.user_id),
            "SK": create_settings_sk(),
            "user_id": settings.user_id,
        }
        if settings.cycle_length is not None:
            item["cycle_length"] = settings.cycle_length
        if settings.period_length is not None:
            item["period_length"] = settings.period_length
        self._write(item)
        return settings

    # -- transactions --

    @contextmanager
    def transaction(self) -> Iterator["DynamoRepository"]:
        if self._journal is not None:
            # Nested blocks join the outer transaction
            yield self
            return

        self._local.journal = []
        try:
            yield self
        except BaseException:
            journal = self._local.journal
            self._local.journal = None
            self._rollback(journal)
            raise
        finally:
            self._local.journal = None

    def _rollback(self, journal: List[Tuple[ItemKey, Optional[Dict[str, Any]]]]) -> None:
        logger.warning("Rolling back DynamoDB transaction", extra={"writes": len(journal)})
        try:
            for key, previous in reversed(journal):
                if previous is None:
                    self.dynamo.delete_item(key)
                else:
                    self.dynamo.put_item(previous)
        except botocore.exceptions.ClientError as e:
            raise TransactionRollbackError("Failed to undo DynamoDB writes") from e
