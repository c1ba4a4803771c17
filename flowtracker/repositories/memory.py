"""
In-memory repository.

Used for local runs and tests. Transactions snapshot the whole store and
restore it if the block raises; the store lock is held for the duration of a
transaction so a rollback never discards another thread's writes.
"""
import threading
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterator, List, Optional

from aws_lambda_powertools import Logger

from flowtracker.models.cycle import Cycle
from flowtracker.models.flow import FlowEvent
from flowtracker.models.settings import UserSettings
from flowtracker.repositories.base import Repository

logger = Logger()


class InMemoryRepository(Repository):
    """Dictionary-backed implementation of the repository contract."""

    def __init__(self):
        self._events: Dict[str, FlowEvent] = {}
        self._cycles: Dict[str, Cycle] = {}
        self._settings: Dict[str, UserSettings] = {}
        self._lock = threading.RLock()
        self._depth = 0

    def _find_event(self, user_id: str, day: date) -> Optional[FlowEvent]:
        for event in self._events.values():
            if event.user_id == user_id and event.date == day:
                return event
        return None

    def list_flow_events(
        self,
        user_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[FlowEvent]:
        with self._lock:
            events = [
                e.model_copy() for e in self._events.values()
                if e.user_id == user_id
                and (start is None or e.date >= start)
                and (end is None or e.date <= end)
            ]
        return sorted(events, key=lambda e: e.date)

    def get_flow_event(self, user_id: str, day: date) -> Optional[FlowEvent]:
        with self._lock:
            event = self._find_event(user_id, day)
            return event.model_copy() if event else None

    def put_flow_event(self, event: FlowEvent) -> FlowEvent:
        with self._lock:
            existing = self._find_event(event.user_id, event.date)
            if existing is not None and existing.id != event.id:
                del self._events[existing.id]
            self._events[event.id] = event.model_copy()
        return event

    def delete_flow_event(self, event_id: str) -> bool:
        with self._lock:
            return self._events.pop(event_id, None) is not None

    def list_cycles(self, user_id: str) -> List[Cycle]:
        with self._lock:
            return [c.model_copy() for c in self._cycles.values() if c.user_id == user_id]

    def get_cycle(self, cycle_id: str) -> Optional[Cycle]:
        with self._lock:
            cycle = self._cycles.get(cycle_id)
            return cycle.model_copy() if cycle else None

    def create_cycle(self, cycle: Cycle) -> Cycle:
        with self._lock:
            self._cycles[cycle.id] = cycle.model_copy()
        return cycle

    def update_cycle(self, cycle_id: str, patch: Dict[str, Any]) -> Optional[Cycle]:
        with self._lock:
            cycle = self._cycles.get(cycle_id)
            if cycle is None:
                return None
            # Re-validate so a bad patch cannot store an invalid cycle
            updated = Cycle(**{**cycle.model_dump(), **patch})
            self._cycles[cycle_id] = updated
            return updated.model_copy()

    def delete_cycle(self, cycle_id: str) -> bool:
        with self._lock:
            return self._cycles.pop(cycle_id, None) is not None

    def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        with self._lock:
            settings = self._settings.get(user_id)
            return settings.model_copy() if settings else None

    def put_user_settings(self, settings: UserSettings) -> UserSettings:
        with self._lock:
            self._settings[settings.user_id] = settings.model_copy()
        return settings

    @contextmanager
    def transaction(self) -> Iterator["InMemoryRepository"]:
        with self._lock:
            if self._depth:
                # Nested blocks join the outer transaction
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = (dict(self._events), dict(self._cycles), dict(self._settings))
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._events, self._cycles, self._settings = snapshot
                logger.warning("Rolled back in-memory transaction")
                raise
            finally:
                self._depth = 0
