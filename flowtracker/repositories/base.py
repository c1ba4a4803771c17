"""
Repository contract consumed by the cycle engine.

Storage backends subclass ``Repository``. The engine only ever talks to this
interface, so swapping the in-memory store for DynamoDB (or anything else)
does not touch the services.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterator, List, Optional

from flowtracker.models.cycle import Cycle
from flowtracker.models.flow import FlowEvent
from flowtracker.models.settings import UserSettings


class Repository(ABC):
    """Storage for flow events, cycles and user settings."""

    @abstractmethod
    def list_flow_events(
        self,
        user_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[FlowEvent]:
        """List a user's flow events, optionally within ``[start, end]``."""

    @abstractmethod
    def get_flow_event(self, user_id: str, day: date) -> Optional[FlowEvent]:
        """Get the event logged on ``day``, if any."""

    @abstractmethod
    def put_flow_event(self, event: FlowEvent) -> FlowEvent:
        """
        Create or replace the event for ``(event.user_id, event.date)``.

        Backends must keep at most one event per user and date.
        """

    @abstractmethod
    def delete_flow_event(self, event_id: str) -> bool:
        """Delete an event by id. Returns False if it did not exist."""

    @abstractmethod
    def list_cycles(self, user_id: str) -> List[Cycle]:
        """List a user's cycles in any order."""

    @abstractmethod
    def get_cycle(self, cycle_id: str) -> Optional[Cycle]:
        """Get a cycle by id."""

    @abstractmethod
    def create_cycle(self, cycle: Cycle) -> Cycle:
        """Store a new cycle."""

    @abstractmethod
    def update_cycle(self, cycle_id: str, patch: Dict[str, Any]) -> Optional[Cycle]:
        """Apply ``patch`` to a cycle. Returns None if it does not exist."""

    @abstractmethod
    def delete_cycle(self, cycle_id: str) -> bool:
        """Delete a cycle by id. Returns False if it did not exist."""

    @abstractmethod
    def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        """Get the user's configured cycle and period lengths."""

    @abstractmethod
    def put_user_settings(self, settings: UserSettings) -> UserSettings:
        """Create or replace the user's settings."""

    @contextmanager
    def transaction(self) -> Iterator["Repository"]:
        """
        Group writes so they apply all-or-nothing.

        The default implementation offers no rollback; backends that can
        undo writes override it.
        """
        yield self
