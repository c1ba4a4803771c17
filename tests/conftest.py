"""
Pytest configuration and shared fixtures.
"""
import pytest
from datetime import date, timedelta
from typing import Callable, List

from flowtracker.models.flow import FlowEvent, FlowIntensity, FlowSource
from flowtracker.repositories.memory import InMemoryRepository
from flowtracker.services.cycle import CycleTrackerService
from flowtracker.services.lifecycle import PeriodLifecycleController

USER_ID = "123"

@pytest.fixture
def user_id() -> str:
    return USER_ID

@pytest.fixture
def make_period() -> Callable[..., List[FlowEvent]]:
    """Build consecutive daily flow events starting on a given date."""
    def _make(start: date, days: int, intensity=FlowIntensity.MEDIUM, user_id=USER_ID) -> List[FlowEvent]:
        return [
            FlowEvent(user_id=user_id, date=start + timedelta(days=i), intensity=intensity)
            for i in range(days)
        ]
    return _make

@pytest.fixture
def regular_period_events(make_period) -> List[FlowEvent]:
    """Four 5-day periods exactly 28 days apart, starting 2024-01-01."""
    events = []
    for i in range(4):
        events.extend(make_period(date(2024, 1, 1) + timedelta(days=i * 28), 5))
    return events

@pytest.fixture
def irregular_period_events(make_period) -> List[FlowEvent]:
    """Periods 24, 31 and 26 days apart with 4, 5, 6 and 5 logged days."""
    return (
        make_period(date(2024, 1, 1), 4)
        + make_period(date(2024, 1, 25), 5)
        + make_period(date(2024, 2, 25), 6)
        + make_period(date(2024, 3, 22), 5)
    )

@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()

@pytest.fixture
def controller(repository) -> PeriodLifecycleController:
    return PeriodLifecycleController(repository)

@pytest.fixture
def service(repository) -> CycleTrackerService:
    return CycleTrackerService(repository)

@pytest.fixture
def store_events(repository):
    """Write flow events straight into the repository."""
    def _store(events: List[FlowEvent]) -> None:
        for event in events:
            repository.put_flow_event(event)
    return _store

@pytest.fixture
def auto_event() -> Callable[..., FlowEvent]:
    def _make(day: date, cycle_id=None, user_id=USER_ID) -> FlowEvent:
        return FlowEvent(
            user_id=user_id,
            cycle_id=cycle_id,
            date=day,
            intensity=FlowIntensity.LIGHT,
            source=FlowSource.AUTO
        )
    return _make
