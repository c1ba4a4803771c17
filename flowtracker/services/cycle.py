"""
Service module exposing the cycle tracking engine to callers.

``CycleTrackerService`` is built around an injected repository. Mutations
are serialized per user and delegated to the lifecycle controller; queries
read the user's flow history and answer with the phase calculator,
statistics and fertile window evaluator.

Typical usage:
    service = CycleTrackerService(DynamoRepository(get_dynamo()))
    service.start_period(user_id, "2024-02-01")
    phase = service.get_phase_for_date(user_id, "2024-02-10")
    next_start = service.predict_next_period_start(user_id)
"""
from datetime import date
from typing import List, Optional, Tuple

from flowtracker.models.cycle import Cycle
from flowtracker.models.flow import FlowEvent, FlowIntensity
from flowtracker.models.phase import CyclePhase, PredictedPeriod, Prediction, PredictionLengths
from flowtracker.models.result import OperationResult
from flowtracker.models.settings import EngineConfig, UserSettings
from flowtracker.repositories.base import Repository
from flowtracker.services.constants import UPCOMING_PERIODS_COUNT
from flowtracker.services.exceptions import RepositoryError
from flowtracker.services.fertility import FertileWindowEvaluator
from flowtracker.services.lifecycle import PeriodLifecycleController
from flowtracker.services.locks import UserLockRegistry
from flowtracker.services.phase import get_data_driven_phase, get_ovulation_day
from flowtracker.services.statistics import find_period_ranges, get_best_prediction_lengths
from flowtracker.utils.dates import DateLike, add_days, date_range, days_between, to_calendar_date
from flowtracker.utils.logging import logger

class CycleTrackerService:
    """Engine facade: lifecycle operations, phase lookups and predictions."""

    def __init__(
        self,
        repository: Repository,
        config: Optional[EngineConfig] = None,
        locks: Optional[UserLockRegistry] = None
    ):
        self.repository = repository
        self.config = config or EngineConfig.from_env()
        self.locks = locks or UserLockRegistry()
        self.controller = PeriodLifecycleController(repository, self.config)
        self.fertility = FertileWindowEvaluator(self.config)

    def _run(self, operation: str, user_id: Optional[str], action):
        try:
            return action()
        except RepositoryError:
            logger.exception(f"Repository failure during {operation}", extra={"user_id": user_id})
            raise

    # -- lifecycle operations --

    def start_period(self, user_id: str, day: DateLike) -> OperationResult:
        """Start a period on ``day``; see ``PeriodLifecycleController.start_period``."""
        with self.locks.hold(user_id):
            return self._run("start_period", user_id, lambda: self.controller.start_period(user_id, day))

    def end_period(self, cycle_id: str, day: DateLike) -> OperationResult:
        """End the period ``cycle_id`` on ``day``."""
        cycle = self._run("end_period", None, lambda: self.repository.get_cycle(cycle_id))
        if cycle is None:
            return self._run("end_period", None, lambda: self.controller.end_period(cycle_id, day))
        with self.locks.hold(cycle.user_id):
            return self._run("end_period", cycle.user_id, lambda: self.controller.end_period(cycle_id, day))

    def cancel_period(self, cycle_id: str) -> OperationResult:
        """Cancel the period ``cycle_id`` and its logged flow."""
        cycle = self._run("cancel_period", None, lambda: self.repository.get_cycle(cycle_id))
        if cycle is None:
            return self._run("cancel_period", None, lambda: self.controller.cancel_period(cycle_id))
        with self.locks.hold(cycle.user_id):
            return self._run("cancel_period", cycle.user_id, lambda: self.controller.cancel_period(cycle_id))

    def record_flow(self, user_id: str, day: DateLike, intensity: FlowIntensity) -> OperationResult:
        """Toggle the flow logged for ``day``."""
        with self.locks.hold(user_id):
            return self._run("record_flow", user_id, lambda: self.controller.record_flow(user_id, day, intensity))

    # -- settings --

    def update_user_settings(
        self,
        user_id: str,
        cycle_length: Optional[int] = None,
        period_length: Optional[int] = None
    ) -> UserSettings:
        """
        Store the user's preferred cycle and period lengths.

        Passing None clears a length so the engine default applies again.
        """
        settings = UserSettings(user_id=user_id, cycle_length=cycle_length, period_length=period_length)
        with self.locks.hold(user_id):
            return self._run("update_user_settings", user_id, lambda: self.repository.put_user_settings(settings))

    # -- queries --

    def _history(self, user_id: str) -> Tuple[List[FlowEvent], Optional[UserSettings]]:
        return (
            self.repository.list_flow_events(user_id),
            self.repository.get_user_settings(user_id)
        )

    def get_prediction_lengths(self, user_id: str) -> PredictionLengths:
        """Cycle and period lengths used for the user's predictions."""
        events, settings = self._history(user_id)
        return get_best_prediction_lengths(events, settings, config=self.config)

    def get_average_cycle_length(self, user_id: str) -> int:
        return self.get_prediction_lengths(user_id).cycle_length

    def get_average_period_length(self, user_id: str) -> int:
        return self.get_prediction_lengths(user_id).period_length

    def get_open_cycle(self, user_id: str) -> Optional[Cycle]:
        return next((c for c in self.repository.list_cycles(user_id) if c.is_open), None)

    def get_current_cycle(self, user_id: str, today: Optional[DateLike] = None) -> Optional[Cycle]:
        """
        Get the cycle containing ``today``, else the most recent one.

        Args:
            user_id: Owner of the cycles
            today: Reference date, defaults to the current date

        Returns:
            The cycle, or None if the user has no cycles
        """
        today = to_calendar_date(today) if today is not None else date.today()
        cycles = sorted(self.repository.list_cycles(user_id), key=lambda c: c.start_date, reverse=True)
        for cycle in cycles:
            if cycle.contains(today):
                return cycle
        return cycles[0] if cycles else None

    def get_cycle_day(self, user_id: str, day: DateLike) -> Optional[int]:
        """1-based day of ``day`` within the cycle containing it, if any."""
        day = to_calendar_date(day)
        for cycle in self.repository.list_cycles(user_id):
            if cycle.contains(day):
                return days_between(day, cycle.start_date) + 1
        return None

    def get_period_history(self, user_id: str) -> List[Tuple[date, date]]:
        """Logged periods as (first_day, last_day) tuples, oldest first."""
        events, _ = self._history(user_id)
        return find_period_ranges(events, self.config.period_gap_tolerance)

    def get_phase_for_date(self, user_id: str, day: DateLike) -> CyclePhase:
        """
        Determine the phase of ``day`` from the user's logged data.

        Days of an ongoing period's expected window count as period days
        even before they are logged.
        """
        day = to_calendar_date(day)
        events, settings = self._history(user_id)
        lengths = get_best_prediction_lengths(events, settings, config=self.config)

        fill_dates = []
        open_cycle = self.get_open_cycle(user_id)
        if open_cycle is not None:
            fill_dates = list(date_range(
                open_cycle.start_date,
                add_days(open_cycle.start_date, lengths.period_length - 1)
            ))

        return get_data_driven_phase(
            day,
            events,
            lengths,
            fill_dates=fill_dates,
            gap_tolerance=self.config.period_gap_tolerance
        )

    def is_fertile_for_date(self, user_id: str, day: DateLike) -> bool:
        day = to_calendar_date(day)
        events, settings = self._history(user_id)
        return self.fertility.is_fertile(day, events, settings)

    def _last_period(self, user_id: str, events: List[FlowEvent]) -> Optional[Tuple[date, date]]:
        ranges = find_period_ranges(events, self.config.period_gap_tolerance)
        if ranges:
            return ranges[-1]

        cycles = sorted(self.repository.list_cycles(user_id), key=lambda c: c.start_date)
        if not cycles:
            return None
        latest = cycles[-1]
        return latest.start_date, latest.end_date or latest.start_date

    def _next_start(self, last_period: Tuple[date, date], cycle_length: int) -> date:
        last_start, last_end = last_period
        next_start = add_days(last_start, cycle_length)
        # A logged period longer than the cycle pushes the prediction a cycle further
        while next_start <= last_end:
            next_start = add_days(next_start, cycle_length)
        return next_start

    def predict_next_period_start(self, user_id: str) -> Optional[date]:
        """
        Predict the first day of the user's next period.

        Returns:
            Predicted date, or None when nothing has been logged yet
        """
        events, settings = self._history(user_id)
        last_period = self._last_period(user_id, events)
        if last_period is None:
            return None
        lengths = get_best_prediction_lengths(events, settings, config=self.config)
        return self._next_start(last_period, lengths.cycle_length)

    def predict_upcoming_periods(self, user_id: str, count: int = UPCOMING_PERIODS_COUNT) -> List[PredictedPeriod]:
        """
        Predict the next ``count`` period windows.

        Example:
            >>> for period in service.predict_upcoming_periods(user_id):
            ...     print(f"{period.start_date} to {period.end_date}")
        """
        events, settings = self._history(user_id)
        last_period = self._last_period(user_id, events)
        if last_period is None:
            return []

        lengths = get_best_prediction_lengths(events, settings, config=self.config)
        first = self._next_start(last_period, lengths.cycle_length)
        periods = []
        for i in range(count):
            start = add_days(first, i * lengths.cycle_length)
            periods.append(PredictedPeriod(
                start_date=start,
                end_date=add_days(start, lengths.period_length - 1)
            ))
        return periods

    def get_prediction(self, user_id: str) -> Prediction:
        """
        Summarize the user's next expected cycle.

        Returns:
            Prediction with lengths and confidence; the dates are empty when
            nothing has been logged yet
        """
        events, settings = self._history(user_id)
        lengths = get_best_prediction_lengths(events, settings, config=self.config)
        last_period = self._last_period(user_id, events)
        if last_period is None:
            return Prediction(lengths=lengths)

        next_start = self._next_start(last_period, lengths.cycle_length)
        ovulation_day = get_ovulation_day(lengths.cycle_length)
        return Prediction(
            lengths=lengths,
            next_period_start=next_start,
            fertile_window=self.fertility.fertile_days(next_start, events, settings),
            ovulation_date=add_days(next_start, ovulation_day - 1) if ovulation_day >= 1 else None
        )
