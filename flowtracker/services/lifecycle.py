"""
Period lifecycle controller.

Starts, ends and cancels cycles and records daily flow while keeping the
auto-logged flow events consistent with the cycles around them.

Cycle states:
    open (no end date) -> closed (end date set)
    open / closed      -> cancelled (deleted)

Every operation validates first and then runs its writes inside a single
repository transaction. A rejected operation writes nothing and returns an
``OperationResult`` with ``applied=False``.

Typical usage:
    controller = PeriodLifecycleController(repository)
    result = controller.start_period(user_id, "2024-02-01")
    controller.end_period(result.cycle.id, "2024-02-04")
"""
from datetime import date
from typing import List, Optional

from aws_lambda_powertools import Logger

from flowtracker.models.cycle import Cycle
from flowtracker.models.flow import FlowEvent, FlowIntensity, FlowSource
from flowtracker.models.phase import PredictionLengths
from flowtracker.models.result import OperationResult, RejectionReason
from flowtracker.models.settings import EngineConfig
from flowtracker.repositories.base import Repository
from flowtracker.services.statistics import get_best_prediction_lengths
from flowtracker.utils.dates import DateLike, add_days, date_range, format_date, to_calendar_date

logger = Logger()

class PeriodLifecycleController:
    """Apply lifecycle operations to a user's cycles and flow events."""

    def __init__(self, repository: Repository, config: Optional[EngineConfig] = None):
        self.repository = repository
        self.config = config or EngineConfig()

    def prediction_lengths(self, user_id: str) -> PredictionLengths:
        """Best cycle and period lengths for the user's current data."""
        return get_best_prediction_lengths(
            self.repository.list_flow_events(user_id),
            self.repository.get_user_settings(user_id),
            config=self.config
        )

    def _reject(self, operation: str, reason: RejectionReason, cycle: Optional[Cycle] = None, **context) -> OperationResult:
        logger.info(f"Rejected {operation}", extra={
            "reason": reason.value,
            "cycle_id": cycle.id if cycle else None,
            **context
        })
        return OperationResult.rejected(reason, cycle)

    def _sorted_cycles(self, user_id: str) -> List[Cycle]:
        return sorted(self.repository.list_cycles(user_id), key=lambda c: c.start_date)

    def _auto_fill(self, cycle: Cycle, start: date, end: date) -> List[FlowEvent]:
        """
        Log light flow on every day of ``[start, end]`` that has no event yet.

        Existing events, spotting included, are never touched.
        """
        logged = {e.date for e in self.repository.list_flow_events(cycle.user_id, start, end)}
        created = []
        for day in date_range(start, end):
            if day in logged:
                continue
            event = FlowEvent(
                user_id=cycle.user_id,
                cycle_id=cycle.id,
                date=day,
                intensity=FlowIntensity.LIGHT,
                source=FlowSource.AUTO
            )
            created.append(self.repository.put_flow_event(event))
        return created

    def _trim_after_end(self, cycle: Cycle, next_start: Optional[date]) -> List[FlowEvent]:
        """
        Remove flow that no longer belongs to a cycle which ended.

        Deletes every auto-filled or cycle-tagged non-spotting event strictly
        after the cycle's end and before the next cycle starts. Leftover
        auto-fill from the expected period window falls in this range too.
        Spotting and untagged user logs stay.
        """
        removed = []
        candidates = self.repository.list_flow_events(cycle.user_id, start=add_days(cycle.end_date, 1))
        for event in candidates:
            if event.is_spotting:
                continue
            if next_start is not None and event.date >= next_start:
                continue

            if event.is_auto or event.cycle_id == cycle.id:
                self.repository.delete_flow_event(event.id)
                removed.append(event)
        return removed

    def _retag_from(self, previous: Cycle, cycle: Cycle, since: date) -> None:
        """Move events tagged with ``previous`` dated on or after ``since`` to ``cycle``."""
        for event in self.repository.list_flow_events(previous.user_id, start=since):
            if event.cycle_id == previous.id:
                self.repository.put_flow_event(event.model_copy(update={"cycle_id": cycle.id}))

    def start_period(self, user_id: str, day: DateLike) -> OperationResult:
        """
        Start a new open cycle on ``day``.

        An open cycle that started earlier is closed the day before. Spotting
        already logged on ``day`` becomes light flow, and the expected period
        days are auto-filled.

        Args:
            user_id: Owner of the cycle
            day: First day of the period

        Returns:
            OperationResult with the new cycle, or the existing cycle when one
            already starts on ``day`` or the start is rejected
        """
        day = to_calendar_date(day)
        cycles = self._sorted_cycles(user_id)
        context = {"user_id": user_id, "date": format_date(day)}

        same_day = next((c for c in cycles if c.start_date == day), None)
        if same_day is not None:
            return self._reject("start_period", RejectionReason.ALREADY_STARTED, same_day, **context)

        containing = next((c for c in cycles if not c.is_open and c.contains(day)), None)
        if containing is not None:
            return self._reject("start_period", RejectionReason.START_INSIDE_EXISTING_CYCLE, containing, **context)

        if cycles and cycles[-1].start_date > day:
            return self._reject("start_period", RejectionReason.START_BEFORE_LATEST_CYCLE, cycles[-1], **context)

        open_cycle = next((c for c in cycles if c.is_open), None)
        lengths = self.prediction_lengths(user_id)

        with self.repository.transaction():
            cycle = self.repository.create_cycle(Cycle(user_id=user_id, start_date=day))

            if open_cycle is not None:
                closed = self.repository.update_cycle(open_cycle.id, {"end_date": add_days(day, -1)})
                self._retag_from(closed, cycle, day)
                logger.info("Auto-closed open cycle", extra={
                    "user_id": user_id,
                    "cycle_id": closed.id,
                    "end_date": format_date(closed.end_date)
                })

            created, removed = [], []
            existing = self.repository.get_flow_event(user_id, day)
            if existing is not None and existing.is_spotting:
                self.repository.delete_flow_event(existing.id)
                promoted = FlowEvent(
                    user_id=user_id,
                    cycle_id=existing.cycle_id or cycle.id,
                    date=day,
                    intensity=FlowIntensity.LIGHT,
                    source=existing.source
                )
                created.append(self.repository.put_flow_event(promoted))
                removed.append(existing)

            created.extend(self._auto_fill(cycle, day, add_days(day, lengths.period_length - 1)))

        logger.info("Started period", extra={
            **context,
            "cycle_id": cycle.id,
            "period_length": lengths.period_length,
            "confidence": lengths.confidence.value,
            "auto_filled": len(created)
        })
        return OperationResult(applied=True, cycle=cycle, created_events=created, removed_events=removed)

    def end_period(self, cycle_id: str, day: DateLike) -> OperationResult:
        """
        Close a cycle on ``day``.

        Missing days inside the cycle are auto-filled. Cleanup then covers the
        days strictly after ``day`` and before the next cycle's start (or with
        no upper bound when there is no later cycle). In that range a
        non-spotting event is deleted when it was auto-filled or is tagged
        with this cycle, user-logged flow tagged with this cycle included.
        Spotting and user logs not tagged with this cycle are kept.

        Args:
            cycle_id: Cycle to close
            day: Last day of the period

        Returns:
            OperationResult with the updated cycle; rejected when the cycle is
            unknown, ``day`` precedes its start, another cycle already ends on
            ``day`` or ``day`` reaches into the next cycle
        """
        day = to_calendar_date(day)
        context = {"date": format_date(day)}

        cycle = self.repository.get_cycle(cycle_id)
        if cycle is None:
            return self._reject("end_period", RejectionReason.CYCLE_NOT_FOUND, cycle_id=cycle_id, **context)

        if day < cycle.start_date:
            return self._reject("end_period", RejectionReason.END_BEFORE_START, cycle, **context)

        others = [c for c in self._sorted_cycles(cycle.user_id) if c.id != cycle.id]
        if any(c.end_date == day for c in others):
            return self._reject("end_period", RejectionReason.DUPLICATE_END_DATE, cycle, **context)

        next_cycle = next((c for c in others if c.start_date > cycle.start_date), None)
        if next_cycle is not None and day >= next_cycle.start_date:
            return self._reject("end_period", RejectionReason.OVERLAPS_NEXT_CYCLE, cycle, **context)

        with self.repository.transaction():
            updated = self.repository.update_cycle(cycle.id, {"end_date": day})
            created = self._auto_fill(updated, updated.start_date, day)
            removed = self._trim_after_end(updated, next_cycle.start_date if next_cycle else None)

        logger.info("Ended period", extra={
            **context,
            "user_id": cycle.user_id,
            "cycle_id": cycle.id,
            "auto_filled": len(created),
            "removed": len(removed)
        })
        return OperationResult(applied=True, cycle=updated, created_events=created, removed_events=removed)

    def cancel_period(self, cycle_id: str) -> OperationResult:
        """
        Delete a cycle and the non-spotting flow tagged with it.

        Spotting tagged with the cycle is kept and detached from it.

        Args:
            cycle_id: Cycle to cancel

        Returns:
            OperationResult with the deleted cycle and removed events
        """
        cycle = self.repository.get_cycle(cycle_id)
        if cycle is None:
            return self._reject("cancel_period", RejectionReason.CYCLE_NOT_FOUND, cycle_id=cycle_id)

        tagged = [e for e in self.repository.list_flow_events(cycle.user_id) if e.cycle_id == cycle.id]
        removed = []
        with self.repository.transaction():
            for event in tagged:
                if event.is_spotting:
                    self.repository.put_flow_event(event.model_copy(update={"cycle_id": None}))
                else:
                    self.repository.delete_flow_event(event.id)
                    removed.append(event)
            self.repository.delete_cycle(cycle.id)

        logger.info("Cancelled period", extra={
            "user_id": cycle.user_id,
            "cycle_id": cycle.id,
            "removed": len(removed)
        })
        return OperationResult(applied=True, cycle=cycle, removed_events=removed)

    def record_flow(self, user_id: str, day: DateLike, intensity: FlowIntensity) -> OperationResult:
        """
        Log or un-log flow for a day.

        Recording the intensity already logged on ``day`` removes the event.
        Any other intensity creates or replaces it and links it to the cycle
        containing ``day``. Spotting is never linked automatically.

        Args:
            user_id: Owner of the event
            day: Day to log
            intensity: Flow intensity

        Returns:
            OperationResult with the stored event, or the removed one
        """
        day = to_calendar_date(day)
        intensity = FlowIntensity(intensity)
        context = {"user_id": user_id, "date": format_date(day), "intensity": intensity.value}

        existing = self.repository.get_flow_event(user_id, day)
        if existing is not None and existing.intensity == intensity:
            with self.repository.transaction():
                self.repository.delete_flow_event(existing.id)
            logger.info("Removed flow record", extra=context)
            return OperationResult(applied=True, removed_events=[existing])

        cycle = None
        if intensity != FlowIntensity.SPOTTING:
            cycle = next((c for c in self._sorted_cycles(user_id) if c.contains(day)), None)

        event = FlowEvent(
            user_id=user_id,
            cycle_id=cycle.id if cycle else None,
            date=day,
            intensity=intensity,
            source=FlowSource.USER
        )
        if existing is not None:
            event = event.model_copy(update={"id": existing.id})

        with self.repository.transaction():
            stored = self.repository.put_flow_event(event)

        logger.info("Recorded flow", extra={**context, "cycle_id": stored.cycle_id})
        return OperationResult(
            applied=True,
            cycle=cycle,
            event=stored,
            created_events=[stored],
            removed_events=[existing] if existing else []
        )
