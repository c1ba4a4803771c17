"""
Fertile window evaluation on top of the phase calculator.
"""
from datetime import date
from typing import Iterable, List, Optional

from flowtracker.models.flow import FlowEvent
from flowtracker.models.settings import EngineConfig, UserSettings
from flowtracker.services.phase import get_fertile_window_dates, is_in_fertile_window
from flowtracker.services.statistics import (
    find_anchor,
    find_period_starts,
    get_best_prediction_lengths,
)

class FertileWindowEvaluator:
    """
    Decide whether a date is fertile from a user's logged flow history.

    Holds no per-user state; lengths and the anchor are derived on every call
    the same way the data-driven phase calculator derives them.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def is_fertile(
        self,
        target: date,
        events: Iterable[FlowEvent],
        user_settings: Optional[UserSettings] = None
    ) -> bool:
        """
        Check if ``target`` falls in the fertile window.

        Args:
            target: Date to evaluate
            events: The user's flow events
            user_settings: Optional user-configured lengths

        Returns:
            False when no period start precedes ``target``
        """
        events = list(events)
        anchor = find_anchor(
            find_period_starts(events, self.config.period_gap_tolerance),
            target
        )
        if anchor is None:
            return False

        lengths = get_best_prediction_lengths(events, user_settings, config=self.config)
        return is_in_fertile_window(target, anchor, lengths.cycle_length, lengths.period_length)

    def fertile_days(
        self,
        cycle_start: date,
        events: Iterable[FlowEvent],
        user_settings: Optional[UserSettings] = None
    ) -> List[date]:
        """List the fertile days of the cycle beginning on ``cycle_start``."""
        lengths = get_best_prediction_lengths(events, user_settings, config=self.config)
        return get_fertile_window_dates(cycle_start, lengths.cycle_length, lengths.period_length)
