"""
Statistics calculation service for cycle tracking data.

This module derives period ranges, cycle/period length averages and the
lengths used for every prediction from a user's logged flow events. Spotting
never counts as a period day here.
"""
import math
from bisect import bisect_right
from datetime import date
from statistics import mean
from typing import Iterable, List, Optional, Tuple
from aws_lambda_powertools import Logger

from flowtracker.models.flow import FlowEvent
from flowtracker.models.phase import Confidence, CycleAverages, PredictionLengths
from flowtracker.models.settings import EngineConfig, UserSettings
from flowtracker.utils.dates import add_days, days_between

logger = Logger()

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

def get_period_dates(events: Iterable[FlowEvent]) -> List[date]:
    """
    Collect the sorted, distinct dates of all non-spotting events.

    Args:
        events: Flow events in any order

    Returns:
        Chronologically sorted list of logged period days
    """
    return sorted({e.date for e in events if not e.is_spotting})

def find_period_ranges(
    events: Iterable[FlowEvent],
    gap_tolerance: Optional[int] = None
) -> List[Tuple[date, date]]:
    """
    Group logged period days into periods.

    A new period begins whenever two consecutive logged days are more than
    ``gap_tolerance`` days apart, which absorbs single missed-log days.

    Args:
        events: Flow events to analyze
        gap_tolerance: Max days between logs within one period (default 2)

    Returns:
        List of (first_logged_day, last_logged_day) tuples in date order

    Example:
        >>> ranges = find_period_ranges(events)
        >>> for start, end in ranges:
        ...     print(f"{start} to {end}")
    """
    if gap_tolerance is None:
        gap_tolerance = EngineConfig().period_gap_tolerance

    return _group_period_dates(get_period_dates(events), gap_tolerance)

def _group_period_dates(period_dates: List[date], gap_tolerance: int) -> List[Tuple[date, date]]:
    if not period_dates:
        return []

    ranges = []
    start = last = period_dates[0]
    for current in period_dates[1:]:
        if days_between(current, last) > gap_tolerance:
            ranges.append((start, last))
            start = current
        last = current
    ranges.append((start, last))
    return ranges

def find_period_starts(events: Iterable[FlowEvent], gap_tolerance: Optional[int] = None) -> List[date]:
    """Sorted first days of every logged period."""
    return [start for start, _ in find_period_ranges(events, gap_tolerance)]

def find_anchor(period_starts: List[date], target: date) -> Optional[date]:
    """
    Find the most recent period start on or before ``target``.

    Args:
        period_starts: Chronologically sorted period start dates
        target: Date being evaluated

    Returns:
        The anchor date, or None if every period starts after ``target``
    """
    index = bisect_right(period_starts, target)
    if index == 0:
        return None
    return period_starts[index - 1]

def compute_cycle_averages(
    events: Iterable[FlowEvent],
    config: Optional[EngineConfig] = None
) -> CycleAverages:
    """
    Calculate average cycle and period lengths from logged flow events.

    Cycle length is the distance between consecutive period starts; period
    length is the run of consecutive logged days beginning at each start.
    Means are rounded half up.

    Args:
        events: Flow events to analyze (spotting is ignored)
        config: Engine config providing defaults and gap tolerance

    Returns:
        CycleAverages; with fewer than two period days the defaults and a
        cycles_count of 0 are returned
    """
    config = config or EngineConfig()
    period_dates = get_period_dates(events)

    if len(period_dates) < 2:
        return CycleAverages(
            avg_cycle_length=config.default_cycle_length,
            avg_period_length=config.default_period_length,
            cycles_count=0
        )

    logged = set(period_dates)
    period_starts = [
        start for start, _ in _group_period_dates(period_dates, config.period_gap_tolerance)
    ]

    cycle_lengths = [
        days_between(period_starts[i], period_starts[i - 1])
        for i in range(1, len(period_starts))
    ]

    period_lengths = []
    for start in period_starts:
        length = 1
        while add_days(start, length) in logged:
            length += 1
        period_lengths.append(length)

    averages = CycleAverages(
        avg_cycle_length=_round_half_up(mean(cycle_lengths)) if cycle_lengths else config.default_cycle_length,
        avg_period_length=_round_half_up(mean(period_lengths)),
        cycles_count=len(period_starts)
    )
    logger.debug("Computed cycle averages", extra={
        "period_starts": [str(s) for s in period_starts],
        "avg_cycle_length": averages.avg_cycle_length,
        "avg_period_length": averages.avg_period_length
    })
    return averages

def get_best_prediction_lengths(
    events: Iterable[FlowEvent],
    user_settings: Optional[UserSettings] = None,
    min_cycles_for_average: Optional[int] = None,
    config: Optional[EngineConfig] = None
) -> PredictionLengths:
    """
    Choose the cycle and period lengths to predict with.

    Logged data wins over user preferences, which win over system defaults:
      1. Enough logged periods: use the logged averages
      2. Exactly one logged period: its length, with the user's (or default)
         cycle length
      3. Otherwise the user's configured lengths, else the defaults

    Args:
        events: The user's flow events
        user_settings: Optional user-configured lengths
        min_cycles_for_average: Period starts required for tier 1
        config: Engine config providing defaults

    Returns:
        PredictionLengths tagged with the confidence tier used
    """
    config = config or EngineConfig()
    if min_cycles_for_average is None:
        min_cycles_for_average = config.min_cycles_for_average

    averages = compute_cycle_averages(events, config)
    user_cycle = user_settings.cycle_length if user_settings else None
    user_period = user_settings.period_length if user_settings else None

    if averages.cycles_count >= min_cycles_for_average:
        return PredictionLengths(
            cycle_length=averages.avg_cycle_length,
            period_length=averages.avg_period_length,
            confidence=Confidence.LOGGED
        )

    if averages.cycles_count == 1:
        return PredictionLengths(
            cycle_length=user_cycle or config.default_cycle_length,
            period_length=averages.avg_period_length,
            confidence=Confidence.LOGGED
        )

    if user_settings is not None and user_settings.is_configured:
        return PredictionLengths(
            cycle_length=user_cycle or config.default_cycle_length,
            period_length=user_period or config.default_period_length,
            confidence=Confidence.USER
        )

    return PredictionLengths(
        cycle_length=config.default_cycle_length,
        period_length=config.default_period_length,
        confidence=Confidence.DEFAULT
    )
