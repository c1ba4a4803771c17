"""
Service module for cycle phase calculation.

Two calculators live here:

- ``get_phase`` is pure arithmetic on an anchor date and the average cycle
  and period lengths. Dates before the anchor wrap into the equivalent day
  of a preceding cycle.
- ``get_data_driven_phase`` only reports a period day when one was logged
  (or is part of an ongoing period fill), and otherwise falls back to the
  arithmetic phase anchored on the latest logged period start.

Typical usage:
    lengths = get_best_prediction_lengths(events, user_settings)
    phase = get_data_driven_phase(target_date, events, lengths)
"""
from datetime import date
from typing import Iterable, List, Optional

from flowtracker.models.flow import FlowEvent
from flowtracker.models.phase import CyclePhase, PredictionLengths
from flowtracker.services.constants import (
    FERTILE_DAYS_AFTER_OVULATION,
    FERTILE_DAYS_BEFORE_OVULATION,
    LUTEAL_PHASE_LENGTH,
)
from flowtracker.services.statistics import find_anchor, find_period_starts
from flowtracker.utils.dates import add_days, days_between

def get_ovulation_day(avg_cycle_length: int) -> int:
    """Cycle day treated as ovulation (a fixed luteal phase before the next period)."""
    return round(avg_cycle_length - LUTEAL_PHASE_LENGTH)

def get_cycle_day(target: date, anchor_start: date, avg_cycle_length: int) -> int:
    """
    Calculate the 1-based day within the cycle for ``target``.

    Python's modulo takes the sign of the divisor, so dates before the
    anchor land on the matching day of a hypothetical previous cycle.

    Args:
        target: Date to evaluate
        anchor_start: First day of a known period
        avg_cycle_length: Average cycle length in days

    Returns:
        Cycle day in ``[1, avg_cycle_length]``

    Example:
        >>> get_cycle_day(date(2023, 12, 31), date(2024, 1, 1), 28)
        28
    """
    if avg_cycle_length < 1:
        raise ValueError(f"avg_cycle_length must be positive, got {avg_cycle_length}")
    return days_between(target, anchor_start) % avg_cycle_length + 1

def phase_for_cycle_day(cycle_day: int, avg_cycle_length: int, avg_period_length: int) -> CyclePhase:
    """
    Map a cycle day to its phase.

    Period takes precedence when the period is long enough to reach the
    follicular or ovulation bands.
    """
    ovulation_day = get_ovulation_day(avg_cycle_length)
    follicular_start = avg_period_length + 1
    follicular_end = ovulation_day - 1

    if cycle_day <= avg_period_length:
        return CyclePhase.PERIOD
    if follicular_start <= cycle_day <= follicular_end:
        return CyclePhase.FOLLICULAR
    if cycle_day == ovulation_day:
        return CyclePhase.OVULATION
    return CyclePhase.LUTEAL

def get_phase(
    target: date,
    anchor_start: date,
    avg_cycle_length: int,
    avg_period_length: int
) -> CyclePhase:
    """
    Determine the cycle phase of a date from an anchor period start.

    Args:
        target: Date to evaluate
        anchor_start: First day of a known period
        avg_cycle_length: Average cycle length in days
        avg_period_length: Average period length in days

    Returns:
        One of PERIOD, FOLLICULAR, OVULATION or LUTEAL

    Example:
        >>> get_phase(date(2024, 1, 14), date(2024, 1, 1), 28, 5)
        <CyclePhase.OVULATION: 'ovulation'>
    """
    cycle_day = get_cycle_day(target, anchor_start, avg_cycle_length)
    return phase_for_cycle_day(cycle_day, avg_cycle_length, avg_period_length)

def get_fertile_window_bounds(avg_cycle_length: int, avg_period_length: int) -> tuple[int, int]:
    """
    First and last cycle day of the fertile window.

    The window never starts inside the period.
    """
    ovulation_day = get_ovulation_day(avg_cycle_length)
    first = max(ovulation_day - FERTILE_DAYS_BEFORE_OVULATION, avg_period_length + 1)
    last = ovulation_day + FERTILE_DAYS_AFTER_OVULATION
    return first, last

def is_in_fertile_window(
    target: date,
    anchor_start: date,
    avg_cycle_length: int,
    avg_period_length: int
) -> bool:
    """
    Check whether a date falls in the fertile window.

    The window spans five days before ovulation through the day after.

    Args:
        target: Date to evaluate
        anchor_start: First day of a known period
        avg_cycle_length: Average cycle length in days
        avg_period_length: Average period length in days

    Returns:
        True if ``target`` is an ovulation or fertile day
    """
    if get_phase(target, anchor_start, avg_cycle_length, avg_period_length) == CyclePhase.OVULATION:
        return True
    cycle_day = get_cycle_day(target, anchor_start, avg_cycle_length)
    first, last = get_fertile_window_bounds(avg_cycle_length, avg_period_length)
    return first <= cycle_day <= last

def get_fertile_window_dates(
    cycle_start: date,
    avg_cycle_length: int,
    avg_period_length: int
) -> List[date]:
    """List the fertile days of the cycle starting on ``cycle_start``."""
    first, last = get_fertile_window_bounds(avg_cycle_length, avg_period_length)
    return [
        add_days(cycle_start, day - 1)
        for day in range(first, last + 1)
        if 1 <= day <= avg_cycle_length
    ]

def get_data_driven_phase(
    target: date,
    events: Iterable[FlowEvent],
    lengths: PredictionLengths,
    fill_dates: Iterable[date] = (),
    anchor: Optional[date] = None,
    gap_tolerance: Optional[int] = None
) -> CyclePhase:
    """
    Determine the phase of a date, trusting logged data over arithmetic.

    A date is a period day only if a non-spotting event was logged on it or
    it is one of ``fill_dates``. Otherwise the phase is computed from the
    most recent period start on or before the date, and an arithmetic
    PERIOD is reported as FOLLICULAR.

    Args:
        target: Date to evaluate
        events: The user's flow events (spotting is ignored)
        lengths: Cycle and period lengths to compute with
        fill_dates: Extra dates to treat as period days
        anchor: Explicit anchor; looked up from ``events`` when omitted
        gap_tolerance: Period grouping tolerance for the anchor lookup

    Returns:
        The phase, or UNKNOWN when no period start precedes ``target``
    """
    period_events = [e for e in events if not e.is_spotting]
    period_dates = {e.date for e in period_events}
    period_dates.update(fill_dates)

    if target in period_dates:
        return CyclePhase.PERIOD

    if anchor is None:
        anchor = find_anchor(find_period_starts(period_events, gap_tolerance), target)
        if anchor is None:
            return CyclePhase.UNKNOWN

    phase = get_phase(target, anchor, lengths.cycle_length, lengths.period_length)
    if phase == CyclePhase.PERIOD:
        return CyclePhase.FOLLICULAR
    return phase
