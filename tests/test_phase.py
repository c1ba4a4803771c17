"""
Tests for the arithmetic and data-driven phase calculators.
"""
import pytest
from datetime import date, timedelta

from flowtracker.models.flow import FlowEvent, FlowIntensity
from flowtracker.models.phase import Confidence, CyclePhase, PredictionLengths
from flowtracker.services.phase import (
    get_cycle_day,
    get_data_driven_phase,
    get_fertile_window_bounds,
    get_fertile_window_dates,
    get_ovulation_day,
    get_phase,
    is_in_fertile_window,
)

ANCHOR = date(2024, 1, 1)
LENGTHS = PredictionLengths(cycle_length=28, period_length=5, confidence=Confidence.DEFAULT)

def test_phase_boundaries_for_standard_cycle():
    """A 28/5 cycle maps to period, follicular, ovulation and luteal days."""
    assert get_ovulation_day(28) == 14
    assert get_phase(date(2024, 1, 3), ANCHOR, 28, 5) == CyclePhase.PERIOD
    assert get_phase(date(2024, 1, 5), ANCHOR, 28, 5) == CyclePhase.PERIOD
    assert get_phase(date(2024, 1, 6), ANCHOR, 28, 5) == CyclePhase.FOLLICULAR
    assert get_phase(date(2024, 1, 13), ANCHOR, 28, 5) == CyclePhase.FOLLICULAR
    assert get_phase(date(2024, 1, 14), ANCHOR, 28, 5) == CyclePhase.OVULATION
    assert get_phase(date(2024, 1, 15), ANCHOR, 28, 5) == CyclePhase.LUTEAL
    assert get_phase(date(2024, 1, 20), ANCHOR, 28, 5) == CyclePhase.LUTEAL
    assert get_phase(date(2024, 1, 28), ANCHOR, 28, 5) == CyclePhase.LUTEAL

def test_cycle_day_wraps_before_anchor():
    """Dates before the anchor land on the matching day of the previous cycle."""
    assert get_cycle_day(date(2023, 12, 31), ANCHOR, 28) == 28
    assert get_cycle_day(date(2023, 12, 4), ANCHOR, 28) == 1
    assert get_cycle_day(date(2023, 12, 3), ANCHOR, 28) == 28
    assert get_phase(date(2023, 12, 31), ANCHOR, 28, 5) == CyclePhase.LUTEAL

def test_cycle_day_rejects_non_positive_length():
    with pytest.raises(ValueError):
        get_cycle_day(date(2024, 1, 5), ANCHOR, 0)

@pytest.mark.parametrize("cycle_length,period_length", [(28, 5), (21, 3), (35, 7), (24, 6)])
def test_phase_is_periodic(cycle_length, period_length):
    """Shifting a date by whole cycles never changes its phase."""
    for offset in range(-40, 40):
        day = ANCHOR + timedelta(days=offset)
        phase = get_phase(day, ANCHOR, cycle_length, period_length)
        assert phase in (CyclePhase.PERIOD, CyclePhase.FOLLICULAR, CyclePhase.OVULATION, CyclePhase.LUTEAL)
        for k in (-3, -1, 1, 2):
            shifted = day + timedelta(days=k * cycle_length)
            assert get_phase(shifted, ANCHOR, cycle_length, period_length) == phase

def test_period_takes_precedence_when_bands_overlap():
    """A period reaching past ovulation day is still reported as period."""
    # 20 day cycle: ovulation on day 6, period runs 7 days
    assert get_ovulation_day(20) == 6
    assert get_phase(ANCHOR + timedelta(days=5), ANCHOR, 20, 7) == CyclePhase.PERIOD
    assert get_phase(ANCHOR + timedelta(days=6), ANCHOR, 20, 7) == CyclePhase.PERIOD
    assert get_phase(ANCHOR + timedelta(days=7), ANCHOR, 20, 7) == CyclePhase.LUTEAL

def test_fertile_window_for_standard_cycle():
    """The window spans cycle days 9 through 15."""
    assert get_fertile_window_bounds(28, 5) == (9, 15)
    assert is_in_fertile_window(date(2024, 1, 9), ANCHOR, 28, 5)
    assert is_in_fertile_window(date(2024, 1, 14), ANCHOR, 28, 5)
    assert is_in_fertile_window(date(2024, 1, 15), ANCHOR, 28, 5)
    assert not is_in_fertile_window(date(2024, 1, 8), ANCHOR, 28, 5)
    assert not is_in_fertile_window(date(2024, 1, 16), ANCHOR, 28, 5)

    dates = get_fertile_window_dates(ANCHOR, 28, 5)
    assert dates[0] == date(2024, 1, 9)
    assert dates[-1] == date(2024, 1, 15)
    assert len(dates) == 7

def test_fertile_window_never_starts_in_period():
    """With a long period the window starts the day after it."""
    # ovulation day 12, window would start on day 7 but the period lasts 8 days
    assert get_fertile_window_bounds(26, 8) == (9, 13)

def _flow(day, intensity=FlowIntensity.MEDIUM):
    return FlowEvent(user_id="123", date=day, intensity=intensity)

def test_data_driven_phase_reports_logged_period_days():
    """Only logged or filled days are period days."""
    events = [_flow(date(2024, 1, d)) for d in (1, 2, 3)]

    assert get_data_driven_phase(date(2024, 1, 2), events, LENGTHS) == CyclePhase.PERIOD
    # Day 4 falls in the arithmetic period but nothing was logged
    assert get_data_driven_phase(date(2024, 1, 4), events, LENGTHS) == CyclePhase.FOLLICULAR
    assert get_data_driven_phase(date(2024, 1, 14), events, LENGTHS) == CyclePhase.OVULATION
    assert get_data_driven_phase(date(2024, 1, 20), events, LENGTHS) == CyclePhase.LUTEAL

def test_data_driven_phase_never_predicts_period():
    """A whole cycle later the arithmetic period is reported as follicular."""
    events = [_flow(date(2024, 1, d)) for d in (1, 2, 3)]
    for offset in range(28, 33):
        assert get_data_driven_phase(ANCHOR + timedelta(days=offset), events, LENGTHS) == CyclePhase.FOLLICULAR

def test_data_driven_phase_uses_fill_dates():
    """Fill dates count as period days even without a logged event."""
    events = [_flow(date(2024, 1, 1))]
    fill = [date(2024, 1, 1) + timedelta(days=i) for i in range(5)]
    assert get_data_driven_phase(date(2024, 1, 4), events, LENGTHS, fill_dates=fill) == CyclePhase.PERIOD
    assert get_data_driven_phase(date(2024, 1, 6), events, LENGTHS, fill_dates=fill) == CyclePhase.FOLLICULAR

def test_data_driven_phase_ignores_spotting():
    """Spotting is neither a period day nor an anchor."""
    events = [_flow(date(2024, 1, 1), FlowIntensity.SPOTTING)]
    assert get_data_driven_phase(date(2024, 1, 1), events, LENGTHS) == CyclePhase.UNKNOWN
    assert get_data_driven_phase(date(2024, 1, 10), events, LENGTHS) == CyclePhase.UNKNOWN

def test_data_driven_phase_without_prior_period_is_unknown():
    """Dates before the first logged period have no anchor."""
    events = [_flow(date(2024, 2, 1))]
    assert get_data_driven_phase(date(2024, 1, 20), events, LENGTHS) == CyclePhase.UNKNOWN

def test_data_driven_phase_uses_most_recent_anchor():
    """The latest period start on or before the date is the anchor."""
    events = [_flow(date(2024, 1, 1)), _flow(date(2024, 2, 5))]
    # Day 14 counted from Feb 5, not day 49 counted from Jan 1
    assert get_data_driven_phase(date(2024, 2, 18), events, LENGTHS) == CyclePhase.OVULATION

def test_data_driven_phase_with_explicit_anchor():
    events = []
    assert get_data_driven_phase(date(2024, 1, 14), events, LENGTHS, anchor=ANCHOR) == CyclePhase.OVULATION
    assert get_data_driven_phase(date(2024, 1, 2), events, LENGTHS, anchor=ANCHOR) == CyclePhase.FOLLICULAR
