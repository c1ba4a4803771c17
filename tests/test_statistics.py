"""Tests for statistics calculation service."""
from datetime import date

from flowtracker.models.flow import FlowEvent, FlowIntensity
from flowtracker.models.phase import Confidence
from flowtracker.models.settings import EngineConfig, UserSettings
from flowtracker.services.statistics import (
    compute_cycle_averages,
    find_anchor,
    find_period_ranges,
    find_period_starts,
    get_best_prediction_lengths,
    get_period_dates,
)

def _flow(*days, intensity=FlowIntensity.MEDIUM):
    return [FlowEvent(user_id="test_user", date=d, intensity=intensity) for d in days]

def test_compute_cycle_averages_with_regular_periods(regular_period_events):
    """Test averages with four 5-day periods 28 days apart."""
    averages = compute_cycle_averages(regular_period_events)

    assert averages.avg_cycle_length == 28
    assert averages.avg_period_length == 5
    assert averages.cycles_count == 4

def test_compute_cycle_averages_with_irregular_periods(irregular_period_events):
    """Test averages of 24, 31 and 26 day cycles round to 27."""
    averages = compute_cycle_averages(irregular_period_events)

    assert averages.avg_cycle_length == 27
    assert averages.avg_period_length == 5
    assert averages.cycles_count == 4

def test_compute_cycle_averages_without_enough_data():
    """Test that fewer than two period days fall back to defaults."""
    for events in ([], _flow(date(2024, 1, 1))):
        averages = compute_cycle_averages(events)
        assert (averages.avg_cycle_length, averages.avg_period_length, averages.cycles_count) == (28, 5, 0)

def test_compute_cycle_averages_ignores_spotting():
    """Test that spotting days neither start nor extend a period."""
    events = (
        _flow(date(2024, 1, 1), date(2024, 1, 2))
        + _flow(date(2024, 1, 3), date(2024, 1, 15), intensity=FlowIntensity.SPOTTING)
    )
    averages = compute_cycle_averages(events)

    assert averages.avg_period_length == 2
    assert averages.cycles_count == 1
    assert averages.avg_cycle_length == 28

def test_compute_cycle_averages_rounds_half_up():
    """Test that .5 means round up rather than to even."""
    events = (
        _flow(*[date(2024, 1, d) for d in range(1, 5)])       # 4 days
        + _flow(*[date(2024, 1, d) for d in range(28, 31)])   # 3 days, 27 later
        + _flow(*[date(2024, 2, d) for d in range(25, 30)])   # 5 days, 28 later
    )
    averages = compute_cycle_averages(events)

    assert averages.avg_cycle_length == 28  # 27.5
    assert averages.avg_period_length == 4  # 4.0
    assert averages.cycles_count == 3

def test_period_length_counts_consecutive_days_only():
    """Test that a tolerated gap joins periods but stops the length run."""
    events = _flow(date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 4), date(2024, 1, 29))
    averages = compute_cycle_averages(events)

    assert averages.cycles_count == 2
    assert averages.avg_cycle_length == 28
    assert averages.avg_period_length == 2  # (2 + 1) / 2 rounds up

def test_find_period_ranges_with_small_gap():
    """Test that a single missed day stays within one period."""
    events = _flow(date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 4))

    assert find_period_ranges(events) == [(date(2025, 1, 1), date(2025, 1, 4))]

def test_find_period_ranges_with_large_gap():
    """Test that a gap over the tolerance starts a new period."""
    events = _flow(date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 5))

    assert find_period_ranges(events) == [
        (date(2025, 1, 1), date(2025, 1, 2)),
        (date(2025, 1, 5), date(2025, 1, 5)),
    ]
    assert find_period_ranges(events, gap_tolerance=3) == [(date(2025, 1, 1), date(2025, 1, 5))]

def test_find_period_ranges_accepts_unsorted_duplicates_and_generators():
    """Test that input order and repeated dates do not matter."""
    events = _flow(date(2025, 1, 3), date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 1))

    assert get_period_dates(events) == [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]
    assert find_period_ranges(e for e in events) == [(date(2025, 1, 1), date(2025, 1, 3))]
    assert compute_cycle_averages(e for e in events).avg_period_length == 3

def test_find_anchor():
    """Test the anchor is the latest start on or before the target."""
    starts = find_period_starts(_flow(date(2024, 1, 1), date(2024, 1, 29)))

    assert find_anchor(starts, date(2023, 12, 31)) is None
    assert find_anchor(starts, date(2024, 1, 1)) == date(2024, 1, 1)
    assert find_anchor(starts, date(2024, 1, 28)) == date(2024, 1, 1)
    assert find_anchor(starts, date(2024, 3, 1)) == date(2024, 1, 29)

def test_best_lengths_prefer_logged_averages(irregular_period_events):
    """Test enough logged cycles win over user settings."""
    settings = UserSettings(user_id="test_user", cycle_length=35, period_length=7)
    lengths = get_best_prediction_lengths(irregular_period_events, settings)

    assert (lengths.cycle_length, lengths.period_length) == (27, 5)
    assert lengths.confidence == Confidence.LOGGED

def test_best_lengths_with_single_logged_period():
    """Test one period supplies the period length and settings the cycle length."""
    events = _flow(date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3))

    lengths = get_best_prediction_lengths(events, UserSettings(user_id="test_user", cycle_length=32))
    assert (lengths.cycle_length, lengths.period_length) == (32, 3)
    assert lengths.confidence == Confidence.LOGGED

    lengths = get_best_prediction_lengths(events)
    assert (lengths.cycle_length, lengths.period_length) == (28, 3)
    assert lengths.confidence == Confidence.LOGGED

def test_best_lengths_fall_back_to_user_settings():
    """Test user settings apply without logged data, filling gaps with defaults."""
    lengths = get_best_prediction_lengths([], UserSettings(user_id="test_user", cycle_length=30))

    assert (lengths.cycle_length, lengths.period_length) == (30, 5)
    assert lengths.confidence == Confidence.USER

def test_best_lengths_fall_back_to_defaults():
    """Test no data and no settings give the system defaults."""
    lengths = get_best_prediction_lengths([], UserSettings(user_id="test_user"))

    assert (lengths.cycle_length, lengths.period_length) == (28, 5)
    assert lengths.confidence == Confidence.DEFAULT

def test_best_lengths_respect_min_cycles_for_average():
    """Test two logged periods are not enough when three are required."""
    events = _flow(date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 31), date(2024, 2, 1))

    assert get_best_prediction_lengths(events).confidence == Confidence.LOGGED
    lengths = get_best_prediction_lengths(events, min_cycles_for_average=3)
    assert lengths.confidence == Confidence.DEFAULT
    assert lengths.cycle_length == 28

def test_best_lengths_use_configured_defaults():
    """Test engine config replaces the built-in defaults."""
    config = EngineConfig(default_cycle_length=30, default_period_length=4)
    lengths = get_best_prediction_lengths([], config=config)

    assert (lengths.cycle_length, lengths.period_length) == (30, 4)
