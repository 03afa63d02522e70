"""
Tests for macrocycle construction.

Covers:
- Phase distribution for standard and short plans
- Deload placement
- Monday anchoring and race-day assignment
- Plan window checks per race family
"""

from datetime import date, timedelta

import pytest

from trainplan.errors import RaceWindowError
from trainplan.macrocycle import (
    build_macrocycle,
    build_phase_sequence,
    check_race_window,
    count_weeks,
    next_monday,
    phase_breakdown,
)
from trainplan.plan_schemas import TrainingPhase
from trainplan.schemas import RaceFamily

START = date(2025, 3, 3)  # Monday
RACE_12_WEEKS = date(2025, 5, 25)  # Sunday of week 12


@pytest.fixture
def twelve_week_cycle():
    return build_macrocycle(START, RACE_12_WEEKS)


def test_phase_distribution_12_week(twelve_week_cycle):
    """Test the 5/3/2/2 split for a 12-week plan."""
    assert len(twelve_week_cycle) == 12
    assert phase_breakdown(twelve_week_cycle) == {"Base": 5, "Build": 3, "Peak": 2, "Taper": 2}

    phases = [week.phase for week in twelve_week_cycle]
    assert phases[:5] == [TrainingPhase.BASE] * 5
    assert phases[5:8] == [TrainingPhase.BUILD] * 3
    assert phases[8:10] == [TrainingPhase.PEAK] * 2
    assert phases[10:] == [TrainingPhase.TAPER] * 2


def test_deload_every_fourth_week(twelve_week_cycle):
    """Test that weeks 4 and 8 are deloads and nothing else is."""
    deloads = [week.week_number for week in twelve_week_cycle if week.deload]
    assert deloads == [4, 8]


def test_weeks_anchored_to_mondays(twelve_week_cycle):
    """Test that every week starts on a Monday, seven days apart."""
    for i, week in enumerate(twelve_week_cycle):
        assert week.start_date == START + timedelta(weeks=i)
        assert week.start_date.weekday() == 0
        assert week.label == f"Week {i + 1}"


def test_race_day_on_final_week_only(twelve_week_cycle):
    """Test that only the last week carries the race date."""
    assert twelve_week_cycle[-1].race_day == RACE_12_WEEKS
    assert all(week.race_day is None for week in twelve_week_cycle[:-1])
    assert twelve_week_cycle[-1].end_date == RACE_12_WEEKS


def test_short_plans():
    """Test phase sequences for very short plans."""
    assert build_phase_sequence(1) == [(TrainingPhase.TAPER, False)]
    assert [p for p, _ in build_phase_sequence(3)] == [
        TrainingPhase.BASE,
        TrainingPhase.BUILD,
        TrainingPhase.TAPER,
    ]


def test_eight_week_plan_has_single_peak():
    """Test that 8-9 week plans get one peak and one taper week."""
    sequence = build_phase_sequence(8)
    phases = [p for p, _ in sequence]
    assert phases.count(TrainingPhase.PEAK) == 1
    assert phases.count(TrainingPhase.TAPER) == 1
    assert phases.count(TrainingPhase.BASE) == 4
    assert sequence[3] == (TrainingPhase.BASE, True)


def test_phase_sequence_rejects_zero_weeks():
    """Test that an empty plan is rejected."""
    with pytest.raises(ValueError, match="at least one week"):
        build_phase_sequence(0)


def test_macrocycle_requires_monday():
    """Test that a non-Monday start is rejected."""
    with pytest.raises(ValueError, match="Monday"):
        build_macrocycle(date(2025, 3, 4), RACE_12_WEEKS)


def test_macrocycle_rejects_race_before_start():
    """Test that a race before the plan start is rejected."""
    with pytest.raises(ValueError, match="precedes"):
        build_macrocycle(START, START - timedelta(days=1))


def test_next_monday():
    """Test that Mondays stay put and other days roll forward."""
    assert next_monday(START) == START
    assert next_monday(date(2025, 3, 5)) == date(2025, 3, 10)
    assert next_monday(date(2025, 3, 9)) == date(2025, 3, 10)


def test_count_weeks():
    """Test week counting up to and including the race week."""
    assert count_weeks(START, RACE_12_WEEKS) == 12
    assert count_weeks(START, START) == 1
    assert count_weeks(START, START + timedelta(days=7)) == 2


def test_race_window():
    """Test per-family minimum and maximum plan lengths."""
    check_race_window(12, RaceFamily.MARATHON)
    check_race_window(2, RaceFamily.FIVE_K)

    with pytest.raises(RaceWindowError) as exc_info:
        check_race_window(4, RaceFamily.MARATHON)
    assert exc_info.value.min_weeks == 6
    assert exc_info.value.max_weeks == 32

    with pytest.raises(ValueError):
        check_race_window(30, RaceFamily.OLYMPIC)
