"""
Tests for week target calculation.

Covers:
- First-week targets from availability
- Week-to-week progression with the 8% growth cap
- Marathon long-run share, progression step and floor
- Deload and taper reductions
- Prior-week sanitization
- Decision recording
"""

from datetime import date

import pytest

from trainplan.plan_schemas import TrainingPhase, WeekMeta
from trainplan.schemas import AthleteProfile, Experience, PriorWeekSummary, RaceFamily, Weekday
from trainplan.targets import (
    TargetCalculator,
    compute_week_targets,
    long_run_share_cap,
    progression_step,
    quality_days_for,
    sanitize_minutes,
)


def _meta(week_number, start, phase, deload=False, race_day=None):
    return WeekMeta(
        week_number=week_number,
        label=f"Week {week_number}",
        phase=phase,
        deload=deload,
        start_date=start,
        race_day=race_day,
    )


@pytest.fixture
def marathoner():
    return AthleteProfile(
        user_id="marathoner",
        race_type="Marathon",
        race_date=date(2025, 6, 29),
        experience="intermediate",
        max_hours=8,
    )


@pytest.fixture
def half_marathoner():
    return AthleteProfile(
        user_id="half_marathoner",
        race_type="Half Marathon",
        race_date=date(2025, 5, 25),
        experience="intermediate",
        max_hours=6,
        long_run_day="saturday",
    )


def test_first_week_from_availability(half_marathoner):
    """Test week 1 targets derived from weekly availability."""
    meta = _meta(1, date(2025, 3, 3), TrainingPhase.BASE)
    targets = compute_week_targets(half_marathoner, meta)

    # 6h x 60 x 0.78 = 280.8, +7% ramp
    assert targets.target_weekly_min == 300
    assert targets.target_long_run_min == 78
    assert targets.long_run_max == 105
    assert targets.min_long_run_min == 0
    assert targets.quality_days == 1
    assert targets.max_quality_min == 25
    assert targets.preferred_long_run_day == Weekday.SATURDAY
    assert targets.prev_weekly_min == 0


def test_build_week_progression(marathoner):
    """Test a Build week after a 300/90 week."""
    meta = _meta(6, date(2025, 4, 7), TrainingPhase.BUILD)
    prior = PriorWeekSummary(total_minutes=300, long_run_minutes=90)
    targets = compute_week_targets(marathoner, meta, prior)

    # 300 x 1.07 x 1.05 is capped at 300 x 1.08
    assert targets.target_weekly_min == 324
    # 0.32 x 324 = 103.7, below the 90 + 15 progression cap
    assert targets.target_long_run_min == 104
    assert targets.long_run_max == 105
    assert targets.min_long_run_min == 75
    assert targets.long_run_share_cap == pytest.approx(0.38)
    assert targets.quality_days == 2
    assert targets.max_quality_min == 50
    assert targets.max_single_session_min == 105
    assert targets.weeks_to_race == 11


def test_weekly_growth_never_exceeds_cap(marathoner):
    """Test that non-deload weeks stay within 8% of the previous week."""
    meta = _meta(2, date(2025, 3, 10), TrainingPhase.BASE)
    for prev in (200, 300, 420):
        targets = compute_week_targets(marathoner, meta, PriorWeekSummary(total_minutes=prev, long_run_minutes=80))
        assert targets.target_weekly_min <= round(prev * 1.08)


def test_deload_week_reduces_volume(marathoner):
    """Test that a deload week drops both totals below the previous week."""
    meta = _meta(4, date(2025, 3, 24), TrainingPhase.BASE, deload=True)
    targets = compute_week_targets(marathoner, meta, PriorWeekSummary(total_minutes=330, long_run_minutes=100))

    assert targets.deload
    assert targets.target_weekly_min == 271
    assert targets.target_weekly_min < 0.9 * 330
    assert targets.target_long_run_min == 88
    assert targets.long_run_max == 95
    assert targets.quality_days == 1
    assert targets.max_quality_min == 25


def test_race_week_taper(half_marathoner):
    """Test the race-week long run reduction."""
    race_week = date(2025, 5, 19)
    meta = _meta(12, race_week, TrainingPhase.TAPER, race_day=date(2025, 5, 25))
    targets = compute_week_targets(half_marathoner, meta, PriorWeekSummary(total_minutes=300, long_run_minutes=100))

    assert targets.weeks_to_race == 0
    assert targets.target_long_run_min == 45
    assert targets.target_weekly_min == 173
    assert targets.long_run_max == 61
    assert targets.race_day == date(2025, 5, 25)


def test_taper_volume_bound_recorded(half_marathoner):
    """Test that a running taper week is sized from its long run and the bound is logged."""
    calculator = TargetCalculator(half_marathoner)
    meta = _meta(11, date(2025, 5, 12), TrainingPhase.TAPER)

    targets = calculator.compute(meta, PriorWeekSummary(total_minutes=300, long_run_minutes=90))

    assert targets.target_long_run_min == 56
    assert targets.target_weekly_min == 215
    bound = [d for d in calculator.decisions if d.decision_point == "Taper volume bound (week 11)"]
    assert len(bound) == 1
    assert bound[0].outcome == "215 min/week"


def test_triathlon_taper_not_bounded():
    """Test that triathlon taper volume keeps the phase factor only."""
    triathlete = AthleteProfile(
        user_id="tri",
        race_type="Olympic Triathlon",
        race_date=date(2025, 5, 25),
        experience="intermediate",
        max_hours=8,
    )
    meta = _meta(11, date(2025, 5, 12), TrainingPhase.TAPER)

    targets = compute_week_targets(triathlete, meta, PriorWeekSummary(total_minutes=400, long_run_minutes=60))

    assert targets.target_weekly_min == 308
    assert targets.target_long_run_min == 37


def test_prior_week_values_sanitized(half_marathoner):
    """Test that unusable prior values are treated as zero."""
    assert sanitize_minutes(None) == 0.0
    assert sanitize_minutes("abc") == 0.0
    assert sanitize_minutes(float("nan")) == 0.0
    assert sanitize_minutes(float("inf")) == 0.0
    assert sanitize_minutes(-5) == 0.0
    assert sanitize_minutes("120") == 120.0

    meta = _meta(1, date(2025, 3, 3), TrainingPhase.BASE)
    clean = compute_week_targets(half_marathoner, meta)
    noisy = compute_week_targets(
        half_marathoner,
        meta,
        PriorWeekSummary(total_minutes=float("nan"), long_run_minutes=-10),
    )
    assert noisy == clean


def test_all_minutes_are_non_negative_ints(marathoner):
    """Test the shape of every minute field."""
    meta = _meta(3, date(2025, 3, 17), TrainingPhase.BASE)
    targets = compute_week_targets(marathoner, meta, PriorWeekSummary(total_minutes=250.7, long_run_minutes=80.2))
    for field in (
        "target_weekly_min",
        "target_long_run_min",
        "min_long_run_min",
        "long_run_max",
        "max_single_session_min",
        "max_quality_min",
    ):
        value = getattr(targets, field)
        assert isinstance(value, int)
        assert value >= 0
    assert targets.min_long_run_min <= targets.target_long_run_min <= targets.long_run_max


def test_calculator_records_decisions(marathoner):
    """Test that each computed week adds volume and long-run decisions."""
    calculator = TargetCalculator(marathoner)
    calculator.compute(_meta(1, date(2025, 3, 3), TrainingPhase.BASE))
    calculator.compute(_meta(2, date(2025, 3, 10), TrainingPhase.BASE), PriorWeekSummary(total_minutes=300))

    assert len(calculator.decisions) == 4
    assert calculator.decisions[0].decision_point == "Weekly volume target (week 1)"
    assert calculator.decisions[1].decision_point == "Long run target (week 1)"
    assert calculator.decisions[3].week_number == 2


def test_lookup_helpers():
    """Test share caps, progression steps and quality days."""
    assert long_run_share_cap(RaceFamily.MARATHON, TrainingPhase.PEAK, Experience.ADVANCED) == pytest.approx(0.40)
    assert long_run_share_cap(RaceFamily.TEN_K, TrainingPhase.PEAK, Experience.ADVANCED) == pytest.approx(0.35)

    assert progression_step(RaceFamily.MARATHON, TrainingPhase.BUILD, Experience.INTERMEDIATE, False) == 15
    assert progression_step(RaceFamily.MARATHON, TrainingPhase.BUILD, Experience.BEGINNER, False) == 10
    assert progression_step(RaceFamily.TEN_K, TrainingPhase.BASE, Experience.ADVANCED, False) == 10
    assert progression_step(RaceFamily.HALF_MARATHON, TrainingPhase.BASE, Experience.ADVANCED, True) == 0

    assert quality_days_for(TrainingPhase.BUILD, Experience.ADVANCED, False) == 2
    assert quality_days_for(TrainingPhase.BUILD, Experience.UNKNOWN, False) == 1
    assert quality_days_for(TrainingPhase.BUILD, Experience.ADVANCED, True) == 1
