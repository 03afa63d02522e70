"""
Macrocycle construction.

Partitions the weeks between plan start and race day into Base, Build,
Peak and Taper phases, flags every fourth Base/Build week as a deload and
anchors each week to a Monday.
"""

from datetime import date, timedelta
from typing import Dict, List, Tuple

from loguru import logger

from trainplan.errors import RaceWindowError
from trainplan.plan_schemas import TrainingPhase, WeekMeta
from trainplan.schemas import RaceFamily


BASE_SHARE = 0.6
DELOAD_EVERY = 4

# Minimum and maximum plan length (weeks) per race family
PLAN_WINDOWS: Dict[RaceFamily, Tuple[int, int]] = {
    RaceFamily.FIVE_K: (2, 20),
    RaceFamily.TEN_K: (3, 20),
    RaceFamily.HALF_MARATHON: (4, 24),
    RaceFamily.MARATHON: (6, 32),
    RaceFamily.SPRINT: (2, 20),
    RaceFamily.OLYMPIC: (3, 24),
    RaceFamily.HALF_IRONMAN: (4, 28),
    RaceFamily.FULL_IRONMAN: (6, 32),
}


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def next_monday(today: date) -> date:
    """The given date when it is a Monday, otherwise the following Monday."""
    return today + timedelta(days=(7 - today.weekday()) % 7)


def count_weeks(start_date: date, race_date: date) -> int:
    """Number of plan weeks from a Monday start up to and including the race week."""
    return (race_date - start_date).days // 7 + 1


def check_race_window(total_weeks: int, family: RaceFamily) -> None:
    """
    Reject plans that are too short or too long for the race family.

    Raises:
        RaceWindowError: If total_weeks falls outside the family's window
    """
    min_weeks, max_weeks = PLAN_WINDOWS[family]
    if total_weeks < min_weeks or total_weeks > max_weeks:
        raise RaceWindowError(total_weeks, min_weeks, max_weeks)


def build_phase_sequence(total_weeks: int) -> List[Tuple[TrainingPhase, bool]]:
    """
    Assign a phase and deload flag to each week.

    Peak gets 2 weeks when the plan has 10+ weeks, 1 week at 8-9 weeks and
    none below that. Taper gets 2 weeks at 10+ weeks, otherwise 1. The rest
    splits roughly 60/40 between Base and Build.

    Args:
        total_weeks: Number of weeks in the plan (>= 1)

    Returns:
        List of (phase, deload) tuples in week order

    Raises:
        ValueError: If total_weeks < 1
    """
    if total_weeks < 1:
        raise ValueError(f"A plan needs at least one week, got {total_weeks}")

    peak_weeks = 2 if total_weeks >= 10 else 1 if total_weeks >= 8 else 0
    taper_weeks = 2 if total_weeks >= 10 else 1
    remaining = max(0, total_weeks - peak_weeks - taper_weeks)
    base_weeks = min(remaining, _round_half_up(remaining * BASE_SHARE))
    build_weeks = remaining - base_weeks

    phases = (
        [TrainingPhase.BASE] * base_weeks
        + [TrainingPhase.BUILD] * build_weeks
        + [TrainingPhase.PEAK] * peak_weeks
        + [TrainingPhase.TAPER] * taper_weeks
    )
    # Short plans: trim from the front so the race week stays a taper
    phases = phases[-total_weeks:]
    phases[-1] = TrainingPhase.TAPER

    sequence = []
    for i, phase in enumerate(phases):
        deload = phase in (TrainingPhase.BASE, TrainingPhase.BUILD) and (i + 1) % DELOAD_EVERY == 0
        sequence.append((phase, deload))
    return sequence


def build_macrocycle(start_date: date, race_date: date) -> List[WeekMeta]:
    """
    Build the week skeleton for a plan.

    Args:
        start_date: First day of the plan; must be a Monday
        race_date: Race day; must not precede start_date

    Returns:
        One WeekMeta per week, the last one carrying race_day

    Raises:
        ValueError: If start_date is not a Monday or race_date precedes it
    """
    if start_date.weekday() != 0:
        raise ValueError(f"Plan start date must be a Monday, got {start_date.isoformat()}")
    if race_date < start_date:
        raise ValueError(
            f"Race date {race_date.isoformat()} precedes plan start {start_date.isoformat()}"
        )

    total_weeks = count_weeks(start_date, race_date)
    sequence = build_phase_sequence(total_weeks)

    weeks = []
    for i, (phase, deload) in enumerate(sequence):
        week_start = start_date + timedelta(weeks=i)
        is_last = i == total_weeks - 1
        weeks.append(
            WeekMeta(
                week_number=i + 1,
                label=f"Week {i + 1}",
                phase=phase,
                deload=deload,
                start_date=week_start,
                race_day=race_date if is_last else None,
            )
        )

    logger.debug(
        f"Macrocycle built: {total_weeks} weeks from {start_date.isoformat()} "
        f"to {race_date.isoformat()} ({phase_breakdown(weeks)})"
    )
    return weeks


def phase_breakdown(weeks: List[WeekMeta]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for week in weeks:
        counts[week.phase.label] = counts.get(week.phase.label, 0) + 1
    return counts
