"""
Compliance and readiness.

Reconciles materialized planned sessions against completed activities
supplied by the ingestion side. Everything here is a pure function of its
inputs: no database access, no clock reads unless the caller omits `now`.
"""

import re
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from trainplan.plan_schemas import SessionRow
from trainplan.schemas import (
    CompletedActivity,
    ReadinessParts,
    ReadinessResult,
    SessionStatus,
    Sport,
    WeeklyComparison,
)


NEUTRAL_COMPLIANCE = 0.55
TREND_WEIGHTS = [0.4, 0.3, 0.2, 0.1]
RECENCY_DAYS = 7
PRESSURE_WINDOW_DAYS = 42
PROXIMITY_PENALTY = 0.35

READINESS_LABELS = [
    (85, "On track"),
    (65, "Mostly on track"),
    (45, "Needs consistency"),
]
LOWEST_LABEL = "At risk"

MILE_KM = 1.609344

ACTIVITY_SPORTS = {
    "swim": Sport.SWIM,
    "openwaterswim": Sport.SWIM,
    "run": Sport.RUN,
    "trailrun": Sport.RUN,
    "virtualrun": Sport.RUN,
    "ride": Sport.BIKE,
    "virtualride": Sport.BIKE,
    "bike": Sport.BIKE,
    "gravelride": Sport.BIKE,
    "weighttraining": Sport.STRENGTH,
    "strength": Sport.STRENGTH,
    "brick": Sport.BRICK,
}

_PACE_RE = re.compile(r"(\d{1,2}):([0-5]\d)\s*(?:/|per)?\s*(mi|mile|km)?", re.IGNORECASE)


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def normalize_activity_sport(value: Optional[str]) -> Optional[Sport]:
    """Map an ingestion sport type ("Ride", "VirtualRide", "Run") onto a Sport."""
    if not value:
        return None
    key = re.sub(r"[\s_-]", "", value).lower()
    return ACTIVITY_SPORTS.get(key)


def parse_pace(text: Optional[str], default_unit: str = "km") -> Optional[float]:
    """
    Parse a pace string into seconds per kilometre.

    Args:
        text: Pace such as "6:55 / mi", "4:20/km" or "5:00"
        default_unit: Unit to assume when the string names none ("mi" or "km")

    Returns:
        Seconds per km, or None when unparseable
    """
    if not text:
        return None
    match = _PACE_RE.search(text)
    if not match:
        return None
    seconds = int(match.group(1)) * 60 + int(match.group(2))
    unit = (match.group(3) or default_unit).lower()
    if unit.startswith("mi"):
        return seconds / MILE_KM
    return float(seconds)


def is_trackable(row: SessionRow) -> bool:
    """Rest days and race-day markers are not counted as trainable sessions."""
    return row.sport != Sport.OTHER


# ============================================================================
# Matching
# ============================================================================

class CompletionIndex:
    """
    Lookup of completed work keyed by (date, lowercased title) and (date, sport).

    Args:
        activities: Completed activity records
    """

    def __init__(self, activities: Iterable[CompletedActivity]):
        self.titles: Set[Tuple[date, str]] = set()
        self.sports: Set[Tuple[date, Sport]] = set()
        for activity in activities or []:
            if activity.title and activity.title.strip():
                self.titles.add((activity.date, activity.title.strip().lower()))
            sport = normalize_activity_sport(activity.sport)
            if sport is not None:
                self.sports.add((activity.date, sport))

    def matches(self, row: SessionRow) -> bool:
        if (row.date, row.title.strip().lower()) in self.titles:
            return True
        return row.sport != Sport.OTHER and (row.date, row.sport) in self.sports


def _ratio(rows: List[SessionRow], index: CompletionIndex) -> Optional[float]:
    if not rows:
        return None
    done = sum(1 for row in rows if index.matches(row))
    return clamp01(done / len(rows))


def compliance_ratio(
    planned: List[SessionRow],
    completed: List[CompletedActivity],
    start: date,
    end: date,
    default: float = NEUTRAL_COMPLIANCE,
) -> float:
    """
    Completed share of planned sessions dated within [start, end].

    Returns `default` when nothing was planned in the window.
    """
    index = CompletionIndex(completed)
    window = [r for r in planned if is_trackable(r) and start <= r.date <= end]
    ratio = _ratio(window, index)
    return default if ratio is None else ratio


# ============================================================================
# Readiness
# ============================================================================

def readiness_label(score: int) -> str:
    for threshold, label in READINESS_LABELS:
        if score >= threshold:
            return label
    return LOWEST_LABEL


def calculate_readiness(
    sessions: List[SessionRow],
    completed: List[CompletedActivity],
    race_date: Optional[date] = None,
    now: Optional[date] = None,
    neutral: float = NEUTRAL_COMPLIANCE,
) -> ReadinessResult:
    """
    Blend compliance, trailing trend and recency into a 0-100 readiness score.

    score = round(100 x (0.5 compliance + 0.25 trend + 0.25 recency) x proximity),
    where proximity penalizes missed work more as race day approaches
    (full effect inside the final day, none beyond 42 days).

    Args:
        sessions: Planned session rows
        completed: Completed activity records
        race_date: Race day (no proximity penalty when None)
        now: Evaluation date (defaults to today)
        neutral: Compliance assumed when nothing was planned to date

    Returns:
        ReadinessResult with score, label and component parts
    """
    today = now or date.today()
    index = CompletionIndex(completed)

    planned = sorted((r for r in sessions if is_trackable(r)), key=lambda r: r.date)
    plan_start = planned[0].date if planned else today - timedelta(days=28)
    to_date = [r for r in planned if plan_start <= r.date <= today]

    overall = _ratio(to_date, index)
    compliance = neutral if overall is None else overall

    # trailing 4 weeks, most recent first; empty windows are skipped
    week_ratios = []
    for i in range(len(TREND_WEIGHTS)):
        window_end = today - timedelta(days=i * 7)
        window_start = window_end - timedelta(days=6)
        ratio = _ratio([r for r in to_date if window_start <= r.date <= window_end], index)
        if ratio is not None:
            week_ratios.append(ratio)

    if week_ratios:
        weights = TREND_WEIGHTS[: len(week_ratios)]
        trend = clamp01(sum(r * w for r, w in zip(week_ratios, weights)) / sum(weights))
    else:
        trend = compliance

    recent_start = today - timedelta(days=RECENCY_DAYS - 1)
    recent = _ratio([r for r in to_date if recent_start <= r.date <= today], index)
    recency = compliance if recent is None else recent

    if race_date is None:
        pressure = 0.0
    else:
        days_to_race = (race_date - today).days
        pressure = clamp01((PRESSURE_WINDOW_DAYS - max(days_to_race, 0)) / PRESSURE_WINDOW_DAYS)
    proximity = 1 - pressure * (1 - compliance) * PROXIMITY_PENALTY

    base = 0.5 * compliance + 0.25 * trend + 0.25 * recency
    score = max(0, min(100, int(base * 100 * proximity + 0.5)))

    return ReadinessResult(
        score=score,
        label=readiness_label(score),
        parts=ReadinessParts(
            compliance=compliance,
            trend=trend,
            recency=recency,
            proximity_multiplier=clamp01(proximity),
        ),
    )


# ============================================================================
# Daily comparison and status sync
# ============================================================================

def build_weekly_comparison(
    sessions: List[SessionRow],
    completed: List[CompletedActivity],
    bike_ftp: Optional[int] = None,
    run_threshold_pace: Optional[str] = None,
    pace_unit: str = "km",
    today: Optional[date] = None,
) -> List[WeeklyComparison]:
    """
    Per-date planned vs. actual snapshot.

    Pace delta compares average run pace with threshold pace (sec/km, positive
    means slower than threshold); power delta compares average bike power with FTP.
    """
    today = today or date.today()
    threshold = parse_pace(run_threshold_pace, pace_unit)
    index = CompletionIndex(completed)

    planned_by_day: Dict[date, List[SessionRow]] = {}
    for row in sessions:
        if is_trackable(row):
            planned_by_day.setdefault(row.date, []).append(row)

    done_by_day: Dict[date, List[CompletedActivity]] = {}
    for activity in completed:
        done_by_day.setdefault(activity.date, []).append(activity)

    comparisons = []
    for day in sorted(set(planned_by_day) | set(done_by_day)):
        rows = planned_by_day.get(day, [])
        activities = done_by_day.get(day, [])

        counts: Dict[str, int] = {}
        for row in rows:
            counts[row.sport.value] = counts.get(row.sport.value, 0) + 1

        paces = [a.average_pace_sec_per_km for a in activities if a.average_pace_sec_per_km]
        powers = [a.average_power for a in activities if a.average_power]
        pace_delta = None
        if paces and threshold:
            pace_delta = round(sum(paces) / len(paces) - threshold, 1)
        power_delta = None
        if powers and bike_ftp:
            power_delta = round(sum(powers) / len(powers) - bike_ftp, 1)

        matched = sum(1 for row in rows if index.matches(row))
        if not rows:
            status = "unplanned"
        elif matched == len(rows):
            status = "done"
        elif matched > 0:
            status = "partial"
        elif day < today:
            status = "missed"
        else:
            status = "planned"

        comparisons.append(
            WeeklyComparison(
                date=day,
                planned=counts,
                actual_duration=round(sum(a.duration_minutes or 0 for a in activities), 1),
                pace_delta=pace_delta,
                power_delta=power_delta,
                status=status,
            )
        )
    return comparisons


def sync_session_statuses(
    sessions: List[SessionRow],
    completed: List[CompletedActivity],
    today: Optional[date] = None,
) -> List[SessionRow]:
    """
    Mark planned sessions done or missed.

    Past sessions become done when matched and missed otherwise; today's
    sessions only flip to done. Future and skipped sessions are left alone.
    """
    today = today or date.today()
    index = CompletionIndex(completed)
    updated = []
    for row in sessions:
        if row.status in (SessionStatus.PLANNED, SessionStatus.MISSED) and row.date <= today and is_trackable(row):
            if index.matches(row):
                row = row.model_copy(update={"status": SessionStatus.DONE})
            elif row.date < today:
                row = row.model_copy(update={"status": SessionStatus.MISSED})
        updated.append(row)
    return updated
