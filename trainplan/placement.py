"""
Day-placement guard.

Relocates brick and strength sessions that landed on disallowed weekdays.
Session text is never rewritten beyond backfilling a missing detail segment,
sessions are never dropped, and no session leaves the week's seven dates.
"""

from datetime import date, timedelta
from typing import Iterable, List, Optional

from loguru import logger

from trainplan.plan_schemas import TrainingPhase, WeekContent
from trainplan.schemas import Sport, Weekday
from trainplan.session_parser import DEFAULT_DETAILS, SEPARATOR, classify_sport, has_separator


STRENGTH_DAYS = (Weekday.TUESDAY, Weekday.THURSDAY)
STRENGTH_FALLBACK_DAY = Weekday.TUESDAY
STRENGTH_GUARDED_PHASES = (TrainingPhase.BASE, TrainingPhase.BUILD)
DEFAULT_BRICK_DAYS = (Weekday.SATURDAY,)


def ensure_description(text: str) -> str:
    """
    Make sure a session string carries a dash-separated detail segment.

    "Strength: core" becomes "Strength — core"; a bare title gets " — Details".
    """
    if has_separator(text):
        return text
    if ": " in text:
        return text.replace(": ", SEPARATOR, 1)
    return f"{text.rstrip()}{SEPARATOR}{DEFAULT_DETAILS}"


def _key_date(key: str) -> Optional[date]:
    try:
        return date.fromisoformat(key[:10])
    except ValueError:
        return None


def nearest_allowed_date(current: date, week_start: date, allowed: Iterable[Weekday]) -> date:
    """
    Pick the allowed weekday inside this week reachable with the smallest
    forward offset; when every allowed day is earlier, take the closest earlier one.
    """
    offsets = [day.index - current.weekday() for day in allowed]
    forward = [o for o in offsets if o > 0]
    offset = min(forward) if forward else max(offsets)
    target = current + timedelta(days=offset)
    week_end = week_start + timedelta(days=6)
    return min(max(target, week_start), week_end)


def apply_placement_guard(
    content: WeekContent,
    week_start: date,
    phase: TrainingPhase,
    brick_days: Optional[List[Weekday]] = None,
) -> WeekContent:
    """
    Relocate misplaced brick and strength sessions.

    Args:
        content: Canonicalized day content for one week
        week_start: Monday opening the week
        phase: Phase of the week (strength is only constrained in Base/Build)
        brick_days: Allowed brick weekdays (Saturday when empty)

    Returns:
        New WeekContent; the input mapping is left untouched
    """
    allowed_bricks = list(brick_days or DEFAULT_BRICK_DAYS)
    allowed_brick_idx = {day.index for day in allowed_bricks}
    week_end = week_start + timedelta(days=6)

    result: WeekContent = {key: [] for key in content}
    moves = []

    for key, sessions in content.items():
        current = _key_date(key)
        for text in sessions:
            if current is None or not (week_start <= current <= week_end):
                result[key].append(text)
                continue

            sport = classify_sport(text)
            target = None
            if sport == Sport.BRICK and current.weekday() not in allowed_brick_idx:
                target = nearest_allowed_date(current, week_start, allowed_bricks)
            elif (
                sport == Sport.STRENGTH
                and phase in STRENGTH_GUARDED_PHASES
                and Weekday.from_date(current) not in STRENGTH_DAYS
            ):
                target = STRENGTH_FALLBACK_DAY.date_in_week(week_start)

            if target is None or target == current:
                result[key].append(text)
                continue

            moved = ensure_description(text)
            result.setdefault(target.isoformat(), []).append(moved)
            moves.append((sport.value, key, target.isoformat()))

    for sport, source, target in moves:
        logger.debug(f"Placement guard moved {sport} session {source} -> {target}")
    return result
