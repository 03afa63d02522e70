"""
Session materialization.

The materializer alone decides the calendar placement of persisted
sessions. Generator date keys are treated as hints: the seven canonical
dates come from the week's declared Monday, and anything keyed to a date
outside that set is redistributed onto empty canonical days.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from loguru import logger

from trainplan.plan_schemas import GeneratedPlan, SessionRow, WeekContent
from trainplan.schemas import SessionStatus, Sport
from trainplan.session_parser import DEFAULT_DETAILS, DEFAULT_TITLE, parse_session


RACE_DAY_MARKER = "🏁"
RACE_DAY_TITLE = "Race Day"


def canonical_week_dates(week_start: date) -> List[date]:
    """Seven consecutive dates starting at week_start."""
    return [week_start + timedelta(days=i) for i in range(7)]


def _parse_key(key: str) -> Optional[date]:
    try:
        return date.fromisoformat(str(key)[:10])
    except ValueError:
        return None


def canonicalize_week(content: WeekContent, week_start: date) -> WeekContent:
    """
    Re-key a week onto its seven canonical dates.

    Keys that name a canonical date keep their sessions. Every other key
    (invalid dates such as "2025-02-29", dates outside the week, free text)
    becomes an extra group; extra groups fill the canonical days left empty,
    in order. Groups that still have nowhere to go are appended to the last
    day so nothing is lost.

    Args:
        content: Raw day content from the generator
        week_start: Monday opening the week

    Returns:
        WeekContent with exactly the seven canonical ISO dates as keys
    """
    dates = canonical_week_dates(week_start)
    canonical: Dict[date, List[str]] = {d: [] for d in dates}
    extras: List[Tuple[str, List[str]]] = []

    for key, sessions in (content or {}).items():
        items = [s for s in (sessions or []) if isinstance(s, str) and s.strip()]
        parsed = _parse_key(key)
        if parsed in canonical:
            canonical[parsed].extend(items)
        elif items:
            extras.append((str(key), items))

    empty_days = [d for d in dates if not canonical[d]]
    for (key, items), target in zip(extras, empty_days):
        canonical[target].extend(items)
        logger.debug(f"Redistributed {len(items)} session(s) from key {key!r} to {target.isoformat()}")

    for key, items in extras[len(empty_days):]:
        canonical[dates[-1]].extend(items)
        logger.debug(f"No empty day for key {key!r}; appended {len(items)} session(s) to {dates[-1].isoformat()}")

    return {d.isoformat(): canonical[d] for d in dates}


def is_race_day_entry(raw: str) -> bool:
    return raw.strip().startswith(RACE_DAY_MARKER) or RACE_DAY_TITLE.lower() in raw.lower()


def _row_rank(row: SessionRow) -> Tuple[bool, int]:
    return (is_race_day_entry(row.raw), len(row.raw))


def dedupe_rows(rows: List[SessionRow]) -> List[SessionRow]:
    """
    Collapse duplicate (date, sport) pairs.

    The surviving row keeps the position of the first occurrence; its content
    is the race-day entry when one is present, otherwise the most detailed
    (longest) string, with ties going to the earlier row.
    """
    order: List[Tuple[date, Sport]] = []
    chosen: Dict[Tuple[date, Sport], SessionRow] = {}
    for row in rows:
        key = (row.date, row.sport)
        if key not in chosen:
            order.append(key)
            chosen[key] = row
        elif _row_rank(row) > _row_rank(chosen[key]):
            logger.debug(f"Duplicate {row.sport.value} on {row.date.isoformat()}: keeping {row.title!r}")
            chosen[key] = row
    return [chosen[key] for key in order]


def build_session_row(raw: str, day: date, user_id: str, plan_id: Optional[str] = None) -> SessionRow:
    parsed = parse_session(raw)
    return SessionRow(
        user_id=user_id,
        plan_id=plan_id,
        date=day,
        sport=parsed.sport,
        title=parsed.title or DEFAULT_TITLE,
        details=parsed.details or DEFAULT_DETAILS,
        raw=raw,
        status=SessionStatus.PLANNED,
        duration_minutes=parsed.duration_minutes,
    )


def materialize_week(
    content: WeekContent,
    week_start: date,
    user_id: str,
    plan_id: Optional[str] = None,
) -> List[SessionRow]:
    """
    Turn one week's content into deduplicated, date-stamped session rows.

    Args:
        content: Day content (canonical or not)
        week_start: Monday opening the week
        user_id: Owner of the sessions
        plan_id: Plan the sessions belong to

    Returns:
        SessionRows dated strictly within the canonical week
    """
    canonical = canonicalize_week(content, week_start)
    rows = []
    for key, sessions in canonical.items():
        day = date.fromisoformat(key)
        for raw in sessions:
            rows.append(build_session_row(raw.strip(), day, user_id, plan_id))
    return dedupe_rows(rows)


def materialize_plan(plan: GeneratedPlan, plan_id: Optional[str] = None) -> List[SessionRow]:
    """Materialize every accepted week of a plan."""
    rows: List[SessionRow] = []
    for week in plan.weeks:
        rows.extend(materialize_week(week.days, week.meta.start_date, plan.user_id, plan_id))
    logger.info(f"Materialized {len(rows)} session(s) across {len(plan.weeks)} week(s) for {plan.user_id}")
    return rows
