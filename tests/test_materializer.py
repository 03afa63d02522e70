"""
Tests for session materialization.

Covers:
- Canonical re-keying of generator output
- Redistribution of invalid and out-of-week dates
- Duplicate (date, sport) collapse with race-day preference
- Session row construction
"""

from datetime import date

from trainplan.materializer import (
    build_session_row,
    canonical_week_dates,
    canonicalize_week,
    dedupe_rows,
    is_race_day_entry,
    materialize_week,
)
from trainplan.schemas import SessionStatus, Sport

WEEK_START = date(2025, 2, 24)  # Monday; the week runs to 2025-03-02
CANONICAL_KEYS = [
    "2025-02-24",
    "2025-02-25",
    "2025-02-26",
    "2025-02-27",
    "2025-02-28",
    "2025-03-01",
    "2025-03-02",
]


def test_canonical_week_dates():
    """Test the seven canonical dates across a month boundary."""
    assert [d.isoformat() for d in canonical_week_dates(WEEK_START)] == CANONICAL_KEYS


def test_invalid_date_redistributed_within_week():
    """Test that a non-existent date lands on the first empty canonical day."""
    content = {
        "2025-02-24": ["Rest — full rest"],
        "2025-02-25": ["🏃 Tempo Run — 40min"],
        "2025-02-26": ["🏃 Easy Run — 35min"],
        "2025-02-28": ["🏃 Easy Run — 30min with strides"],
        "2025-02-29": ["🏃 Long Run — 90min"],
    }

    week = canonicalize_week(content, WEEK_START)

    assert list(week) == CANONICAL_KEYS
    assert week["2025-02-27"] == ["🏃 Long Run — 90min"]
    assert "2025-02-29" not in week
    assert week["2025-03-01"] == []
    assert week["2025-03-02"] == []


def test_extra_groups_fill_empty_days_in_order():
    """Test that several stray keys fill empty days in order."""
    content = {
        "2025-02-24": ["🏃 Run — 30min"],
        "monday": ["🏃 Run — 40min"],
        "2025-03-09": ["🏃 Run — 50min"],
    }

    week = canonicalize_week(content, WEEK_START)

    assert week["2025-02-25"] == ["🏃 Run — 40min"]
    assert week["2025-02-26"] == ["🏃 Run — 50min"]


def test_leftover_groups_appended_to_last_day():
    """Test that extras with no empty day left still survive."""
    content = {key: [f"🏃 Run — {30 + i}min"] for i, key in enumerate(CANONICAL_KEYS)}
    content["2025-03-10"] = ["💪 Strength — 20min"]

    week = canonicalize_week(content, WEEK_START)

    assert week["2025-03-02"] == ["🏃 Run — 36min", "💪 Strength — 20min"]
    assert sum(len(v) for v in week.values()) == 8


def test_blank_sessions_dropped():
    """Test that empty strings and non-strings are discarded."""
    week = canonicalize_week({"2025-02-24": ["", "  ", None, "🏃 Run — 30min"]}, WEEK_START)
    assert week["2025-02-24"] == ["🏃 Run — 30min"]


def test_dedupe_prefers_longer_content_in_first_slot():
    """Test that duplicate sports on a day keep the more detailed entry."""
    rows = [
        build_session_row("🏃 Run — 30min", date(2025, 2, 25), "athlete"),
        build_session_row("💪 Strength — 20min", date(2025, 2, 25), "athlete"),
        build_session_row("🏃 Run — 45min easy with 6 strides", date(2025, 2, 25), "athlete"),
    ]

    deduped = dedupe_rows(rows)

    assert len(deduped) == 2
    assert deduped[0].raw == "🏃 Run — 45min easy with 6 strides"
    assert deduped[1].sport == Sport.STRENGTH


def test_dedupe_prefers_race_day_entry():
    """Test that the race-day entry wins over a longer session."""
    race_day = date(2025, 3, 2)
    rows = [
        build_session_row("🏃 Shakeout — 20min easy with strides before the start", race_day, "athlete"),
        build_session_row("🏁 Race Day — 10K run", race_day, "athlete"),
    ]

    deduped = dedupe_rows(rows)

    assert len(deduped) == 1
    assert is_race_day_entry(deduped[0].raw)


def test_build_session_row_defaults():
    """Test row fields for a bare session string."""
    row = build_session_row("Rest", date(2025, 2, 24), "athlete", plan_id="plan-1")

    assert row.title == "Rest"
    assert row.details == "Details"
    assert row.sport == Sport.OTHER
    assert row.status == SessionStatus.PLANNED
    assert row.plan_id == "plan-1"
    assert row.duration_minutes is None


def test_materialize_week_dates_stay_in_week():
    """Test that every materialized row is dated inside the canonical week."""
    content = {
        "2025-02-29": ["🏃 Long Run — 90min"],
        "2025-03-05": ["🏊 Swim — 40min"],
        "2025-02-25": ["🏃 Tempo Run — 45min"],
    }

    rows = materialize_week(content, WEEK_START, "athlete")

    assert len(rows) == 3
    assert all(date(2025, 2, 24) <= row.date <= date(2025, 3, 2) for row in rows)
    long_run = next(row for row in rows if row.raw.startswith("🏃 Long Run"))
    assert long_run.date == date(2025, 2, 24)
    assert long_run.duration_minutes == 90
    assert long_run.title == "🏃 Long Run"
    assert long_run.details == "90min"
