"""
Tests for session text parsing.

Covers:
- Duration extraction (minutes, hours, combined, clock form)
- Pace strings that must not be read as durations
- Sport classification by emoji and keyword
- Quality-work detection
- Title/details splitting
- Parse, render and parse again on messy session text
"""

import pytest

from trainplan.schemas import Sport
from trainplan.session_parser import (
    DEFAULT_TITLE,
    classify_sport,
    has_separator,
    is_hard_text,
    is_run_session,
    parse_day,
    parse_duration,
    parse_session,
    split_title_details,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("🏃 Run — 45min easy", 45),
        ("Easy run 30 minutes", 30),
        ("Long Run — 1h 30min steady", 90),
        ("Long Run — 1h30 steady", 90),
        ("Ride 1.5h endurance", 90),
        ("Ride 2 hours endurance", 120),
        ("Long run 1:15 easy", 75),
        ("Tempo Run — 40min: 10min easy, 20min tempo, 10min easy", 40),
    ],
)
def test_parse_duration_forms(text, expected):
    """Test that every supported duration form is recognized."""
    assert parse_duration(text) == expected


def test_parse_duration_ignores_paces():
    """Test that paces are not mistaken for clock durations."""
    assert parse_duration("Easy run @ 5:30/km") is None
    assert parse_duration("Strides at 6:55 per mile") is None


def test_parse_duration_missing():
    """Test that text without a duration returns None."""
    assert parse_duration("🏃 Intervals — 6x800m") is None
    assert parse_duration("") is None
    assert parse_duration("Rest") is None


def test_classify_sport_by_emoji():
    """Test that a leading emoji decides the sport."""
    assert classify_sport("🏊 Swim — 40min drills") == Sport.SWIM
    assert classify_sport("🚴 Ride — 90min Z2") == Sport.BIKE
    assert classify_sport("🏃 Run — 30min") == Sport.RUN
    assert classify_sport("🧱 Brick — 60min bike + 20min run") == Sport.BRICK
    assert classify_sport("💪 Strength — 30min core") == Sport.STRENGTH


def test_classify_sport_by_keyword():
    """Test keyword fallback when no emoji is present."""
    assert classify_sport("Easy run — 40min") == Sport.RUN
    assert classify_sport("Pool session — 45min") == Sport.SWIM
    assert classify_sport("Gym — 30min") == Sport.STRENGTH
    assert classify_sport("Rest day") == Sport.OTHER


def test_is_hard_text():
    """Test quality cues including rep structures."""
    assert is_hard_text("Tempo Run — 45min")
    assert is_hard_text("Run — 6x800m at 5k effort")
    assert is_hard_text("Hill repeats — 40min")
    assert is_hard_text("Long run with marathon pace finish")
    assert not is_hard_text("Easy run — 40min conversational")
    assert not is_hard_text("Easy run with 6 strides")


def test_split_title_details():
    """Test splitting on the first dash separator."""
    assert split_title_details("🏃 Run — 45min easy") == ("🏃 Run", "45min easy")
    assert split_title_details("Run – 45min – Details") == ("Run", "45min — Details")
    assert split_title_details("Run 45min") == ("Run 45min", None)
    assert has_separator("Run — 45min")
    assert not has_separator("Run-45min")


def test_parse_session_fields():
    """Test a fully parsed run session."""
    session = parse_session("🏃 Tempo Run — 50min: 15min easy, 20min tempo, 15min easy")

    assert session.sport == Sport.RUN
    assert session.title == "🏃 Tempo Run"
    assert session.details.startswith("50min")
    assert session.is_hard
    assert session.duration_minutes == 50
    assert is_run_session(session)


def test_parse_session_never_raises():
    """Test that empty or odd input still yields a session."""
    session = parse_session("")
    assert session.title == DEFAULT_TITLE
    assert session.sport == Sport.OTHER
    assert session.duration_minutes is None

    brick = parse_session("🧱 Brick — 60min bike + 20min run")
    assert not is_run_session(brick)


def test_parse_day():
    """Test parsing a list of sessions and a missing list."""
    sessions = parse_day(["🏃 Run — 30min", "💪 Strength — 20min"])
    assert [s.sport for s in sessions] == [Sport.RUN, Sport.STRENGTH]
    assert parse_day(None) == []


@pytest.mark.parametrize(
    "raw,sport,minutes",
    [
        ("🏃 Easy Run – 40min – relaxed", Sport.RUN, 40),
        ("  🏃 Tempo Run —   45min tempo  ", Sport.RUN, 45),
        ("🏊 Swim — — 30min drills", Sport.SWIM, 30),
        ("💪 Strength —", Sport.STRENGTH, None),
        ("🚴 Ride — 1h 30min Z2 — flat route", Sport.BIKE, 90),
        ("Easy jog – 25 minutes", Sport.RUN, 25),
        ("Rest", Sport.OTHER, None),
        ("", Sport.OTHER, None),
    ],
)
def test_parse_render_parse(raw, sport, minutes):
    """Test that a rendered session parses back to the same fields."""
    session = parse_session(raw)
    rendered = session.serialize()
    again = parse_session(rendered)

    assert session.sport == sport
    assert session.duration_minutes == minutes
    assert again == session
    assert again.serialize() == rendered
