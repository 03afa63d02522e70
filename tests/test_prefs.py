"""
Tests for preference extraction from free-form notes.

Covers:
- Brick, long-ride, long-run and rest day extraction
- Mid-week brick handling
- Explicit profile fields taking precedence
"""

from datetime import date

from trainplan.prefs import apply_preferences, extract_preferences
from trainplan.schemas import AthleteProfile, Weekday


def _profile(**overrides):
    data = {
        "user_id": "triathlete",
        "race_type": "Half Ironman (70.3)",
        "race_date": date(2025, 9, 14),
        "experience": "intermediate",
        "max_hours": 10,
    }
    data.update(overrides)
    return AthleteProfile(**data)


def test_extract_days_by_clause():
    """Test that each preference takes the day named in its own clause."""
    prefs = extract_preferences("Long run on Saturdays, long ride on Sunday. Rest day Friday")

    assert prefs.long_run_day == Weekday.SATURDAY
    assert prefs.long_ride_day == Weekday.SUNDAY
    assert prefs.rest_day == Weekday.FRIDAY
    assert prefs.brick_days == []


def test_extract_brick_days_with_midweek():
    """Test that a mid-week brick adds Wednesday."""
    prefs = extract_preferences("Bricks on Sunday; mid-week brick is fine too")

    assert prefs.brick_days == [Weekday.SUNDAY, Weekday.WEDNESDAY]


def test_extract_nothing():
    """Test empty and unrelated notes."""
    assert extract_preferences(None).empty
    assert extract_preferences("I like hills").empty


def test_apply_fills_unset_fields():
    """Test that notes fill day fields the profile leaves unset."""
    profile = _profile(preferences_text="Long run Saturday, brick on Sunday, rest day Tuesday")

    applied = apply_preferences(profile)

    assert applied.long_run_day == Weekday.SATURDAY
    assert applied.brick_days == [Weekday.SUNDAY]
    assert applied.rest_day == Weekday.TUESDAY
    assert profile.long_run_day is None


def test_explicit_fields_win():
    """Test that explicit profile values are never overridden."""
    profile = _profile(
        long_run_day="sunday",
        brick_days=["saturday"],
        rest_day="monday",
        preferences_text="Long run Saturday, brick on Sunday, rest day Tuesday",
    )

    applied = apply_preferences(profile)

    assert applied.long_run_day == Weekday.SUNDAY
    assert applied.brick_days == [Weekday.SATURDAY]
    assert applied.rest_day == Weekday.MONDAY
