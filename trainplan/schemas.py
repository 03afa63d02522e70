"""
Pydantic models for athlete inputs and reconciliation data.

This module defines the core data structures for:
- Athlete Profiles: race, experience tier, availability and day preferences
- Prior-week summaries: the realized volume carried from one week to the next
- Completed activities: externally supplied records used for compliance
- Readiness and weekly comparison views derived from planned vs. completed work
"""

import re
import datetime as dt
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# Enumerations
# ============================================================================

class RaceFamily(str, Enum):
    """Supported race distances (running and triathlon)."""
    FIVE_K = "5k"
    TEN_K = "10k"
    HALF_MARATHON = "half"
    MARATHON = "marathon"
    SPRINT = "sprint"
    OLYMPIC = "olympic"
    HALF_IRONMAN = "70.3"
    FULL_IRONMAN = "full"

    @property
    def is_triathlon(self) -> bool:
        return self in TRIATHLON_FAMILIES

    @property
    def display_name(self) -> str:
        return RACE_DISPLAY_NAMES[self]


TRIATHLON_FAMILIES = {
    RaceFamily.SPRINT,
    RaceFamily.OLYMPIC,
    RaceFamily.HALF_IRONMAN,
    RaceFamily.FULL_IRONMAN,
}

RACE_DISPLAY_NAMES = {
    RaceFamily.FIVE_K: "5K",
    RaceFamily.TEN_K: "10K",
    RaceFamily.HALF_MARATHON: "Half Marathon",
    RaceFamily.MARATHON: "Marathon",
    RaceFamily.SPRINT: "Sprint Triathlon",
    RaceFamily.OLYMPIC: "Olympic Triathlon",
    RaceFamily.HALF_IRONMAN: "Half Ironman (70.3)",
    RaceFamily.FULL_IRONMAN: "Ironman (140.6)",
}


class Experience(str, Enum):
    """Athlete experience tier."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    UNKNOWN = "unknown"


class Weekday(str, Enum):
    """Days of the week (Monday first, matching date.weekday())."""
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def index(self) -> int:
        """0 = Monday ... 6 = Sunday."""
        return WEEKDAY_ORDER.index(self)

    @classmethod
    def from_date(cls, value: date) -> "Weekday":
        return WEEKDAY_ORDER[value.weekday()]

    def date_in_week(self, week_start: date) -> date:
        """Calendar date of this weekday inside the week starting on week_start (a Monday)."""
        return week_start + timedelta(days=self.index)


WEEKDAY_ORDER = [
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
    Weekday.SUNDAY,
]

_WEEKDAY_ALIASES = {
    "mon": Weekday.MONDAY,
    "tue": Weekday.TUESDAY,
    "tues": Weekday.TUESDAY,
    "wed": Weekday.WEDNESDAY,
    "thu": Weekday.THURSDAY,
    "thur": Weekday.THURSDAY,
    "thurs": Weekday.THURSDAY,
    "fri": Weekday.FRIDAY,
    "sat": Weekday.SATURDAY,
    "sun": Weekday.SUNDAY,
}


class Sport(str, Enum):
    """Sport classification of a single session."""
    SWIM = "swim"
    BIKE = "bike"
    RUN = "run"
    STRENGTH = "strength"
    BRICK = "brick"
    OTHER = "other"


class SessionStatus(str, Enum):
    """Lifecycle of a persisted session row."""
    PLANNED = "planned"
    DONE = "done"
    SKIPPED = "skipped"
    MISSED = "missed"


# ============================================================================
# Normalizers
# ============================================================================

def normalize_weekday(value: Any) -> Any:
    """Accept 'Monday', 'mon', 'MON' or a Weekday; leave anything else for pydantic to reject."""
    if isinstance(value, Weekday) or not isinstance(value, str):
        return value
    key = value.strip().lower()
    if key in _WEEKDAY_ALIASES:
        return _WEEKDAY_ALIASES[key]
    return key


def normalize_experience(value: Any) -> Experience:
    """Map free-form experience text onto a tier; anything unrecognized is UNKNOWN."""
    if isinstance(value, Experience):
        return value
    text = str(value or "").lower()
    if "beginner" in text or "novice" in text:
        return Experience.BEGINNER
    if "advanced" in text or "elite" in text:
        return Experience.ADVANCED
    if "intermediate" in text:
        return Experience.INTERMEDIATE
    return Experience.UNKNOWN


def normalize_race_family(value: Any) -> RaceFamily:
    """
    Map a free-form race label onto a RaceFamily.

    Args:
        value: Label such as "Half Ironman (70.3)", "Marathon" or "10K"

    Returns:
        RaceFamily

    Raises:
        ValueError: If the label matches no supported race
    """
    if isinstance(value, RaceFamily):
        return value
    text = str(value or "").strip().lower()

    for family in RaceFamily:
        if text == family.value:
            return family

    # Order matters: "half ironman" contains "half", "half marathon" contains "marathon"
    if "70.3" in text or "half iron" in text or "half-iron" in text or "middle distance" in text:
        return RaceFamily.HALF_IRONMAN
    if "140.6" in text or "ironman" in text or "full distance" in text or "full-distance" in text:
        return RaceFamily.FULL_IRONMAN
    if "olympic" in text or "standard distance" in text:
        return RaceFamily.OLYMPIC
    if "sprint" in text:
        return RaceFamily.SPRINT
    if "half" in text and "marathon" in text:
        return RaceFamily.HALF_MARATHON
    if "21k" in text or "21.1" in text:
        return RaceFamily.HALF_MARATHON
    if "marathon" in text or "42k" in text or "42.2" in text:
        return RaceFamily.MARATHON
    if re.search(r"\b10\s*k\b", text):
        return RaceFamily.TEN_K
    if re.search(r"\b5\s*k\b", text):
        return RaceFamily.FIVE_K

    raise ValueError(f"Unsupported race type: {value!r}")


# ============================================================================
# Athlete Profile
# ============================================================================

class AthleteProfile(BaseModel):
    """
    Athlete parameters for one plan generation run.

    Frozen: every core component reads it, none may change it mid-run.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Unique identifier for the athlete"
    )

    race_type: str = Field(
        ...,
        min_length=1,
        description="Race label as entered (e.g., 'Half Ironman (70.3)')"
    )

    race_family: RaceFamily = Field(
        ...,
        description="Normalized race family (derived from race_type when omitted)"
    )

    race_date: date = Field(
        ...,
        description="Calendar date of the goal race"
    )

    experience: Experience = Field(
        default=Experience.UNKNOWN,
        description="Experience tier"
    )

    max_hours: float = Field(
        ...,
        gt=0,
        le=40,
        description="Maximum weekly training hours available"
    )

    rest_day: Weekday = Field(
        default=Weekday.MONDAY,
        description="Preferred full rest day"
    )

    long_run_day: Optional[Weekday] = Field(
        default=None,
        description="Preferred long-run day (Sunday when not given)"
    )

    long_ride_day: Optional[Weekday] = Field(
        default=None,
        description="Preferred long-ride day (triathlon only)"
    )

    brick_days: List[Weekday] = Field(
        default_factory=list,
        description="Allowed brick days (Saturday when empty)"
    )

    bike_ftp: Optional[int] = Field(
        default=None,
        gt=0,
        le=600,
        description="Bike functional threshold power (watts)"
    )

    run_threshold_pace: Optional[str] = Field(
        default=None,
        description="Run threshold pace, e.g. '6:55 / mi' or '4:20/km'"
    )

    swim_css: Optional[str] = Field(
        default=None,
        description="Swim critical speed pace, e.g. '1:32 / 100m'"
    )

    pace_unit: Literal["mi", "km"] = Field(
        default="km",
        description="Unit used when a pace string carries none"
    )

    preferences_text: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="Free-form preference notes"
    )

    @model_validator(mode="before")
    @classmethod
    def derive_race_family(cls, data: Any) -> Any:
        """Fill race_family from race_type when the caller only gave a label."""
        if isinstance(data, dict) and not data.get("race_family") and data.get("race_type"):
            data = dict(data)
            data["race_family"] = normalize_race_family(data["race_type"])
        return data

    @field_validator("race_family", mode="before")
    @classmethod
    def validate_race_family(cls, v: Any) -> RaceFamily:
        return normalize_race_family(v)

    @field_validator("experience", mode="before")
    @classmethod
    def validate_experience(cls, v: Any) -> Experience:
        return normalize_experience(v)

    @field_validator("rest_day", "long_run_day", "long_ride_day", mode="before")
    @classmethod
    def validate_day(cls, v: Any) -> Any:
        return normalize_weekday(v)

    @field_validator("brick_days", mode="before")
    @classmethod
    def validate_brick_days(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [normalize_weekday(day) for day in v]

    @property
    def effective_long_run_day(self) -> Weekday:
        return self.long_run_day or Weekday.SUNDAY

    @property
    def effective_brick_days(self) -> List[Weekday]:
        return list(self.brick_days) or [Weekday.SATURDAY]


# ============================================================================
# Week-to-week carry
# ============================================================================

class PriorWeekSummary(BaseModel):
    """
    Realized volume of the previous accepted week.

    Values are deliberately loose (may be None or NaN when the upstream
    summary was unparseable); the Target Calculator sanitizes them.
    """

    total_minutes: Optional[float] = Field(
        default=0.0,
        description="Total parseable minutes of the previous week"
    )

    long_run_minutes: Optional[float] = Field(
        default=0.0,
        description="Longest run of the previous week in minutes"
    )

    @classmethod
    def empty(cls) -> "PriorWeekSummary":
        return cls(total_minutes=0.0, long_run_minutes=0.0)


# ============================================================================
# Compliance inputs and outputs
# ============================================================================

class CompletedActivity(BaseModel):
    """A completed workout supplied by the activity-ingestion collaborator."""

    date: dt.date = Field(..., description="Local calendar date of the activity")
    title: Optional[str] = Field(default=None, description="Activity or matched session title")
    sport: Optional[str] = Field(default=None, description="Sport type (e.g., 'Run', 'Ride', 'Swim')")
    duration_minutes: Optional[float] = Field(default=None, ge=0, description="Moving time in minutes")
    average_pace_sec_per_km: Optional[float] = Field(default=None, gt=0, description="Average run pace")
    average_power: Optional[float] = Field(default=None, ge=0, description="Average bike power (watts)")


ReadinessLabel = Literal["On track", "Mostly on track", "Needs consistency", "At risk"]


class ReadinessParts(BaseModel):
    """Component breakdown of a readiness score."""

    compliance: float = Field(..., ge=0.0, le=1.0)
    trend: float = Field(..., ge=0.0, le=1.0)
    recency: float = Field(..., ge=0.0, le=1.0)
    proximity_multiplier: float = Field(..., ge=0.0, le=1.0)


class ReadinessResult(BaseModel):
    """Race readiness derived from planned vs. completed sessions."""

    score: int = Field(..., ge=0, le=100, description="Readiness score 0-100")
    label: ReadinessLabel = Field(..., description="Four-tier readiness label")
    parts: ReadinessParts = Field(..., description="Score components")


class WeeklyComparison(BaseModel):
    """Planned vs. actual snapshot for one calendar date."""

    date: dt.date
    planned: Dict[str, int] = Field(default_factory=dict, description="Planned session count per sport")
    actual_duration: float = Field(default=0.0, ge=0, description="Completed minutes on this date")
    pace_delta: Optional[float] = Field(
        default=None, description="Average run pace minus threshold pace (sec/km, positive = slower)"
    )
    power_delta: Optional[float] = Field(
        default=None, description="Average bike power minus FTP (watts)"
    )
    status: Literal["done", "partial", "missed", "planned", "unplanned"] = "planned"
