"""
Data schemas for training plan generation.

This module contains Pydantic models for representing the macrocycle skeleton,
per-week targets, generator output, parsed sessions, persisted session rows
and the assembled multi-week plan.
"""

import datetime as dt
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trainplan.errors import WeekValidationError
from trainplan.schemas import AthleteProfile, Experience, RaceFamily, SessionStatus, Sport, Weekday


# Day content as produced by a generator: date key -> session strings
WeekContent = Dict[str, List[str]]


class TrainingPhase(str, Enum):
    """Training plan phases."""

    BASE = "base"  # Build aerobic foundation
    BUILD = "build"  # Increase specificity and volume
    PEAK = "peak"  # Highest load
    TAPER = "taper"  # Recovery before race

    @property
    def label(self) -> str:
        return self.value.capitalize()


# ============================================================================
# Macrocycle
# ============================================================================

class WeekMeta(BaseModel):
    """
    Skeleton entry for one plan week.

    Produced by the Macrocycle Builder; the start date is always a Monday.
    """

    model_config = ConfigDict(frozen=True)

    week_number: int = Field(..., ge=1, description="Week number in plan (1-indexed)")
    label: str = Field(..., min_length=1, description="Display label (e.g., 'Week 3')")
    phase: TrainingPhase = Field(..., description="Training phase for this week")
    deload: bool = Field(default=False, description="Reduced-load recovery week")
    start_date: date = Field(..., description="Monday that opens this week")
    race_day: Optional[date] = Field(
        default=None, description="Race date, set only on the week that contains it"
    )

    @field_validator("start_date")
    @classmethod
    def validate_monday(cls, v: date) -> date:
        if v.weekday() != 0:
            raise ValueError(f"Week start date must be a Monday, got {v.isoformat()}")
        return v

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=6)

    @property
    def dates(self) -> List[date]:
        """The seven canonical calendar dates of this week."""
        return [self.start_date + timedelta(days=i) for i in range(7)]


# ============================================================================
# Targets
# ============================================================================

class WeekTargets(BaseModel):
    """
    Numeric constraints for one week.

    All minute values are non-negative integers; the calculator never emits NaN.
    """

    model_config = ConfigDict(frozen=True)

    target_weekly_min: int = Field(..., ge=0, description="Target weekly minutes")
    target_long_run_min: int = Field(..., ge=0, description="Target long-run minutes")
    min_long_run_min: int = Field(default=0, ge=0, description="Long-run floor (0 = none)")
    long_run_max: int = Field(..., ge=0, description="Hard long-run ceiling")
    max_single_session_min: int = Field(..., ge=0, description="Ceiling for any single run")
    quality_days: int = Field(..., ge=0, le=3, description="Maximum hard-run days")
    max_quality_min: int = Field(..., ge=0, description="Maximum hard-run minutes")
    long_run_share_cap: float = Field(
        default=0.35, gt=0.0, le=1.0, description="Long run as share of weekly total"
    )
    preferred_long_run_day: Weekday = Field(
        default=Weekday.SUNDAY, description="Weekday that should carry the longest run"
    )
    prev_weekly_min: int = Field(default=0, ge=0, description="Sanitized prior-week total")
    prev_long_run_min: int = Field(default=0, ge=0, description="Sanitized prior-week long run")
    experience: Experience = Field(default=Experience.UNKNOWN)
    race_family: RaceFamily = Field(...)
    phase: TrainingPhase = Field(...)
    deload: bool = Field(default=False)
    weeks_to_race: int = Field(default=0, ge=0)
    race_day: Optional[date] = Field(default=None, description="Race date when it falls in this week")

    @property
    def true_beginner(self) -> bool:
        """Beginner tier with a small prior week."""
        return self.experience == Experience.BEGINNER and self.prev_weekly_min < 150


# ============================================================================
# Generator output
# ============================================================================

class GeneratedWeek(BaseModel):
    """
    One week of day-keyed session strings as returned by a content generator.

    Keys are nominally ISO dates but are not trusted until canonicalized.
    """

    model_config = ConfigDict(populate_by_name=True)

    label: str = Field(default="", description="Week label echoed by the generator")
    phase: str = Field(default="", description="Phase echoed by the generator")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    deload: bool = Field(default=False)
    days: WeekContent = Field(..., description="Date key -> session strings")

    @field_validator("days", mode="before")
    @classmethod
    def validate_days(cls, v: Any) -> Any:
        """Accept a bare string or null for a day and treat it as a list."""
        if not isinstance(v, dict):
            return v
        cleaned = {}
        for key, sessions in v.items():
            if sessions is None:
                cleaned[str(key)] = []
            elif isinstance(sessions, str):
                cleaned[str(key)] = [sessions]
            else:
                cleaned[str(key)] = sessions
        return cleaned


class GenerationResult(BaseModel):
    """Tagged outcome of one generator call: exactly one of week or error is set."""

    week: Optional[GeneratedWeek] = None
    error: Optional[str] = None
    raw: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.week is not None and self.error is None

    @classmethod
    def success(cls, week: GeneratedWeek, raw: Optional[str] = None) -> "GenerationResult":
        return cls(week=week, raw=raw)

    @classmethod
    def failure(cls, error: str, raw: Optional[str] = None) -> "GenerationResult":
        return cls(error=error, raw=raw)


# ============================================================================
# Sessions
# ============================================================================

class ParsedSession(BaseModel):
    """Structured reading of one free-form session string."""

    model_config = ConfigDict(frozen=True)

    sport: Sport = Field(..., description="Classified sport")
    title: str = Field(..., min_length=1, description="Short title (text before the dash separator)")
    details: Optional[str] = Field(default=None, description="Remainder after the dash separator")
    is_hard: bool = Field(default=False, description="Contains quality-work cues")
    duration_minutes: Optional[int] = Field(
        default=None, ge=0, description="Extracted duration, None when absent"
    )

    def serialize(self) -> str:
        """Render back to 'title — details' form."""
        if self.details:
            return f"{self.title} — {self.details}"
        return self.title


class SessionRow(BaseModel):
    """A persisted, calendar-anchored session."""

    user_id: str = Field(..., min_length=1)
    plan_id: Optional[str] = Field(default=None)
    date: dt.date
    sport: Sport
    title: str = Field(..., min_length=1)
    details: str = Field(default="Details")
    raw: str = Field(..., description="Original session string")
    status: SessionStatus = Field(default=SessionStatus.PLANNED)
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    structured_workout: Optional[Dict[str, Any]] = Field(default=None)


# ============================================================================
# Validation
# ============================================================================

class WeekSummary(BaseModel):
    """Computed facts about a week, returned alongside validation results."""

    total_minutes: int = Field(default=0, ge=0, description="Minutes counted toward the weekly total")
    run_minutes: int = Field(default=0, ge=0, description="Parseable run minutes")
    long_run_minutes: int = Field(default=0, ge=0, description="Longest single run")
    long_run_date: Optional[str] = Field(default=None)
    hard_days: List[str] = Field(default_factory=list, description="Dates carrying a hard run")
    quality_minutes: int = Field(default=0, ge=0)
    run_sessions: int = Field(default=0, ge=0)
    parseable_ratio: float = Field(default=1.0, ge=0.0, le=1.0)


class ValidationResult(BaseModel):
    """Outcome of validating one week against its targets."""

    ok: bool
    errors: List[str] = Field(default_factory=list)
    summary: WeekSummary = Field(default_factory=WeekSummary)

    def raise_for_errors(self) -> None:
        """Raise WeekValidationError if any rule was violated."""
        if not self.ok:
            raise WeekValidationError(self.errors)


# ============================================================================
# Plan assembly
# ============================================================================

class PlanDecision(BaseModel):
    """
    Documents a specific decision made during plan generation.

    Used for reasoning trace to explain why certain choices were made.
    """

    decision_point: str = Field(
        ..., min_length=3, description="The decision that was made"
    )
    input_factors: List[str] = Field(
        ..., min_length=1, description="Factors that influenced this decision"
    )
    reasoning: str = Field(
        ..., min_length=10, description="Explanation of why this decision was made"
    )
    outcome: str = Field(
        ..., min_length=1, description="The resulting choice or action taken"
    )
    week_number: Optional[int] = Field(default=None, ge=1)


class WeekAttempt(BaseModel):
    """One generate-validate round for a week."""

    week_number: int = Field(..., ge=1)
    attempt: int = Field(..., ge=1)
    outcome: Literal["accepted", "parse_error", "rejected"]
    errors: List[str] = Field(default_factory=list)


class AcceptedWeek(BaseModel):
    """A week that passed validation, with the targets it was checked against."""

    meta: WeekMeta
    targets: WeekTargets
    days: WeekContent
    summary: WeekSummary
    attempts: int = Field(default=1, ge=1)


class GeneratedPlan(BaseModel):
    """
    Complete multi-week training plan.

    Contains every accepted week, the decisions taken while building it and
    the per-attempt history.
    """

    user_id: str = Field(..., min_length=1, description="Unique athlete identifier")
    profile: AthleteProfile
    plan_start_date: date = Field(..., description="Monday the plan begins")
    race_date: date = Field(..., description="Target race date")
    total_weeks: int = Field(..., ge=1, description="Total duration of the plan in weeks")
    weeks: List[AcceptedWeek] = Field(default_factory=list)
    plan_decisions: List[PlanDecision] = Field(default_factory=list)
    attempts: List[WeekAttempt] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("weeks")
    @classmethod
    def validate_week_numbering(cls, v: List[AcceptedWeek]) -> List[AcceptedWeek]:
        for i, week in enumerate(v, start=1):
            if week.meta.week_number != i:
                raise ValueError(
                    f"Week numbering must be sequential. Expected week {i}, got week {week.meta.week_number}"
                )
        return v

    def all_days(self) -> WeekContent:
        """Merge every week's day content into one date-keyed mapping."""
        merged: WeekContent = {}
        for week in self.weeks:
            for key, sessions in week.days.items():
                merged.setdefault(key, []).extend(sessions)
        return merged

    def get_phase_breakdown(self) -> dict:
        """
        Get the number of weeks in each training phase.

        Returns:
            Dictionary mapping phase names to week counts.
        """
        phase_counts = {}
        for week in self.weeks:
            phase_name = week.meta.phase.value
            phase_counts[phase_name] = phase_counts.get(phase_name, 0) + 1
        return phase_counts

    def get_average_weekly_minutes(self) -> float:
        if not self.weeks:
            return 0.0
        return sum(week.summary.total_minutes for week in self.weeks) / len(self.weeks)
