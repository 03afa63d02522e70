"""
API Request Models

Pydantic models for API request validation.
"""

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from trainplan.plan_schemas import SessionRow, WeekContent, WeekTargets
from trainplan.schemas import AthleteProfile, CompletedActivity


class PlanRequest(BaseModel):
    """Request model for starting a plan generation job."""

    profile: AthleteProfile = Field(..., description="Athlete profile")
    start_date: Optional[date] = Field(
        None, description="Plan start Monday (defaults to the next Monday)"
    )
    activate: bool = Field(True, description="Make the plan active once it is ready")


class WeekValidationRequest(BaseModel):
    """Request model for checking one week against its targets."""

    targets: WeekTargets = Field(..., description="Numeric bounds for the week")
    days: WeekContent = Field(..., description="Date key -> session strings")


class ReadinessRequest(BaseModel):
    """Request model for race readiness scoring."""

    sessions: List[SessionRow] = Field(..., description="Planned session rows")
    completed: List[CompletedActivity] = Field(default_factory=list, description="Completed activities")
    race_date: Optional[date] = Field(None, description="Race date (no proximity penalty when omitted)")
    today: Optional[date] = Field(None, description="Evaluation date (defaults to today)")
    include_comparison: bool = Field(False, description="Include the per-day planned vs. actual table")
    bike_ftp: Optional[int] = Field(None, gt=0, description="Bike FTP for power deltas")
    run_threshold_pace: Optional[str] = Field(None, description="Run threshold pace (e.g., '4:30/km')")
    pace_unit: Literal["mi", "km"] = Field("km", description="Unit for a bare threshold pace")
