"""
API Response Models

Pydantic models for API responses.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from trainplan.plan_schemas import GeneratedPlan, SessionRow, WeekSummary
from trainplan.schemas import ReadinessResult, WeeklyComparison


class PlanAcceptedResponse(BaseModel):
    """Response for POST /api/plans."""

    plan_id: str = Field(..., description="Plan job identifier")
    user_id: str = Field(..., description="Athlete identifier")
    status: str = Field(..., description="Job status ('pending')")
    total_weeks: int = Field(..., description="Weeks the plan will cover")


class PlanStatusResponse(BaseModel):
    """Response for GET /api/plans/{plan_id}."""

    plan_id: str
    user_id: str
    status: str = Field(..., description="'pending', 'ready' or 'failed'")
    is_active: bool
    race_type: str
    race_date: date
    plan_start_date: Optional[date] = None
    total_weeks: Optional[int] = None
    error: Optional[str] = Field(None, description="Failure summary when status is 'failed'")
    plan: Optional[GeneratedPlan] = Field(None, description="Accepted plan when status is 'ready'")


class SessionsResponse(BaseModel):
    """Response for GET /api/plans/{plan_id}/sessions."""

    plan_id: str
    sessions: List[SessionRow] = Field(default_factory=list)
    count: int = Field(..., description="Number of session rows")


class WeekValidationResponse(BaseModel):
    """Response for POST /api/weeks/validate."""

    ok: bool = Field(..., description="Whether every rule passed")
    errors: List[str] = Field(default_factory=list, description="Rule violations")
    summary: WeekSummary = Field(..., description="Computed week totals")


class ReadinessResponse(BaseModel):
    """Response for POST /api/readiness."""

    readiness: ReadinessResult
    comparison: List[WeeklyComparison] = Field(default_factory=list)
