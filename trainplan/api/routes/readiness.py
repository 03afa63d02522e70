"""
Readiness API Routes

Endpoint for scoring race readiness from planned and completed sessions.
"""

from fastapi import APIRouter, Depends

from trainplan.api.models.requests import ReadinessRequest
from trainplan.api.models.responses import ReadinessResponse
from trainplan.compliance import build_weekly_comparison, calculate_readiness, sync_session_statuses
from trainplan.config import Settings, get_settings

router = APIRouter()


@router.post("/readiness", response_model=ReadinessResponse)
async def readiness(
    request: ReadinessRequest,
    settings: Settings = Depends(get_settings),
) -> ReadinessResponse:
    """
    Score readiness 0-100 and optionally return the per-day comparison.

    Args:
        request: ReadinessRequest with planned rows and completed activities

    Returns:
        ReadinessResponse with score, label, parts and comparison rows
    """
    sessions = sync_session_statuses(request.sessions, request.completed, today=request.today)
    result = calculate_readiness(
        sessions,
        request.completed,
        race_date=request.race_date,
        now=request.today,
        neutral=settings.neutral_compliance,
    )

    comparison = []
    if request.include_comparison:
        comparison = build_weekly_comparison(
            sessions,
            request.completed,
            bike_ftp=request.bike_ftp,
            run_threshold_pace=request.run_threshold_pace,
            pace_unit=request.pace_unit,
            today=request.today,
        )

    return ReadinessResponse(readiness=result, comparison=comparison)
