"""
Week Validation API Routes

Endpoint for checking a week of session strings against its targets.
"""

from fastapi import APIRouter

from trainplan.api.models.requests import WeekValidationRequest
from trainplan.api.models.responses import WeekValidationResponse
from trainplan.validator import WeekValidator

router = APIRouter()


@router.post("/weeks/validate", response_model=WeekValidationResponse)
async def validate_week(request: WeekValidationRequest) -> WeekValidationResponse:
    """
    Validate one week against the full rule set.

    Performs:
    - Total, long-run and quality checks against the targets
    - Hard-day spacing and recovery checks
    - Structure checks (long run day, easy runs, strides, repeats)

    Args:
        request: WeekValidationRequest with targets and day content

    Returns:
        WeekValidationResponse with pass/fail, violations and week totals
    """
    result = WeekValidator().validate(request.days, request.targets)
    return WeekValidationResponse(ok=result.ok, errors=result.errors, summary=result.summary)
