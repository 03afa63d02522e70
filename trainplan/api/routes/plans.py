"""
Training Plans API Routes

Endpoints for starting plan generation jobs and reading their results.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from loguru import logger

from trainplan.api.deps import get_plan_generator, get_repository
from trainplan.api.models.requests import PlanRequest
from trainplan.api.models.responses import PlanAcceptedResponse, PlanStatusResponse, SessionsResponse
from trainplan.database import PLAN_READY, PlanRepository
from trainplan.errors import PersistenceError, TrainPlanError
from trainplan.macrocycle import check_race_window, count_weeks, next_monday
from trainplan.materializer import materialize_plan
from trainplan.plan_schemas import GeneratedPlan
from trainplan.planner import TrainingPlanGenerator
from trainplan.schemas import AthleteProfile

router = APIRouter()


def run_plan_job(
    plan_id: str,
    profile: AthleteProfile,
    start_date: date,
    activate: bool,
    repository: PlanRepository,
    planner: TrainingPlanGenerator,
) -> None:
    """
    Background job: generate the plan, store it, then store its sessions.

    A failed generation marks the record failed. A failure to store session
    rows is logged and does not undo the accepted plan.
    """
    try:
        plan = planner.generate(profile, start_date=start_date)
    except (TrainPlanError, ValueError) as e:
        logger.error(f"Plan {plan_id} for {profile.user_id} failed: {e}")
        try:
            repository.mark_failed(plan_id, str(e))
        except PersistenceError as store_error:
            logger.error(f"Plan {plan_id} failed and its failure could not be recorded: {store_error}")
        return

    try:
        repository.mark_ready(plan_id, plan)
    except PersistenceError as store_error:
        logger.error(f"Plan {plan_id} was generated but could not be stored: {store_error}")
        return

    try:
        repository.replace_sessions(plan_id, materialize_plan(plan, plan_id))
    except PersistenceError:
        logger.error(f"Plan {plan_id} is ready but its session rows were not stored")

    if activate:
        try:
            repository.activate(plan_id)
        except PersistenceError:
            logger.error(f"Plan {plan_id} is ready but could not be activated")


@router.post(
    "/plans",
    response_model=PlanAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_plan(
    request: PlanRequest,
    background_tasks: BackgroundTasks,
    repository: PlanRepository = Depends(get_repository),
    planner: TrainingPlanGenerator = Depends(get_plan_generator),
) -> PlanAcceptedResponse:
    """
    Start generating a plan and return immediately.

    The race window is checked up front; generation runs as a background
    task and its outcome is read from GET /api/plans/{plan_id}.

    Raises:
        HTTPException: If the start date is not a Monday
        RaceWindowError: If the race is too close or too far away (422)
    """
    profile = request.profile
    start = request.start_date or next_monday(date.today())
    if start.weekday() != 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Plan start date must be a Monday, got {start.isoformat()}",
        )

    total_weeks = count_weeks(start, profile.race_date)
    check_race_window(total_weeks, profile.race_family)

    record = repository.create_plan(profile)
    background_tasks.add_task(run_plan_job, record.id, profile, start, request.activate, repository, planner)

    return PlanAcceptedResponse(
        plan_id=record.id,
        user_id=profile.user_id,
        status=record.status,
        total_weeks=total_weeks,
    )


@router.get("/plans/{plan_id}", response_model=PlanStatusResponse)
async def get_plan(plan_id: str, repository: PlanRepository = Depends(get_repository)) -> PlanStatusResponse:
    """
    Get a plan job's status, and the plan itself once it is ready.

    Raises:
        HTTPException: If the plan does not exist
    """
    record = repository.get_plan(plan_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Plan not found: {plan_id}")

    plan: Optional[GeneratedPlan] = None
    if record.status == PLAN_READY and record.plan_data:
        plan = GeneratedPlan.model_validate(record.plan_data)

    return PlanStatusResponse(
        plan_id=record.id,
        user_id=record.user_id,
        status=record.status,
        is_active=record.is_active,
        race_type=record.race_type,
        race_date=record.race_date,
        plan_start_date=record.plan_start_date,
        total_weeks=record.total_weeks,
        error=record.error,
        plan=plan,
    )


@router.get("/plans/{plan_id}/sessions", response_model=SessionsResponse)
async def get_plan_sessions(plan_id: str, repository: PlanRepository = Depends(get_repository)) -> SessionsResponse:
    """
    List a plan's materialized session rows in date order.

    Raises:
        HTTPException: If the plan does not exist
    """
    if repository.get_plan(plan_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Plan not found: {plan_id}")

    sessions = repository.list_sessions(plan_id)
    return SessionsResponse(plan_id=plan_id, sessions=sessions, count=len(sessions))
