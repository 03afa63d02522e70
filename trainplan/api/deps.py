"""
FastAPI dependencies.

Routes receive their collaborators through these providers so tests can
swap them with app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends
from loguru import logger

from trainplan.config import Settings, get_settings
from trainplan.database import PlanRepository, init_database
from trainplan.generator import OpenAIWeekGenerator, TemplateWeekGenerator, WeekGenerator
from trainplan.planner import TrainingPlanGenerator


@lru_cache(maxsize=1)
def _repository_for(database_url: str) -> PlanRepository:
    return PlanRepository(init_database(database_url))


def get_repository(settings: Settings = Depends(get_settings)) -> PlanRepository:
    return _repository_for(settings.database_url)


def get_week_generator(settings: Settings = Depends(get_settings)) -> WeekGenerator:
    if not settings.openai_api_key:
        logger.warning("No OpenAI API key configured; using the template week generator")
        return TemplateWeekGenerator()
    return OpenAIWeekGenerator(
        model=settings.openai_model,
        temperature=settings.openai_temperature,
        api_key=settings.openai_api_key,
    )


def get_plan_generator(
    generator: WeekGenerator = Depends(get_week_generator),
    settings: Settings = Depends(get_settings),
) -> TrainingPlanGenerator:
    return TrainingPlanGenerator(
        generator,
        max_attempts=settings.max_week_attempts,
        deadline_seconds=settings.generation_deadline_seconds,
    )
