"""Shared fixtures: a predictable week generator and a planner built around it."""

import pytest

from trainplan.generator import WeekGenerator
from trainplan.plan_schemas import GeneratedWeek, GenerationResult
from trainplan.planner import TrainingPlanGenerator
from trainplan.validator import WeekRule, WeekValidator


class EasyWeekGenerator(WeekGenerator):
    """Three easy runs at the start of each week, or nothing at all."""

    name = "easy"

    def __init__(self, empty: bool = False):
        self.empty = empty

    def generate(self, profile, meta, targets, feedback=None):
        days = {d.isoformat(): [] for d in meta.dates}
        if not self.empty:
            for d in meta.dates[:3]:
                days[d.isoformat()] = [f"🏃 Easy Run — {30 + d.weekday() * 5}min"]
        return GenerationResult.success(GeneratedWeek(days=days))


def _needs_runs(facts):
    return [] if facts.runs else ["Week has no runs."]


@pytest.fixture
def runs_only_validator():
    """Validator with a single rule: the week must contain a run."""
    return WeekValidator([WeekRule("needs_runs", "At least one run", _needs_runs)])


@pytest.fixture
def make_planner(runs_only_validator):
    """Factory for planners that accept any week with a run in it."""

    def factory(empty: bool = False, **kwargs):
        kwargs.setdefault("max_attempts", 2)
        return TrainingPlanGenerator(EasyWeekGenerator(empty), validator=runs_only_validator, **kwargs)

    return factory
