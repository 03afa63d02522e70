"""
Training plan generator.

This module drives the week-by-week synthesis pipeline:
- Builds the macrocycle skeleton from plan start and race date
- Folds over the weeks, computing targets from the previous accepted week
- Generates, canonicalizes, guards and validates each week with bounded retries
- Injects the race-day entry once every week has been accepted
"""

import time
from datetime import date
from typing import Callable, List, Optional, Tuple

from loguru import logger

from trainplan.errors import PlanGenerationError
from trainplan.generator import WeekGenerator
from trainplan.macrocycle import build_macrocycle, check_race_window, count_weeks, next_monday, phase_breakdown
from trainplan.materializer import canonicalize_week
from trainplan.placement import apply_placement_guard
from trainplan.plan_schemas import (
    AcceptedWeek,
    GeneratedPlan,
    PlanDecision,
    WeekAttempt,
    WeekMeta,
    WeekTargets,
)
from trainplan.prefs import apply_preferences
from trainplan.schemas import AthleteProfile, PriorWeekSummary
from trainplan.targets import TargetCalculator
from trainplan.validator import WeekValidator


RACE_DAY_PREFIX = "🏁 Race Day"
DEFAULT_MAX_ATTEMPTS = 3


def race_day_entry(profile: AthleteProfile) -> str:
    return f"{RACE_DAY_PREFIX} — {profile.race_type}"


class TrainingPlanGenerator:
    """
    Generates multi-week plans from an athlete profile.

    The generator:
    1. Builds the macrocycle (phases, deloads, Monday-anchored weeks)
    2. For each week, computes targets from the previous accepted week
    3. Asks the content generator for the week, re-prompting with violations
    4. Fails the whole run when a week exhausts its attempts or the deadline passes
    5. Documents all decisions for the generation trace

    Args:
        generator: Week content generator
        validator: Week validator (default rule set when omitted)
        max_attempts: Generation attempts allowed per week
        deadline_seconds: Wall-clock budget for the whole run (None = unbounded)
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        generator: WeekGenerator,
        validator: Optional[WeekValidator] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.generator = generator
        self.validator = validator or WeekValidator()
        self.max_attempts = max_attempts
        self.deadline_seconds = deadline_seconds
        self.clock = clock

    def generate(
        self,
        profile: AthleteProfile,
        start_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> GeneratedPlan:
        """
        Generate and validate every week of a plan.

        Args:
            profile: Athlete profile (not modified)
            start_date: Monday the plan starts (next Monday from today when omitted)
            today: Reference date for the default start

        Returns:
            GeneratedPlan with accepted weeks, decisions and attempt history

        Raises:
            ValueError: If start_date is not a Monday
            RaceWindowError: If the race is too close or too far for its family
            PlanGenerationError: If any week cannot be produced
        """
        profile = apply_preferences(profile)
        start = start_date or next_monday(today or date.today())
        if start.weekday() != 0:
            raise ValueError(f"Plan start date must be a Monday, got {start.isoformat()}")

        total_weeks = count_weeks(start, profile.race_date)
        check_race_window(total_weeks, profile.race_family)
        weeks = build_macrocycle(start, profile.race_date)

        decisions: List[PlanDecision] = [
            PlanDecision(
                decision_point="Macrocycle structure",
                input_factors=[
                    f"Plan start: {start.isoformat()}",
                    f"Race date: {profile.race_date.isoformat()}",
                    f"Total weeks: {total_weeks}",
                ],
                reasoning="Peak and taper are reserved first; the remaining weeks split "
                "about 60/40 between base and build with every fourth week a deload",
                outcome=", ".join(f"{phase} x{count}" for phase, count in phase_breakdown(weeks).items()),
            )
        ]

        logger.info(
            f"Generating {total_weeks}-week {profile.race_family.display_name} plan for {profile.user_id} "
            f"using {self.generator.name} generator"
        )

        deadline = None
        if self.deadline_seconds is not None:
            deadline = self.clock() + self.deadline_seconds

        calculator = TargetCalculator(profile)
        prior = PriorWeekSummary.empty()
        accepted: List[AcceptedWeek] = []
        history: List[WeekAttempt] = []

        for meta in weeks:
            targets = calculator.compute(meta, prior)
            try:
                week, attempts = self._generate_week(profile, meta, targets, deadline)
            except PlanGenerationError as e:
                e.history = history + e.history
                e.decisions = decisions + calculator.decisions
                logger.error(f"Plan for {profile.user_id} stopped: {e}")
                raise
            history.extend(attempts)
            accepted.append(week)
            prior = PriorWeekSummary(
                total_minutes=week.summary.total_minutes,
                long_run_minutes=week.summary.long_run_minutes,
            )

        self._inject_race_day(profile, accepted)
        decisions.extend(calculator.decisions)

        logger.info(
            f"Plan for {profile.user_id} accepted: {len(accepted)} weeks, "
            f"{len(history)} generation attempt(s)"
        )
        return GeneratedPlan(
            user_id=profile.user_id,
            profile=profile,
            plan_start_date=start,
            race_date=profile.race_date,
            total_weeks=total_weeks,
            weeks=accepted,
            plan_decisions=decisions,
            attempts=history,
        )

    def _generate_week(
        self,
        profile: AthleteProfile,
        meta: WeekMeta,
        targets: WeekTargets,
        deadline: Optional[float],
    ) -> Tuple[AcceptedWeek, List[WeekAttempt]]:
        """Generate-guard-validate loop for one week."""
        attempts: List[WeekAttempt] = []
        feedback: List[str] = []

        for attempt in range(1, self.max_attempts + 1):
            if deadline is not None and self.clock() > deadline:
                raise PlanGenerationError(
                    meta.week_number,
                    attempt - 1,
                    feedback,
                    reason=f"Generation deadline exceeded at week {meta.week_number}",
                    history=attempts,
                )

            result = self.generator.generate(profile, meta, targets, feedback or None)
            if not result.ok:
                error = result.error or "Generator returned no week"
                logger.warning(f"Week {meta.week_number} attempt {attempt}: unparseable output ({error})")
                attempts.append(
                    WeekAttempt(week_number=meta.week_number, attempt=attempt, outcome="parse_error", errors=[error])
                )
                feedback = [f"Previous response could not be parsed ({error}). Return only the JSON object."]
                continue

            content = canonicalize_week(result.week.days, meta.start_date)
            content = apply_placement_guard(
                content, meta.start_date, meta.phase, profile.effective_brick_days
            )
            validation = self.validator.validate(content, targets)

            if validation.ok:
                attempts.append(WeekAttempt(week_number=meta.week_number, attempt=attempt, outcome="accepted"))
                logger.info(
                    f"Week {meta.week_number} ({meta.phase.label}) accepted on attempt {attempt}: "
                    f"{validation.summary.total_minutes} min, long run {validation.summary.long_run_minutes} min"
                )
                week = AcceptedWeek(
                    meta=meta,
                    targets=targets,
                    days=content,
                    summary=validation.summary,
                    attempts=attempt,
                )
                return week, attempts

            logger.warning(
                f"Week {meta.week_number} attempt {attempt} rejected with {len(validation.errors)} violation(s)"
            )
            attempts.append(
                WeekAttempt(
                    week_number=meta.week_number,
                    attempt=attempt,
                    outcome="rejected",
                    errors=validation.errors,
                )
            )
            feedback = validation.errors

        raise PlanGenerationError(meta.week_number, self.max_attempts, feedback, history=attempts)

    def _inject_race_day(self, profile: AthleteProfile, weeks: List[AcceptedWeek]) -> None:
        """Append the race-day entry on the actual race date of the final week."""
        if not weeks:
            return
        final = weeks[-1]
        key = profile.race_date.isoformat()
        if key not in final.days:
            logger.warning(f"Race date {key} is outside the final week; race-day entry not injected")
            return
        final.days[key].append(race_day_entry(profile))
