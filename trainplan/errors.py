"""
Error types for plan synthesis.

Week-level problems (unparseable output, rule violations) are retryable and
normally travel as values; PlanGenerationError is the fatal, job-level stop.
"""

from typing import List, Optional


class TrainPlanError(Exception):
    """Base exception for training-plan errors."""

    pass


class GenerationParseError(TrainPlanError):
    """Raised when generator output cannot be parsed into a week.

    Attributes:
        raw: Raw generator output that failed to parse
    """

    def __init__(self, message: str, raw: Optional[str] = None) -> None:
        self.raw = raw
        super().__init__(message)


class WeekValidationError(TrainPlanError):
    """Raised when a week fails the validation rule set.

    Attributes:
        errors: Human-readable rule violations
    """

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Week failed validation")


class PlanGenerationError(TrainPlanError):
    """Raised when a week exhausts its retry budget or the job deadline passes.

    Attributes:
        week_number: 1-based week that could not be produced
        attempts: Number of attempts consumed
        last_errors: Errors reported by the final attempt
        history: WeekAttempt records of every week tried before the stop
        decisions: PlanDecision records made before the stop
    """

    def __init__(
        self,
        week_number: int,
        attempts: int,
        last_errors: List[str],
        reason: Optional[str] = None,
        history: Optional[list] = None,
        decisions: Optional[list] = None,
    ) -> None:
        self.week_number = week_number
        self.attempts = attempts
        self.last_errors = list(last_errors)
        self.history = list(history or [])
        self.decisions = list(decisions or [])
        summary = reason or f"Week {week_number} failed after {attempts} attempt(s)"
        if self.last_errors:
            summary = f"{summary}: {'; '.join(self.last_errors)}"
        super().__init__(summary)


class RaceWindowError(TrainPlanError, ValueError):
    """Raised when the race date gives too few or too many weeks for the race family.

    Attributes:
        total_weeks: Weeks between plan start and race
        min_weeks: Minimum weeks allowed for the race family
        max_weeks: Maximum weeks allowed for the race family
    """

    def __init__(self, total_weeks: int, min_weeks: int, max_weeks: int) -> None:
        self.total_weeks = total_weeks
        self.min_weeks = min_weeks
        self.max_weeks = max_weeks
        super().__init__(
            f"Race is {total_weeks} week(s) away; this race needs between "
            f"{min_weeks} and {max_weeks} weeks of training"
        )


class PersistenceError(TrainPlanError):
    """Raised when a plan or its sessions cannot be stored."""

    pass
