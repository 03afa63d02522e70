"""
Generation trace and export.

Documents how a plan came to be: the macrocycle and target decisions, and
every generate/validate attempt per week with the violations that caused
regeneration. Traces are exported to JSON and Markdown for review.
"""

import json
from datetime import date, datetime
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from trainplan.errors import PlanGenerationError
from trainplan.plan_schemas import GeneratedPlan, PlanDecision, WeekAttempt


class GenerationTrace(BaseModel):
    """Audit record of one plan generation run."""

    user_id: str
    race_type: str
    plan_start_date: Optional[date] = None
    race_date: Optional[date] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    result: Literal["accepted", "failed"] = "accepted"
    failure: Optional[str] = None
    decisions: List[PlanDecision] = Field(default_factory=list)
    attempts: List[WeekAttempt] = Field(default_factory=list)


class GenerationTraceBuilder:
    """
    Builds and exports generation traces.

    The trace shows:
    - How the weeks were split into phases
    - Which targets each week was held to and why
    - How many attempts each week needed and what was rejected
    """

    def __init__(self, user_id: str, race_type: str):
        self.trace = GenerationTrace(user_id=user_id, race_type=race_type)

    @classmethod
    def from_plan(cls, plan: GeneratedPlan) -> "GenerationTraceBuilder":
        """Create a trace for an accepted plan."""
        builder = cls(plan.user_id, plan.profile.race_type)
        builder.trace.plan_start_date = plan.plan_start_date
        builder.trace.race_date = plan.race_date
        builder.trace.decisions = list(plan.plan_decisions)
        builder.trace.attempts = list(plan.attempts)
        return builder

    @classmethod
    def from_failure(cls, user_id: str, race_type: str, error: PlanGenerationError) -> "GenerationTraceBuilder":
        """
        Create a trace for a run that stopped at a failing week.

        Keeps every attempt and decision the planner recorded before the stop.
        An error raised without history gets a single summary attempt instead.
        """
        builder = cls(user_id, race_type)
        builder.set_result("failed", str(error))
        builder.trace.decisions = list(error.decisions)
        builder.trace.attempts = list(error.history)
        if not error.history and error.attempts > 0:
            builder.add_attempt(
                WeekAttempt(
                    week_number=error.week_number,
                    attempt=error.attempts,
                    outcome="rejected",
                    errors=list(error.last_errors),
                )
            )
        return builder

    def add_decision(self, decision: PlanDecision) -> None:
        self.trace.decisions.append(decision)

    def add_attempt(self, attempt: WeekAttempt) -> None:
        self.trace.attempts.append(attempt)

    def set_result(self, result: str, failure: Optional[str] = None) -> None:
        """
        Set the final result.

        Args:
            result: "accepted" or "failed"
            failure: Failure summary when result is "failed"
        """
        self.trace.result = result
        self.trace.failure = failure

    def export_to_json(self) -> dict:
        """
        Export trace to JSON-serializable dictionary.

        Returns:
            Dictionary representation of the trace
        """
        return self.trace.model_dump(mode="json")

    def export_to_markdown(self) -> str:
        """
        Export trace to human-readable Markdown format.

        Returns:
            Markdown-formatted trace report
        """
        trace = self.trace
        lines = []

        lines.append("# Plan Generation Trace")
        lines.append("")
        lines.append(f"**Timestamp:** {trace.timestamp.strftime('%Y-%m-%d %H:%M:%S')}")
        lines.append(f"**Athlete:** `{trace.user_id}`")
        lines.append(f"**Race:** {trace.race_type}")
        if trace.plan_start_date and trace.race_date:
            lines.append(f"**Window:** {trace.plan_start_date.isoformat()} → {trace.race_date.isoformat()}")
        lines.append(f"**Result:** **{trace.result.upper()}**")
        if trace.failure:
            lines.append(f"**Failure:** {trace.failure}")
        lines.append("")
        lines.append("---")
        lines.append("")

        lines.append("## Decisions")
        lines.append("")
        if not trace.decisions:
            lines.append("*No decisions recorded*")
        for decision in trace.decisions:
            lines.append(f"### {decision.decision_point}")
            lines.append(f"- **Outcome:** {decision.outcome}")
            lines.append(f"- **Reasoning:** {decision.reasoning}")
            for factor in decision.input_factors:
                lines.append(f"  - {factor}")
            lines.append("")

        lines.append("## Attempts")
        lines.append("")
        if not trace.attempts:
            lines.append("*No attempts recorded*")
        else:
            lines.append("| Week | Attempt | Outcome | Violations |")
            lines.append("|------|---------|---------|------------|")
            for attempt in trace.attempts:
                lines.append(
                    f"| {attempt.week_number} | {attempt.attempt} | {attempt.outcome} | {len(attempt.errors)} |"
                )
            rejected = [a for a in trace.attempts if a.errors]
            if rejected:
                lines.append("")
                lines.append("### Violations")
                lines.append("")
                for attempt in rejected:
                    lines.append(f"**Week {attempt.week_number}, attempt {attempt.attempt}:**")
                    for error in attempt.errors:
                        lines.append(f"- {error}")
                    lines.append("")

        return "\n".join(lines)

    def save_to_file(self, output_dir: Path, format: str = "json") -> Path:
        """
        Save trace to file in specified format.

        Args:
            output_dir: Directory to save trace file
            format: Output format ("json" or "markdown")

        Returns:
            Path to saved file

        Raises:
            ValueError: If format is not supported
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp_str = self.trace.timestamp.strftime("%Y%m%d_%H%M%S")
        user_id = self.trace.user_id.replace(" ", "_")

        if format == "json":
            filepath = output_dir / f"trace_{user_id}_{timestamp_str}.json"
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(self.export_to_json(), f, indent=2, ensure_ascii=False)

        elif format == "markdown":
            filepath = output_dir / f"trace_{user_id}_{timestamp_str}.md"
            with open(filepath, "w", encoding="utf-8") as f:
                f.write(self.export_to_markdown())

        else:
            raise ValueError(f"Unsupported format: {format}. Use 'json' or 'markdown'")

        return filepath


def load_trace_from_file(filepath: Path) -> GenerationTrace:
    """
    Load a generation trace from a JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If JSON is invalid
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Trace file not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as f:
        data = json.load(f)

    try:
        return GenerationTrace.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid trace file: {e}")
