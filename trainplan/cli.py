"""
Command-line interface for the training planner.

Provides commands for:
- Macrocycle preview
- Week target calculation
- Week validation
- Plan generation (OpenAI or offline template generator)
- Race readiness scoring
"""

import json
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from trainplan.compliance import build_weekly_comparison, calculate_readiness
from trainplan.config import get_settings
from trainplan.errors import PlanGenerationError, RaceWindowError
from trainplan.generator import OpenAIWeekGenerator, TemplateWeekGenerator
from trainplan.logging_config import setup_logger
from trainplan.macrocycle import build_macrocycle, next_monday
from trainplan.materializer import materialize_plan
from trainplan.plan_schemas import GeneratedPlan, SessionRow, WeekTargets
from trainplan.planner import TrainingPlanGenerator
from trainplan.prefs import apply_preferences
from trainplan.schemas import AthleteProfile, CompletedActivity, PriorWeekSummary
from trainplan.targets import TargetCalculator
from trainplan.trace import GenerationTraceBuilder
from trainplan.validator import WeekValidator

# Initialize Typer app and Rich console
app = typer.Typer(
    help="Endurance Training Planner - week-by-week plan synthesis with rule-checked weeks"
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Configure logging from settings before any command runs."""
    settings = get_settings()
    setup_logger(level="DEBUG" if verbose else settings.log_level, log_file=settings.log_file)


# ===== LOADING HELPERS =====


def _load_json(path: Path, what: str):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]✗ Failed to read {what}: {e}[/red]")
        raise typer.Exit(1)


def _load_profile(path: Path) -> AthleteProfile:
    data = _load_json(path, "profile")
    try:
        profile = AthleteProfile.model_validate(data)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]✗ Invalid profile: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"✓ Loaded profile: [green]{profile.user_id}[/green] ({profile.race_family.display_name})")
    return profile


# ===== DISPLAY HELPER FUNCTIONS =====


def _display_targets(targets: WeekTargets, title: str):
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Target", style="cyan")
    table.add_column("Value", justify="right", style="yellow")

    table.add_row("Weekly minutes", str(targets.target_weekly_min))
    table.add_row("Long run", str(targets.target_long_run_min))
    table.add_row("Long run floor", str(targets.min_long_run_min))
    table.add_row("Long run cap", str(targets.long_run_max))
    table.add_row("Single session cap", str(targets.max_single_session_min))
    table.add_row("Quality days", str(targets.quality_days))
    table.add_row("Quality minutes", str(targets.max_quality_min))
    table.add_row("Long run share cap", f"{targets.long_run_share_cap:.0%}")
    table.add_row("Long run day", targets.preferred_long_run_day.value.capitalize())
    console.print(table)


def _display_plan_summary(plan: GeneratedPlan):
    console.print(f"\n✓ Generated [green]{plan.total_weeks}-week plan[/green]")
    console.print(f"  Start: {plan.plan_start_date}")
    console.print(f"  Race:  {plan.race_date}")
    console.print(f"  Average weekly minutes: {plan.get_average_weekly_minutes():.0f}")

    console.print("\n[bold]Phase Distribution:[/bold]")
    for phase, weeks in plan.get_phase_breakdown().items():
        console.print(f"  {phase}: {weeks} weeks")

    table = Table(title="Weeks", box=box.ROUNDED)
    table.add_column("Week", justify="right")
    table.add_column("Phase", style="cyan")
    table.add_column("Start")
    table.add_column("Total", justify="right")
    table.add_column("Long run", justify="right")
    table.add_column("Attempts", justify="right")
    for week in plan.weeks:
        phase = week.meta.phase.label + (" (deload)" if week.meta.deload else "")
        table.add_row(
            str(week.meta.week_number),
            phase,
            week.meta.start_date.isoformat(),
            f"{week.summary.total_minutes}/{week.targets.target_weekly_min}",
            f"{week.summary.long_run_minutes}/{week.targets.target_long_run_min}",
            str(week.attempts),
        )
    console.print(table)


# ===== CLI COMMANDS =====


@app.command()
def macrocycle(
    race_date: str = typer.Option(..., "--race-date", "-r", help="Race date (YYYY-MM-DD)"),
    start: Optional[str] = typer.Option(
        None,
        "--start",
        "-s",
        help="Plan start Monday (defaults to next Monday)",
    ),
):
    """
    Show the phase and deload layout between plan start and race day.
    """
    try:
        race = date.fromisoformat(race_date)
        start_date = date.fromisoformat(start) if start else next_monday(date.today())
        weeks = build_macrocycle(start_date, race)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Macrocycle: {len(weeks)} weeks", box=box.ROUNDED)
    table.add_column("Week", justify="right")
    table.add_column("Start")
    table.add_column("Phase", style="cyan")
    table.add_column("Deload", justify="center")
    for week in weeks:
        label = week.phase.label
        if week.race_day:
            label += " 🏁"
        table.add_row(str(week.week_number), week.start_date.isoformat(), label, "✓" if week.deload else "")
    console.print(table)


@app.command()
def targets(
    profile: Path = typer.Option(
        ...,
        "--profile",
        "-p",
        help="Path to athlete profile JSON file",
        exists=True,
    ),
    week: int = typer.Option(1, "--week", "-w", help="Week number (1-indexed)"),
    start: Optional[str] = typer.Option(None, "--start", "-s", help="Plan start Monday"),
    prev_total: Optional[float] = typer.Option(None, "--prev-total", help="Previous week's total minutes"),
    prev_long: Optional[float] = typer.Option(None, "--prev-long", help="Previous week's long run minutes"),
):
    """
    Compute the numeric targets for one week of a plan.
    """
    athlete = apply_preferences(_load_profile(profile))
    try:
        start_date = date.fromisoformat(start) if start else next_monday(date.today())
        weeks = build_macrocycle(start_date, athlete.race_date)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    if not 1 <= week <= len(weeks):
        console.print(f"[red]✗ Week must be between 1 and {len(weeks)}[/red]")
        raise typer.Exit(1)

    meta = weeks[week - 1]
    calculator = TargetCalculator(athlete)
    result = calculator.compute(meta, PriorWeekSummary(total_minutes=prev_total, long_run_minutes=prev_long))
    deload = " deload" if meta.deload else ""
    _display_targets(result, f"Week {week} ({meta.phase.label}{deload})")

    for decision in calculator.decisions:
        console.print(f"  • [cyan]{decision.decision_point}[/cyan]: {decision.outcome}")


@app.command("validate-week")
def validate_week(
    week_file: Path = typer.Option(
        ...,
        "--week",
        "-w",
        help="JSON file with 'targets' and 'days' keys",
        exists=True,
    ),
):
    """
    Check a week of session strings against its targets.
    """
    data = _load_json(week_file, "week")
    try:
        week_targets = WeekTargets.model_validate(data.get("targets", {}))
    except ValidationError as e:
        console.print(f"[red]✗ Invalid targets: {e}[/red]")
        raise typer.Exit(1)

    result = WeekValidator().validate(data.get("days") or {}, week_targets)
    summary = result.summary
    console.print(
        f"\nTotal: {summary.total_minutes} min, long run {summary.long_run_minutes} min, "
        f"{len(summary.hard_days)} hard day(s), {summary.parseable_ratio:.0%} parseable"
    )

    if result.ok:
        console.print("[green]✓ Week passes every rule[/green]\n")
        return

    console.print(f"[red]✗ {len(result.errors)} violation(s):[/red]")
    for error in result.errors:
        console.print(f"  • {error}")
    console.print()
    raise typer.Exit(1)


@app.command("generate-plan")
def generate_plan(
    profile: Path = typer.Option(
        ...,
        "--profile",
        "-p",
        help="Path to athlete profile JSON file",
        exists=True,
    ),
    start: Optional[str] = typer.Option(None, "--start", "-s", help="Plan start Monday"),
    offline: bool = typer.Option(
        False,
        "--offline",
        help="Use the deterministic template generator instead of OpenAI",
    ),
    output: Path = typer.Option(Path("plans"), "--output", "-o", help="Directory for plan and trace files"),
    save_trace: bool = typer.Option(
        True,
        "--save-trace/--no-trace",
        help="Save generation trace to file",
    ),
    trace_format: str = typer.Option(
        "markdown",
        "--trace-format",
        "-f",
        help="Trace output format (json or markdown)",
    ),
):
    """
    Generate a full plan week by week.

    Workflow:
    1. Build the macrocycle
    2. Generate, guard and validate each week (with retries)
    3. Display summary
    4. Save plan, session rows and generation trace
    """
    console.print("\n[bold cyan]🏊 🚴 🏃 Training Plan Generator[/bold cyan]\n")
    settings = get_settings()
    athlete = _load_profile(profile)

    if offline:
        week_generator = TemplateWeekGenerator()
    else:
        if not settings.openai_api_key:
            console.print("[red]✗ No OpenAI API key configured. Set OPENAI_API_KEY or use --offline.[/red]")
            raise typer.Exit(1)
        week_generator = OpenAIWeekGenerator(
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            api_key=settings.openai_api_key,
        )

    planner = TrainingPlanGenerator(
        week_generator,
        max_attempts=settings.max_week_attempts,
        deadline_seconds=settings.generation_deadline_seconds,
    )

    try:
        start_date = date.fromisoformat(start) if start else None
        with console.status("Generating weeks..."):
            plan = planner.generate(athlete, start_date=start_date)
    except RaceWindowError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)
    except PlanGenerationError as e:
        console.print(f"[red]✗ Plan generation failed: {e}[/red]")
        if save_trace:
            builder = GenerationTraceBuilder.from_failure(athlete.user_id, athlete.race_type, e)
            trace_path = builder.save_to_file(output, format=trace_format)
            console.print(f"✓ Trace saved: [cyan]{trace_path}[/cyan]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    _display_plan_summary(plan)

    output.mkdir(parents=True, exist_ok=True)
    stamp = date.today().strftime("%Y%m%d")
    plan_path = output / f"plan_{athlete.user_id}_{stamp}.json"
    with open(plan_path, "w", encoding="utf-8") as f:
        json.dump(plan.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
    console.print(f"\n✓ Plan saved: [cyan]{plan_path}[/cyan]")

    rows = materialize_plan(plan)
    sessions_path = output / f"sessions_{athlete.user_id}_{stamp}.json"
    with open(sessions_path, "w", encoding="utf-8") as f:
        json.dump([row.model_dump(mode="json") for row in rows], f, indent=2, ensure_ascii=False)
    console.print(f"✓ {len(rows)} session rows saved: [cyan]{sessions_path}[/cyan]")

    if save_trace:
        try:
            trace_path = GenerationTraceBuilder.from_plan(plan).save_to_file(output, format=trace_format)
        except ValueError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(1)
        console.print(f"✓ Trace saved: [cyan]{trace_path}[/cyan]")

    console.print()


@app.command()
def readiness(
    sessions: Path = typer.Option(
        ...,
        "--sessions",
        "-s",
        help="JSON list of planned session rows",
        exists=True,
    ),
    completed: Path = typer.Option(
        ...,
        "--completed",
        "-c",
        help="JSON list of completed activities",
        exists=True,
    ),
    race_date: Optional[str] = typer.Option(None, "--race-date", "-r", help="Race date (YYYY-MM-DD)"),
    today: Optional[str] = typer.Option(None, "--today", help="Evaluation date (defaults to today)"),
    show_days: bool = typer.Option(False, "--days", help="Also show the planned vs. actual day table"),
):
    """
    Score race readiness from planned sessions and completed activities.
    """
    settings = get_settings()
    try:
        rows = [SessionRow.model_validate(item) for item in _load_json(sessions, "sessions")]
        activities = [CompletedActivity.model_validate(item) for item in _load_json(completed, "activities")]
        race = date.fromisoformat(race_date) if race_date else None
        now = date.fromisoformat(today) if today else None
    except (ValidationError, ValueError) as e:
        console.print(f"[red]✗ Invalid input: {e}[/red]")
        raise typer.Exit(1)

    result = calculate_readiness(rows, activities, race_date=race, now=now, neutral=settings.neutral_compliance)

    if result.score >= 85:
        color = "green"
    elif result.score >= 65:
        color = "yellow"
    elif result.score >= 45:
        color = "orange3"
    else:
        color = "red"
    console.print(f"\n[bold]Readiness: [{color}]{result.score}[/{color}] ({result.label})[/bold]\n")

    table = Table(title="Readiness Breakdown", box=box.ROUNDED)
    table.add_column("Component", style="cyan")
    table.add_column("Value", justify="right", style="yellow")
    for name, value in result.parts.model_dump().items():
        table.add_row(name.replace("_", " ").title(), f"{value:.2f}")
    console.print(table)

    if show_days:
        comparison = build_weekly_comparison(rows, activities, today=now)
        days = Table(title="Planned vs. Actual", box=box.ROUNDED)
        days.add_column("Date")
        days.add_column("Planned")
        days.add_column("Actual min", justify="right")
        days.add_column("Status", style="cyan")
        for entry in comparison:
            planned = ", ".join(f"{sport} x{count}" for sport, count in entry.planned.items())
            days.add_row(entry.date.isoformat(), planned or "-", f"{entry.actual_duration:.0f}", entry.status)
        console.print(days)


if __name__ == "__main__":
    app()
