"""
Tests for the command-line interface.

Covers:
- Macrocycle and targets previews
- Week validation exit codes
- Plan generation output files and failure traces
- Readiness scoring from JSON files
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from trainplan import cli
from trainplan.config import get_settings

runner = CliRunner()

FIXTURES = Path(__file__).parent / "fixtures"
PROFILE = json.loads((FIXTURES / "half_marathon_profile.json").read_text(encoding="utf-8"))
WEEK_FILE = str(FIXTURES / "base_week.json")


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Fresh settings with no API key for every test."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("TRAINPLAN_OPENAI_API_KEY", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def profile_file():
    return str(FIXTURES / "half_marathon_profile.json")


def test_macrocycle():
    """Test the phase layout preview."""
    result = runner.invoke(cli.app, ["macrocycle", "--race-date", "2025-05-25", "--start", "2025-03-03"])

    assert result.exit_code == 0
    assert "Macrocycle: 12 weeks" in result.output
    assert "Taper" in result.output


def test_macrocycle_rejects_non_monday():
    """Test that a non-Monday start exits with an error."""
    result = runner.invoke(cli.app, ["macrocycle", "--race-date", "2025-05-25", "--start", "2025-03-04"])

    assert result.exit_code == 1
    assert "Monday" in result.output


def test_targets(profile_file):
    """Test week 1 targets, with the long-run day taken from the notes."""
    result = runner.invoke(cli.app, ["targets", "--profile", profile_file, "--start", "2025-03-03"])

    assert result.exit_code == 0
    assert "Loaded profile" in result.output
    assert "300" in result.output
    assert "Saturday" in result.output
    assert "Weekly volume target (week 1)" in result.output


def test_targets_week_out_of_range(profile_file):
    """Test that a week past the race is rejected."""
    result = runner.invoke(cli.app, ["targets", "--profile", profile_file, "--start", "2025-03-03", "--week", "13"])

    assert result.exit_code == 1
    assert "between 1 and 12" in result.output


def test_invalid_profile(tmp_path):
    """Test that an unsupported race type is reported."""
    bad = _write(tmp_path / "bad.json", dict(PROFILE, race_type="Chess"))

    result = runner.invoke(cli.app, ["targets", "--profile", bad])

    assert result.exit_code == 1
    assert "Invalid profile" in result.output


def test_validate_week_passes():
    """Test a clean week exits 0."""
    result = runner.invoke(cli.app, ["validate-week", "--week", WEEK_FILE])

    assert result.exit_code == 0
    assert "passes every rule" in result.output


def test_validate_week_violations(tmp_path):
    """Test that violations are listed and exit 1."""
    week = json.loads(Path(WEEK_FILE).read_text(encoding="utf-8"))
    week["days"]["2025-03-05"] = ["🏃 Intervals — 35min with 6x400m"]

    result = runner.invoke(cli.app, ["validate-week", "--week", _write(tmp_path / "week.json", week)])

    assert result.exit_code == 1
    assert "Back-to-back hard run days" in result.output


def test_generate_plan_requires_key_or_offline(profile_file, tmp_path):
    """Test that online generation without an API key stops early."""
    result = runner.invoke(
        cli.app,
        ["generate-plan", "--profile", profile_file, "--start", "2025-03-03", "--output", str(tmp_path / "out")],
    )

    assert result.exit_code == 1
    assert "No OpenAI API key" in result.output


def test_generate_plan_offline_writes_files(profile_file, tmp_path):
    """Test that the template generator and default rules produce a saved plan, sessions and trace."""
    output = tmp_path / "out"

    result = runner.invoke(
        cli.app,
        ["generate-plan", "--profile", profile_file, "--start", "2025-03-03", "--offline", "--output", str(output)],
    )

    assert result.exit_code == 0, result.output
    assert "12-week plan" in result.output
    plan_files = list(output.glob("plan_cli_runner_*.json"))
    session_files = list(output.glob("sessions_cli_runner_*.json"))
    assert len(plan_files) == 1
    assert len(session_files) == 1
    assert len(list(output.glob("trace_cli_runner_*.md"))) == 1

    plan = json.loads(plan_files[0].read_text(encoding="utf-8"))
    assert plan["total_weeks"] == 12
    assert all(week["attempts"] == 1 for week in plan["weeks"])
    assert all(a["outcome"] == "accepted" for a in plan["attempts"])
    sessions = json.loads(session_files[0].read_text(encoding="utf-8"))
    assert sessions[-1]["title"] == "🏁 Race Day"
    assert sessions[-1]["date"] == "2025-05-25"
    assert any(row["sport"] == "run" and row["duration_minutes"] for row in sessions)


def test_generate_plan_failure_saves_trace(profile_file, tmp_path, monkeypatch, make_planner):
    """Test that a failed run exits 1 and leaves a JSON failure trace."""
    monkeypatch.setattr(cli, "TrainingPlanGenerator", lambda generator, **kwargs: make_planner(empty=True))
    output = tmp_path / "out"

    result = runner.invoke(
        cli.app,
        [
            "generate-plan",
            "--profile",
            profile_file,
            "--start",
            "2025-03-03",
            "--offline",
            "--output",
            str(output),
            "--trace-format",
            "json",
        ],
    )

    assert result.exit_code == 1
    assert "Plan generation failed" in result.output
    traces = list(output.glob("trace_cli_runner_*.json"))
    assert len(traces) == 1
    trace = json.loads(traces[0].read_text(encoding="utf-8"))
    assert trace["result"] == "failed"
    assert [(a["week_number"], a["attempt"]) for a in trace["attempts"]] == [(1, 1), (1, 2)]
    assert trace["attempts"][0]["errors"] == ["Week has no runs."]
    assert trace["decisions"][0]["decision_point"] == "Macrocycle structure"
    assert any(d["decision_point"] == "Weekly volume target (week 1)" for d in trace["decisions"])
    assert not list(output.glob("plan_*.json"))


def test_readiness(tmp_path):
    """Test readiness scoring with the day table."""
    sessions = [
        {"user_id": "cli_runner", "date": "2025-04-19", "sport": "run", "title": "🏃 Run", "raw": "🏃 Run — 30min"},
        {"user_id": "cli_runner", "date": "2025-04-20", "sport": "run", "title": "🏃 Run", "raw": "🏃 Run — 30min"},
    ]
    completed = [{"date": "2025-04-19", "sport": "Run", "duration_minutes": 32}]

    result = runner.invoke(
        cli.app,
        [
            "readiness",
            "--sessions",
            _write(tmp_path / "sessions.json", sessions),
            "--completed",
            _write(tmp_path / "completed.json", completed),
            "--today",
            "2025-04-20",
            "--days",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Readiness:" in result.output
    assert "Readiness Breakdown" in result.output
    assert "Planned vs. Actual" in result.output
