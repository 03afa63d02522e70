"""
Tests for week content generation.

Covers:
- Response parsing with fences, surrounding text and bad payloads
- Prompt rendering with targets and retry feedback
- OpenAI generator success and failure paths (mocked client)
- Template generator output shape and validity
- Easy-minute splitting, weekly band and long-run window helpers
- Whole template plans accepted by the default rules on the first attempt
"""

from datetime import date
from unittest.mock import MagicMock

import pytest
from openai import OpenAIError

from trainplan.errors import GenerationParseError
from trainplan.generator import (
    SYSTEM_PROMPT,
    OpenAIWeekGenerator,
    TemplateWeekGenerator,
    WeekGenerator,
    long_run_window,
    parse_week_response,
    render_week_prompt,
    split_easy_minutes,
    weekly_band,
)
from trainplan.plan_schemas import TrainingPhase, WeekMeta
from trainplan.planner import TrainingPlanGenerator
from trainplan.schemas import AthleteProfile
from trainplan.targets import compute_week_targets
from trainplan.validator import validate_week

WEEK_JSON = (
    '{"label": "Week 1", "phase": "Base", "startDate": "2025-03-03", "deload": false, '
    '"days": {"2025-03-04": ["🏃 Run — 40min easy"], "2025-03-05": "🏃 Run — 30min", "2025-03-06": null}}'
)


@pytest.fixture
def profile():
    return AthleteProfile(
        user_id="half_marathoner",
        race_type="Half Marathon",
        race_date=date(2025, 5, 25),
        experience="intermediate",
        max_hours=6,
        long_run_day="saturday",
        run_threshold_pace="4:45/km",
    )


@pytest.fixture
def meta():
    return WeekMeta(week_number=1, label="Week 1", phase=TrainingPhase.BASE, start_date=date(2025, 3, 3))


@pytest.fixture
def targets(profile, meta):
    return compute_week_targets(profile, meta)


def _client_returning(content):
    client = MagicMock()
    client.chat.completions.create.return_value.choices[0].message.content = content
    return client


def test_parse_plain_json():
    """Test parsing a clean JSON week, coercing string and null days."""
    week = parse_week_response(WEEK_JSON)

    assert week.label == "Week 1"
    assert week.start_date == "2025-03-03"
    assert week.days["2025-03-04"] == ["🏃 Run — 40min easy"]
    assert week.days["2025-03-05"] == ["🏃 Run — 30min"]
    assert week.days["2025-03-06"] == []


def test_parse_fenced_and_wrapped_json():
    """Test that code fences and chatter around the object are ignored."""
    fenced = parse_week_response(f"```json\n{WEEK_JSON}\n```")
    wrapped = parse_week_response(f"Here is your week:\n{WEEK_JSON}\nGood luck!")

    assert fenced.days == wrapped.days


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "   ",
        "no json here",
        '{"label": "Week 1", "days": {',
        '{"label": "Week 1"}',
        '{"days": ["2025-03-03"]}',
    ],
)
def test_parse_failures(raw):
    """Test that unusable responses raise GenerationParseError."""
    with pytest.raises(GenerationParseError) as exc_info:
        parse_week_response(raw)
    assert exc_info.value.raw == raw


def test_prompt_includes_targets(profile, meta, targets):
    """Test that the prompt carries the week's dates and numeric targets."""
    prompt = render_week_prompt(profile, meta, targets)

    assert "Half Marathon" in prompt
    assert "2025-03-03 (Monday)" in prompt
    assert "2025-03-09 (Sunday)" in prompt
    assert f"Total run minutes: {targets.target_weekly_min}" in prompt
    assert f"Long run: {targets.target_long_run_min}min" in prompt
    assert "Preferred long-run day: Saturday." in prompt
    assert "Run threshold pace: 4:45/km." in prompt
    assert "rejected" not in prompt


def test_prompt_repeats_feedback(profile, meta, targets):
    """Test that violations from the last attempt are listed for the retry."""
    feedback = ["Back-to-back hard run days: 2025-03-04 and 2025-03-05."]

    prompt = render_week_prompt(profile, meta, targets, feedback)

    assert "The previous attempt was rejected. Fix every issue:" in prompt
    assert f"- {feedback[0]}" in prompt


def test_openai_generator_success(profile, meta, targets):
    """Test a successful chat completion call."""
    client = _client_returning(WEEK_JSON)
    generator = OpenAIWeekGenerator(client=client, model="gpt-4o-mini", temperature=0.2)

    result = generator.generate(profile, meta, targets)

    assert result.ok
    assert result.raw == WEEK_JSON
    assert result.week.days["2025-03-04"] == ["🏃 Run — 40min easy"]

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["temperature"] == 0.2
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}


def test_openai_generator_unparseable_output(profile, meta, targets):
    """Test that bad model output becomes a failure value, not an exception."""
    generator = OpenAIWeekGenerator(client=_client_returning("Sorry, I cannot help with that."))

    result = generator.generate(profile, meta, targets)

    assert not result.ok
    assert result.week is None
    assert "no JSON object" in result.error
    assert result.raw == "Sorry, I cannot help with that."


def test_openai_generator_api_error(profile, meta, targets):
    """Test that a client error becomes a failure value."""
    client = MagicMock()
    client.chat.completions.create.side_effect = OpenAIError("rate limited")
    generator = OpenAIWeekGenerator(client=client)

    result = generator.generate(profile, meta, targets)

    assert not result.ok
    assert "rate limited" in result.error


def test_template_week_shape(profile, meta, targets):
    """Test that the template fills exactly the seven canonical dates."""
    result = TemplateWeekGenerator().generate(profile, meta, targets)

    assert result.ok
    assert list(result.week.days) == [d.isoformat() for d in meta.dates]
    assert result.week.days["2025-03-03"] == ["Rest — full rest or gentle mobility"]
    assert result.week.days["2025-03-08"][0].startswith("🏃 Long Run — 78min")


def test_template_week_passes_validation(profile, meta, targets):
    """Test that the template's half-marathon opening week passes every rule."""
    result = TemplateWeekGenerator().generate(profile, meta, targets)

    validation = validate_week(result.week.days, targets)

    assert validation.ok, validation.errors
    assert validation.summary.total_minutes == 298
    assert validation.summary.hard_days == ["2025-03-04"]
    assert "with 6 strides" in result.week.days["2025-03-05"][0]
    assert validation.summary.long_run_date == "2025-03-08"


def test_template_race_week_stops_before_race(profile):
    """Test that nothing is scheduled on or after race day."""
    race_week = WeekMeta(
        week_number=12,
        label="Week 12",
        phase=TrainingPhase.TAPER,
        start_date=date(2025, 5, 19),
        race_day=date(2025, 5, 25),
    )
    targets = compute_week_targets(profile, race_week)

    result = TemplateWeekGenerator().generate(profile, race_week, targets)

    assert result.week.days["2025-05-25"] == []


def test_template_triathlon_places_brick(meta):
    """Test that a triathlon week carries a brick on the allowed brick day."""
    triathlete = AthleteProfile(
        user_id="triathlete",
        race_type="Olympic Triathlon",
        race_date=date(2025, 6, 15),
        experience="intermediate",
        max_hours=8,
        brick_days=["saturday"],
    )
    targets = compute_week_targets(triathlete, meta)

    result = TemplateWeekGenerator().generate(triathlete, meta, targets)
    sessions = [s for day in result.week.days.values() for s in day]

    assert any(s.startswith("🧱 Brick") for s in result.week.days["2025-03-08"])
    assert any(s.startswith("🏊 Swim") for s in sessions)
    assert any(s.startswith("🚴 Bike") for s in sessions)


def test_week_generator_is_abstract():
    """Test that the generator base class cannot be used on its own."""
    with pytest.raises(TypeError):
        WeekGenerator()


def test_template_bounds_follow_targets(targets):
    """Test the weekly band and long-run window the template aims for."""
    assert weekly_band(targets) == (285, 315)
    assert long_run_window(targets) == (69, 87)

    deload = targets.model_copy(update={"deload": True, "prev_weekly_min": 320})
    assert weekly_band(deload) == (285, 288)


def test_split_easy_minutes(targets):
    """Test that easy minutes are split with varied lengths and two or three short runs."""
    caps = {2: 55, 3: 75, 4: 75, 6: 75}
    fixed = {1: 25, 5: 78}

    split = split_easy_minutes(195, caps, fixed, targets)

    assert split == {2: 50, 3: 50, 4: 55, 6: 40}
    assert split_easy_minutes(300, caps, fixed, targets) is None


def test_split_easy_minutes_leaves_days_free(targets):
    """Test that a day stays free when every open day would otherwise be short."""
    caps = {2: 50, 3: 50, 4: 50, 6: 50}

    split = split_easy_minutes(130, caps, {1: 25, 5: 54}, targets)

    assert len(split) == 3
    assert sum(split.values()) == 130


@pytest.mark.parametrize(
    "race_type,experience,max_hours,race_date,long_run_day",
    [
        ("5K", "beginner", 4, date(2025, 4, 27), None),
        ("Half Marathon", "intermediate", 6, date(2025, 5, 25), "saturday"),
        ("Marathon", "intermediate", 6, date(2025, 6, 22), None),
        ("Olympic Triathlon", "intermediate", 8, date(2025, 5, 25), None),
    ],
)
def test_template_plan_accepted_by_default_rules(race_type, experience, max_hours, race_date, long_run_day):
    """Test that every template week passes the default rules on its first attempt."""
    athlete = AthleteProfile(
        user_id="sweep",
        race_type=race_type,
        race_date=race_date,
        experience=experience,
        max_hours=max_hours,
        long_run_day=long_run_day,
    )
    planner = TrainingPlanGenerator(TemplateWeekGenerator(), max_attempts=1)

    plan = planner.generate(athlete, start_date=date(2025, 3, 3))

    assert len(plan.weeks) == plan.total_weeks
    assert all(week.attempts == 1 for week in plan.weeks)
    assert all(attempt.outcome == "accepted" for attempt in plan.attempts)
    assert plan.weeks[-1].days[race_date.isoformat()][-1].startswith("🏁")

    for previous, week in zip(plan.weeks, plan.weeks[1:]):
        total = week.summary.total_minutes
        if week.meta.deload:
            assert total <= 0.9 * previous.summary.total_minutes
            assert week.summary.long_run_minutes < previous.summary.long_run_minutes
        else:
            assert total <= previous.summary.total_minutes * 1.08 * 1.05 + 1
