"""
Week content generation.

A generator turns (profile, week skeleton, targets) into a candidate week of
day-keyed session strings. Its output is untrusted: every call returns a
GenerationResult so callers handle parse failures as values, and the dates
it emits are re-anchored later by the materializer.

Two implementations are provided:
- OpenAIWeekGenerator: renders a prompt and asks a chat model for JSON
- TemplateWeekGenerator: deterministic offline generator that searches for a
  week passing the default rule set
"""

import json
import math
import re
from abc import ABC, abstractmethod
from collections import Counter
from datetime import date
from itertools import combinations
from typing import Dict, List, Optional, Tuple

from loguru import logger
from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from trainplan.errors import GenerationParseError
from trainplan.placement import apply_placement_guard
from trainplan.plan_schemas import GeneratedWeek, GenerationResult, TrainingPhase, WeekMeta, WeekTargets
from trainplan.schemas import AthleteProfile, Experience, RaceFamily, Weekday
from trainplan.validator import (
    CONSECUTIVE_DAY_RUN_MIN,
    DELOAD_MAX_RATIO,
    LONG_RUN_TOLERANCE_MIN,
    LONG_RUN_TOLERANCE_PCT,
    LONG_SESSION_EXCEPTION_PREV_MIN,
    LONG_SESSION_MIN,
    MAX_CONSECUTIVE_LONG_DAYS,
    MAX_LONG_SESSIONS,
    MAX_REPEATED_DURATION,
    MEDIUM_LONG_RANGE,
    SHORT_EASY_COUNT,
    SHORT_EASY_COUNT_TRUE_BEGINNER,
    SHORT_EASY_MAX,
    WEEKLY_TOLERANCE,
    validate_week,
)


SYSTEM_PROMPT = """
You are an expert endurance coach generating ONE training week.

You MUST output ONLY valid JSON (no markdown, no extra text) matching this schema:
{
  "label": string,
  "phase": string,
  "startDate": "YYYY-MM-DD",
  "deload": boolean,
  "days": { "YYYY-MM-DD": string[] }
}

Hard constraints (never violate):
- Respect the weekly targets strictly (total minutes, long run target and cap, quality caps).
- The longest run must be on the preferred long-run day.
- No back-to-back hard run days; the day after a hard run stays easy and under 60 minutes.
- Include exactly the 7 date keys listed for the week (Monday to Sunday).
- Every session string must include a parseable duration such as "45min" or "1h 10min".
- Separate title and details with an em dash: "🏃 Run — 45min easy — Details".
- Start every session with its sport emoji: 🏊 swim, 🚴 bike, 🏃 run, 🧱 brick, 💪 strength.
- Put the cue "strides" on at least one easy run.

Output examples:
- "🏃 Run — 45min easy conversational — Details"
- "🏃 Tempo Run — 40min: 10min easy, 20min tempo, 10min easy — Details"
- "🏃 Long Run — 1h 40min steady aerobic — Details"
""".strip()


# ============================================================================
# Prompt rendering and response parsing
# ============================================================================

def _day_line(day: date) -> str:
    return f"{day.isoformat()} ({Weekday.from_date(day).value.capitalize()})"


def render_week_prompt(
    profile: AthleteProfile,
    meta: WeekMeta,
    targets: WeekTargets,
    feedback: Optional[List[str]] = None,
) -> str:
    """
    Render the natural-language request for one week.

    Args:
        profile: Athlete profile
        meta: Week skeleton entry
        targets: Numeric bounds for the week
        feedback: Violations from the previous attempt, repeated so the model can fix them

    Returns:
        Prompt text
    """
    lines = [
        f"Athlete: {profile.experience.value} athlete training for {profile.race_family.display_name} "
        f"on {profile.race_date.isoformat()}.",
        f"Weekly availability: up to {profile.max_hours:g} hours.",
        f"Rest day: {profile.rest_day.value.capitalize()}.",
        f"Preferred long-run day: {targets.preferred_long_run_day.value.capitalize()}.",
    ]
    if profile.race_family.is_triathlon:
        bricks = ", ".join(d.value.capitalize() for d in profile.effective_brick_days)
        lines.append(f"Brick sessions only on: {bricks}.")
        if profile.long_ride_day:
            lines.append(f"Preferred long-ride day: {profile.long_ride_day.value.capitalize()}.")
    if profile.bike_ftp:
        lines.append(f"Bike FTP: {profile.bike_ftp} W.")
    if profile.run_threshold_pace:
        lines.append(f"Run threshold pace: {profile.run_threshold_pace}.")
    if profile.swim_css:
        lines.append(f"Swim CSS: {profile.swim_css}.")
    if profile.preferences_text:
        lines.append(f"Athlete notes: {profile.preferences_text.strip()}")

    total_label = "Total training minutes (all sports)" if profile.race_family.is_triathlon else "Total run minutes"
    lines += [
        "",
        f"Week: {meta.label}, phase {meta.phase.label}{' (deload week)' if meta.deload else ''}.",
        "Dates:",
    ]
    lines += [f"- {_day_line(d)}" for d in meta.dates]
    if meta.race_day:
        lines.append(f"Race day is {meta.race_day.isoformat()}; schedule nothing on or after it.")

    lines += [
        "",
        "Weekly targets:",
        f"- {total_label}: {targets.target_weekly_min} (within ±5%)",
        f"- Long run: {targets.target_long_run_min}min (floor {targets.min_long_run_min}, "
        f"max {targets.long_run_max})",
        f"- Long run no more than {targets.long_run_share_cap:.0%} of the weekly total",
        f"- Max single run: {targets.max_single_session_min}min",
        f"- Quality (hard) run days: at most {targets.quality_days}, "
        f"total hard-run minutes at most {targets.max_quality_min}",
    ]
    if targets.deload and targets.prev_weekly_min:
        lines.append(
            f"- Deload: stay at or under {int(targets.prev_weekly_min * 0.9)} total minutes and "
            f"keep the long run under {targets.prev_long_run_min}min"
        )

    if feedback:
        lines += ["", "The previous attempt was rejected. Fix every issue:"]
        lines += [f"- {error}" for error in feedback]

    return "\n".join(lines)


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_week_response(raw: Optional[str]) -> GeneratedWeek:
    """
    Parse a generator response into a GeneratedWeek.

    Tolerates code fences and text around the JSON object.

    Raises:
        GenerationParseError: If no JSON object is found or it does not match the schema
    """
    if not raw or not raw.strip():
        raise GenerationParseError("Empty generator response", raw=raw)

    text = _FENCE_RE.sub("", raw.strip())
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise GenerationParseError("Generator response contains no JSON object", raw=raw)

    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise GenerationParseError(f"Generator response is not valid JSON: {e}", raw=raw)

    try:
        return GeneratedWeek.model_validate(data)
    except ValidationError as e:
        raise GenerationParseError(f"Generator response does not match week schema: {e}", raw=raw)


# ============================================================================
# Generators
# ============================================================================

class WeekGenerator(ABC):
    """
    Interface for week content generators.

    Implementations report unusable output through GenerationResult.failure
    instead of raising, so the planner can count the attempt and retry.
    """

    name = "base"

    @abstractmethod
    def generate(
        self,
        profile: AthleteProfile,
        meta: WeekMeta,
        targets: WeekTargets,
        feedback: Optional[List[str]] = None,
    ) -> GenerationResult:
        """Produce one candidate week; feedback holds the previous attempt's violations."""


class OpenAIWeekGenerator(WeekGenerator):
    """
    Chat-completion backed generator.

    Args:
        client: OpenAI client (created from api_key when omitted)
        model: Chat model name
        temperature: Sampling temperature
        api_key: Key used when no client is given
    """

    name = "openai"

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: str = "gpt-4o",
        temperature: float = 0.7,
        api_key: Optional[str] = None,
    ):
        self.client = client or OpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature

    def generate(
        self,
        profile: AthleteProfile,
        meta: WeekMeta,
        targets: WeekTargets,
        feedback: Optional[List[str]] = None,
    ) -> GenerationResult:
        prompt = render_week_prompt(profile, meta, targets, feedback)
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.warning(f"Generator call failed for week {meta.week_number}: {e}")
            return GenerationResult.failure(f"Generator call failed: {e}")

        raw = response.choices[0].message.content or ""
        try:
            week = parse_week_response(raw)
        except GenerationParseError as e:
            logger.warning(f"Unparseable generator output for week {meta.week_number}: {e}")
            return GenerationResult.failure(str(e), raw=raw)
        return GenerationResult.success(week, raw=raw)


# ============================================================================
# Template generator
# ============================================================================

# Preferred weekday order (Monday = 0) for each kind of session
QUALITY_ORDER = [1, 3, 2, 4, 0, 5, 6]
EASY_ORDER = [3, 2, 4, 1, 0, 5, 6]
SWIM_ORDER = [0, 2, 4, 1, 3, 5, 6]
BIKE_ORDER = [1, 3, 2, 4, 0, 5, 6]
STRENGTH_ORDER = [3, 1]

EASY_FLOOR = 15
SHORT_WEEK_FLOOR = 10
RECOVERY_DAY_CAP = 55
MULTISPORT_FLOOR = 15
STRENGTH_MINUTES = 30
TRIATHLON_SHORT_RUNS = 2
TRIATHLON_SHORT_START = 45
BRICK_SHARE = 0.35
BIKE_SHARE = 0.55
SEARCH_BUDGET = 20000

REST_TEXT = "Rest — full rest or gentle mobility"
STRENGTH_TEXT = f"💪 Strength — {STRENGTH_MINUTES}min core and hip stability"
QUALITY_TEMPLATES = [
    "🏃 Tempo Run — {m}min: easy warm-up, steady tempo block, easy cool-down",
    "🏃 Intervals — {m}min: warm-up, 5 x 2min at 5k effort with 2min jog, cool-down",
]


def _bucket(minutes: int) -> int:
    return int(minutes / 5 + 0.5) * 5


def _floor_five(minutes: float) -> int:
    return max(0, int(minutes // 5) * 5)


def long_run_window(targets: WeekTargets) -> Tuple[int, int]:
    """Long-run minutes the default rules accept for these targets."""
    target = targets.target_long_run_min
    tolerance = max(LONG_RUN_TOLERANCE_MIN, int(target * LONG_RUN_TOLERANCE_PCT + 0.5))
    low = max(0, target - tolerance)
    if not targets.deload:
        low = max(low, targets.min_long_run_min)
    high = min(targets.long_run_max, targets.max_single_session_min, target + tolerance)
    return low, high


def weekly_band(targets: WeekTargets) -> Tuple[int, int]:
    """Weekly minutes the default rules accept, tightened on deload weeks."""
    target = targets.target_weekly_min
    low = int(target * (1 - WEEKLY_TOLERANCE) + 0.5)
    high = int(target * (1 + WEEKLY_TOLERANCE) + 0.5)
    if targets.deload and targets.prev_weekly_min > 0:
        high = min(high, int(targets.prev_weekly_min * DELOAD_MAX_RATIO))
    return low, high


def _long_run_options(targets: WeekTargets) -> List[int]:
    low, high = long_run_window(targets)
    target = targets.target_long_run_min
    options: List[int] = []
    for minutes in (target, target + 5, target - 5, high, low):
        if 0 < minutes and low <= minutes <= high and minutes not in options:
            options.append(minutes)
    return options


def _quality_days(available: List[int], long_idx: int, count: int) -> List[int]:
    """Non-adjacent quality days, keeping the day before the long run easy when possible."""
    for strict in (True, False):
        chosen: List[int] = []
        for idx in QUALITY_ORDER:
            if len(chosen) == count:
                break
            if idx not in available or idx == long_idx:
                continue
            if strict and idx + 1 == long_idx:
                continue
            if any(abs(idx - c) <= 1 for c in chosen):
                continue
            chosen.append(idx)
        if len(chosen) == count:
            return sorted(chosen)
    return []


def _quality_options(
    targets: WeekTargets,
    available: List[int],
    long_idx: int,
    long_min: int,
) -> List[Dict[int, int]]:
    """Quality layouts (day -> minutes) to try, most quality days first."""
    if targets.quality_days <= 0:
        return [{}]
    ceiling = _floor_five(long_min - 1)
    options: List[Dict[int, int]] = []
    for count in range(targets.quality_days, 0, -1):
        days = _quality_days(available, long_idx, count)
        if not days:
            continue
        first = min(_floor_five(targets.max_quality_min / count), ceiling)
        if count == 1:
            splits = [[first], [first - 5], [first - 10]]
        else:
            splits = [[first - 5 * i for i in range(count)], [first - 5 * (i + 1) for i in range(count)]]
        for minutes in splits:
            if min(minutes) >= EASY_FLOOR:
                options.append(dict(zip(days, minutes)))
    return options


def _weekly_totals(targets: WeekTargets, long_min: int, fixed_minutes: int) -> List[int]:
    """Totals inside the band that keep easy minutes in multiples of five, closest to target first."""
    low, high = weekly_band(targets)
    totals = [
        total
        for total in range(max(low, fixed_minutes), high + 1)
        if (total - fixed_minutes) % 5 == 0 and long_min <= targets.long_run_share_cap * total
    ]
    return sorted(totals, key=lambda total: (abs(total - targets.target_weekly_min), total))


def _long_sessions_exempt(targets: WeekTargets) -> bool:
    return (
        targets.experience == Experience.ADVANCED
        and targets.phase == TrainingPhase.PEAK
        and targets.prev_weekly_min >= LONG_SESSION_EXCEPTION_PREV_MIN
    )


def _needs_medium_long(targets: WeekTargets) -> bool:
    return (
        targets.race_family == RaceFamily.MARATHON
        and not targets.true_beginner
        and targets.phase != TrainingPhase.TAPER
    )


def _streaks_ok(minutes_by_day: Dict[int, int]) -> bool:
    heavy = sorted(day for day, minutes in minutes_by_day.items() if minutes >= CONSECUTIVE_DAY_RUN_MIN)
    streak = 1
    for previous, current in zip(heavy, heavy[1:]):
        streak = streak + 1 if current == previous + 1 else 1
        if streak > MAX_CONSECUTIVE_LONG_DAYS:
            return False
    return True


def split_easy_minutes(
    total: int,
    caps: Dict[int, int],
    fixed: Dict[int, int],
    targets: WeekTargets,
    budget: int = SEARCH_BUDGET,
) -> Optional[Dict[int, int]]:
    """
    Split easy-run minutes across open days.

    Tries run-day sets with as few free days as possible, then searches
    multiples of five per day depth-first, closest to an even split first.
    Fixed runs (long run and quality days) count toward the duration
    buckets, the 70+ minute limit and the 60+ minute streaks.

    Args:
        total: Easy minutes to place (a multiple of five)
        caps: Open weekday index -> longest easy run allowed that day
        fixed: Weekday index -> minutes of runs already placed
        targets: Week targets deciding the short-run range and medium-long need
        budget: Maximum search nodes before giving up

    Returns:
        Weekday index -> minutes for the days that get a run, or None
    """
    open_days = sorted(caps)
    short_low, short_high = SHORT_EASY_COUNT_TRUE_BEGINNER if targets.true_beginner else SHORT_EASY_COUNT
    long_limit = None if _long_sessions_exempt(targets) else MAX_LONG_SESSIONS
    needs_medium = _needs_medium_long(targets)
    histogram = Counter(_bucket(minutes) for minutes in fixed.values())
    fixed_longs = sum(1 for minutes in fixed.values() if minutes >= LONG_SESSION_MIN)
    chosen: Dict[int, int] = {}
    nodes = 0

    def floor_for(day: int) -> int:
        return SHORT_WEEK_FLOOR if caps[day] <= 20 else EASY_FLOOR

    def complete() -> bool:
        low, high = MEDIUM_LONG_RANGE
        if needs_medium and not any(low <= minutes <= high for minutes in chosen.values()):
            return False
        return _streaks_ok({**fixed, **chosen})

    def search(days: Tuple[int, ...], i: int, remaining: int, shorts: int, longs: int) -> bool:
        nonlocal nodes
        nodes += 1
        if nodes > budget:
            return False
        if i == len(days):
            return remaining == 0 and shorts >= short_low and complete()
        left = days[i:]
        if remaining > sum(caps[d] for d in left) or remaining < sum(floor_for(d) for d in left):
            return False
        forced_shorts = sum(1 for d in left if caps[d] < SHORT_EASY_MAX)
        if shorts + len(left) < short_low or shorts + forced_shorts > short_high:
            return False

        day = days[i]
        average = remaining / len(left)
        values = sorted(range(floor_for(day), caps[day] + 1, 5), key=lambda m: (abs(m - average), -m))
        for minutes in values:
            if minutes > remaining:
                continue
            bucket = _bucket(minutes)
            short = minutes < SHORT_EASY_MAX
            heavy = minutes >= LONG_SESSION_MIN
            if histogram[bucket] >= MAX_REPEATED_DURATION:
                continue
            if short and shorts >= short_high:
                continue
            if heavy and long_limit is not None and longs >= long_limit:
                continue
            histogram[bucket] += 1
            chosen[day] = minutes
            if search(days, i + 1, remaining - minutes, shorts + short, longs + heavy):
                return True
            histogram[bucket] -= 1
            del chosen[day]
        return False

    if total == 0:
        return {} if short_low == 0 and complete() else None
    for free in range(len(open_days) + 1):
        for days in combinations(open_days, len(open_days) - free):
            if days and search(days, 0, total, 0, fixed_longs):
                return dict(chosen)
            if nodes > budget:
                return None
    return None


def _split_sessions(total: int) -> List[int]:
    """One session, or two (60/40) once each can carry a useful workout."""
    if total <= 0:
        return []
    if total < 4 * MULTISPORT_FLOOR:
        return [total]
    second = int(total * 0.4)
    return [total - second, second]


class TemplateWeekGenerator(WeekGenerator):
    """
    Deterministic generator that lays out a week directly from its targets.

    Used offline and in tests. It searches long-run, quality and easy-run
    layouts until one passes the default rule set after the placement guard,
    so the planner accepts its weeks on the first attempt. Feedback is
    ignored: a week it cannot fit fails the same way on every attempt.
    """

    name = "template"

    def generate(
        self,
        profile: AthleteProfile,
        meta: WeekMeta,
        targets: WeekTargets,
        feedback: Optional[List[str]] = None,
    ) -> GenerationResult:
        dates = meta.dates

        rest_idx = profile.rest_day.index
        long_idx = targets.preferred_long_run_day.index
        if rest_idx == long_idx:
            rest_idx = (long_idx + 1) % 7
        last_idx = 6
        if meta.race_day and meta.start_date <= meta.race_day <= meta.end_date:
            last_idx = meta.race_day.weekday() - 1
        available = [i for i in range(7) if i != rest_idx and i <= last_idx]
        if long_idx not in available and available:
            long_idx = available[-1]

        days = None
        if available:
            if profile.race_family.is_triathlon:
                days = self._plan_triathlon(profile, meta, targets, available, long_idx)
            else:
                days = self._plan_running(profile, meta, targets, available, long_idx)
        if days is None:
            logger.warning(f"No template layout for week {meta.week_number} passes every rule")
            days = self._fallback_layout(targets, long_idx if available else None)

        for idx in range(last_idx + 1):
            if idx == rest_idx or not days[idx]:
                days[idx].append(REST_TEXT)

        week = GeneratedWeek(
            label=meta.label,
            phase=meta.phase.label,
            start_date=meta.start_date.isoformat(),
            deload=meta.deload,
            days={dates[i].isoformat(): days[i] for i in range(7)},
        )
        return GenerationResult.success(week, raw=week.model_dump_json(by_alias=True))

    # ----- running -----

    def _plan_running(
        self,
        profile: AthleteProfile,
        meta: WeekMeta,
        targets: WeekTargets,
        available: List[int],
        long_idx: int,
    ) -> Optional[Dict[int, List[str]]]:
        strength_idx = self._strength_day(meta, available)
        for long_min in _long_run_options(targets):
            easy_cap = _floor_five(min(long_min - 1, targets.max_single_session_min))
            for quality in _quality_options(targets, available, long_idx, long_min):
                caps = {
                    i: min(easy_cap, RECOVERY_DAY_CAP) if i - 1 in quality else easy_cap
                    for i in available
                    if i != long_idx and i not in quality
                }
                fixed = dict(quality)
                fixed[long_idx] = long_min
                fixed_minutes = sum(fixed.values())
                for total in _weekly_totals(targets, long_min, fixed_minutes):
                    easy = split_easy_minutes(total - fixed_minutes, caps, fixed, targets)
                    if easy is None:
                        continue
                    days = self._run_days(targets, long_idx, long_min, quality, easy)
                    if strength_idx is not None:
                        days[strength_idx].append(STRENGTH_TEXT)
                    if self._passes(days, profile, meta, targets):
                        logger.debug(
                            f"Template week {meta.week_number}: {total} min, long run {long_min}, "
                            f"quality {sorted(quality.values())}, easy {sorted(easy.values())}"
                        )
                        return days
        return None

    def _run_days(
        self,
        targets: WeekTargets,
        long_idx: int,
        long_min: int,
        quality: Dict[int, int],
        easy: Dict[int, int],
    ) -> Dict[int, List[str]]:
        days: Dict[int, List[str]] = {i: [] for i in range(7)}
        days[long_idx].append(f"🏃 Long Run — {long_min}min steady aerobic")
        for n, idx in enumerate(sorted(quality)):
            days[idx].append(QUALITY_TEMPLATES[n % len(QUALITY_TEMPLATES)].format(m=quality[idx]))

        strides = False
        for idx in sorted(easy):
            minutes = easy[idx]
            if minutes >= SHORT_EASY_MAX:
                if targets.race_family == RaceFamily.MARATHON and minutes <= MEDIUM_LONG_RANGE[1]:
                    days[idx].append(f"🏃 Medium-Long Run — {minutes}min easy aerobic")
                else:
                    days[idx].append(f"🏃 Steady Run — {minutes}min comfortable aerobic")
                continue
            cue = "" if strides else " with 6 strides"
            strides = True
            days[idx].append(f"🏃 Easy Run — {minutes}min conversational{cue}")
        return days

    # ----- triathlon -----

    def _plan_triathlon(
        self,
        profile: AthleteProfile,
        meta: WeekMeta,
        targets: WeekTargets,
        available: List[int],
        long_idx: int,
    ) -> Optional[Dict[int, List[str]]]:
        brick_idx = next((d.index for d in profile.effective_brick_days if d.index in available), None)
        if brick_idx == long_idx:
            brick_idx = None
        run_days = [i for i in available if i != brick_idx]
        strength_idx = self._strength_day(meta, available)
        strength = STRENGTH_MINUTES if strength_idx is not None else 0

        for long_min in _long_run_options(targets):
            for quality in _quality_options(targets, run_days, long_idx, long_min):
                open_days = [i for i in run_days if i != long_idx and i not in quality]
                easy = self._triathlon_easy_runs(open_days, long_min, quality)
                if easy is None:
                    continue
                runs = long_min + sum(quality.values()) + sum(easy.values())
                total = self._triathlon_total(targets, long_min, runs + strength)
                if total is None:
                    continue
                days = self._run_days(targets, long_idx, long_min, quality, easy)
                if strength_idx is not None:
                    days[strength_idx].append(STRENGTH_TEXT)
                self._add_multisport(days, profile, available, brick_idx, total - runs - strength)
                if self._passes(days, profile, meta, targets):
                    logger.debug(
                        f"Template week {meta.week_number}: {total} min, long run {long_min}, "
                        f"{total - runs - strength} min swim/bike/brick"
                    )
                    return days
        return None

    def _triathlon_easy_runs(
        self, open_days: List[int], long_min: int, quality: Dict[int, int]
    ) -> Optional[Dict[int, int]]:
        """Two short easy runs with durations unlike the long and quality runs."""
        used = {_bucket(m) for m in [long_min, *quality.values()]}
        start = min(TRIATHLON_SHORT_START, _floor_five(long_min * 0.7))
        floor = SHORT_WEEK_FLOOR if start <= 20 else EASY_FLOOR
        values = [m for m in range(start, floor - 1, -5) if m < long_min and _bucket(m) not in used]
        days = sorted([i for i in EASY_ORDER if i in open_days][:TRIATHLON_SHORT_RUNS])
        if len(values) < TRIATHLON_SHORT_RUNS or len(days) < TRIATHLON_SHORT_RUNS:
            return None
        return dict(zip(days, values[:TRIATHLON_SHORT_RUNS]))

    def _triathlon_total(self, targets: WeekTargets, long_min: int, fixed_minutes: int) -> Optional[int]:
        """Weekly total that leaves either nothing or at least one full session for swim and bike."""
        low, high = weekly_band(targets)
        low = max(low, int(math.ceil(long_min / targets.long_run_share_cap)))
        total = min(max(targets.target_weekly_min, low), high)
        padded = max(total, fixed_minutes + MULTISPORT_FLOOR)
        if padded <= high:
            return padded
        if low <= fixed_minutes <= high:
            return fixed_minutes
        return None

    def _add_multisport(
        self,
        days: Dict[int, List[str]],
        profile: AthleteProfile,
        available: List[int],
        brick_idx: Optional[int],
        minutes: int,
    ) -> None:
        if minutes <= 0:
            return
        brick = 0
        if brick_idx is not None and minutes >= 6 * MULTISPORT_FLOOR:
            brick = _floor_five(minutes * BRICK_SHARE)
            off_bike = min(20, max(10, brick // 5))
            days[brick_idx].append(
                f"🧱 Brick — {brick}min: {brick - off_bike}min bike, then {off_bike}min easy run off the bike"
            )

        bike_days = [i for i in BIKE_ORDER if i in available and i != brick_idx]
        ride_idx = profile.long_ride_day.index if profile.long_ride_day else None
        if ride_idx in bike_days:
            bike_days = [ride_idx] + [i for i in bike_days if i != ride_idx]
        swim_days = [i for i in SWIM_ORDER if i in available]

        rest = minutes - brick
        bike = int(rest * BIKE_SHARE) if bike_days else 0
        swim = rest - bike
        if swim < MULTISPORT_FLOOR and bike_days:
            bike, swim = bike + swim, 0
        elif bike < MULTISPORT_FLOOR:
            bike, swim = 0, swim + bike

        for idx, ride in zip(bike_days, _split_sessions(bike)):
            if idx == ride_idx:
                days[idx].append(f"🚴 Long Ride — {ride}min steady endurance")
            else:
                days[idx].append(f"🚴 Bike — {ride}min endurance, high cadence")
        for idx, swim_minutes in zip(swim_days, _split_sessions(swim)):
            days[idx].append(f"🏊 Swim — {swim_minutes}min aerobic sets with drills")

    # ----- shared -----

    @staticmethod
    def _strength_day(meta: WeekMeta, available: List[int]) -> Optional[int]:
        if meta.phase not in (TrainingPhase.BASE, TrainingPhase.BUILD):
            return None
        return next((i for i in STRENGTH_ORDER if i in available), None)

    @staticmethod
    def _passes(days: Dict[int, List[str]], profile: AthleteProfile, meta: WeekMeta, targets: WeekTargets) -> bool:
        content = {meta.dates[i].isoformat(): list(days[i]) for i in range(7)}
        content = apply_placement_guard(content, meta.start_date, meta.phase, profile.effective_brick_days)
        return validate_week(content, targets).ok

    @staticmethod
    def _fallback_layout(targets: WeekTargets, long_idx: Optional[int]) -> Dict[int, List[str]]:
        days: Dict[int, List[str]] = {i: [] for i in range(7)}
        if long_idx is not None and targets.target_long_run_min > 0:
            days[long_idx].append(f"🏃 Long Run — {targets.target_long_run_min}min steady aerobic")
        return days
