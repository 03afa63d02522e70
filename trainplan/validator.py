"""
Week validation.

Evaluates a generated (and guarded) week against its WeekTargets plus
structural rules. Each rule is an independent predicate over a WeekFacts
snapshot computed once per week; every rule runs even when an earlier one
fails, so the caller gets the complete list of violations to feed back
into regeneration.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

from loguru import logger

from trainplan.plan_schemas import (
    ParsedSession,
    TrainingPhase,
    ValidationResult,
    WeekContent,
    WeekSummary,
    WeekTargets,
)
from trainplan.schemas import Experience, RaceFamily, Weekday
from trainplan.session_parser import is_run_session, parse_session


PARSEABLE_RATIO_MIN = 0.8
WEEKLY_TOLERANCE = 0.05
LONG_RUN_TOLERANCE_MIN = 8
LONG_RUN_TOLERANCE_PCT = 0.12
RECOVERY_DAY_MAX_RUN_MIN = 60
MEDIUM_LONG_RANGE = (55, 80)
SHORT_EASY_MAX = 55
SHORT_EASY_COUNT = (2, 3)
SHORT_EASY_COUNT_TRUE_BEGINNER = (2, 4)
LONG_SESSION_MIN = 70
MAX_LONG_SESSIONS = 2
LONG_SESSION_EXCEPTION_PREV_MIN = 320
CONSECUTIVE_DAY_RUN_MIN = 60
MAX_CONSECUTIVE_LONG_DAYS = 2
MAX_REPEATED_DURATION = 2
DELOAD_MAX_RATIO = 0.9
STRIDES_CUE = "strides"


# ============================================================================
# Facts
# ============================================================================

@dataclass(frozen=True)
class RunEntry:
    """One run session anchored to its date."""

    day: date
    raw: str
    session: ParsedSession

    @property
    def minutes(self) -> int:
        return self.session.duration_minutes or 0


@dataclass(frozen=True)
class WeekFacts:
    """Everything the rules need, computed once from the week content."""

    targets: WeekTargets
    days: List[date]
    runs: List[RunEntry]
    sessions_by_day: Dict[date, List[ParsedSession]]
    unparsed_keys: List[str] = field(default_factory=list)

    @property
    def parseable_runs(self) -> List[RunEntry]:
        return [r for r in self.runs if r.session.duration_minutes is not None]

    @property
    def parseable_ratio(self) -> float:
        if not self.runs:
            return 1.0
        return len(self.parseable_runs) / len(self.runs)

    @property
    def confident(self) -> bool:
        return self.parseable_ratio >= PARSEABLE_RATIO_MIN

    @property
    def run_minutes(self) -> int:
        return sum(r.minutes for r in self.runs)

    @property
    def total_minutes(self) -> int:
        """Run minutes for running races; all sports for triathlon."""
        if not self.targets.race_family.is_triathlon:
            return self.run_minutes
        return sum(
            s.duration_minutes or 0
            for sessions in self.sessions_by_day.values()
            for s in sessions
        )

    @property
    def longest_run(self) -> Optional[RunEntry]:
        parseable = self.parseable_runs
        if not parseable:
            return None
        return max(parseable, key=lambda r: r.minutes)

    @property
    def long_run_minutes(self) -> int:
        longest = self.longest_run
        return longest.minutes if longest else 0

    @property
    def hard_runs(self) -> List[RunEntry]:
        return [r for r in self.runs if r.session.is_hard]

    @property
    def hard_days(self) -> List[date]:
        return sorted({r.day for r in self.hard_runs})

    @property
    def quality_minutes(self) -> int:
        return sum(r.minutes for r in self.hard_runs)

    @property
    def easy_runs(self) -> List[RunEntry]:
        return [r for r in self.runs if not r.session.is_hard]

    def run_minutes_on(self, day: date) -> int:
        return sum(r.minutes for r in self.runs if r.day == day)

    def runs_on(self, day: date) -> List[RunEntry]:
        return [r for r in self.runs if r.day == day]

    def summary(self) -> WeekSummary:
        longest = self.longest_run
        return WeekSummary(
            total_minutes=self.total_minutes,
            run_minutes=self.run_minutes,
            long_run_minutes=self.long_run_minutes,
            long_run_date=longest.day.isoformat() if longest else None,
            hard_days=[d.isoformat() for d in self.hard_days],
            quality_minutes=self.quality_minutes,
            run_sessions=len(self.runs),
            parseable_ratio=round(self.parseable_ratio, 3),
        )


def build_week_facts(content: WeekContent, targets: WeekTargets) -> WeekFacts:
    """Parse every session once and index the results by calendar date."""
    runs: List[RunEntry] = []
    sessions_by_day: Dict[date, List[ParsedSession]] = {}
    unparsed_keys: List[str] = []

    for key in sorted(content):
        try:
            day = date.fromisoformat(key[:10])
        except ValueError:
            unparsed_keys.append(key)
            continue
        sessions_by_day.setdefault(day, [])
        for raw in content[key] or []:
            session = parse_session(raw)
            sessions_by_day[day].append(session)
            if is_run_session(session):
                runs.append(RunEntry(day=day, raw=raw, session=session))

    days = sorted(sessions_by_day)
    return WeekFacts(
        targets=targets,
        days=days,
        runs=runs,
        sessions_by_day=sessions_by_day,
        unparsed_keys=unparsed_keys,
    )


# ============================================================================
# Rules
# ============================================================================

@dataclass(frozen=True)
class WeekRule:
    """A named predicate returning zero or more violation messages."""

    name: str
    description: str
    evaluate: Callable[[WeekFacts], List[str]]


def _weekday_name(day: date) -> str:
    return Weekday.from_date(day).value.capitalize()


def _round_to_five(minutes: int) -> int:
    return int(minutes / 5 + 0.5) * 5


def check_missing_durations(facts: WeekFacts) -> List[str]:
    return [
        f'Run session missing duration on {r.day.isoformat()}: "{r.raw}"'
        for r in facts.runs
        if r.session.duration_minutes is None
    ]


def check_weekly_total(facts: WeekFacts) -> List[str]:
    target = facts.targets.target_weekly_min
    if not facts.confident or target <= 0:
        return []
    low = int(target * (1 - WEEKLY_TOLERANCE) + 0.5)
    high = int(target * (1 + WEEKLY_TOLERANCE) + 0.5)
    total = facts.total_minutes
    if low <= total <= high:
        return []
    label = "training" if facts.targets.race_family.is_triathlon else "run"
    return [f"Total {label} minutes {total} outside target band {low}-{high}."]


def check_long_run_max(facts: WeekFacts) -> List[str]:
    long_run = facts.long_run_minutes
    if long_run > facts.targets.long_run_max:
        return [f"Long run {long_run} exceeds max {facts.targets.long_run_max}."]
    return []


def check_long_run_tolerance(facts: WeekFacts) -> List[str]:
    targets = facts.targets
    target = targets.target_long_run_min
    if target <= 0 or not facts.runs:
        return []
    tolerance = max(LONG_RUN_TOLERANCE_MIN, int(target * LONG_RUN_TOLERANCE_PCT + 0.5))
    low = max(0, target - tolerance)
    high = min(targets.long_run_max, target + tolerance)
    long_run = facts.long_run_minutes
    if low <= long_run <= high:
        return []
    return [f"Long run {long_run} not within target tolerance ({low}-{high}) for target {target}."]


def check_long_run_floor(facts: WeekFacts) -> List[str]:
    floor = facts.targets.min_long_run_min
    if facts.targets.deload or floor <= 0:
        return []
    if facts.long_run_minutes < floor:
        return [f"Long run {facts.long_run_minutes} below minimum floor {floor}."]
    return []


def check_long_run_share(facts: WeekFacts) -> List[str]:
    total = facts.total_minutes
    if not facts.confident or total <= 0:
        return []
    cap = facts.targets.long_run_share_cap
    if facts.long_run_minutes > cap * total:
        return [
            f"Long run {facts.long_run_minutes} exceeds {cap:.0%} of weekly total {total}."
        ]
    return []


def check_hard_day_count(facts: WeekFacts) -> List[str]:
    hard_days = facts.hard_days
    if len(hard_days) > facts.targets.quality_days:
        return [f"Too many hard run days ({len(hard_days)}) > {facts.targets.quality_days}."]
    return []


def check_back_to_back_hard(facts: WeekFacts) -> List[str]:
    hard_days = facts.hard_days
    errors = []
    for previous, current in zip(hard_days, hard_days[1:]):
        if current - previous == timedelta(days=1):
            errors.append(
                f"Back-to-back hard run days: {previous.isoformat()} and {current.isoformat()}."
            )
    return errors


def check_recovery_after_hard(facts: WeekFacts) -> List[str]:
    errors = []
    hard_days = set(facts.hard_days)
    last_day = max(facts.days) if facts.days else None
    for day in sorted(hard_days):
        following = day + timedelta(days=1)
        if last_day is None or following > last_day or following in hard_days:
            continue
        minutes = facts.run_minutes_on(following)
        if minutes >= RECOVERY_DAY_MAX_RUN_MIN:
            errors.append(
                f"Day after hard run day {day.isoformat()} has {minutes} run minutes on "
                f"{following.isoformat()}; keep it easy and under {RECOVERY_DAY_MAX_RUN_MIN}."
            )
    return errors


def check_quality_minutes(facts: WeekFacts) -> List[str]:
    if not facts.confident:
        return []
    if facts.quality_minutes > facts.targets.max_quality_min:
        return [
            f"Total hard-run minutes {facts.quality_minutes} exceeds maxQualityMin "
            f"{facts.targets.max_quality_min}."
        ]
    return []


def check_single_session_ceiling(facts: WeekFacts) -> List[str]:
    ceiling = facts.targets.max_single_session_min
    return [
        f"Run duration {r.minutes}min exceeds maxSingleRunMin {ceiling} on {r.day.isoformat()}"
        for r in facts.parseable_runs
        if r.minutes > ceiling
    ]


def check_long_run_day(facts: WeekFacts) -> List[str]:
    longest = facts.longest_run
    if longest is None:
        return []
    preferred = facts.targets.preferred_long_run_day
    race_day = facts.targets.race_day
    if race_day is not None:
        preferred_date = race_day - timedelta(days=race_day.weekday()) + timedelta(days=preferred.index)
        if preferred_date >= race_day:
            return []
    candidates = [r for r in facts.parseable_runs if r.minutes == longest.minutes]
    if any(Weekday.from_date(r.day) == preferred for r in candidates):
        return []
    return [
        f"Longest run is not scheduled on preferred long run day "
        f"({preferred.value.capitalize()}); found on {longest.day.isoformat()} "
        f"({_weekday_name(longest.day)})."
    ]


def check_quality_present(facts: WeekFacts) -> List[str]:
    if facts.targets.quality_days >= 1 and not facts.hard_runs:
        return ["Week needs at least one quality run (tempo, threshold, intervals, hills or race pace)."]
    return []


def check_medium_long(facts: WeekFacts) -> List[str]:
    targets = facts.targets
    if (
        targets.race_family != RaceFamily.MARATHON
        or targets.true_beginner
        or targets.phase == TrainingPhase.TAPER
    ):
        return []
    longest = facts.longest_run
    low, high = MEDIUM_LONG_RANGE
    for r in facts.easy_runs:
        if r is longest:
            continue
        if low <= r.minutes <= high:
            return []
    return [f"Marathon week needs a medium-long aerobic run ({low}-{high}min) besides the long run."]


def check_short_easy_count(facts: WeekFacts) -> List[str]:
    longest = facts.longest_run
    low, high = SHORT_EASY_COUNT_TRUE_BEGINNER if facts.targets.true_beginner else SHORT_EASY_COUNT
    count = sum(
        1
        for r in facts.easy_runs
        if r is not longest and r.session.duration_minutes is not None and r.minutes < SHORT_EASY_MAX
    )
    if low <= count <= high:
        return []
    return [f"Short easy run count {count} outside allowed range {low}-{high}."]


def check_strides(facts: WeekFacts) -> List[str]:
    if any(STRIDES_CUE in r.raw.lower() for r in facts.easy_runs):
        return []
    return ["Add a strides cue (e.g. 'with 6 strides') to at least one easy run."]


def check_long_session_count(facts: WeekFacts) -> List[str]:
    targets = facts.targets
    if (
        targets.experience == Experience.ADVANCED
        and targets.phase == TrainingPhase.PEAK
        and targets.prev_weekly_min >= LONG_SESSION_EXCEPTION_PREV_MIN
    ):
        return []
    count = sum(1 for r in facts.parseable_runs if r.minutes >= LONG_SESSION_MIN)
    if count > MAX_LONG_SESSIONS:
        return [
            f"Too many runs of {LONG_SESSION_MIN}+ minutes ({count}); at most {MAX_LONG_SESSIONS} allowed."
        ]
    return []


def check_consecutive_long_days(facts: WeekFacts) -> List[str]:
    long_days = sorted({r.day for r in facts.parseable_runs if r.minutes >= CONSECUTIVE_DAY_RUN_MIN})
    errors = []
    streak: List[date] = []
    for day in long_days + [None]:
        if day is not None and streak and day - streak[-1] == timedelta(days=1):
            streak.append(day)
            continue
        if len(streak) > MAX_CONSECUTIVE_LONG_DAYS:
            errors.append(
                f"{len(streak)} consecutive days with {CONSECUTIVE_DAY_RUN_MIN}+ minute runs "
                f"({streak[0].isoformat()} to {streak[-1].isoformat()}); max {MAX_CONSECUTIVE_LONG_DAYS}."
            )
        streak = [day] if day is not None else []
    return errors


def check_repeated_durations(facts: WeekFacts) -> List[str]:
    histogram: Dict[int, int] = {}
    for r in facts.parseable_runs:
        bucket = _round_to_five(r.minutes)
        histogram[bucket] = histogram.get(bucket, 0) + 1
    return [
        f"Run duration ~{bucket}min repeated {count} times; vary session lengths."
        for bucket, count in sorted(histogram.items())
        if count > MAX_REPEATED_DURATION
    ]


def check_doubles(facts: WeekFacts) -> List[str]:
    if facts.targets.experience == Experience.ADVANCED:
        return []
    errors = []
    for day in facts.days:
        count = len(facts.runs_on(day))
        if count > 1:
            errors.append(
                f"Multiple run sessions in one day ({count}) on {day.isoformat()}. "
                f"Doubles not allowed for {facts.targets.experience.value} athletes."
            )
    return errors


def check_deload_reduction(facts: WeekFacts) -> List[str]:
    targets = facts.targets
    if not targets.deload:
        return []
    errors = []
    if targets.prev_weekly_min > 0 and facts.total_minutes > DELOAD_MAX_RATIO * targets.prev_weekly_min:
        errors.append(
            f"Deload week did not reduce volume enough: prev {targets.prev_weekly_min} min "
            f"→ now {facts.total_minutes} min."
        )
    if targets.prev_long_run_min > 0 and facts.long_run_minutes >= targets.prev_long_run_min:
        errors.append(
            f"Deload week long run {facts.long_run_minutes} not below previous long run "
            f"{targets.prev_long_run_min}."
        )
    return errors


DEFAULT_RULES: List[WeekRule] = [
    WeekRule("missing_duration", "Every run declares a duration", check_missing_durations),
    WeekRule("weekly_total", "Weekly minutes within 5% of target", check_weekly_total),
    WeekRule("long_run_max", "Long run at or under its ceiling", check_long_run_max),
    WeekRule("long_run_tolerance", "Long run close to its target", check_long_run_tolerance),
    WeekRule("long_run_floor", "Long run at or above its floor", check_long_run_floor),
    WeekRule("long_run_share", "Long run bounded by share of week", check_long_run_share),
    WeekRule("hard_day_count", "Hard days within quality allowance", check_hard_day_count),
    WeekRule("back_to_back_hard", "No consecutive hard days", check_back_to_back_hard),
    WeekRule("recovery_after_hard", "Easy, short day after a hard day", check_recovery_after_hard),
    WeekRule("quality_minutes", "Hard minutes within allowance", check_quality_minutes),
    WeekRule("single_session_ceiling", "No run above the single-session ceiling", check_single_session_ceiling),
    WeekRule("long_run_day", "Longest run on the preferred weekday", check_long_run_day),
    WeekRule("quality_present", "At least one quality run", check_quality_present),
    WeekRule("medium_long", "Medium-long run in marathon weeks", check_medium_long),
    WeekRule("short_easy_count", "Short easy run count in range", check_short_easy_count),
    WeekRule("strides", "Strides on an easy run", check_strides),
    WeekRule("long_session_count", "Limited number of 70+ minute runs", check_long_session_count),
    WeekRule("consecutive_long_days", "No long streak of 60+ minute days", check_consecutive_long_days),
    WeekRule("repeated_durations", "Session lengths vary", check_repeated_durations),
    WeekRule("doubles", "One run per day unless advanced", check_doubles),
    WeekRule("deload_reduction", "Deload weeks reduce load", check_deload_reduction),
]


# ============================================================================
# Validator
# ============================================================================

class WeekValidator:
    """
    Runs the rule set against a week.

    All rules are evaluated even when some fail, so callers see the complete
    set of violations.

    Args:
        rules: Rule list to evaluate (defaults to DEFAULT_RULES)
    """

    def __init__(self, rules: Optional[List[WeekRule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def validate(self, content: WeekContent, targets: WeekTargets) -> ValidationResult:
        """
        Validate one week.

        Args:
            content: Canonicalized, guarded day content
            targets: Targets the week was generated against

        Returns:
            ValidationResult with ok flag, itemized errors and computed summary
        """
        facts = build_week_facts(content, targets)
        errors: List[str] = []
        for rule in self.rules:
            errors.extend(rule.evaluate(facts))

        summary = facts.summary()
        if errors:
            logger.debug(f"Week rejected with {len(errors)} violation(s): {errors}")
        return ValidationResult(ok=not errors, errors=errors, summary=summary)

    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]


def validate_week(content: WeekContent, targets: WeekTargets) -> ValidationResult:
    return WeekValidator().validate(content, targets)


def summarize_week(content: WeekContent, targets: WeekTargets) -> WeekSummary:
    """Compute the week summary without running any rules."""
    return build_week_facts(content, targets).summary()
