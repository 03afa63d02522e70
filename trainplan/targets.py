"""
Target calculation.

Translates the athlete profile, the week's place in the macrocycle and the
previous week's realized volume into the numeric bounds that both the
content generator and the validator honor.

The calculator never reads global state: the prior week arrives as an
argument so the week-to-week dependency stays explicit.
"""

import math
from datetime import date
from typing import Dict, List, Optional, Tuple

from loguru import logger

from trainplan.plan_schemas import PlanDecision, TrainingPhase, WeekMeta, WeekTargets
from trainplan.schemas import AthleteProfile, Experience, PriorWeekSummary, RaceFamily


# ============================================================================
# Constants
# ============================================================================

AVAILABILITY_SHARE = 0.78
BASELINE_MIN_MINUTES = 180  # 3 h
BASELINE_MAX_MINUTES = 840  # 14 h

RAMP_BY_EXPERIENCE = {
    Experience.BEGINNER: 0.06,
    Experience.INTERMEDIATE: 0.07,
    Experience.ADVANCED: 0.08,
    Experience.UNKNOWN: 0.06,
}

PHASE_FACTORS = {
    TrainingPhase.BASE: 1.0,
    TrainingPhase.BUILD: 1.05,
    TrainingPhase.PEAK: 1.02,
    TrainingPhase.TAPER: 0.72,
}

DELOAD_FACTOR = 0.82
# Weekly growth never exceeds this multiple of the previous week
MAX_WEEKLY_GROWTH = 1.08
# Deload target stays low enough that +5% drift still lands under 90% of prior
DELOAD_TARGET_CEILING = 0.85

# (floor, ceiling) weekly minutes per experience x race family
VOLUME_BANDS: Dict[Experience, Dict[RaceFamily, Tuple[int, int]]] = {
    Experience.BEGINNER: {
        RaceFamily.FIVE_K: (90, 240),
        RaceFamily.TEN_K: (100, 270),
        RaceFamily.HALF_MARATHON: (120, 330),
        RaceFamily.MARATHON: (150, 390),
        RaceFamily.SPRINT: (150, 420),
        RaceFamily.OLYMPIC: (180, 480),
        RaceFamily.HALF_IRONMAN: (240, 600),
        RaceFamily.FULL_IRONMAN: (300, 720),
    },
    Experience.INTERMEDIATE: {
        RaceFamily.FIVE_K: (120, 330),
        RaceFamily.TEN_K: (140, 380),
        RaceFamily.HALF_MARATHON: (160, 450),
        RaceFamily.MARATHON: (180, 540),
        RaceFamily.SPRINT: (180, 480),
        RaceFamily.OLYMPIC: (210, 560),
        RaceFamily.HALF_IRONMAN: (300, 720),
        RaceFamily.FULL_IRONMAN: (360, 840),
    },
    Experience.ADVANCED: {
        RaceFamily.FIVE_K: (150, 420),
        RaceFamily.TEN_K: (170, 480),
        RaceFamily.HALF_MARATHON: (200, 560),
        RaceFamily.MARATHON: (240, 650),
        RaceFamily.SPRINT: (210, 540),
        RaceFamily.OLYMPIC: (240, 660),
        RaceFamily.HALF_IRONMAN: (360, 840),
        RaceFamily.FULL_IRONMAN: (420, 960),
    },
}

# Longest run allowed at peak, (beginner, intermediate, advanced)
PEAK_LONG_RUN_CEILINGS: Dict[RaceFamily, Tuple[int, int, int]] = {
    RaceFamily.MARATHON: (180, 195, 210),
    RaceFamily.HALF_MARATHON: (120, 135, 150),
    RaceFamily.TEN_K: (90, 100, 110),
    RaceFamily.FIVE_K: (75, 85, 95),
    RaceFamily.SPRINT: (60, 70, 75),
    RaceFamily.OLYMPIC: (75, 90, 100),
    RaceFamily.HALF_IRONMAN: (110, 120, 130),
    RaceFamily.FULL_IRONMAN: (150, 165, 180),
}

# Absolute single-run ceiling regardless of race
SAFETY_CEILINGS = {
    Experience.BEGINNER: 150,
    Experience.INTERMEDIATE: 180,
    Experience.ADVANCED: 210,
    Experience.UNKNOWN: 165,
}

GENERIC_LONG_RUN_SHARE = 0.26
MARATHON_LONG_RUN_SHARE = {
    TrainingPhase.BASE: 0.30,
    TrainingPhase.BUILD: 0.32,
    TrainingPhase.PEAK: 0.35,
    TrainingPhase.TAPER: 0.30,
}
MARATHON_LATE_BUILD_WEEKS = 6

DEFAULT_SHARE_CAP = 0.35
MARATHON_SHARE_CAPS = {
    Experience.INTERMEDIATE: 0.38,
    Experience.ADVANCED: 0.40,
}
MAX_SHARE_CAP = 0.43

# Marathon long-run floor bands: weeks 1-3, then later weeks
EARLY_FLOOR_BAND = (60, 90)
LATE_FLOOR_BAND = (75, 120)
EARLY_WEEKS = 3
FLOOR_SHARE_OF_BASELINE = 0.25

TAPER_RACE_WEEK_FACTOR = 0.45
TAPER_FACTOR = 0.62
DELOAD_LONG_RUN_FACTOR = 0.88

MAX_QUALITY_MINUTES = {
    TrainingPhase.BASE: 25,
    TrainingPhase.BUILD: 50,
    TrainingPhase.PEAK: 55,
    TrainingPhase.TAPER: 20,
}


# ============================================================================
# Helpers
# ============================================================================

def sanitize_minutes(value) -> float:
    """Coerce a prior-week value to a finite non-negative float (0 when unusable)."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _round(value: float) -> int:
    """Round half up to a non-negative int."""
    return max(0, int(math.floor(value + 0.5)))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _tier(experience: Experience) -> Experience:
    """Tables have no unknown row; unknown athletes use the intermediate one."""
    return Experience.INTERMEDIATE if experience == Experience.UNKNOWN else experience


def _tier_index(experience: Experience) -> int:
    return [Experience.BEGINNER, Experience.INTERMEDIATE, Experience.ADVANCED].index(_tier(experience))


def weeks_until(race_date: date, week_start: date) -> int:
    return max(0, (race_date - week_start).days // 7)


def volume_band(experience: Experience, family: RaceFamily) -> Tuple[int, int]:
    return VOLUME_BANDS[_tier(experience)][family]


def long_run_share(family: RaceFamily, phase: TrainingPhase, weeks_to_race: int) -> float:
    if family != RaceFamily.MARATHON:
        return GENERIC_LONG_RUN_SHARE
    if phase == TrainingPhase.BUILD and weeks_to_race <= MARATHON_LATE_BUILD_WEEKS:
        return MARATHON_LONG_RUN_SHARE[TrainingPhase.PEAK]
    return MARATHON_LONG_RUN_SHARE[phase]


def long_run_share_cap(family: RaceFamily, phase: TrainingPhase, experience: Experience) -> float:
    if family == RaceFamily.MARATHON and phase in (TrainingPhase.BUILD, TrainingPhase.PEAK):
        return min(MAX_SHARE_CAP, MARATHON_SHARE_CAPS.get(experience, DEFAULT_SHARE_CAP))
    return DEFAULT_SHARE_CAP


def progression_step(family: RaceFamily, phase: TrainingPhase, experience: Experience, deload: bool) -> int:
    """Maximum minutes the long run may grow over the previous week's long run."""
    if deload:
        return 0
    if family in (RaceFamily.MARATHON, RaceFamily.FULL_IRONMAN):
        if phase in (TrainingPhase.BUILD, TrainingPhase.PEAK) and experience != Experience.BEGINNER:
            step = 15
        else:
            step = 12
    elif family in (RaceFamily.HALF_MARATHON, RaceFamily.HALF_IRONMAN):
        step = 12
    else:
        step = 10
    if experience == Experience.BEGINNER:
        step = min(step, 10)
    return step


def quality_days_for(phase: TrainingPhase, experience: Experience, deload: bool) -> int:
    if deload or phase in (TrainingPhase.BASE, TrainingPhase.TAPER):
        return 1
    if experience in (Experience.INTERMEDIATE, Experience.ADVANCED):
        return 2
    return 1


def max_quality_minutes_for(phase: TrainingPhase, deload: bool) -> int:
    minutes = MAX_QUALITY_MINUTES[phase]
    if deload:
        minutes = min(minutes, MAX_QUALITY_MINUTES[TrainingPhase.BASE])
    return minutes


# ============================================================================
# Calculator
# ============================================================================

class TargetCalculator:
    """
    Computes WeekTargets and records the reasoning behind each number.

    Args:
        profile: Athlete profile for the plan being built
    """

    def __init__(self, profile: AthleteProfile):
        self.profile = profile
        self.decisions: List[PlanDecision] = []

    def compute(self, meta: WeekMeta, prior: Optional[PriorWeekSummary] = None) -> WeekTargets:
        """
        Compute targets for one week.

        Args:
            meta: Week skeleton entry
            prior: Realized summary of the previous accepted week (None for week 1)

        Returns:
            WeekTargets with every minute value a non-negative int
        """
        profile = self.profile
        experience = profile.experience
        family = profile.race_family
        prior = prior or PriorWeekSummary.empty()

        prev_total = sanitize_minutes(prior.total_minutes)
        prev_long = sanitize_minutes(prior.long_run_minutes)
        weeks_to_race = weeks_until(profile.race_date, meta.start_date)

        # Weekly volume
        availability = profile.max_hours * 60 * AVAILABILITY_SHARE
        if prev_total > 0:
            baseline = prev_total
            baseline_source = "previous week"
        else:
            baseline = _clamp(availability, BASELINE_MIN_MINUTES, BASELINE_MAX_MINUTES)
            baseline_source = "availability"

        ramp = 0.0 if meta.deload else RAMP_BY_EXPERIENCE[experience]
        weekly = baseline * (1 + ramp) * PHASE_FACTORS[meta.phase]
        if meta.deload:
            weekly *= DELOAD_FACTOR
        if prev_total > 0 and not meta.deload:
            weekly = min(weekly, prev_total * MAX_WEEKLY_GROWTH)

        floor_min, ceiling_min = volume_band(experience, family)
        weekly = _clamp(weekly, floor_min, ceiling_min)
        if meta.deload and prev_total > 0:
            weekly = min(weekly, prev_total * DELOAD_TARGET_CEILING)
        target_weekly = _round(weekly)

        self._record(
            meta,
            "Weekly volume target",
            [
                f"Baseline: {baseline:.0f} min ({baseline_source})",
                f"Ramp: {ramp:.0%}",
                f"Phase: {meta.phase.label}",
                f"Deload: {meta.deload}",
                f"Band: {floor_min}-{ceiling_min} min",
            ],
            "Weekly minutes follow the previous week with an experience-based ramp, "
            "scaled by phase and capped at 8% growth over the previous week",
            f"{target_weekly} min/week",
        )

        # Long run
        share = long_run_share(family, meta.phase, weeks_to_race)
        share_cap = long_run_share_cap(family, meta.phase, experience)
        peak_ceiling = PEAK_LONG_RUN_CEILINGS[family][_tier_index(experience)]
        safety_ceiling = SAFETY_CEILINGS[experience]
        step = progression_step(family, meta.phase, experience, meta.deload)

        caps = [peak_ceiling, safety_ceiling, _round(share_cap * target_weekly)]
        if prev_long > 0:
            if meta.deload:
                # strictly below the previous long run
                caps.append(max(0, int(math.ceil(prev_long)) - 1))
            else:
                caps.append(_round(prev_long + step))
        long_run_max = max(0, min(caps))

        min_long = 0
        if meta.phase == TrainingPhase.TAPER and prev_long > 0:
            factor = TAPER_RACE_WEEK_FACTOR if weeks_to_race < 1 else TAPER_FACTOR
            raw_long = prev_long * factor
        elif meta.deload and prev_long > 0:
            raw_long = prev_long * DELOAD_LONG_RUN_FACTOR
        else:
            raw_long = target_weekly * share
            if family == RaceFamily.MARATHON and meta.phase != TrainingPhase.TAPER and not meta.deload:
                low, high = EARLY_FLOOR_BAND if meta.week_number <= EARLY_WEEKS else LATE_FLOOR_BAND
                min_long = _round(_clamp(baseline * FLOOR_SHARE_OF_BASELINE, low, high))

        min_long = min(min_long, long_run_max)
        target_long = _round(_clamp(raw_long, min_long, long_run_max))

        # Taper runs shrink with the long run; the band floor does not apply
        if meta.phase == TrainingPhase.TAPER and prev_long > 0 and not family.is_triathlon:
            bounded = _round(target_long / GENERIC_LONG_RUN_SHARE)
            if 0 < bounded < target_weekly:
                self._record(
                    meta,
                    "Taper volume bound",
                    [
                        f"Weekly target: {target_weekly} min",
                        f"Long run target: {target_long} min",
                        f"Long run share: {GENERIC_LONG_RUN_SHARE:.0%}",
                    ],
                    "Every other run stays shorter than the long run, so taper weeks "
                    "are sized from the reduced long run",
                    f"{bounded} min/week",
                )
                target_weekly = bounded
                long_run_max = min(long_run_max, _round(share_cap * target_weekly))
                target_long = min(target_long, long_run_max)

        self._record(
            meta,
            "Long run target",
            [
                f"Share of week: {share:.0%}",
                f"Previous long run: {prev_long:.0f} min",
                f"Progression step: +{step} min",
                f"Peak ceiling: {peak_ceiling} min",
                f"Share cap: {share_cap:.0%}",
            ],
            "Long run is a share of weekly volume bounded by the race ceiling, "
            "the weekly progression step and the share cap",
            f"{target_long} min (floor {min_long}, max {long_run_max})",
        )

        quality_days = quality_days_for(meta.phase, experience, meta.deload)
        max_quality = max_quality_minutes_for(meta.phase, meta.deload)

        targets = WeekTargets(
            target_weekly_min=target_weekly,
            target_long_run_min=target_long,
            min_long_run_min=min_long,
            long_run_max=long_run_max,
            max_single_session_min=min(safety_ceiling, long_run_max),
            quality_days=quality_days,
            max_quality_min=max_quality,
            long_run_share_cap=share_cap,
            preferred_long_run_day=profile.effective_long_run_day,
            prev_weekly_min=_round(prev_total),
            prev_long_run_min=_round(prev_long),
            experience=experience,
            race_family=family,
            phase=meta.phase,
            deload=meta.deload,
            weeks_to_race=weeks_to_race,
            race_day=meta.race_day,
        )

        logger.debug(
            f"Targets for week {meta.week_number} ({meta.phase.label}{', deload' if meta.deload else ''}): "
            f"weekly={target_weekly} long={target_long} max={long_run_max} "
            f"quality={quality_days}x/{max_quality}min"
        )
        return targets

    def _record(self, meta: WeekMeta, decision_point: str, factors: List[str], reasoning: str, outcome: str):
        self.decisions.append(
            PlanDecision(
                decision_point=f"{decision_point} (week {meta.week_number})",
                input_factors=factors,
                reasoning=reasoning,
                outcome=outcome,
                week_number=meta.week_number,
            )
        )


def compute_week_targets(
    profile: AthleteProfile,
    meta: WeekMeta,
    prior: Optional[PriorWeekSummary] = None,
) -> WeekTargets:
    """Convenience wrapper when the decision log is not needed."""
    return TargetCalculator(profile).compute(meta, prior)
