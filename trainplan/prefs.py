"""Rule-based extraction of day preferences from free-form notes."""

import re
from typing import List, Optional

from pydantic import BaseModel, Field

from trainplan.schemas import AthleteProfile, Weekday, normalize_weekday


_DAY_RE = re.compile(
    r"\b(sun(?:day)?|mon(?:day)?|tue(?:s(?:day)?)?|wed(?:nesday)?|thu(?:r(?:s(?:day)?)?)?|fri(?:day)?|sat(?:urday)?)s?\b",
    re.IGNORECASE,
)
_CLAUSE_RE = re.compile(r"[.;,\n]+")

_BRICK_RE = re.compile(r"\bbrick|\bbike-?run\b", re.IGNORECASE)
_LONG_RIDE_RE = re.compile(r"\blong ride", re.IGNORECASE)
_LONG_RUN_RE = re.compile(r"\blong run", re.IGNORECASE)
_REST_RE = re.compile(r"\brest day|\bday off\b", re.IGNORECASE)
_MIDWEEK_BRICK_RE = re.compile(r"mid[- ]?week brick|wednesday brick|wed brick", re.IGNORECASE)


class TrainingPreferences(BaseModel):
    """Day preferences found in free text; unset fields were not mentioned."""

    brick_days: List[Weekday] = Field(default_factory=list)
    long_ride_day: Optional[Weekday] = None
    long_run_day: Optional[Weekday] = None
    rest_day: Optional[Weekday] = None

    @property
    def empty(self) -> bool:
        return not (self.brick_days or self.long_ride_day or self.long_run_day or self.rest_day)


def _find_day(text: str) -> Optional[Weekday]:
    match = _DAY_RE.search(text)
    if not match:
        return None
    return normalize_weekday(match.group(1))


def _day_near(text: str, pattern: re.Pattern) -> Optional[Weekday]:
    """Day named in the first clause that mentions the pattern."""
    for clause in _CLAUSE_RE.split(text):
        if pattern.search(clause):
            day = _find_day(clause)
            if day is not None:
                return Weekday(day)
    return None


def extract_preferences(text: Optional[str]) -> TrainingPreferences:
    """
    Pull brick, long-ride, long-run and rest days out of preference notes.

    Args:
        text: e.g. "Long run on Saturdays, bricks on Sunday, mid-week brick ok"

    Returns:
        TrainingPreferences (empty when nothing was recognized)
    """
    prefs = TrainingPreferences()
    if not text:
        return prefs

    brick = _day_near(text, _BRICK_RE)
    if brick is not None:
        prefs.brick_days = [brick]
    if _MIDWEEK_BRICK_RE.search(text) and Weekday.WEDNESDAY not in prefs.brick_days:
        prefs.brick_days = prefs.brick_days + [Weekday.WEDNESDAY]

    prefs.long_ride_day = _day_near(text, _LONG_RIDE_RE)
    prefs.long_run_day = _day_near(text, _LONG_RUN_RE)
    prefs.rest_day = _day_near(text, _REST_RE)
    return prefs


def apply_preferences(profile: AthleteProfile) -> AthleteProfile:
    """
    Fill day fields the profile leaves unset from its preference notes.

    Explicit profile fields always win; the profile itself is not modified.
    """
    prefs = extract_preferences(profile.preferences_text)
    if prefs.empty:
        return profile

    update = {}
    if prefs.brick_days and not profile.brick_days:
        update["brick_days"] = prefs.brick_days
    if prefs.long_ride_day and profile.long_ride_day is None:
        update["long_ride_day"] = prefs.long_ride_day
    if prefs.long_run_day and profile.long_run_day is None:
        update["long_run_day"] = prefs.long_run_day
    if prefs.rest_day and "rest_day" not in profile.model_fields_set:
        update["rest_day"] = prefs.rest_day
    if not update:
        return profile
    return profile.model_copy(update=update)
