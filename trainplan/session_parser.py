"""
Session text parsing.

Sessions arrive as free-form strings such as
"🏃 Run — 45min easy @ conversational pace". This module extracts the
sport, duration, title/details split and whether the session carries
quality work. Every function is pure and total: malformed text yields
a best-effort result, never an exception.
"""

import re
from typing import List, Optional

from trainplan.plan_schemas import ParsedSession
from trainplan.schemas import Sport


DEFAULT_TITLE = "Workout"
DEFAULT_DETAILS = "Details"
SEPARATOR = " — "

_SEPARATOR_RE = re.compile(r"\s+[—–]\s+")

_HOURS_AND_MINUTES_RE = re.compile(
    r"\b(\d{1,2})\s*(?:h|hr|hrs|hour|hours)(?:\s*(\d{1,2})\s*(?:m|min|mins|minute|minutes)\b|(\d{2})\b)",
    re.IGNORECASE,
)
_MINUTES_RE = re.compile(r"\b(\d{1,3})\s*(?:min|mins|minute|minutes)\b", re.IGNORECASE)
_HOURS_RE = re.compile(r"\b(\d+(?:\.\d+)?)\s*(?:h|hr|hrs|hour|hours)\b", re.IGNORECASE)
# h:mm, but not a pace such as "5:00/km" or "6:55 / mi"
_CLOCK_RE = re.compile(r"(?<![@\d:])\b(\d{1,2}):([0-5]\d)\b(?!\s*(?:/|per\b|pace\b))", re.IGNORECASE)

_EMOJI_SPORTS = [
    ("🧱", Sport.BRICK),
    ("🏊", Sport.SWIM),
    ("🚴", Sport.BIKE),
    ("🚲", Sport.BIKE),
    ("🏃", Sport.RUN),
    ("💪", Sport.STRENGTH),
    ("🏋", Sport.STRENGTH),
]

_KEYWORD_SPORTS = [
    (re.compile(r"\bbrick\b", re.IGNORECASE), Sport.BRICK),
    (re.compile(r"\bswim(?:ming)?\b|\bopen water\b|\bpool\b", re.IGNORECASE), Sport.SWIM),
    (re.compile(r"\bbike\b|\bride\b|\bcycl(?:e|ing)\b|\bspin\b|\btrainer\b", re.IGNORECASE), Sport.BIKE),
    (re.compile(r"\bstrength\b|\bgym\b|\bweights?\b", re.IGNORECASE), Sport.STRENGTH),
    (re.compile(r"\brun(?:s|ning)?\b|\bjog(?:ging)?\b|\blong run\b", re.IGNORECASE), Sport.RUN),
]

HARD_PATTERNS = [
    re.compile(r"\btempo\b", re.IGNORECASE),
    re.compile(r"\bthreshold\b", re.IGNORECASE),
    re.compile(r"\bintervals?\b", re.IGNORECASE),
    re.compile(r"\bvo2", re.IGNORECASE),
    re.compile(r"\bhills?\b|\bhill repeats\b", re.IGNORECASE),
    re.compile(r"\brace[\s-]pace\b", re.IGNORECASE),
    re.compile(r"\bmarathon[\s-]pace\b|\b(?:hm|mp)\s+pace\b", re.IGNORECASE),
    re.compile(r"\bspeed\b", re.IGNORECASE),
    re.compile(r"\bfartlek\b", re.IGNORECASE),
    re.compile(r"\bprogression\b", re.IGNORECASE),
    # rep structures: 6x800, 5 x 3min, 4×1k
    re.compile(r"\b\d+\s*[x×]\s*\d+", re.IGNORECASE),
]


def parse_duration(text: str) -> Optional[int]:
    """
    Extract a duration in whole minutes.

    Accepts "45min", "45 minutes", "1.5h", "2 hours", "1h 30min" and "1:15".
    The first recognizable form wins.

    Args:
        text: Session string

    Returns:
        Minutes, or None when no duration is present
    """
    if not text:
        return None

    match = _HOURS_AND_MINUTES_RE.search(text)
    if match:
        return int(match.group(1)) * 60 + int(match.group(2) or match.group(3))

    match = _MINUTES_RE.search(text)
    if match:
        return int(match.group(1))

    match = _HOURS_RE.search(text)
    if match:
        return int(round(float(match.group(1)) * 60))

    match = _CLOCK_RE.search(text)
    if match:
        hours = int(match.group(1))
        if hours <= 6:
            return hours * 60 + int(match.group(2))

    return None


def classify_sport(text: str) -> Sport:
    """Classify a session by its leading emoji, falling back to keywords."""
    stripped = (text or "").strip()
    for emoji, sport in _EMOJI_SPORTS:
        if stripped.startswith(emoji):
            return sport

    title = split_title_details(stripped)[0]
    for candidate in (title, stripped):
        for pattern, sport in _KEYWORD_SPORTS:
            if pattern.search(candidate):
                return sport
    return Sport.OTHER


def is_hard_text(text: str) -> bool:
    """True when the text carries a quality-work cue."""
    return any(pattern.search(text or "") for pattern in HARD_PATTERNS)


def split_title_details(text: str) -> tuple:
    """Split on the first em/en dash separator into (title, details-or-None)."""
    segments = _SEPARATOR_RE.split((text or "").strip())
    title = segments[0].strip()
    details = SEPARATOR.join(seg.strip() for seg in segments[1:]).strip() or None
    return title, details


def has_separator(text: str) -> bool:
    return bool(_SEPARATOR_RE.search(text or ""))


def parse_session(raw: str) -> ParsedSession:
    """
    Parse one session string.

    Args:
        raw: Free-form session text

    Returns:
        ParsedSession (never raises)
    """
    text = (raw or "").strip()
    title, details = split_title_details(text)
    return ParsedSession(
        sport=classify_sport(text),
        title=title or DEFAULT_TITLE,
        details=details,
        is_hard=is_hard_text(text),
        duration_minutes=parse_duration(text),
    )


def is_run_session(session: ParsedSession) -> bool:
    """Run sessions proper; bricks count toward total volume, not run rules."""
    return session.sport == Sport.RUN


def parse_day(sessions: List[str]) -> List[ParsedSession]:
    return [parse_session(s) for s in sessions or []]
