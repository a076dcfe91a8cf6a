import re
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

import dateparser

from vapi_calendar.core.config import settings
from vapi_calendar.core.logger import logger

LANGUAGES = ["en"]

WEEKDAYS = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1, "tues": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3, "thur": 3, "thurs": 3,
    "friday": 4, "fri": 4,
    "saturday": 5, "sat": 5,
    "sunday": 6, "sun": 6,
}

# Hour used when only a part of the day is named
PARTS_OF_DAY = {
    "morning": 9,
    "noon": 12,
    "midday": 12,
    "afternoon": 15,
    "evening": 18,
    "night": 20,
    "midnight": 0,
}

MONTHS = (
    "january|february|march|april|may|june|july|august|september|october|november|december"
    "|jan|feb|mar|apr|jun|jul|aug|sep|sept|oct|nov|dec"
)

# Words that may surround a spoken date without changing it
FILLER_WORDS = {
    "at", "on", "in", "the", "this", "coming", "around", "about", "approximately",
    "please", "thanks", "for", "by", "o'clock", "oclock", "ish", "sometime",
}

_WEEKDAY_ALTERNATION = "|".join(sorted(WEEKDAYS, key=len, reverse=True))

_DAY_WORD = re.compile(
    r"\b(?:(?P<modifier>this|next|coming)\s+)?(?P<day>today|tomorrow|tonight|" + _WEEKDAY_ALTERNATION + r")\b"
)
_PART_OF_DAY = re.compile(r"\b(?P<part>" + "|".join(PARTS_OF_DAY) + r")\b")
_CLOCK_12H = re.compile(r"(?<![\d:])\b(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<meridiem>[ap])\.?m\b\.?")
_CLOCK_24H = re.compile(
    r"(?<![\d:+\-])(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::\d{2}(?:\.\d+)?)?(?![\d:])(?!\s*[ap]\.?m\b)"
)
_EXPLICIT_ZONE = re.compile(
    r"(?:\dz|[+\-]\d{2}:?\d{2})$|\b(?:utc|gmt|est|edt|cst|cdt|mst|mdt|pst|pdt|cet|cest)\b"
)
_DATE_ANCHORS = [
    re.compile(r"\b(?:today|tomorrow|tonight|now|" + _WEEKDAY_ALTERNATION + r")\b"),
    re.compile(r"\b(?:" + MONTHS + r")\b"),
    re.compile(r"\b(?:" + "|".join(PARTS_OF_DAY) + r")\b"),
    re.compile(r"\d{4}-\d{1,2}-\d{1,2}"),
    re.compile(r"\b\d{1,2}[/.]\d{1,2}(?:[/.]\d{2,4})?\b"),
    re.compile(
        r"\bin\s+(?:\d+|an?|one|two|three|four|five|six|seven|eight|nine|ten)\s+"
        r"(?:minute|hour|day|week|month)s?\b"
    ),
    re.compile(r"\b\d+\s+(?:minute|hour|day|week|month)s?\s+from\s+now\b"),
    _CLOCK_12H,
    _CLOCK_24H,
]
_POLITENESS = re.compile(r"\b(?:please|thanks|thank you)\b", re.IGNORECASE)

Clock = Tuple[int, int, Tuple[int, int]]


def ensure_aware(value: datetime, tz_name: str = None) -> datetime:
    """Attach the configured timezone to naive datetimes."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=ZoneInfo(tz_name or settings.TIMEZONE))
    return value


def _is_valid_instant(value) -> bool:
    if not isinstance(value, datetime):
        return False
    if value.tzinfo is None or value.utcoffset() is None:
        return False
    try:
        # Out-of-range results (year 1 / 9999 edges) blow up on conversion
        value.astimezone(ZoneInfo("UTC"))
    except (OverflowError, ValueError):
        return False
    return True


def _has_date_anchor(phrase: str) -> bool:
    return any(pattern.search(phrase) for pattern in _DATE_ANCHORS)


def _clock_times(phrase: str) -> Optional[List[Clock]]:
    """
    Explicit clock times in the phrase as (hour, minute, span), 24h.
    None when any of them is not a real time of day ("25pm", "10:75").
    """
    clocks = []
    for match in _CLOCK_12H.finditer(phrase):
        hour = int(match.group("hour"))
        minute = int(match.group("minute") or 0)
        if not 1 <= hour <= 12 or minute > 59:
            return None
        hour = hour % 12 + (12 if match.group("meridiem") == "p" else 0)
        clocks.append((hour, minute, match.span()))
    for match in _CLOCK_24H.finditer(phrase):
        hour, minute = int(match.group("hour")), int(match.group("minute"))
        if hour > 23 or minute > 59:
            return None
        clocks.append((hour, minute, match.span()))
    return sorted(clocks, key=lambda clock: clock[2])


def _only_filler(phrase: str, spans: List[Tuple[int, int]]) -> bool:
    leftover = phrase
    for start, end in sorted(spans, reverse=True):
        leftover = leftover[:start] + " " + leftover[end:]
    return all(word in FILLER_WORDS for word in re.findall(r"[a-z0-9']+", leftover))


def _spoken_day(day: str, modifier: Optional[str], today: date) -> date:
    if day in ("today", "tonight"):
        return today
    if day == "tomorrow":
        return today + timedelta(days=1)

    weekday = WEEKDAYS[day]
    if modifier == "next":
        # Same weekday in the following Monday-based week
        next_monday = today + timedelta(days=7 - today.weekday())
        return next_monday + timedelta(days=weekday)
    return today + timedelta(days=(weekday - today.weekday()) % 7)


def _resolve_spoken(phrase: str, clocks: List[Clock], reference: datetime) -> Optional[datetime]:
    """
    "next Monday at 10am", "tomorrow afternoon", "Friday 2pm please".
    Returns None unless every word of the phrase is understood.
    """
    day_match = _DAY_WORD.search(phrase)
    part_match = _PART_OF_DAY.search(phrase)
    if day_match is None and part_match is None:
        return None

    spans = [clock[2] for clock in clocks[:1]]
    spans += [m.span() for m in (day_match, part_match) if m is not None]
    if len(clocks) > 1 or not _only_filler(phrase, spans):
        return None

    today = reference.date()
    day = day_match.group("day") if day_match else "today"
    modifier = day_match.group("modifier") if day_match else None
    resolved_day = _spoken_day(day, modifier, today)

    if clocks:
        hour, minute = clocks[0][0], clocks[0][1]
    elif part_match:
        hour, minute = PARTS_OF_DAY[part_match.group("part")], 0
    elif day == "tonight":
        hour, minute = PARTS_OF_DAY["night"], 0
    else:
        hour, minute = reference.hour, reference.minute

    resolved = datetime.combine(resolved_day, time(hour, minute), tzinfo=reference.tzinfo)
    if day in WEEKDAYS and modifier != "next" and resolved <= reference:
        resolved += timedelta(days=7)
    return resolved


def _parse_with_dateparser(text: str, reference: datetime, tz_name: str) -> Optional[datetime]:
    parser_settings = {
        # dateparser expects a naive base expressed in TIMEZONE
        "RELATIVE_BASE": reference.replace(tzinfo=None),
        "TIMEZONE": tz_name,
        "RETURN_AS_TIMEZONE_AWARE": True,
        "PREFER_DATES_FROM": "future",
    }
    cleaned = " ".join(_POLITENESS.sub(" ", text).split()).strip(" ,.!?")
    try:
        return dateparser.parse(cleaned, languages=LANGUAGES, settings=parser_settings)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Date parsing raised for '{text}': {e}")
        return None


def parse_date_time(text, now: Optional[datetime] = None, tz_name: str = None) -> Optional[datetime]:
    """
    Resolve a free-text date/time phrase ("tomorrow at 2pm", "next Monday",
    "2024-03-20 14:00") into a timezone-aware datetime.

    Relative phrases are resolved against `now` (defaults to the current time in
    `tz_name`). Returns None when the phrase cannot be parsed into a valid instant,
    including phrases with an impossible clock time or nothing date-like in them.
    """
    if not isinstance(text, str) or not text.strip():
        return None

    tz_name = tz_name or settings.TIMEZONE
    tz = ZoneInfo(tz_name)
    reference = (ensure_aware(now, tz_name) if now else datetime.now(tz)).astimezone(tz)
    phrase = " ".join(text.lower().split())

    if not _has_date_anchor(phrase):
        logger.info(f"🕐 No date or time in: '{text}'")
        return None

    clocks = _clock_times(phrase)
    if clocks is None:
        logger.info(f"🕐 Impossible clock time in: '{text}'")
        return None

    parsed = _resolve_spoken(phrase, clocks, reference)
    if parsed is None:
        parsed = _parse_with_dateparser(text, reference, tz_name)

    if not _is_valid_instant(parsed):
        logger.info(f"🕐 Could not resolve date/time: '{text}'")
        return None

    if clocks and not _EXPLICIT_ZONE.search(phrase):
        local = parsed.astimezone(tz)
        if (local.hour, local.minute) != clocks[0][:2]:
            logger.info(f"🕐 Parsed {local.isoformat()} does not match the time in '{text}'")
            return None

    return parsed
