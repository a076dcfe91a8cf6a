from datetime import datetime
from typing import List, Optional, Sequence
from zoneinfo import ZoneInfo

from vapi_calendar.core.config import settings
from vapi_calendar.models.calendar_models import TimeSlot
from vapi_calendar.models.outcome_models import FunctionCallOutcome, OutcomeStatus

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

MONTH_NAMES = {
    1: "January", 2: "February", 3: "March", 4: "April", 5: "May", 6: "June",
    7: "July", 8: "August", 9: "September", 10: "October", 11: "November", 12: "December"
}

INVALID_DATE_MESSAGE = (
    "I couldn't understand that date format. "
    "Please provide a date like 'tomorrow at 2pm' or '2024-03-20 14:00'."
)
UNKNOWN_FUNCTION_MESSAGE = "Unknown function call"
GENERIC_ERROR_MESSAGE = "Sorry, there was an error processing your request."


def format_spoken_datetime(value: datetime, tz_name: Optional[str] = None) -> str:
    """
    Long US-English rendering used in spoken replies,
    e.g. "Wednesday, March 20, 2024 at 2:00 PM".
    """
    if value.tzinfo is not None:
        value = value.astimezone(ZoneInfo(tz_name or settings.TIMEZONE))

    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return (
        f"{DAY_NAMES[value.weekday()]}, {MONTH_NAMES[value.month]} {value.day}, {value.year} "
        f"at {hour}:{value.minute:02d} {meridiem}"
    )


def format_alternatives_message(
    alternatives: Sequence[TimeSlot],
    search_days: Optional[int] = None,
    tz_name: Optional[str] = None,
) -> str:
    if not alternatives:
        days = search_days or settings.ALTERNATIVE_SEARCH_DAYS
        return f"Sorry, no alternative time slots are available in the next {days} days."

    times = ", ".join(format_spoken_datetime(slot.start, tz_name) for slot in alternatives)
    return f"The requested time is not available. Here are some alternative times: {times}"


def _join_fields(fields: List[str]) -> str:
    if len(fields) <= 1:
        return "".join(fields)
    return ", ".join(fields[:-1]) + " and " + fields[-1]


def render_outcome(outcome: FunctionCallOutcome, tz_name: Optional[str] = None) -> str:
    """Turn a structured outcome into the sentence Vapi reads to the caller."""
    status = outcome.status

    if status == OutcomeStatus.INVALID_DATE:
        return INVALID_DATE_MESSAGE

    if status == OutcomeStatus.AVAILABLE:
        when = format_spoken_datetime(outcome.requested_time, tz_name)
        return f"Yes, that time slot is available! The appointment can be scheduled for {when}."

    if status == OutcomeStatus.UNAVAILABLE:
        return format_alternatives_message(outcome.alternatives, outcome.search_days, tz_name)

    if status == OutcomeStatus.BOOKED:
        when = format_spoken_datetime(outcome.requested_time, tz_name)
        return (
            f"Great! I've booked your appointment for {when}. "
            f"You'll receive a confirmation email at {outcome.client_email}."
        )

    if status == OutcomeStatus.BOOKING_FAILED:
        return f"Sorry, I couldn't book the appointment: {outcome.error}"

    if status == OutcomeStatus.INVALID_DETAILS:
        missing = _join_fields(outcome.missing_fields) or "contact details"
        return f"To book the appointment I still need your {missing}."

    if status == OutcomeStatus.UNKNOWN_FUNCTION:
        return UNKNOWN_FUNCTION_MESSAGE

    return GENERIC_ERROR_MESSAGE
