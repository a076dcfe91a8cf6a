from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from vapi_calendar.models.calendar_models import TimeSlot


class FunctionName(str, Enum):
    CHECK_AVAILABILITY = "checkAvailability"
    BOOK_APPOINTMENT = "bookAppointment"


class OutcomeStatus(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    BOOKED = "booked"
    BOOKING_FAILED = "booking_failed"
    INVALID_DATE = "invalid_date"
    INVALID_DETAILS = "invalid_details"
    UNKNOWN_FUNCTION = "unknown_function"
    ERROR = "error"


class FunctionCallOutcome(BaseModel):
    """Machine-readable result of one function call, before it is turned into speech."""
    function_name: str
    status: OutcomeStatus
    requested_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    alternatives: List[TimeSlot] = Field(default_factory=list)
    search_days: Optional[int] = None
    booking_id: Optional[str] = None
    client_email: Optional[str] = None
    missing_fields: List[str] = Field(default_factory=list)
    error: Optional[str] = None
