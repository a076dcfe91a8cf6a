from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class TimeSlot(BaseModel):
    """
    A time interval with an availability flag, as returned by the scheduling backend.
    Naive timestamps from the backend are read as UTC.
    """
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    available: bool

    @field_validator("start", "end")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ResolvedInterval(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_time: str
    end_time: str

    @classmethod
    def from_start(cls, start: datetime, duration_minutes: int) -> "ResolvedInterval":
        if duration_minutes <= 0:
            raise ValueError(f"Duration must be positive, got {duration_minutes}")
        # Elapsed minutes, not wall-clock, across DST changes
        end = (start.astimezone(timezone.utc) + timedelta(minutes=duration_minutes)).astimezone(start.tzinfo)
        return cls(start_time=start.isoformat(), end_time=end.isoformat())


class BookingRequest(BaseModel):
    """Payload sent to the event-creation endpoint (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(min_length=1)
    start_time: str
    end_time: str
    description: Optional[str] = None
    client_name: str = Field(min_length=1)
    client_email: EmailStr
    client_phone: str = Field(min_length=1)


class BookingOutcome(BaseModel):
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None
    slot: Optional[TimeSlot] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        # Cal.com returns numeric ids
        if value is None:
            return value
        return str(value)

    @model_validator(mode="after")
    def _success_has_id(self) -> "BookingOutcome":
        if self.success and not self.id:
            raise ValueError("A successful booking must carry a backend id")
        return self

    @classmethod
    def booked(cls, booking_id, slot: TimeSlot) -> "BookingOutcome":
        return cls(success=True, id=booking_id, slot=slot)

    @classmethod
    def failed(cls, error: str, slot: Optional[TimeSlot] = None) -> "BookingOutcome":
        return cls(success=False, error=error, slot=slot)
