from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from vapi_calendar.core.config import settings
from vapi_calendar.core.logger import logger
from vapi_calendar.models.calendar_models import BookingRequest, ResolvedInterval
from vapi_calendar.models.outcome_models import FunctionCallOutcome, FunctionName, OutcomeStatus
from vapi_calendar.models.vapi_models import FunctionCall, FunctionCallEnvelope, FunctionCallResponse
from vapi_calendar.services.calendar_service import AvailabilityQueryFailed, CalendarService, calendar_service
from vapi_calendar.services.response_formatter import render_outcome
from vapi_calendar.services.time_parser import parse_date_time

CLIENT_FIELDS = {
    "name": "name",
    "email": "email address",
    "phone": "phone number",
}


def _coerce_duration(value: Any, default: int) -> int:
    """Positive whole minutes, or the default when the assistant sent junk."""
    if value is None:
        return default
    if isinstance(value, bool):
        logger.warning(f"⚠️ Ignoring boolean duration {value!r}, using {default} min")
        return default
    try:
        minutes = int(float(value))
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"⚠️ Invalid duration {value!r}, using {default} min")
        return default
    if minutes <= 0:
        logger.warning(f"⚠️ Non-positive duration {value!r}, using {default} min")
        return default
    return minutes


class FunctionCallDispatcher:
    """
    Maps a Vapi function call onto the calendar flows.

    `handle` returns a structured FunctionCallOutcome; `dispatch` renders it into
    the `{"result": ...}` body Vapi expects. Neither raises.
    """

    def __init__(
        self,
        calendar: Optional[CalendarService] = None,
        check_duration: Optional[int] = None,
        booking_duration: Optional[int] = None,
        max_alternatives: Optional[int] = None,
        tz_name: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.calendar = calendar or calendar_service
        self.check_duration = check_duration if check_duration is not None else settings.CHECK_AVAILABILITY_DEFAULT_DURATION
        self.booking_duration = booking_duration if booking_duration is not None else settings.BOOKING_DEFAULT_DURATION
        self.max_alternatives = max_alternatives if max_alternatives is not None else settings.MAX_ALTERNATIVES
        self.tz_name = tz_name or settings.TIMEZONE
        self.clock = clock

    def _resolve(self, text) -> Optional[datetime]:
        now = self.clock() if self.clock else None
        return parse_date_time(text, now=now, tz_name=self.tz_name)

    async def _alternatives_outcome(self, name: str, requested: datetime, duration: int) -> FunctionCallOutcome:
        alternatives = await self.calendar.find_alternative_slots(
            requested, duration, self.max_alternatives
        )
        return FunctionCallOutcome(
            function_name=name,
            status=OutcomeStatus.UNAVAILABLE,
            requested_time=requested,
            duration_minutes=duration,
            alternatives=alternatives,
            search_days=self.calendar.search_days,
        )

    async def check_availability(self, parameters: Dict[str, Any]) -> FunctionCallOutcome:
        name = FunctionName.CHECK_AVAILABILITY.value
        duration = _coerce_duration(parameters.get("duration"), self.check_duration)

        requested = self._resolve(parameters.get("dateTime"))
        if requested is None:
            return FunctionCallOutcome(function_name=name, status=OutcomeStatus.INVALID_DATE)

        interval = ResolvedInterval.from_start(requested, duration)
        slots = await self.calendar.check_availability(interval.start_time, interval.end_time, duration)

        if not slots or not slots[0].available:
            return await self._alternatives_outcome(name, requested, duration)

        return FunctionCallOutcome(
            function_name=name,
            status=OutcomeStatus.AVAILABLE,
            requested_time=requested,
            duration_minutes=duration,
        )

    async def book_appointment(self, parameters: Dict[str, Any]) -> FunctionCallOutcome:
        name = FunctionName.BOOK_APPOINTMENT.value
        duration = _coerce_duration(parameters.get("duration"), self.booking_duration)

        requested = self._resolve(parameters.get("preferredTime"))
        if requested is None:
            return FunctionCallOutcome(function_name=name, status=OutcomeStatus.INVALID_DATE)

        missing = [
            label for key, label in CLIENT_FIELDS.items()
            if not isinstance(parameters.get(key), str) or not parameters.get(key).strip()
        ]
        if missing:
            return FunctionCallOutcome(
                function_name=name,
                status=OutcomeStatus.INVALID_DETAILS,
                requested_time=requested,
                missing_fields=missing,
            )

        client_name = parameters["name"].strip()
        client_email = parameters["email"].strip()
        client_phone = parameters["phone"].strip()

        interval = ResolvedInterval.from_start(requested, duration)
        try:
            request = BookingRequest(
                title=f"Appointment for {client_name}",
                start_time=interval.start_time,
                end_time=interval.end_time,
                description=f"Phone: {client_phone}",
                client_name=client_name,
                client_email=client_email,
                client_phone=client_phone,
            )
        except ValidationError as e:
            logger.info(f"📭 Rejected booking details for {client_name}: {e.error_count()} error(s)")
            return FunctionCallOutcome(
                function_name=name,
                status=OutcomeStatus.INVALID_DETAILS,
                requested_time=requested,
                missing_fields=_invalid_fields(e),
            )

        result = await self.calendar.create_event(request)

        if not result.success:
            if result.slot is not None:
                return await self._alternatives_outcome(name, requested, duration)
            return FunctionCallOutcome(
                function_name=name,
                status=OutcomeStatus.BOOKING_FAILED,
                requested_time=requested,
                duration_minutes=duration,
                error=result.error,
            )

        return FunctionCallOutcome(
            function_name=name,
            status=OutcomeStatus.BOOKED,
            requested_time=requested,
            duration_minutes=duration,
            booking_id=result.id,
            client_email=client_email,
        )

    async def handle(self, function_call: FunctionCall) -> FunctionCallOutcome:
        name = function_call.name
        parameters = function_call.parameters

        logger.info(f"🔔 Function call: {name}")
        try:
            if name == FunctionName.CHECK_AVAILABILITY.value:
                outcome = await self.check_availability(parameters)
            elif name == FunctionName.BOOK_APPOINTMENT.value:
                outcome = await self.book_appointment(parameters)
            else:
                logger.warning(f"⚠️ Unknown function name: {name}")
                outcome = FunctionCallOutcome(function_name=name, status=OutcomeStatus.UNKNOWN_FUNCTION)
        except AvailabilityQueryFailed as e:
            logger.error(f"❌ Availability backend failed during {name}: {e}")
            outcome = FunctionCallOutcome(function_name=name, status=OutcomeStatus.ERROR, error=str(e))
        except Exception as e:
            logger.opt(exception=e).error(f"❌ Unexpected error in {name}: {e}")
            outcome = FunctionCallOutcome(function_name=name, status=OutcomeStatus.ERROR, error=str(e))

        logger.info(f"📤 {name} -> {outcome.status.value}")
        return outcome

    async def dispatch(self, envelope: FunctionCallEnvelope) -> Dict[str, str]:
        outcome = await self.handle(envelope.functionCall)
        return FunctionCallResponse(result=render_outcome(outcome, self.tz_name)).model_dump()


def _invalid_fields(error: ValidationError) -> List[str]:
    by_model_field = {
        "client_name": CLIENT_FIELDS["name"],
        "clientName": CLIENT_FIELDS["name"],
        "client_email": CLIENT_FIELDS["email"],
        "clientEmail": CLIENT_FIELDS["email"],
        "client_phone": CLIENT_FIELDS["phone"],
        "clientPhone": CLIENT_FIELDS["phone"],
    }
    fields = []
    for item in error.errors():
        loc = item.get("loc") or ()
        label = by_model_field.get(str(loc[0])) if loc else None
        if label and label not in fields:
            fields.append(label)
    return fields


dispatcher = FunctionCallDispatcher()


def get_dispatcher() -> FunctionCallDispatcher:
    return dispatcher


async def dispatch(envelope: FunctionCallEnvelope) -> Dict[str, str]:
    return await dispatcher.dispatch(envelope)
