import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

import requests

from vapi_calendar.core.config import settings
from vapi_calendar.core.logger import logger
from vapi_calendar.models.calendar_models import BookingOutcome, BookingRequest, TimeSlot
from vapi_calendar.services.db_service import db_service
from vapi_calendar.services.time_parser import ensure_aware

# The race-check always re-queries at this granularity, whatever the booked duration
RACE_CHECK_DURATION = 15
SLOT_NO_LONGER_AVAILABLE = "The requested time slot is no longer available"


class CalendarServiceError(Exception):
    pass


class AvailabilityQueryFailed(CalendarServiceError):
    pass


class AvailabilityBackend(Protocol):
    async def check_availability(
        self,
        start_time: str,
        end_time: str,
        duration_minutes: int,
        user_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        ...


class CalendarService:
    """
    Scheduling operations on top of two backends:
    the availability RPC (Supabase) and the Cal.com event-creation endpoint.
    """

    def __init__(
        self,
        availability_backend: Optional[AvailabilityBackend] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        search_days: Optional[int] = None,
    ):
        self.availability_backend = availability_backend or db_service
        self.api_key = api_key if api_key is not None else settings.CAL_API_KEY
        self.base_url = (base_url or settings.CAL_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.CAL_REQUEST_TIMEOUT
        self.search_days = search_days if search_days is not None else settings.ALTERNATIVE_SEARCH_DAYS

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def check_availability(
        self,
        start_time: str,
        end_time: str,
        duration_minutes: int = 15,
        user_id: Optional[str] = None,
    ) -> List[TimeSlot]:
        """
        Check availability for a given time range.
        Raises AvailabilityQueryFailed if the backend call (or its payload) is broken.
        """
        try:
            rows = await self.availability_backend.check_availability(
                start_time, end_time, duration_minutes, user_id
            )
            return [
                TimeSlot(
                    start=row["start_time"],
                    end=row["end_time"],
                    available=row["is_available"],
                )
                for row in rows
            ]
        except Exception as e:
            logger.error(f"❌ Failed to check availability ({start_time} - {end_time}): {e}")
            raise AvailabilityQueryFailed(str(e)) from e

    async def find_alternative_slots(
        self,
        preferred: datetime,
        duration_minutes: int = 15,
        max_results: int = 3,
    ) -> List[TimeSlot]:
        """
        Open slots in the `search_days` following `preferred`, earliest first.
        An empty list means nothing is free in that window.
        """
        window_start = ensure_aware(preferred)
        window_end = window_start + timedelta(days=self.search_days)

        slots = await self.check_availability(
            window_start.isoformat(),
            window_end.isoformat(),
            duration_minutes,
        )

        open_slots = sorted(
            (s for s in slots if s.available and window_start <= s.start < window_end),
            key=lambda s: s.start,
        )
        logger.info(f"🔎 Found {len(open_slots)} open slots after {window_start.isoformat()}")
        return open_slots[:max(max_results, 0)]

    def _post_event(self, event: BookingRequest) -> requests.Response:
        return requests.post(
            f"{self.base_url}/scheduler",
            json=event.model_dump(by_alias=True, exclude_none=True),
            headers=self.headers,
            timeout=self.timeout,
        )

    async def create_event(self, event: BookingRequest) -> BookingOutcome:
        """
        Re-check the slot, then create the event.
        Never raises: every failure comes back as an unsuccessful BookingOutcome.
        """
        try:
            slots = await self.check_availability(
                event.start_time,
                event.end_time,
                RACE_CHECK_DURATION,
            )

            slot = slots[0] if slots else None
            if slot is None or not slot.available:
                logger.info(f"⛔ Slot {event.start_time} is no longer available, skipping booking")
                return BookingOutcome.failed(SLOT_NO_LONGER_AVAILABLE, slot=slot)

            logger.info(f"✏️ Creating event '{event.title}' at {event.start_time}")
            response = await asyncio.to_thread(self._post_event, event)

            if not response.ok:
                reason = response.reason or f"HTTP {response.status_code}"
                logger.error(f"❌ Cal API Error {response.status_code}: {response.text}")
                return BookingOutcome.failed(f"Failed to create event: {reason}")

            data = response.json()
            booking_id = data.get("id") if isinstance(data, dict) else None
            if booking_id in (None, ""):
                return BookingOutcome.failed("Booking backend did not return an event id")

            logger.info(f"📅 Event created: {booking_id}")
            return BookingOutcome.booked(booking_id, slot)

        except Exception as e:
            logger.error(f"❌ Failed to create event: {e}")
            return BookingOutcome.failed(str(e) or "Unknown error occurred")


calendar_service = CalendarService()
