"""Shared test fixtures and helpers."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from vapi_calendar.services.calendar_service import CalendarService
from vapi_calendar.services.function_call_service import FunctionCallDispatcher

NOW = datetime(2024, 3, 19, 10, 0, tzinfo=timezone.utc)


def make_row(start: datetime, minutes: int = 15, available: bool = True) -> Dict[str, Any]:
    """Raw slot row as returned by fn_check_availability."""
    return {
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(minutes=minutes)).isoformat(),
        "is_available": available,
    }


class FakeAvailabilityBackend:
    """
    Returns the queued responses one per call (the last one repeats).
    An Exception in the queue is raised instead of returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses) or [[]]
        self.calls: List[Dict[str, Any]] = []

    async def check_availability(
        self,
        start_time: str,
        end_time: str,
        duration_minutes: int,
        user_id: Optional[str] = None,
    ):
        self.calls.append({
            "start_time": start_time,
            "end_time": end_time,
            "duration_minutes": duration_minutes,
            "user_id": user_id,
        })
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


def make_calendar(backend: FakeAvailabilityBackend) -> CalendarService:
    return CalendarService(
        availability_backend=backend,
        api_key="cal_test_key",
        base_url="https://cal.example.test/v1",
        timeout=5,
        search_days=7,
    )


def make_dispatcher(backend: FakeAvailabilityBackend, **kwargs) -> FunctionCallDispatcher:
    options = {
        "check_duration": 15,
        "booking_duration": 15,
        "max_alternatives": 3,
        "tz_name": "UTC",
        "clock": lambda: NOW,
    }
    options.update(kwargs)
    return FunctionCallDispatcher(calendar=make_calendar(backend), **options)


@pytest.fixture
def now():
    return NOW
