import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import requests

from vapi_calendar.models.calendar_models import BookingRequest
from vapi_calendar.services.calendar_service import AvailabilityQueryFailed, CalendarService, SLOT_NO_LONGER_AVAILABLE
from conftest import FakeAvailabilityBackend, NOW, make_calendar, make_row

START = datetime(2024, 3, 20, 14, 0, tzinfo=timezone.utc)


def make_booking_request(**overrides) -> BookingRequest:
    data = {
        "title": "Appointment for Jane Doe",
        "start_time": START.isoformat(),
        "end_time": (START + timedelta(minutes=15)).isoformat(),
        "description": "Phone: +1 555 0100",
        "client_name": "Jane Doe",
        "client_email": "jane.doe@acme-dental.com",
        "client_phone": "+1 555 0100",
    }
    data.update(overrides)
    return BookingRequest(**data)


def ok_response(payload=None):
    response = MagicMock()
    response.ok = True
    response.status_code = 200
    response.json.return_value = payload if payload is not None else {"id": 987}
    return response


# --- Availability adapter ---

@pytest.mark.asyncio
async def test_check_availability_normalizes_backend_rows():
    backend = FakeAvailabilityBackend([make_row(START), make_row(START + timedelta(minutes=15), available=False)])
    calendar = make_calendar(backend)

    slots = await calendar.check_availability(START.isoformat(), (START + timedelta(minutes=30)).isoformat(), 15, "user-1")

    assert [s.available for s in slots] == [True, False]
    assert slots[0].start == START
    assert slots[0].end == START + timedelta(minutes=15)
    assert backend.calls == [{
        "start_time": START.isoformat(),
        "end_time": (START + timedelta(minutes=30)).isoformat(),
        "duration_minutes": 15,
        "user_id": "user-1",
    }]


@pytest.mark.asyncio
async def test_check_availability_wraps_backend_errors():
    backend = FakeAvailabilityBackend(RuntimeError("rpc exploded"))
    calendar = make_calendar(backend)

    with pytest.raises(AvailabilityQueryFailed) as exc_info:
        await calendar.check_availability(START.isoformat(), START.isoformat(), 15)

    assert "rpc exploded" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    # No retry
    assert len(backend.calls) == 1


@pytest.mark.asyncio
async def test_check_availability_rejects_malformed_rows():
    backend = FakeAvailabilityBackend([{"start_time": START.isoformat()}])
    calendar = make_calendar(backend)

    with pytest.raises(AvailabilityQueryFailed):
        await calendar.check_availability(START.isoformat(), START.isoformat(), 15)


@pytest.mark.asyncio
async def test_check_availability_is_repeatable():
    rows = [make_row(START), make_row(START + timedelta(hours=1), available=False)]
    calendar = make_calendar(FakeAvailabilityBackend(rows))

    first = await calendar.check_availability(START.isoformat(), START.isoformat(), 15)
    second = await calendar.check_availability(START.isoformat(), START.isoformat(), 15)

    assert first == second


# --- Alternative slot finder ---

@pytest.mark.asyncio
async def test_find_alternatives_filters_sorts_and_limits():
    rows = [
        make_row(NOW + timedelta(days=2)),
        make_row(NOW + timedelta(hours=1), available=False),
        make_row(NOW + timedelta(hours=3)),
        make_row(NOW + timedelta(days=8)),          # past the 7 day horizon
        make_row(NOW - timedelta(hours=1)),         # before the preferred time
        make_row(NOW + timedelta(hours=2)),
        make_row(NOW + timedelta(days=1)),
    ]
    backend = FakeAvailabilityBackend(rows)
    calendar = make_calendar(backend)

    alternatives = await calendar.find_alternative_slots(NOW, 15, 3)

    assert [s.start for s in alternatives] == [
        NOW + timedelta(hours=2),
        NOW + timedelta(hours=3),
        NOW + timedelta(days=1),
    ]
    assert all(s.available for s in alternatives)
    assert backend.calls[0]["start_time"] == NOW.isoformat()
    assert backend.calls[0]["end_time"] == (NOW + timedelta(days=7)).isoformat()
    assert len(backend.calls) == 1


@pytest.mark.asyncio
async def test_find_alternatives_empty_is_not_an_error():
    backend = FakeAvailabilityBackend([make_row(NOW + timedelta(hours=1), available=False)])
    calendar = make_calendar(backend)

    assert await calendar.find_alternative_slots(NOW) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("max_results", [0, 1, 2, 5])
async def test_find_alternatives_never_exceeds_max(max_results):
    rows = [make_row(NOW + timedelta(hours=h)) for h in range(1, 10)]
    calendar = make_calendar(FakeAvailabilityBackend(rows))

    alternatives = await calendar.find_alternative_slots(NOW, 15, max_results)

    assert len(alternatives) == max_results


@pytest.mark.asyncio
async def test_explicit_zero_search_days_is_kept():
    backend = FakeAvailabilityBackend([make_row(NOW + timedelta(hours=1))])
    calendar = CalendarService(availability_backend=backend, api_key="", base_url="https://cal.example.test", search_days=0)

    assert calendar.search_days == 0
    assert await calendar.find_alternative_slots(NOW) == []
    assert backend.calls[0]["end_time"] == NOW.isoformat()


# --- Booking executor ---

@pytest.mark.asyncio
async def test_create_event_books_available_slot():
    backend = FakeAvailabilityBackend([make_row(START)])
    calendar = make_calendar(backend)

    with patch("vapi_calendar.services.calendar_service.requests.post", return_value=ok_response()) as mock_post:
        outcome = await calendar.create_event(make_booking_request(end_time=(START + timedelta(minutes=45)).isoformat()))

    assert outcome.success is True
    assert outcome.id == "987"
    assert outcome.slot.start == START

    # Race-check always runs at 15 minute granularity over the exact window
    assert backend.calls[0]["duration_minutes"] == 15
    assert backend.calls[0]["end_time"] == (START + timedelta(minutes=45)).isoformat()

    args, kwargs = mock_post.call_args
    assert args[0] == "https://cal.example.test/v1/scheduler"
    assert kwargs["headers"]["Authorization"] == "Bearer cal_test_key"
    assert kwargs["json"]["clientEmail"] == "jane.doe@acme-dental.com"
    assert kwargs["json"]["startTime"] == START.isoformat()
    assert kwargs["timeout"] == 5


@pytest.mark.asyncio
async def test_create_event_skips_backend_when_slot_taken():
    backend = FakeAvailabilityBackend([make_row(START, available=False)])
    calendar = make_calendar(backend)

    with patch("vapi_calendar.services.calendar_service.requests.post") as mock_post:
        outcome = await calendar.create_event(make_booking_request())

    mock_post.assert_not_called()
    assert outcome.success is False
    assert outcome.error == SLOT_NO_LONGER_AVAILABLE
    assert outcome.slot is not None and outcome.slot.available is False


@pytest.mark.asyncio
async def test_create_event_without_slots_has_no_slot_attached():
    calendar = make_calendar(FakeAvailabilityBackend([]))

    with patch("vapi_calendar.services.calendar_service.requests.post") as mock_post:
        outcome = await calendar.create_event(make_booking_request())

    mock_post.assert_not_called()
    assert outcome.success is False
    assert outcome.slot is None


@pytest.mark.asyncio
async def test_create_event_non_2xx_becomes_failure():
    response = MagicMock()
    response.ok = False
    response.status_code = 422
    response.reason = "Unprocessable Entity"
    response.text = '{"message": "bad"}'
    calendar = make_calendar(FakeAvailabilityBackend([make_row(START)]))

    with patch("vapi_calendar.services.calendar_service.requests.post", return_value=response):
        outcome = await calendar.create_event(make_booking_request())

    assert outcome.success is False
    assert outcome.error == "Failed to create event: Unprocessable Entity"
    assert outcome.slot is None


@pytest.mark.asyncio
async def test_create_event_network_error_becomes_failure():
    calendar = make_calendar(FakeAvailabilityBackend([make_row(START)]))

    with patch(
        "vapi_calendar.services.calendar_service.requests.post",
        side_effect=requests.ConnectionError("connection refused"),
    ):
        outcome = await calendar.create_event(make_booking_request())

    assert outcome.success is False
    assert "connection refused" in outcome.error


@pytest.mark.asyncio
async def test_create_event_race_check_failure_becomes_failure():
    calendar = make_calendar(FakeAvailabilityBackend(RuntimeError("rpc down")))

    with patch("vapi_calendar.services.calendar_service.requests.post") as mock_post:
        outcome = await calendar.create_event(make_booking_request())

    mock_post.assert_not_called()
    assert outcome.success is False
    assert "rpc down" in outcome.error


@pytest.mark.asyncio
async def test_create_event_without_id_is_not_success():
    calendar = make_calendar(FakeAvailabilityBackend([make_row(START)]))

    with patch("vapi_calendar.services.calendar_service.requests.post", return_value=ok_response({"status": "ok"})):
        outcome = await calendar.create_event(make_booking_request())

    assert outcome.success is False
    assert outcome.id is None
