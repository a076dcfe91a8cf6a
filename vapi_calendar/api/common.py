import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from vapi_calendar.core.logger import logger
from vapi_calendar.models.vapi_models import ErrorDetails, ErrorResponse
from vapi_calendar.services.envelope_validator import INVALID_FORMAT_MESSAGE
from vapi_calendar.services.response_formatter import GENERIC_ERROR_MESSAGE


async def read_message(request: Request) -> Optional[Any]:
    """Returns `body["message"]`, or None when the body is not a JSON object."""
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("⚠️ Request body is not valid JSON")
        return None

    if not isinstance(payload, dict):
        return None
    return payload.get("message")


def invalid_format_response() -> JSONResponse:
    return JSONResponse(status_code=400, content={"result": INVALID_FORMAT_MESSAGE})


def error_details(exc: Exception) -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "type": type(exc).__name__,
        "message": str(exc),
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }


def server_error_response(exc: Exception, include_details: bool = False) -> JSONResponse:
    body = ErrorResponse(
        result=GENERIC_ERROR_MESSAGE,
        error=ErrorDetails(**error_details(exc)) if include_details else None,
    )
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))
