import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from vapi_calendar.api.common import invalid_format_response, read_message, server_error_response
from vapi_calendar.core.logger import logger
from vapi_calendar.core.security import verify_vapi_secret
from vapi_calendar.services.capture_service import capture_vapi_data
from vapi_calendar.services.envelope_validator import InvalidEnvelopeError, validate_envelope
from vapi_calendar.services.function_call_service import FunctionCallDispatcher, get_dispatcher

router = APIRouter()

@router.options("/functions/v1/calendar")
async def calendar_function_preflight():
    return PlainTextResponse("ok")

@router.post("/functions/v1/calendar", dependencies=[Depends(verify_vapi_secret)])
async def calendar_function(
    request: Request,
    dispatcher: FunctionCallDispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    """
    Hosted-function flavour of the calendar endpoint.
    Same dispatch as the local webhook; 500 replies carry an `error` object for inspection.
    """
    request_id = str(uuid.uuid4())
    logger.info(f"📥 Request received [{request_id}]: {request.method} {request.url.path}")

    try:
        message = await read_message(request)
        if isinstance(message, dict):
            function_call = message.get("functionCall") or {}
            if isinstance(function_call, dict):
                logger.debug(f"📦 Parsed message [{request_id}]: {function_call.get('name')} {function_call.get('parameters')}")

        try:
            envelope = validate_envelope(message)
        except InvalidEnvelopeError as e:
            logger.warning(f"⚠️ Validation error [{request_id}]: {e.errors}")
            return invalid_format_response()

        result = await dispatcher.dispatch(envelope)
        logger.info(f"✅ Function result [{request_id}] at {datetime.now(timezone.utc).isoformat()}: {result['result']}")

        await capture_vapi_data(
            request_id,
            envelope.functionCall.name,
            envelope.functionCall.parameters,
            result,
        )

        return result

    except Exception as e:
        logger.opt(exception=e).error(f"❌ Function error [{request_id}]: {e}")
        return server_error_response(e, include_details=True)
