import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from vapi_calendar.api.common import invalid_format_response, read_message, server_error_response
from vapi_calendar.core.logger import logger
from vapi_calendar.core.security import verify_vapi_secret
from vapi_calendar.services.capture_service import capture_vapi_data
from vapi_calendar.services.envelope_validator import InvalidEnvelopeError, validate_envelope
from vapi_calendar.services.function_call_service import FunctionCallDispatcher, get_dispatcher

router = APIRouter()

@router.post("/webhook/calendar", dependencies=[Depends(verify_vapi_secret)])
async def calendar_webhook(
    request: Request,
    dispatcher: FunctionCallDispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    """
    Local webhook for Vapi `function-call` messages.
    Every handled call is captured to Supabase after the reply is computed.
    """
    request_id = str(uuid.uuid4())

    try:
        message = await read_message(request)

        try:
            envelope = validate_envelope(message)
        except InvalidEnvelopeError:
            logger.warning(f"⚠️ Invalid message format [{request_id}]")
            return invalid_format_response()

        result = await dispatcher.dispatch(envelope)

        await capture_vapi_data(
            request_id,
            envelope.functionCall.name,
            envelope.functionCall.parameters,
            result,
        )

        return result

    except Exception as e:
        logger.opt(exception=e).error(f"❌ Webhook error [{request_id}]: {e}")
        return server_error_response(e)
