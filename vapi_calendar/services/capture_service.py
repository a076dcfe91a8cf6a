from typing import Any, Dict

from vapi_calendar.core.config import settings
from vapi_calendar.core.logger import logger
from vapi_calendar.services.db_service import db_service


async def capture_vapi_data(
    request_id: str,
    function_name: str,
    parameters: Dict[str, Any],
    response: Dict[str, Any],
) -> bool:
    """
    Records a handled function call in Supabase.
    Returns False on failure; the response computed for Vapi is left untouched.
    """
    if not settings.CAPTURE_ENABLED:
        return False

    try:
        await db_service.capture_vapi_data(request_id, function_name, parameters, response)
        logger.debug(f"📝 Captured {function_name} [{request_id}]")
        return True
    except Exception as e:
        logger.warning(f"⚠️ Failed to capture Vapi data [{request_id}]: {e}")
        return False
