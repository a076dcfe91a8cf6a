import hmac

from fastapi import Header

from vapi_calendar.core.config import settings
from vapi_calendar.core.logger import logger

UNAUTHORIZED_MESSAGE = "Unauthorized: Invalid or missing x-vapi-secret header"


class InvalidSecretError(Exception):
    pass


async def verify_vapi_secret(x_vapi_secret: str = Header(None)):
    """
    Verify the shared secret Vapi sends in the `x-vapi-secret` header.
    A missing VAPI_SECRET setting rejects every request.
    """
    if not settings.VAPI_SECRET:
        logger.error("❌ VAPI_SECRET is not configured, rejecting request")
        raise InvalidSecretError(UNAUTHORIZED_MESSAGE)

    if not x_vapi_secret or not hmac.compare_digest(x_vapi_secret.encode(), settings.VAPI_SECRET.encode()):
        logger.error("❌ Invalid or missing Vapi secret")
        raise InvalidSecretError(UNAUTHORIZED_MESSAGE)

    return True
