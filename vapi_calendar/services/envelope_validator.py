from pydantic import ValidationError

from vapi_calendar.models.vapi_models import FunctionCallEnvelope

INVALID_FORMAT_MESSAGE = "Invalid request format. Please check the message structure."


class InvalidEnvelopeError(ValueError):
    def __init__(self, message: str = INVALID_FORMAT_MESSAGE, errors=None):
        super().__init__(message)
        self.errors = errors or []


def validate_envelope(message) -> FunctionCallEnvelope:
    """
    Structural check of an inbound Vapi message.
    Raises InvalidEnvelopeError unless it is a `function-call` with a string
    name and a parameters object.
    """
    if not isinstance(message, dict):
        raise InvalidEnvelopeError(errors=[{"msg": "message must be an object"}])

    try:
        return FunctionCallEnvelope.model_validate(message)
    except ValidationError as e:
        raise InvalidEnvelopeError(errors=e.errors()) from e
