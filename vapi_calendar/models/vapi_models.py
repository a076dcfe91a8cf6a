from pydantic import BaseModel
from typing import Optional, Dict, Any, Literal

# --- Incoming Request Models ---

class FunctionCall(BaseModel):
    name: str
    parameters: Dict[str, Any]

class FunctionCallEnvelope(BaseModel):
    type: Literal["function-call"]
    functionCall: FunctionCall


# --- Outgoing Response Models ---

class FunctionCallResponse(BaseModel):
    result: str

class ErrorDetails(BaseModel):
    timestamp: str
    type: str
    message: str
    stack: Optional[str] = None

class ErrorResponse(BaseModel):
    # Only server failures carry `error`; `result` stays speakable.
    result: str
    error: Optional[ErrorDetails] = None
