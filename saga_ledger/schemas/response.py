from pydantic import BaseModel, Field
from typing import Any, Optional
import uuid


def new_request_id() -> str:
    """Generates a unique request ID for tracing."""
    return uuid.uuid4().hex


class SuccessResponse(BaseModel):
    """Success envelope: data, success flag and request_id."""
    success: bool = True
    request_id: str = Field(default_factory=new_request_id)
    data: Optional[Any] = None


class ErrorDetail(BaseModel):
    code: str
    message: Any
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Error envelope returned by the global exception handlers."""
    success: bool = False
    request_id: str = Field(default_factory=new_request_id)
    error: ErrorDetail
