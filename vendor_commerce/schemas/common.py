"""Common Pydantic schemas."""
from typing import Any, Dict, Generic, List, Optional, TypeVar
from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = {
        "from_attributes": True,
        "validate_assignment": True,
        "arbitrary_types_allowed": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class ErrorDetail(BaseSchema):
    """Single entry of an error envelope."""

    message: str = Field(..., description="Error message")
    field: Optional[str] = Field(None, description="Offending field")
    code: Optional[str] = Field(None, description="Error code")


class ApiResponse(BaseSchema, Generic[T]):
    """Response envelope shared by every endpoint."""

    success: bool = Field(True, description="Success status")
    message: str = Field(..., description="Human readable outcome")
    data: Optional[T] = Field(None, description="Payload")
    errors: Optional[List[ErrorDetail]] = Field(None, description="Error details")


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str = Field(..., description="Overall health status")
    timestamp: datetime = Field(default_factory=datetime.now)
    version: str = Field(..., description="Application version")
    services: Dict[str, str] = Field(
        default_factory=dict,
        description="Service health statuses"
    )


def error_envelope(
    message: str,
    errors: List[Dict[str, Any]],
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """JSON body for a failed request."""
    body = {"success": False, "message": message, "errors": errors}
    if extra:
        body.update(extra)
    return body
