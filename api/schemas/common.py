"""Common Pydantic schemas shared across the API."""

from datetime import datetime
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError


M = TypeVar("M", bound=BaseModel)


def blank_to_none(v: Any) -> Any:
    """Form inputs submit empty strings for untouched optional fields."""
    if isinstance(v, str) and not v.strip():
        return None
    return v


def first_error_message(exc: ValidationError) -> str:
    """
    Human-readable message for the first failing field.

    Custom validators raise ValueError with the message the user should see;
    pydantic prefixes those with "Value error, ", which is stripped here.
    """
    error = exc.errors()[0]
    if error.get("type") == "missing":
        field = ".".join(str(part) for part in error.get("loc", ()))
        return f"{field} is required"
    message = error.get("msg", "Invalid input")
    return message.removeprefix("Value error, ")


def parse_model(model: Type[M], values: Any) -> tuple[Optional[M], Optional[str]]:
    """
    Validate raw input against a schema.

    Returns:
        Tuple of (model_instance, error_message)
    """
    try:
        return model.model_validate(values if values is not None else {}), None
    except ValidationError as e:
        return None, first_error_message(e)


class TimestampMixin(BaseModel):
    """Mixin for timestamp fields."""

    created_at: datetime = Field(description="Timestamp when the resource was created")
    updated_at: datetime = Field(description="Timestamp when the resource was last updated")


class ErrorBody(BaseModel):
    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human-readable error message")
    path: Optional[str] = None
    method: Optional[str] = None
    details: Optional[Any] = None
    request_id: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response model."""

    error: ErrorBody


# Documented on every v1 route; bodies come from core.middleware.error_handling
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status_code: {"model": ErrorResponse}
    for status_code in (401, 403, 404, 409, 422, 502)
}
