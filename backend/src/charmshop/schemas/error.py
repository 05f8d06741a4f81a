"""Structured error response schemas."""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(default=None, description="Field that caused the error (for validation errors)")
    value: Any | None = Field(default=None, description="Invalid value (for validation errors)")


class ErrorResponse(BaseModel):
    """Standard error response structure.

    This provides consistent error responses across the API with:
    - Machine-readable error codes
    - Human-readable messages
    - Remediation hints
    - Request tracing information
    """

    success: bool = Field(default=False, description="Always false for errors")
    error: str = Field(..., description="Error type (e.g., 'ValidationError', 'DatabaseError')")
    message: str = Field(..., description="Primary error message")
    details: list[ErrorDetail] | None = Field(
        default=None, description="Detailed error information (for validation errors)"
    )
    remediation: str | None = Field(default=None, description="Suggestion for fixing the error")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")


# Error codes enum for consistency
class ErrorCode:
    """Standard error codes used across the API."""

    # Validation errors (400/422)
    INVALID_METRIC_TYPE = "invalid_metric_type"
    INVALID_PERIOD = "invalid_period"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_ENUM_VALUE = "invalid_enum_value"

    # Throttling (429)
    REFRESH_COOLDOWN = "refresh_cooldown"

    # Authentication (401)
    AUTHENTICATION_REQUIRED = "authentication_required"

    # External service errors (503)
    DATABASE_ERROR = "database_error"

    # Internal errors (500)
    ANALYTICS_REFRESH_FAILED = "analytics_refresh_failed"
    INTERNAL_ERROR = "internal_error"


# Remediation hints for common errors
REMEDIATION_HINTS = {
    ErrorCode.INVALID_METRIC_TYPE: "Use one of: net_revenue, monthly_trends, expense_breakdown, top_products",
    ErrorCode.REFRESH_COOLDOWN: "Analytics were refreshed recently. Retry once the cooldown has elapsed.",
    ErrorCode.DATABASE_ERROR: "Database temporarily unavailable. Please try again in a few moments.",
    ErrorCode.ANALYTICS_REFRESH_FAILED: "The refresh was recorded as failed. Check server logs and retry.",
}
