"""
Shared error handling for the request telemetry reporter.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class TelemetryException(Exception):
    """Base exception for the telemetry subsystem."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(TelemetryException):
    """Reporter could not be built or reconfigured."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class MissingAttributeError(TelemetryException):
    """A request record lacks an attribute a metric requires."""

    def __init__(self, attribute: str, metric: str, details: Optional[Dict[str, Any]] = None):
        self.attribute = attribute
        self.metric = metric
        super().__init__(
            "MISSING_ATTRIBUTE",
            f"{metric}: request attribute '{attribute}' is required",
            {"attribute": attribute, "metric": metric, **(details or {})}
        )


class DeliveryError(TelemetryException):
    """Metrics payload was not acknowledged by the remote sink."""

    def __init__(self, message: str = "Delivery failed", status_code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        merged = dict(details or {})
        if status_code is not None:
            merged["status_code"] = status_code
        super().__init__("DELIVERY_ERROR", message, merged)
