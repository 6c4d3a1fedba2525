"""
Shared error handling for the Template Registry.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class RegistryException(Exception):
    """Base exception for Template Registry services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthenticationError(RegistryException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None,
                 code: str = "INVALID_ACCESS_TOKEN"):
        super().__init__(code, message, details)


class MissingHeaderError(AuthenticationError):
    """A required request header was not sent."""

    def __init__(self, header: str):
        super().__init__(
            f'The "{header}" header is not set.',
            details={"header": header},
            code="MISSING_REQUIRED_HEADER"
        )


class AuthorizationError(RegistryException):
    """Authorization-related errors."""

    status_code = 403

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("PERMISSION_DENIED", message, details)


class ValidationError(RegistryException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class MissingParameterError(RegistryException):
    """A required request parameter was not sent."""

    def __init__(self, parameter: str):
        super().__init__(
            "MISSING_REQUIRED_PARAMETER",
            f'The "{parameter}" parameter is not set.',
            {"parameter": parameter}
        )


class InvalidInputError(RegistryException):
    """Entitlement evaluation was requested without the inputs it needs."""

    def __init__(self, message: str = "Invalid user token or templates", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_INPUT", message, details)


class NotFoundError(RegistryException):
    """Requested resource does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ConflictError(RegistryException):
    """Resource already exists."""

    status_code = 409

    def __init__(self, message: str = "Conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFLICT", message, details)


class ExternalServiceError(RegistryException):
    """External service errors."""

    status_code = 500

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None,
                 code: str = "EXTERNAL_SERVICE_ERROR"):
        self.service = service
        super().__init__(code, f"{service}: {message}", details)


class ProviderError(RegistryException):
    """The entitlement provider returned an unusable response."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, code: str = "PROVIDER_ERROR"):
        super().__init__(code, message, details)


class MissingServicesError(ProviderError):
    """The entitlement provider did not return every requested service code."""

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message, {"missing": missing or []}, code="MISSING_SERVICES")


class PendingRequestsError(RegistryException):
    """Pending access requests could not be fetched."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("PENDING_REQUESTS_ERROR", message, details)
