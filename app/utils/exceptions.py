"""
Custom exception classes for the StayDirectly API.
Provides structured error handling with appropriate HTTP status codes.
"""

from typing import Any, Dict, Optional, List
from fastapi import HTTPException, status


class APIException(HTTPException):
    """Base API exception class."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class ValidationError(APIException):
    """Validation error exception."""

    def __init__(
        self,
        detail: str,
        field_errors: Optional[List[Dict[str, str]]] = None
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code="VALIDATION_ERROR"
        )
        self.field_errors = field_errors or []


class NotFoundError(APIException):
    """Resource not found exception."""

    def __init__(self, resource: str, resource_id: Optional[str] = None, detail: Optional[str] = None):
        if detail is None:
            detail = f"{resource} not found"
            if resource_id:
                detail += f" with ID: {resource_id}"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND"
        )


class UnauthorizedError(APIException):
    """Authentication required exception."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class BadRequestError(APIException):
    """Bad request exception."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="BAD_REQUEST"
        )


# Property specific exceptions
class PropertyNotFoundError(NotFoundError):
    """Property not found exception."""

    def __init__(self, property_id: Optional[str] = None):
        super().__init__("Property", detail="Property not found")
        self.property_id = property_id


class ReviewNotFoundError(NotFoundError):
    """Review not found exception."""

    def __init__(self, review_id: str):
        super().__init__("Review", review_id)


# Hospitable integration exceptions
class ConfigurationError(APIException):
    """Required credentials or settings are missing."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="CONFIGURATION_ERROR"
        )


class ExternalServiceError(APIException):
    """
    Upstream Hospitable call failed.

    Carries the upstream status and body so callers can relay them. The
    response status defaults to 502 unless the caller asks to pass the
    upstream status through.
    """

    def __init__(
        self,
        detail: str,
        upstream_status: Optional[int] = None,
        upstream_body: Any = None,
        status_code: int = status.HTTP_502_BAD_GATEWAY
    ):
        super().__init__(
            status_code=status_code,
            detail=detail,
            error_code="EXTERNAL_SERVICE_ERROR"
        )
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class OnboardingFlowError(APIException):
    """An onboarding step cannot run from the current flow state."""

    def __init__(self, detail: str, step: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="ONBOARDING_FLOW_ERROR"
        )
        self.step = step


# Rate limiting exceptions
class RateLimitExceededError(APIException):
    """Rate limit exceeded exception."""

    def __init__(self, retry_after: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            error_code="RATE_LIMIT_EXCEEDED",
            headers={"Retry-After": str(retry_after)}
        )


# Service unavailable exceptions
class ServiceUnavailableError(APIException):
    """Service unavailable exception."""

    def __init__(self, detail: str = "Service temporarily unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code="SERVICE_UNAVAILABLE"
        )
