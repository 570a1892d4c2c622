"""
Utility modules for the StayDirectly API.
"""

from .exceptions import (
    APIException,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    BadRequestError,
    ConfigurationError,
    ExternalServiceError,
    OnboardingFlowError,
    RateLimitExceededError,
    ServiceUnavailableError
)

# Dependencies are imported directly where needed to avoid circular imports

__all__ = [
    "APIException",
    "ValidationError",
    "NotFoundError",
    "UnauthorizedError",
    "BadRequestError",
    "ConfigurationError",
    "ExternalServiceError",
    "OnboardingFlowError",
    "RateLimitExceededError",
    "ServiceUnavailableError",
]
