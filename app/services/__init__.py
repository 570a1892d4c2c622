"""
Service layer for business logic implementation.
Contains services for the Hospitable integration, onboarding, properties,
reviews and error handling.
"""

from .error_handler import ErrorHandlerService
from .hospitable_client import HospitableClient
from .hospitable_flow import HospitableFlowService
from .onboarding import OnboardingFlow
from .property import PropertyService
from .review import ReviewService

__all__ = [
    "ErrorHandlerService",
    "HospitableClient",
    "HospitableFlowService",
    "OnboardingFlow",
    "PropertyService",
    "ReviewService",
]
