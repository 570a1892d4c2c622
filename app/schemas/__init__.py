"""
Pydantic schemas for request/response validation.
"""

# Property schemas
from .property import (
    PropertyResponse,
    PropertySearchParams
)

# Review schemas
from .review import (
    ReviewCreate,
    ReviewResponse
)

# Hospitable schemas
from .hospitable import (
    ConnectRequest,
    ImportListingsRequest,
    FetchImagesRequest,
    PublishPropertiesRequest,
    TokenExchangeRequest,
    TokenRefreshRequest,
    AuthLinkResponse,
    CustomerWithAuthLinkResponse,
    PropertyImagesResponse,
    CustomerListingsResponse
)

# Onboarding schemas
from .onboarding import (
    OnboardingStatus,
    OnboardingState,
    OnboardingStateResponse,
    OnboardingCustomerRequest,
    OnboardingStepRequest,
    OnboardingAuthorizeRequest,
    OnboardingStepResult
)

__all__ = [
    # Property
    "PropertyResponse",
    "PropertySearchParams",

    # Review
    "ReviewCreate",
    "ReviewResponse",

    # Hospitable
    "ConnectRequest",
    "ImportListingsRequest",
    "FetchImagesRequest",
    "PublishPropertiesRequest",
    "TokenExchangeRequest",
    "TokenRefreshRequest",
    "AuthLinkResponse",
    "CustomerWithAuthLinkResponse",
    "PropertyImagesResponse",
    "CustomerListingsResponse",

    # Onboarding
    "OnboardingStatus",
    "OnboardingState",
    "OnboardingStateResponse",
    "OnboardingCustomerRequest",
    "OnboardingStepRequest",
    "OnboardingAuthorizeRequest",
    "OnboardingStepResult"
]
