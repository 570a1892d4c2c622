"""
Pydantic schemas for the server-side onboarding flow.
The flow state itself is a schema so it can be persisted as JSON.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum


class OnboardingStatus(str, Enum):
    """Onboarding flow states, in the order a successful flow passes them."""
    NOT_STARTED = "not_started"
    CUSTOMER_CREATED = "customer_created"
    AUTH_LINK_GENERATED = "auth_link_generated"
    AUTHORIZED = "authorized"
    LISTINGS_FETCHED = "listings_fetched"
    LISTINGS_STORED = "listings_stored"
    IMAGES_FETCHED = "images_fetched"
    COMPLETED = "completed"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OnboardingState(BaseModel):
    """Persisted state of one onboarding flow."""

    status: OnboardingStatus = OnboardingStatus.NOT_STARTED
    customer_id: Optional[str] = None
    auth_link: Optional[str] = None
    listings: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
    completed_steps: List[OnboardingStatus] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_utcnow)


class OnboardingStateResponse(OnboardingState):
    flow_id: str


class OnboardingCustomerRequest(BaseModel):
    """Customer data forwarded to Hospitable as-is."""

    model_config = ConfigDict(extra="allow")


class OnboardingStepRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: Optional[str] = Field(None, alias="customerId")


class OnboardingAuthorizeRequest(BaseModel):
    code: Optional[str] = Field(None, description="OAuth code to exchange; omit when already authorized")


class OnboardingStepResult(BaseModel):
    """Outcome of a single step together with the resulting state."""

    result: Any = None
    state: OnboardingStateResponse
