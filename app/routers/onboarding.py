"""
Server-side onboarding flow endpoints.
Each step advances the flow addressed by ``flow_id`` and returns its state.
"""

from fastapi import APIRouter, Depends, status
from typing import Any, Optional

from app.schemas.onboarding import (
    OnboardingStateResponse,
    OnboardingCustomerRequest,
    OnboardingStepRequest,
    OnboardingAuthorizeRequest,
    OnboardingStepResult,
)
from app.schemas.property import PropertyResponse
from app.services.error_handler import ERROR_RESPONSES
from app.services.onboarding import OnboardingFlow
from app.utils.dependencies import get_onboarding_flow

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])

STEP_RESPONSES = {code: ERROR_RESPONSES[code] for code in (400, 404, 429, 502)}


def _state(flow: OnboardingFlow) -> OnboardingStateResponse:
    return OnboardingStateResponse(flow_id=flow.flow_id, **flow.get_state().model_dump())


def _result(flow: OnboardingFlow, result: Any = None) -> OnboardingStepResult:
    return OnboardingStepResult(result=result, state=_state(flow))


def _customer_id(body: Optional[OnboardingStepRequest]) -> Optional[str]:
    return body.customer_id if body else None


@router.get(
    "/{flow_id}",
    response_model=OnboardingStateResponse,
    summary="Get onboarding state",
    description="Unknown flows report the initial `not_started` state.",
)
async def get_onboarding_state(flow: OnboardingFlow = Depends(get_onboarding_flow)) -> OnboardingStateResponse:
    return _state(flow)


@router.delete(
    "/{flow_id}",
    response_model=OnboardingStateResponse,
    summary="Reset onboarding flow",
)
async def reset_onboarding(flow: OnboardingFlow = Depends(get_onboarding_flow)) -> OnboardingStateResponse:
    await flow.reset()
    return _state(flow)


@router.post(
    "/{flow_id}/customer",
    response_model=OnboardingStepResult,
    status_code=status.HTTP_201_CREATED,
    summary="Create Hospitable customer",
    description="The request body is forwarded to Hospitable as customer data.",
    responses=STEP_RESPONSES,
)
async def create_customer(
    body: OnboardingCustomerRequest,
    flow: OnboardingFlow = Depends(get_onboarding_flow),
) -> OnboardingStepResult:
    """
    Create the customer for this flow.

    Args:
        body: Customer data (name, email, phone, timezone, ...)
        flow: Onboarding flow

    Returns:
        The customer id and the flow state
    """
    customer_id = await flow.create_customer(body.model_dump())
    return _result(flow, {"customer_id": customer_id})


@router.post(
    "/{flow_id}/auth-link",
    response_model=OnboardingStepResult,
    summary="Generate consent link",
    responses=STEP_RESPONSES,
)
async def generate_auth_link(
    body: Optional[OnboardingStepRequest] = None,
    flow: OnboardingFlow = Depends(get_onboarding_flow),
) -> OnboardingStepResult:
    auth_link = await flow.generate_auth_link(_customer_id(body))
    return _result(flow, {"auth_link": auth_link})


@router.post(
    "/{flow_id}/authorize",
    response_model=OnboardingStepResult,
    summary="Mark customer as authorized",
    description="Exchanges the OAuth code when one is given.",
    responses=STEP_RESPONSES,
)
async def authorize(
    body: Optional[OnboardingAuthorizeRequest] = None,
    flow: OnboardingFlow = Depends(get_onboarding_flow),
) -> OnboardingStepResult:
    await flow.authorize(body.code if body else None)
    return _result(flow)


@router.post(
    "/{flow_id}/listings",
    response_model=OnboardingStepResult,
    summary="Fetch listings",
    responses=STEP_RESPONSES,
)
async def fetch_listings(
    body: Optional[OnboardingStepRequest] = None,
    flow: OnboardingFlow = Depends(get_onboarding_flow),
) -> OnboardingStepResult:
    listings = await flow.fetch_listings(_customer_id(body))
    return _result(flow, {"count": len(listings)})


@router.post(
    "/{flow_id}/store",
    response_model=OnboardingStepResult,
    summary="Store listings as properties",
    responses=STEP_RESPONSES,
)
async def store_listings(
    body: Optional[OnboardingStepRequest] = None,
    flow: OnboardingFlow = Depends(get_onboarding_flow),
) -> OnboardingStepResult:
    properties = await flow.store_listings(_customer_id(body))
    return _result(flow, [PropertyResponse.model_validate(p).model_dump(mode="json") for p in properties])


@router.post(
    "/{flow_id}/images",
    response_model=OnboardingStepResult,
    summary="Fetch listing images",
    description="Result is `true` only when images were fetched for every listing.",
    responses=STEP_RESPONSES,
)
async def fetch_listing_images(
    body: Optional[OnboardingStepRequest] = None,
    flow: OnboardingFlow = Depends(get_onboarding_flow),
) -> OnboardingStepResult:
    all_successful = await flow.fetch_listing_images(_customer_id(body))
    return _result(flow, all_successful)


@router.post(
    "/{flow_id}/publish",
    response_model=OnboardingStepResult,
    summary="Publish properties",
    responses=STEP_RESPONSES,
)
async def publish_properties(
    body: Optional[OnboardingStepRequest] = None,
    flow: OnboardingFlow = Depends(get_onboarding_flow),
) -> OnboardingStepResult:
    published = await flow.publish_properties(_customer_id(body))
    return _result(flow, published)


@router.post(
    "/{flow_id}/run",
    response_model=OnboardingStepResult,
    summary="Run the full onboarding flow",
    description=(
        "Runs every step in order assuming the customer authorizes the consent link. "
        "Failures are reported in the state rather than as an error response."
    ),
)
async def run_full_flow(
    body: OnboardingCustomerRequest,
    flow: OnboardingFlow = Depends(get_onboarding_flow),
) -> OnboardingStepResult:
    success = await flow.run_full_flow(body.model_dump())
    return _result(flow, success)
