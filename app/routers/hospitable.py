"""
Hospitable proxy and import endpoints.
Creates customers and consent links, imports listings and their images,
and publishes imported properties.
"""

from fastapi import APIRouter, Depends, Query, Path, Response, status
from typing import Any, Dict, List, Optional

from app.schemas.hospitable import (
    ConnectRequest,
    ImportListingsRequest,
    FetchImagesRequest,
    PublishPropertiesRequest,
    AuthLinkResponse,
    CustomerWithAuthLinkResponse,
    PropertyImagesResponse,
    CustomerListingsResponse,
)
from app.schemas.property import PropertyResponse
from app.services.error_handler import ERROR_RESPONSES
from app.services.hospitable_client import HospitableClient
from app.services.hospitable_flow import HospitableFlowService
from app.utils.dependencies import get_flow_service, get_hospitable_client
from app.utils.exceptions import BadRequestError
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hospitable", tags=["Hospitable"])

CONNECT_ACTIONS = ("auth-link", "customer", "token")


def _responses(*codes: int) -> Dict[int, Dict[str, Any]]:
    return {code: ERROR_RESPONSES[code] for code in codes}


@router.post(
    "/connect",
    summary="Hospitable Connect actions",
    description=(
        "Dispatches on `action`: `auth-link` creates a consent link for an existing customer, "
        "`customer` creates a customer and its consent link, `token` exchanges an OAuth code."
    ),
    responses=_responses(400, 429, 500, 502),
)
async def connect(
    body: ConnectRequest,
    response: Response,
    action: Optional[str] = Query(None, description="auth-link, customer or token"),
    flow_service: HospitableFlowService = Depends(get_flow_service),
):
    """
    Run a Hospitable Connect action.

    The action is read from the query string first, then from the body.
    For ``customer`` every extra body field is forwarded as customer data.

    Raises:
        BadRequestError: If the action is unknown or its input is missing
    """
    action = action or body.action

    if action == "auth-link":
        if not body.customer_id:
            raise BadRequestError("Customer ID is required")
        link = await flow_service.generate_auth_link(body.customer_id)
        return AuthLinkResponse(**link)

    if action == "customer":
        customer_data = dict(body.model_extra or {})
        result = await flow_service.create_customer_with_auth_link(customer_data)
        response.status_code = status.HTTP_201_CREATED
        return CustomerWithAuthLinkResponse(**result)

    if action == "token":
        if not body.code:
            raise BadRequestError("Authorization code is required")
        return await flow_service.exchange_token(body.code)

    raise BadRequestError(f"Invalid action. Use one of: {', '.join(CONNECT_ACTIONS)}")


@router.post(
    "/import-listings",
    response_model=List[PropertyResponse],
    summary="Import customer listings",
    description="Import a customer's Hospitable listings into local properties, reusing fresh stored data.",
    responses=_responses(400, 404, 429, 502),
)
async def import_listings(
    body: ImportListingsRequest,
    flow_service: HospitableFlowService = Depends(get_flow_service),
) -> List[PropertyResponse]:
    """
    Import listings for a customer.

    Args:
        body: Customer id and the avoid-update flag
        flow_service: Hospitable flow service

    Returns:
        Imported or stored properties

    Raises:
        BadRequestError: If customer_id is missing
        NotFoundError: If the customer has no listings
    """
    if not body.customer_id:
        raise BadRequestError("Customer ID is required")

    properties = await flow_service.import_customer_listings(body.customer_id, avoid_update=body.avoid_update)
    return [PropertyResponse.model_validate(p) for p in properties]


@router.post(
    "/fetch-property-images",
    response_model=PropertyImagesResponse,
    summary="Fetch listing images",
    description="Fetch a listing's images from Hospitable and store them on the property.",
    responses=_responses(400, 404, 429, 502),
)
async def fetch_property_images(
    body: FetchImagesRequest,
    flow_service: HospitableFlowService = Depends(get_flow_service),
) -> PropertyImagesResponse:
    payload = await flow_service.fetch_property_images(
        body.customer_id,
        body.listing_id,
        position=body.position,
        force_refresh=body.force_refresh,
    )
    return PropertyImagesResponse(**payload)


@router.post(
    "/publish-properties",
    response_model=List[PropertyResponse],
    summary="Publish imported properties",
    responses=_responses(400, 429),
)
async def publish_properties(
    body: PublishPropertiesRequest,
    flow_service: HospitableFlowService = Depends(get_flow_service),
) -> List[PropertyResponse]:
    properties = await flow_service.publish_properties(body.customer_id, body.listing_ids or [])
    return [PropertyResponse.model_validate(p) for p in properties]


@router.get(
    "/customers",
    response_model=List[Dict[str, Any]],
    summary="List Hospitable customers",
    responses=_responses(429, 500, 502),
)
async def list_customers(
    client: HospitableClient = Depends(get_hospitable_client),
) -> List[Dict[str, Any]]:
    return await client.get_all_customers()


@router.get(
    "/customers/{customer_id}/listings",
    response_model=CustomerListingsResponse,
    summary="List a customer's Hospitable listings",
    description="Raw listings as returned by Hospitable, fetched through the rate-limited queue.",
    responses=_responses(400, 429, 500, 502),
)
async def get_customer_listings(
    customer_id: str = Path(..., description="Hospitable customer id"),
    flow_service: HospitableFlowService = Depends(get_flow_service),
) -> CustomerListingsResponse:
    listings = await flow_service.get_customer_listings(customer_id)
    logger.info(f"Fetched {len(listings)} listings for customer {customer_id}")
    return CustomerListingsResponse(customer_id=customer_id, count=len(listings), data=listings)
