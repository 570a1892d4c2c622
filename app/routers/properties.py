"""
Property read endpoints for imported listings.
Provides listing, featured selection, search, lookups and per-property reviews.
"""

from fastapi import APIRouter, Depends, Query, Path
from typing import Optional, List
from decimal import Decimal

from app.config import settings
from app.schemas.property import PropertyResponse, PropertySearchParams
from app.schemas.review import ReviewResponse
from app.services.error_handler import ERROR_RESPONSES
from app.services.property import PropertyService
from app.services.review import ReviewService
from app.utils.dependencies import get_property_service, get_review_service
from app.utils.exceptions import ValidationError


router = APIRouter(prefix="/properties", tags=["Properties"])


@router.get(
    "",
    response_model=List[PropertyResponse],
    summary="List properties",
    description="List active properties, newest first. Filter on publication with `is_published`.",
)
async def list_properties(
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, description="Maximum number of properties"),
    offset: int = Query(0, ge=0, description="Number of properties to skip"),
    is_published: Optional[bool] = Query(None, description="Only published (true) or unpublished (false) properties"),
    property_service: PropertyService = Depends(get_property_service)
) -> List[PropertyResponse]:
    properties = await property_service.list_properties(limit=limit, offset=offset, is_published=is_published)
    return [PropertyResponse.model_validate(p) for p in properties]


@router.get(
    "/featured",
    response_model=List[PropertyResponse],
    summary="Featured properties",
    description="Active featured properties; falls back to the newest active properties when none are featured.",
)
async def get_featured_properties(
    limit: int = Query(4, ge=1, le=20),
    property_service: PropertyService = Depends(get_property_service)
) -> List[PropertyResponse]:
    properties = await property_service.get_featured(limit=limit)
    return [PropertyResponse.model_validate(p) for p in properties]


@router.get(
    "/search",
    response_model=List[PropertyResponse],
    summary="Search properties",
    description="Text search over name, city, country and location combined with numeric and location filters.",
    responses={422: ERROR_RESPONSES[422]},
)
async def search_properties(
    q: Optional[str] = Query(None, description="Search text"),
    min_price: Optional[Decimal] = Query(None, ge=0, description="Minimum price"),
    max_price: Optional[Decimal] = Query(None, ge=0, description="Maximum price"),
    bedrooms: Optional[int] = Query(None, ge=0, description="Minimum bedrooms"),
    bathrooms: Optional[int] = Query(None, ge=0, description="Minimum bathrooms"),
    guests: Optional[int] = Query(None, ge=0, description="Minimum guest capacity"),
    city: Optional[str] = Query(None, description="City"),
    country: Optional[str] = Query(None, description="Country"),
    type: Optional[str] = Query(None, description="Property type"),
    is_published: Optional[bool] = Query(None, description="Publication filter"),
    limit: int = Query(50, ge=1, le=settings.max_page_size),
    offset: int = Query(0, ge=0),
    property_service: PropertyService = Depends(get_property_service)
) -> List[PropertyResponse]:
    """
    Search active properties.

    Args:
        q: Text matched case-insensitively against name, title, city, country and location
        min_price: Minimum nightly price
        max_price: Maximum nightly price
        bedrooms: Minimum bedrooms
        bathrooms: Minimum bathrooms
        guests: Minimum guest capacity
        city: City (case-insensitive)
        country: Country (case-insensitive)
        type: Property type (case-insensitive)
        is_published: Publication filter
        limit: Maximum number of results
        offset: Number of results to skip
        property_service: Property service instance

    Returns:
        Matching properties

    Raises:
        ValidationError: If max_price is below min_price
    """
    if min_price is not None and max_price is not None and max_price < min_price:
        raise ValidationError(
            "Invalid price range",
            field_errors=[{"field": "max_price", "message": "max_price must be greater than or equal to min_price"}]
        )

    params = PropertySearchParams(
        q=q,
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        guests=guests,
        city=city,
        country=country,
        type=type,
        is_published=is_published,
    )
    properties = await property_service.search_properties(params, limit=limit, offset=offset)
    return [PropertyResponse.model_validate(p) for p in properties]


@router.get(
    "/slug/{slug}",
    response_model=PropertyResponse,
    summary="Get property by slug",
    responses={404: ERROR_RESPONSES[404]},
)
async def get_property_by_slug(
    slug: str = Path(..., description="Property slug"),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.get_property_by_slug(slug)
    return PropertyResponse.model_validate(property_obj)


@router.get(
    "/{property_id}",
    response_model=PropertyResponse,
    summary="Get property by ID",
    responses={404: ERROR_RESPONSES[404]},
)
async def get_property(
    property_id: int = Path(..., description="Property ID"),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    """
    Get a property by its ID.

    Raises:
        PropertyNotFoundError: If the property doesn't exist
    """
    property_obj = await property_service.get_property(property_id)
    return PropertyResponse.model_validate(property_obj)


@router.get(
    "/{property_id}/reviews",
    response_model=List[ReviewResponse],
    summary="Get property reviews",
    description="Reviews for a property, newest first.",
    responses={404: ERROR_RESPONSES[404]},
)
async def get_property_reviews(
    property_id: int = Path(..., description="Property ID"),
    review_service: ReviewService = Depends(get_review_service)
) -> List[ReviewResponse]:
    reviews = await review_service.get_property_reviews(property_id)
    return [ReviewResponse.model_validate(r) for r in reviews]
