"""
FastAPI dependency injection utilities.
Provides database-bound services and the process-wide Hospitable client,
request queue and onboarding state store.
"""

from functools import lru_cache
from fastapi import Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.database import get_db
from app.services.hospitable_client import HospitableClient
from app.services.hospitable_flow import HospitableFlowService
from app.services.onboarding import JsonFileStateStore, OnboardingFlow, OnboardingStateStore
from app.services.property import PropertyService
from app.services.review import ReviewService
from app.utils.rate_limiter import RateLimitedRequestQueue


@lru_cache()
def get_request_queue() -> RateLimitedRequestQueue:
    """Shared outbound queue; its counters live for the lifetime of the process."""
    return RateLimitedRequestQueue(
        max_requests=settings.outbound_max_requests,
        window_seconds=settings.outbound_window_seconds,
        request_spacing=settings.outbound_request_spacing,
        reset_buffer=settings.outbound_reset_buffer,
    )


@lru_cache()
def get_hospitable_client() -> HospitableClient:
    return HospitableClient(settings)


@lru_cache()
def get_onboarding_store() -> OnboardingStateStore:
    return JsonFileStateStore(settings.onboarding_state_dir)


async def get_property_service(db: AsyncSession = Depends(get_db)) -> PropertyService:
    """
    Get property service instance.

    Args:
        db: Database session

    Returns:
        PropertyService instance
    """
    return PropertyService(db)


async def get_review_service(db: AsyncSession = Depends(get_db)) -> ReviewService:
    return ReviewService(db)


async def get_flow_service(
    db: AsyncSession = Depends(get_db),
    client: HospitableClient = Depends(get_hospitable_client),
    queue: RateLimitedRequestQueue = Depends(get_request_queue),
) -> HospitableFlowService:
    """
    Get Hospitable flow service instance.

    Args:
        db: Database session
        client: Shared Hospitable client
        queue: Shared outbound request queue

    Returns:
        HospitableFlowService instance
    """
    return HospitableFlowService(db, client, queue, settings)


async def get_onboarding_flow(
    flow_id: str = Path(..., description="Onboarding flow identifier"),
    store: OnboardingStateStore = Depends(get_onboarding_store),
    service: HospitableFlowService = Depends(get_flow_service),
) -> OnboardingFlow:
    """Load the onboarding flow addressed by the path."""
    return await OnboardingFlow.load(
        flow_id,
        store,
        service,
        max_retries=settings.image_fetch_max_attempts,
        backoff_base_seconds=settings.image_backoff_base_seconds,
    )
