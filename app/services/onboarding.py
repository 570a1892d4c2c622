"""
Onboarding flow for connecting a Hospitable customer.

Sequences customer creation, consent link, authorization, listing import,
image fetch and publishing. Each flow is identified by a flow id and its
state is persisted as JSON after every transition, so a flow can be resumed
by later requests.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os
from pydantic import ValidationError as PydanticValidationError

from app.schemas.onboarding import OnboardingState, OnboardingStatus
from app.services.hospitable_flow import HospitableFlowService, extract_customer
from app.utils.exceptions import (
    APIException,
    BadRequestError,
    ExternalServiceError,
    OnboardingFlowError,
)
from app.utils.retry import retry_async

logger = logging.getLogger(__name__)

_FLOW_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_flow_id(flow_id: str) -> str:
    if not _FLOW_ID_PATTERN.match(flow_id or ""):
        raise BadRequestError("Flow ID may only contain letters, digits, '-' and '_' (max 64 characters)")
    return flow_id


class OnboardingStateStore(ABC):
    """Persistence for serialized onboarding state, keyed by flow id."""

    @abstractmethod
    async def load(self, flow_id: str) -> Optional[str]:
        """Return the stored JSON document, or None when nothing is stored."""

    @abstractmethod
    async def save(self, flow_id: str, document: str) -> None:
        """Replace the stored JSON document."""

    @abstractmethod
    async def delete(self, flow_id: str) -> None:
        """Forget the flow; deleting an unknown flow is not an error."""


class InMemoryStateStore(OnboardingStateStore):
    """Process-local store, used in tests."""

    def __init__(self):
        self.documents: Dict[str, str] = {}

    async def load(self, flow_id: str) -> Optional[str]:
        return self.documents.get(flow_id)

    async def save(self, flow_id: str, document: str) -> None:
        self.documents[flow_id] = document

    async def delete(self, flow_id: str) -> None:
        self.documents.pop(flow_id, None)


class JsonFileStateStore(OnboardingStateStore):
    """
    One JSON file per flow under ``directory``.

    Writes go to a temporary file which then replaces the previous
    document, so a crash never leaves a half-written state behind.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, flow_id: str) -> Path:
        return self.directory / f"{validate_flow_id(flow_id)}.json"

    async def load(self, flow_id: str) -> Optional[str]:
        path = self._path(flow_id)
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()

    async def save(self, flow_id: str, document: str) -> None:
        path = self._path(flow_id)
        await aiofiles.os.makedirs(self.directory, exist_ok=True)

        tmp_path = path.with_suffix(".json.tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(document)
        await aiofiles.os.replace(tmp_path, path)

    async def delete(self, flow_id: str) -> None:
        path = self._path(flow_id)
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)


def listing_reference(listing: Dict[str, Any]) -> Optional[str]:
    """Listing id as used for image fetch and publishing."""
    value = listing.get("id") or listing.get("id_str") or listing.get("platformId")
    return str(value) if value else None


def describe_error(error: BaseException) -> str:
    if isinstance(error, APIException):
        return str(error.detail)
    return str(error) or "Unknown error"


class OnboardingFlow:
    """
    State machine for one customer onboarding.

    Every step records its transition and persists the state. A failing step
    moves the flow to ``error`` with ``"<step message>: <cause>"`` and
    re-raises the original exception.
    """

    def __init__(
        self,
        flow_id: str,
        store: OnboardingStateStore,
        service: HospitableFlowService,
        max_retries: int = 3,
        backoff_base_seconds: float = 1.0,
    ):
        self.flow_id = validate_flow_id(flow_id)
        self.store = store
        self.service = service
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.state = OnboardingState()
        # Image fetches run concurrently but share one database session
        self._session_lock = asyncio.Lock()

    @classmethod
    async def load(
        cls,
        flow_id: str,
        store: OnboardingStateStore,
        service: HospitableFlowService,
        **kwargs,
    ) -> "OnboardingFlow":
        """
        Restore a flow from the store.

        Unknown flows start fresh, and so do flows whose stored document
        cannot be parsed.
        """
        flow = cls(flow_id, store, service, **kwargs)
        document = await store.load(flow.flow_id)

        if document:
            try:
                flow.state = OnboardingState.model_validate_json(document)
            except PydanticValidationError as e:
                logger.warning(f"Discarding unreadable onboarding state for flow {flow_id}: {e}")
                await flow.reset()
        return flow

    def get_state(self) -> OnboardingState:
        return self.state.model_copy(deep=True)

    async def reset(self) -> OnboardingState:
        self.state = OnboardingState()
        await self._save()
        return self.get_state()

    async def _save(self) -> None:
        await self.store.save(self.flow_id, self.state.model_dump_json())

    async def _complete_step(self, step: OnboardingStatus) -> None:
        self.state.status = step
        if step not in self.state.completed_steps:
            self.state.completed_steps.append(step)
        self.state.last_updated = datetime.now(timezone.utc)
        await self._save()

    async def _record_error(self, message: str, error: BaseException) -> None:
        logger.error(f"Onboarding flow {self.flow_id} error: {message}: {describe_error(error)}")
        self.state.status = OnboardingStatus.ERROR
        self.state.error = f"{message}: {describe_error(error)}"
        self.state.last_updated = datetime.now(timezone.utc)
        await self._save()

    def _customer_id(self, customer_id: Optional[str], purpose: str) -> str:
        effective = customer_id or self.state.customer_id
        if not effective:
            raise OnboardingFlowError(f"Customer ID is required to {purpose}")
        return effective

    async def create_customer(self, customer_data: Dict[str, Any]) -> str:
        """
        Create the Hospitable customer.

        Skipped when the flow already has a customer and has moved past
        ``not_started``.

        Returns:
            Customer id
        """
        try:
            if self.state.customer_id and self.state.status != OnboardingStatus.NOT_STARTED:
                return self.state.customer_id

            response = await self.service.client.create_customer(customer_data)
            customer_id = extract_customer(response or {}).get("id")
            if not customer_id:
                raise ExternalServiceError("Hospitable did not return a customer id", upstream_body=response)

            self.state.customer_id = str(customer_id)
            await self._complete_step(OnboardingStatus.CUSTOMER_CREATED)
            return self.state.customer_id
        except Exception as e:
            await self._record_error("Failed to create customer", e)
            raise

    async def generate_auth_link(self, customer_id: Optional[str] = None) -> str:
        """
        Generate the consent link for the flow's customer.

        A link generated earlier is reused unless the flow is at
        ``customer_created``.
        """
        try:
            if self.state.status != OnboardingStatus.CUSTOMER_CREATED and self.state.auth_link:
                return self.state.auth_link

            effective = self._customer_id(self.state.customer_id or customer_id, "generate an auth link")
            link = await self.service.generate_auth_link(effective)

            self.state.auth_link = link["auth_url"]
            await self._complete_step(OnboardingStatus.AUTH_LINK_GENERATED)
            return self.state.auth_link
        except Exception as e:
            await self._record_error("Failed to generate auth link", e)
            raise

    async def authorize(self, code: Optional[str] = None) -> OnboardingState:
        """Mark the customer as authorized, exchanging the OAuth code when given."""
        try:
            if code:
                await self.service.exchange_token(code)
            await self._complete_step(OnboardingStatus.AUTHORIZED)
            return self.get_state()
        except Exception as e:
            await self._record_error("Failed to authorize", e)
            raise

    async def fetch_listings(self, customer_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Fetch the customer's listings from Hospitable.

        Cached listings are reused unless the flow is at ``authorized``.
        """
        try:
            effective = self._customer_id(customer_id, "fetch listings")

            if self.state.status != OnboardingStatus.AUTHORIZED and self.state.listings:
                return self.state.listings

            listings = await self.service.get_customer_listings(effective)
            self.state.listings = listings
            if not self.state.customer_id:
                self.state.customer_id = effective
            await self._complete_step(OnboardingStatus.LISTINGS_FETCHED)
            return listings
        except Exception as e:
            await self._record_error("Failed to fetch listings", e)
            raise

    async def store_listings(self, customer_id: Optional[str] = None) -> List[Any]:
        """Import the listings into local properties, fetching them first if needed."""
        try:
            effective = self._customer_id(customer_id, "store listings")

            if not self.state.listings:
                await self.fetch_listings(effective)

            properties = await self.service.import_customer_listings(effective)
            await self._complete_step(OnboardingStatus.LISTINGS_STORED)
            return properties
        except Exception as e:
            await self._record_error("Failed to store listings", e)
            raise

    async def _fetch_images_for_listing(self, customer_id: str, listing_id: str) -> bool:
        async def attempt():
            async with self._session_lock:
                return await self.service.fetch_property_images(customer_id, listing_id)

        try:
            # Waits 2 s, then 4 s between attempts with the default base
            await retry_async(
                attempt,
                max_attempts=self.max_retries,
                base_delay=2 * self.backoff_base_seconds,
                retry_on=APIException,
                description=f"onboarding image fetch for listing {listing_id}",
            )
            return True
        except APIException as e:
            logger.error(
                f"Failed to fetch images for listing {listing_id} after {self.max_retries} attempts: {e.detail}"
            )
            return False

    async def fetch_listing_images(self, customer_id: Optional[str] = None) -> bool:
        """
        Fetch images for every listing concurrently.

        Returns:
            True when every listing succeeded; only then does the flow move
            to ``images_fetched``
        """
        try:
            effective = self._customer_id(customer_id, "fetch listing images")

            if not self.state.listings:
                await self.store_listings(effective)

            listing_ids = [ref for ref in map(listing_reference, self.state.listings or []) if ref]
            results = await asyncio.gather(
                *(self._fetch_images_for_listing(effective, listing_id) for listing_id in listing_ids)
            )

            all_successful = all(results)
            if all_successful:
                await self._complete_step(OnboardingStatus.IMAGES_FETCHED)
            else:
                logger.warning(
                    f"Onboarding flow {self.flow_id}: images fetched for "
                    f"{sum(results)} of {len(results)} listings"
                )
            return all_successful
        except Exception as e:
            await self._record_error("Failed to fetch listing images", e)
            raise

    async def publish_properties(self, customer_id: Optional[str] = None) -> bool:
        """Publish every listing of the flow and complete it."""
        try:
            effective = self._customer_id(customer_id, "publish properties")

            if not self.state.listings:
                await self.fetch_listing_images(effective)

            listing_ids = [ref for ref in map(listing_reference, self.state.listings or []) if ref]
            await self.service.publish_properties(effective, listing_ids)
            await self._complete_step(OnboardingStatus.COMPLETED)
            return True
        except Exception as e:
            await self._record_error("Failed to publish properties", e)
            raise

    async def run_full_flow(self, customer_data: Dict[str, Any]) -> bool:
        """
        Run every step in order, assuming the customer authorizes the link.

        Returns:
            True on success, False if any step failed (the state holds the error)
        """
        try:
            customer_id = await self.create_customer(customer_data)
            auth_link = await self.generate_auth_link(customer_id)
            logger.info(f"Onboarding flow {self.flow_id} generated auth link: {auth_link}")

            await self._complete_step(OnboardingStatus.AUTHORIZED)
            await self.store_listings(customer_id)
            await self.fetch_listing_images(customer_id)
            await self.publish_properties(customer_id)
            return True
        except Exception as e:
            logger.error(f"Error running full onboarding flow {self.flow_id}: {describe_error(e)}")
            return False
