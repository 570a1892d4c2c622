"""
Hospitable import flow: listing import, image retrieval, publishing and
customer onboarding helpers.

Outbound calls for a customer go through the shared rate-limited queue so a
burst of imports cannot exceed Hospitable's per-minute limits.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import Settings, settings as default_settings
from app.models.property import Property, PropertyStatus
from app.repositories.property import PropertyRepository
from app.services.hospitable_client import HospitableClient
from app.utils.exceptions import (
    APIException,
    BadRequestError,
    ExternalServiceError,
    NotFoundError,
)
from app.utils.listings import (
    country_name,
    format_location,
    listing_slug,
    strip_image_url,
    to_decimal,
    to_int,
)
from app.utils.rate_limiter import RateLimitedRequestQueue
from app.utils.retry import retry_async
import logging

logger = logging.getLogger(__name__)

EXTERNAL_SOURCE = "hospitable"


def listings_key(customer_id: str) -> str:
    return f"customer_listings_{customer_id}"


def images_key(customer_id: str) -> str:
    return f"property_images_{customer_id}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def extract_property_ids(platform_id: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Split a platform id into its customer and listing ids.

    Args:
        platform_id: Composite id ``customerId:listingId``

    Returns:
        (customer_id, listing_id), or (None, None) unless there are exactly two parts
    """
    if not platform_id:
        return None, None

    parts = platform_id.split(":")
    if len(parts) != 2:
        return None, None
    return parts[0], parts[1]


def _image_urls(photos: Any) -> List[str]:
    if not isinstance(photos, list):
        return []
    return [strip_image_url(photo.get("url")) for photo in photos if isinstance(photo, dict) and photo.get("url")]


def map_listing_to_property(
    listing: Dict[str, Any],
    customer_id: str,
    existing: Optional[Property] = None
) -> Dict[str, Any]:
    """
    Map a Hospitable listing payload onto Property fields.

    Args:
        listing: Raw listing from Hospitable
        customer_id: Owning Hospitable customer
        existing: Stored property for this listing; its gallery images are kept

    Returns:
        Dictionary of Property column values
    """
    listing_id = str(listing["id"])
    private_name = listing.get("private_name")
    public_name = listing.get("public_name")
    address = listing.get("address") or {}
    photos = listing.get("photos") or []
    amenities = listing.get("amenities") or []

    main_image = listing.get("picture") or (photos[0].get("url") if photos and isinstance(photos[0], dict) else None)

    if existing is not None and existing.additional_images:
        additional_images = [strip_image_url(url) for url in existing.additional_images]
    else:
        additional_images = _image_urls(photos[1:])

    capacity = None
    raw_capacity = listing.get("capacity")
    if raw_capacity:
        capacity = {
            "max": to_int(raw_capacity.get("max"), to_int(listing.get("max_guests"), 2)),
            "beds": to_int(raw_capacity.get("beds"), to_int(listing.get("beds"), 1)),
            "bedrooms": to_int(raw_capacity.get("bedrooms"), to_int(listing.get("bedrooms"), 1)),
            "bathrooms": to_int(raw_capacity.get("bathrooms"), to_int(listing.get("bathrooms"), 1)),
        }

    price = to_decimal(listing.get("base_price"))

    return {
        "name": private_name or public_name or "Unnamed Property",
        "title": public_name or private_name or "Unnamed Property",
        "description": listing.get("description") or "Beautiful property",
        "price": price if price is not None else 99,
        "image_url": strip_image_url(main_image),
        "additional_images": additional_images,
        "city": address.get("city") or "Unknown",
        "state": address.get("state") or "",
        "zip_code": address.get("zipcode") or "",
        "country": country_name(address.get("country_code")),
        "location": format_location(address.get("city"), address.get("state"), address.get("country_code")),
        "latitude": to_decimal(address.get("latitude")),
        "longitude": to_decimal(address.get("longitude")),
        "bedrooms": to_int(listing.get("bedrooms"), 1),
        "bathrooms": to_int(listing.get("bathrooms"), 1),
        "max_guests": to_int(listing.get("max_guests"), 2),
        "type": listing.get("property_type") or "Apartment",
        "capacity": capacity,
        "amenities": list(amenities),
        "featured_amenities": list(listing.get("featured_amenities") or amenities[:6]),
        "external_id": listing_id,
        "external_source": EXTERNAL_SOURCE,
        "platform_id": f"{customer_id}:{listing_id}",
        "slug": listing_slug(listing_id, public_name or private_name),
        "host_name": listing.get("host_name") or "StayDirectly Host",
    }


def extract_auth_link(auth_code_response: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """Pull the consent URL and its expiry out of an auth-code response."""
    data = auth_code_response.get("data") if isinstance(auth_code_response.get("data"), dict) else {}
    auth_url = (
        data.get("return_url")
        or auth_code_response.get("return_url")
        or auth_code_response.get("auth_url")
        or auth_code_response.get("url")
    )
    return {"auth_url": auth_url, "expires_at": data.get("expires_at")}


def extract_customer(customer_response: Dict[str, Any]) -> Dict[str, Any]:
    """Unwrap a created customer from ``customer.data``, ``data`` or a flat body."""
    nested = customer_response.get("customer")
    if isinstance(nested, dict) and isinstance(nested.get("data"), dict):
        return nested["data"]
    if isinstance(customer_response.get("data"), dict):
        return customer_response["data"]
    return customer_response


class HospitableFlowService:
    """
    Orchestrates imports from Hospitable into local properties.
    Handles cache freshness, rate-limited fetches and publishing.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        client: HospitableClient,
        queue: RateLimitedRequestQueue,
        config: Optional[Settings] = None
    ):
        self.db = db_session
        self.client = client
        self.queue = queue
        self.config = config or default_settings
        self.property_repo = PropertyRepository(db_session)

    def _is_fresh(self, timestamp: Optional[datetime]) -> bool:
        if timestamp is None:
            return False
        age = utcnow() - as_utc(timestamp)
        return age < timedelta(days=self.config.cache_freshness_days)

    async def get_customer_listings(self, customer_id: str) -> List[Dict[str, Any]]:
        """Raw listings for a customer, fetched through the rate-limited queue."""
        if not customer_id:
            raise BadRequestError("Customer ID is required")
        return await self.queue.enqueue(
            listings_key(customer_id),
            lambda: self.client.get_customer_listings(customer_id),
        )

    async def import_customer_listings(self, customer_id: str, avoid_update: bool = False) -> List[Property]:
        """
        Import a customer's listings into local properties.

        Stored properties are returned without calling Hospitable when the
        most recently updated one is fresher than the cache window, or when
        ``avoid_update`` is set.

        Args:
            customer_id: Hospitable customer id
            avoid_update: Return stored properties without refreshing

        Returns:
            Imported (or stored) properties

        Raises:
            BadRequestError: If customer_id is missing
            NotFoundError: If Hospitable has no listings for the customer
            ExternalServiceError: If the listing fetch fails
        """
        if not customer_id:
            raise BadRequestError("Customer ID is required")

        stored = await self.property_repo.get_by_customer_id(customer_id)
        if avoid_update:
            logger.info(f"Skipping listing refresh for customer {customer_id}")
            return stored

        timestamps = [as_utc(p.updated_at) for p in stored if p.updated_at is not None]
        if timestamps and self._is_fresh(max(timestamps)):
            logger.info(f"Using {len(stored)} cached properties for customer {customer_id}")
            return stored

        listings = await self.get_customer_listings(customer_id)
        if not listings:
            raise NotFoundError("Listings", detail="No properties found in Hospitable account")

        imported: List[Property] = []
        imported_ids: List[int] = []
        failures = 0
        for listing in listings:
            listing_id = listing.get("id") if isinstance(listing, dict) else None
            if not listing_id:
                logger.warning(f"Skipping listing without id for customer {customer_id}")
                continue

            try:
                existing = await self.property_repo.get_by_external_id(str(listing_id))
                property_data = map_listing_to_property(listing, customer_id, existing)
                if existing is not None:
                    # Unchanged listings still count as refreshed for the cache window
                    property_data["updated_at"] = utcnow()
                    property_obj = await self.property_repo.update_instance(existing, property_data)
                else:
                    property_obj = await self.property_repo.create(property_data)
                imported.append(property_obj)
                imported_ids.append(property_obj.id)
            except Exception as e:
                failures += 1
                logger.warning(
                    f"Failed to import listing {listing_id} for customer {customer_id}: {e}",
                    extra={"customer_id": customer_id, "listing_id": listing_id},
                )

        # A rollback expires instances loaded earlier in the session
        if failures and imported_ids:
            imported = [p for p in [await self.property_repo.get_by_id(pid) for pid in imported_ids] if p is not None]

        logger.info(f"Imported {len(imported)} of {len(listings)} listings for customer {customer_id}")
        return imported

    async def fetch_property_images(
        self,
        customer_id: str,
        listing_id: str,
        position: int = 0,
        force_refresh: bool = False
    ) -> Dict[str, Any]:
        """
        Fetch and store images for one listing.

        Args:
            customer_id: Hospitable customer id
            listing_id: Hospitable listing id
            position: Index of the image to use as main image
            force_refresh: Ignore images stored within the cache window

        Returns:
            Image payload with ``from_cache`` and, on fallback, ``fetch_error``

        Raises:
            BadRequestError: If an id is missing
            NotFoundError: If Hospitable returns no images
            ExternalServiceError: If the fetch fails and nothing is stored
        """
        if not customer_id or not listing_id:
            raise BadRequestError("Customer ID and Listing ID are required")

        property_obj = await self.property_repo.get_by_platform_id(f"{customer_id}:{listing_id}")

        if (
            property_obj is not None
            and not force_refresh
            and self._is_fresh(property_obj.images_stored_at)
            and property_obj.has_complete_images()
        ):
            logger.debug(f"Using cached images for listing {listing_id}")
            return self._image_payload(
                customer_id, listing_id, property_obj.image_url, property_obj.additional_images, from_cache=True
            )

        try:
            images = await retry_async(
                lambda: self.queue.enqueue(
                    images_key(customer_id),
                    lambda: self.client.get_listing_images(customer_id, listing_id),
                ),
                max_attempts=self.config.image_fetch_max_attempts,
                base_delay=self.config.image_backoff_base_seconds,
                retry_on=ExternalServiceError,
                description=f"image fetch for listing {listing_id}",
            )
        except ExternalServiceError as e:
            if property_obj is not None and property_obj.image_url:
                logger.warning(f"Image fetch failed for listing {listing_id}, serving stored images: {e.detail}")
                payload = self._image_payload(
                    customer_id, listing_id, property_obj.image_url, property_obj.additional_images, from_cache=True
                )
                payload["fetch_error"] = e.detail
                return payload
            raise

        urls = _image_urls(images)
        if not urls:
            raise NotFoundError("Images", detail="No images found for this listing")

        main_image = urls[position] if 0 <= position < len(urls) else urls[0]
        additional_images = urls[1:1 + self.config.max_additional_images]

        if property_obj is not None:
            await self.property_repo.update_instance(property_obj, {
                "image_url": main_image,
                "additional_images": additional_images,
                "images_stored_at": utcnow(),
            })

        return self._image_payload(customer_id, listing_id, main_image, additional_images, from_cache=False)

    @staticmethod
    def _image_payload(
        customer_id: str,
        listing_id: str,
        main_image: Optional[str],
        additional_images: Optional[List[str]],
        from_cache: bool
    ) -> Dict[str, Any]:
        return {
            "customer_id": customer_id,
            "listing_id": listing_id,
            "main_image": main_image,
            "additional_images": list(additional_images or []),
            "from_cache": from_cache,
        }

    async def publish_properties(self, customer_id: str, listing_ids: List[str]) -> List[Property]:
        """
        Mark imported listings as published.

        Args:
            customer_id: Hospitable customer id
            listing_ids: Listing ids to publish; unknown ids are skipped

        Returns:
            Published properties

        Raises:
            BadRequestError: If customer_id or listing_ids is missing
        """
        if not customer_id or not listing_ids:
            raise BadRequestError("Customer ID and at least one listing ID are required")

        published: List[Property] = []
        for listing_id in listing_ids:
            property_obj = await self.property_repo.get_by_platform_id(f"{customer_id}:{listing_id}")
            if property_obj is None:
                logger.debug(f"No property for listing {listing_id}, skipping publish")
                continue

            published.append(await self.property_repo.update_instance(property_obj, {
                "is_active": True,
                "is_verified": True,
                "status": PropertyStatus.ACTIVE,
                "published_at": property_obj.published_at or utcnow(),
            }))

        logger.info(f"Published {len(published)} of {len(listing_ids)} listings for customer {customer_id}")
        return published

    async def generate_auth_link(self, customer_id: str) -> Dict[str, Optional[str]]:
        """
        Create a Hospitable consent link for a customer.

        Returns:
            ``{"auth_url": ..., "expires_at": ...}``

        Raises:
            BadRequestError: If customer_id is missing
            ExternalServiceError: If Hospitable returns no consent URL
        """
        if not customer_id:
            raise BadRequestError("Customer ID is required")

        response = await self.client.create_auth_code(customer_id, self.config.hospitable_redirect_uri)
        link = extract_auth_link(response or {})
        if not link["auth_url"]:
            raise ExternalServiceError(
                "Failed to generate auth code - no auth URL in Hospitable response",
                upstream_body=response,
            )

        logger.info(f"Generated auth link for customer {customer_id}")
        return link

    async def create_customer_with_auth_link(self, customer_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a customer and its consent link in one step.

        A failing auth link does not fail the call; the customer is still
        returned together with ``auth_error``.
        """
        customer_response = await self.client.create_customer(customer_data)
        customer = extract_customer(customer_response or {})
        customer_id = str(customer["id"]) if customer.get("id") is not None else None
        logger.info(f"Customer created with ID: {customer_id}")

        result: Dict[str, Any] = {
            "success": True,
            "message": "Customer created and auth link generated successfully",
            "customer": customer,
            "customer_id": customer_id,
            "auth_url": None,
            "expires_at": None,
            "redirect_url": self.config.hospitable_redirect_uri,
        }

        try:
            link = await self.generate_auth_link(customer_id)
        except APIException as e:
            logger.warning(f"Failed to create auth link for customer {customer_id}: {e.detail}")
            result["message"] = "Customer created successfully, but failed to generate auth link"
            result["auth_error"] = e.detail
            return result

        result.update(link)
        return result

    async def exchange_token(self, code: str) -> Dict[str, Any]:
        return await self.client.exchange_code_for_token(code)
