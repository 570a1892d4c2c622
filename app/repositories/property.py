"""
Property repository for imported listings with search and filtering.
Provides lookups by Hospitable identifiers plus the public read-side queries.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, desc
from app.repositories.base import BaseRepository
from app.models.property import Property
from typing import Optional, List, Dict, Any
from dataclasses import dataclass
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)


@dataclass
class PropertySearchFilters:
    """Search criteria for the public property search."""
    query: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    guests: Optional[int] = None
    city: Optional[str] = None
    country: Optional[str] = None
    property_type: Optional[str] = None
    is_published: Optional[bool] = None
    is_active: Optional[bool] = True


class PropertyRepository(BaseRepository[Property]):
    """
    Repository for properties mirrored from Hospitable.
    Listings are addressed by external id (listing id) or platform id
    (``customerId:listingId``).
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Property, db)

    async def get_by_external_id(self, external_id: str) -> Optional[Property]:
        return await self.get_by_field("external_id", external_id)

    async def get_by_platform_id(self, platform_id: str) -> Optional[Property]:
        return await self.get_by_field("platform_id", platform_id)

    async def get_by_slug(self, slug: str) -> Optional[Property]:
        return await self.get_by_field("slug", slug)

    async def get_by_customer_id(self, customer_id: str) -> List[Property]:
        """
        Get every property imported for a Hospitable customer.

        Args:
            customer_id: Hospitable customer id

        Returns:
            Properties ordered by most recently updated first
        """
        try:
            query = (
                select(Property)
                .where(Property.platform_id.startswith(f"{customer_id}:", autoescape=True))
                .order_by(desc(Property.updated_at), desc(Property.id))
            )
            result = await self.db.execute(query)
            properties = list(result.scalars().all())

            logger.debug(f"Retrieved {len(properties)} properties for customer {customer_id}")
            return properties
        except Exception as e:
            logger.error(f"Failed to get properties for customer {customer_id}: {e}")
            raise

    async def list_properties(
        self,
        limit: int = 10,
        offset: int = 0,
        is_published: Optional[bool] = None
    ) -> List[Property]:
        """
        List active properties, newest first.

        Args:
            limit: Maximum number of properties to return
            offset: Number of properties to skip
            is_published: Only published (True), only unpublished (False) or all (None)

        Returns:
            List of properties
        """
        try:
            query = select(Property).where(Property.is_active.is_(True))
            query = self._apply_published_filter(query, is_published)
            query = (
                query.order_by(desc(Property.created_at), desc(Property.id))
                .offset(offset)
                .limit(limit)
            )

            result = await self.db.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to list properties: {e}")
            raise

    async def get_featured(self, limit: int = 4) -> List[Property]:
        """
        Get featured properties, falling back to the most recent active ones.

        Args:
            limit: Maximum number of properties to return

        Returns:
            List of properties
        """
        try:
            query = (
                select(Property)
                .where(and_(Property.is_featured.is_(True), Property.is_active.is_(True)))
                .order_by(desc(Property.created_at), desc(Property.id))
                .limit(limit)
            )
            result = await self.db.execute(query)
            featured = list(result.scalars().all())

            if featured:
                return featured

            logger.debug("No featured properties, falling back to most recent")
            return await self.list_properties(limit=limit)
        except Exception as e:
            logger.error(f"Failed to get featured properties: {e}")
            raise

    async def search(
        self,
        filters: PropertySearchFilters,
        limit: int = 50,
        offset: int = 0
    ) -> List[Property]:
        """
        Search properties by text and filters.

        Args:
            filters: PropertySearchFilters instance with search criteria
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            Matching properties, newest first
        """
        try:
            query = select(Property)

            conditions = self._build_filter_conditions(filters)
            if conditions:
                query = query.where(and_(*conditions))
            query = self._apply_published_filter(query, filters.is_published)

            query = (
                query.order_by(desc(Property.created_at), desc(Property.id))
                .offset(offset)
                .limit(limit)
            )

            result = await self.db.execute(query)
            properties = list(result.scalars().all())

            logger.debug(f"Property search returned {len(properties)} results")
            return properties
        except Exception as e:
            logger.error(f"Failed to search properties: {e}")
            raise

    def _build_filter_conditions(self, filters: PropertySearchFilters) -> List:
        """
        Build SQLAlchemy filter conditions from search filters.

        Args:
            filters: PropertySearchFilters instance

        Returns:
            List of SQLAlchemy conditions
        """
        conditions = []

        if filters.is_active is not None:
            conditions.append(Property.is_active == filters.is_active)

        # Text search across name and place fields
        if filters.query:
            search_term = f"%{filters.query}%"
            conditions.append(
                or_(
                    Property.name.ilike(search_term),
                    Property.title.ilike(search_term),
                    Property.city.ilike(search_term),
                    Property.country.ilike(search_term),
                    Property.location.ilike(search_term),
                )
            )

        if filters.min_price is not None:
            conditions.append(Property.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Property.price <= filters.max_price)

        # Capacity filters are minimums
        if filters.bedrooms is not None:
            conditions.append(Property.bedrooms >= filters.bedrooms)
        if filters.bathrooms is not None:
            conditions.append(Property.bathrooms >= filters.bathrooms)
        if filters.guests is not None:
            conditions.append(Property.max_guests >= filters.guests)

        if filters.city:
            conditions.append(Property.city.ilike(filters.city))
        if filters.country:
            conditions.append(Property.country.ilike(filters.country))
        if filters.property_type:
            conditions.append(Property.type.ilike(filters.property_type))

        return conditions

    @staticmethod
    def _apply_published_filter(query, is_published: Optional[bool]):
        if is_published is True:
            return query.where(Property.published_at.is_not(None))
        if is_published is False:
            return query.where(Property.published_at.is_(None))
        return query
