"""
Property service for the public read side of imported listings.
Handles listing, featured selection, search and lookups.
"""

from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.property import PropertyRepository, PropertySearchFilters
from app.models.property import Property
from app.schemas.property import PropertySearchParams
from app.utils.exceptions import APIException, BadRequestError, PropertyNotFoundError
import logging

logger = logging.getLogger(__name__)


class PropertyService:
    """
    Read-side property service.
    Only active properties are listed; lookups by id or slug return any stored property.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.property_repo = PropertyRepository(db_session)

    async def list_properties(
        self,
        limit: int = 10,
        offset: int = 0,
        is_published: Optional[bool] = None
    ) -> List[Property]:
        """
        List active properties, newest first.

        Args:
            limit: Maximum number of properties
            offset: Number of properties to skip
            is_published: Published filter; None returns all

        Returns:
            List of properties
        """
        try:
            return await self.property_repo.list_properties(limit=limit, offset=offset, is_published=is_published)
        except Exception as e:
            logger.error(f"Failed to list properties: {e}")
            raise BadRequestError(f"Failed to list properties: {str(e)}")

    async def get_featured(self, limit: int = 4) -> List[Property]:
        try:
            return await self.property_repo.get_featured(limit=limit)
        except Exception as e:
            logger.error(f"Failed to get featured properties: {e}")
            raise BadRequestError(f"Failed to get featured properties: {str(e)}")

    async def search_properties(
        self,
        params: PropertySearchParams,
        limit: int = 50,
        offset: int = 0
    ) -> List[Property]:
        """
        Search active properties.

        Args:
            params: Text query and filters
            limit: Maximum number of properties
            offset: Number of properties to skip

        Returns:
            Matching properties
        """
        filters = PropertySearchFilters(
            query=params.q.strip() if params.q and params.q.strip() else None,
            min_price=params.min_price,
            max_price=params.max_price,
            bedrooms=params.bedrooms,
            bathrooms=params.bathrooms,
            guests=params.guests,
            city=params.city,
            country=params.country,
            property_type=params.type,
            is_published=params.is_published,
        )

        try:
            properties = await self.property_repo.search(filters, limit=limit, offset=offset)
            logger.info(f"Property search returned {len(properties)} results")
            return properties
        except Exception as e:
            logger.error(f"Failed to search properties: {e}")
            raise BadRequestError(f"Search failed: {str(e)}")

    async def get_property(self, property_id: int) -> Property:
        """
        Get property by ID.

        Raises:
            PropertyNotFoundError: If the property doesn't exist
        """
        try:
            property_obj = await self.property_repo.get_by_id(property_id)
            if property_obj is None:
                raise PropertyNotFoundError(str(property_id))
            return property_obj
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to get property {property_id}: {e}")
            raise BadRequestError(f"Failed to retrieve property: {str(e)}")

    async def get_property_by_slug(self, slug: str) -> Property:
        property_obj = await self.property_repo.get_by_slug(slug)
        if property_obj is None:
            raise PropertyNotFoundError(slug)
        return property_obj
