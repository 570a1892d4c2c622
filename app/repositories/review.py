"""
Repository for Review model operations.
Handles review queries and the rating aggregate used by properties.
"""

from typing import List, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.review import Review
from app.repositories.base import BaseRepository


class ReviewRepository(BaseRepository[Review]):
    """Repository for Review database operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(Review, db)

    async def get_by_property_id(self, property_id: int) -> List[Review]:
        """
        Get all reviews for a property, newest first.

        Args:
            property_id: ID of the property

        Returns:
            List of reviews
        """
        query = (
            select(Review)
            .where(Review.property_id == property_id)
            .order_by(Review.date.desc(), Review.id.desc())
        )

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_rating_summary(self, property_id: int) -> Tuple[float, int]:
        """
        Average rating and number of reviews for a property.

        Returns:
            (average, count); the average is 0.0 when there are no reviews
        """
        query = select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.property_id == property_id
        )

        result = await self.db.execute(query)
        average, count = result.one()
        return float(average or 0.0), int(count or 0)
