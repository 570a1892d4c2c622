"""
Review service.
Keeps each property's rating and review_count in step with its reviews.
"""

from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.property import Property
from app.models.review import Review
from app.repositories.property import PropertyRepository
from app.repositories.review import ReviewRepository
from app.schemas.review import ReviewCreate
from app.utils.exceptions import PropertyNotFoundError, ReviewNotFoundError
import logging

logger = logging.getLogger(__name__)


class ReviewService:
    """Creates and deletes reviews, recomputing the owning property's aggregates."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.review_repo = ReviewRepository(db_session)
        self.property_repo = PropertyRepository(db_session)

    async def get_property_reviews(self, property_id: int) -> List[Review]:
        """
        Get reviews for a property.

        Raises:
            PropertyNotFoundError: If the property doesn't exist
        """
        if await self.property_repo.get_by_id(property_id) is None:
            raise PropertyNotFoundError(str(property_id))
        return await self.review_repo.get_by_property_id(property_id)

    async def create_review(self, review_data: ReviewCreate) -> Review:
        """
        Create a review and refresh the property's aggregates.

        Args:
            review_data: Review submission

        Returns:
            Created review

        Raises:
            PropertyNotFoundError: If the reviewed property doesn't exist
        """
        property_obj = await self.property_repo.get_by_id(review_data.property_id)
        if property_obj is None:
            raise PropertyNotFoundError(str(review_data.property_id))

        create_data = review_data.model_dump(exclude_none=True)
        review = await self.review_repo.create(create_data)
        await self._refresh_aggregates(property_obj)

        logger.info(f"Review {review.id} created for property {property_obj.id}")
        return review

    async def delete_review(self, review_id: int) -> None:
        """
        Delete a review and refresh the property's aggregates.

        Raises:
            ReviewNotFoundError: If the review doesn't exist
        """
        review = await self.review_repo.get_by_id(review_id)
        if review is None:
            raise ReviewNotFoundError(str(review_id))

        property_id = review.property_id
        await self.review_repo.delete(review_id)

        property_obj = await self.property_repo.get_by_id(property_id)
        if property_obj is not None:
            await self._refresh_aggregates(property_obj)

        logger.info(f"Review {review_id} deleted from property {property_id}")

    async def _refresh_aggregates(self, property_obj: Property) -> Property:
        average, count = await self.review_repo.get_rating_summary(property_obj.id)
        return await self.property_repo.update_instance(property_obj, {
            "rating": average,
            "review_count": count,
        })
