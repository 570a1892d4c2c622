"""
Review endpoints.
Submitting or deleting a review refreshes the property's rating and review count.
"""

from fastapi import APIRouter, Depends, Path, Response, status

from app.schemas.review import ReviewCreate, ReviewResponse
from app.services.error_handler import ERROR_RESPONSES
from app.services.review import ReviewService
from app.utils.dependencies import get_review_service


router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post(
    "",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit review",
    description="Create a review for a property and update the property's rating aggregates.",
    responses={404: ERROR_RESPONSES[404], 422: ERROR_RESPONSES[422]},
)
async def create_review(
    review_data: ReviewCreate,
    review_service: ReviewService = Depends(get_review_service)
) -> ReviewResponse:
    """
    Submit a review.

    Args:
        review_data: Review submission
        review_service: Review service instance

    Returns:
        Created review

    Raises:
        PropertyNotFoundError: If the reviewed property doesn't exist
    """
    review = await review_service.create_review(review_data)
    return ReviewResponse.model_validate(review)


@router.delete(
    "/{review_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete review",
    responses={404: ERROR_RESPONSES[404]},
)
async def delete_review(
    review_id: int = Path(..., description="Review ID"),
    review_service: ReviewService = Depends(get_review_service)
) -> Response:
    await review_service.delete_review(review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
