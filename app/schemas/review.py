"""
Pydantic schemas for review requests and responses.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime


class ReviewCreate(BaseModel):
    """Schema for submitting a review."""

    model_config = ConfigDict(populate_by_name=True)

    property_id: int = Field(..., alias="propertyId", gt=0)
    author_name: str = Field(..., alias="authorName", min_length=1, max_length=255)
    rating: int = Field(..., ge=1, le=5, examples=[5])
    comment: Optional[str] = Field(None, max_length=5000)
    date: Optional[datetime] = None

    @field_validator('author_name')
    @classmethod
    def validate_author_name(cls, v):
        """Validate and clean author name."""
        if not v.strip():
            raise ValueError("Author name cannot be empty")
        return v.strip()


class ReviewResponse(BaseModel):
    """Schema for review responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    property_id: int
    author_name: str
    rating: int
    comment: Optional[str] = None
    date: datetime
    created_at: datetime
