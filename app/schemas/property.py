"""
Pydantic schemas for property responses and search filters.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal


class PropertyResponse(BaseModel):
    """Schema for property responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    title: str
    description: str
    price: Decimal
    image_url: Optional[str] = None
    additional_images: List[str] = Field(default_factory=list)
    images_stored_at: Optional[datetime] = None

    city: str
    state: str
    zip_code: str
    country: str
    location: str
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None

    bedrooms: int
    bathrooms: int
    max_guests: int
    type: str
    capacity: Optional[Dict[str, Any]] = None
    amenities: List[str] = Field(default_factory=list)
    featured_amenities: List[str] = Field(default_factory=list)

    external_id: Optional[str] = None
    external_source: Optional[str] = None
    platform_id: Optional[str] = None
    slug: str
    host_name: str

    rating: float = Field(..., description="Average review rating, 0 when unreviewed")
    review_count: int

    is_active: bool
    is_featured: bool
    is_verified: bool
    status: str
    is_published: bool
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PropertySearchParams(BaseModel):
    """Query parameters accepted by the property search."""

    q: Optional[str] = Field(None, description="Text matched against name, city, country and location")
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0, description="Minimum bedrooms")
    bathrooms: Optional[int] = Field(None, ge=0, description="Minimum bathrooms")
    guests: Optional[int] = Field(None, ge=0, description="Minimum guest capacity")
    city: Optional[str] = None
    country: Optional[str] = None
    type: Optional[str] = None
    is_published: Optional[bool] = None

    @model_validator(mode='after')
    def validate_price_range(self):
        """Validate that max_price is not below min_price."""
        if self.min_price is not None and self.max_price is not None and self.max_price < self.min_price:
            raise ValueError("max_price must be greater than or equal to min_price")
        return self
