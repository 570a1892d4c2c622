"""
Property model for vacation-rental listings.
Mirrors Hospitable listings locally with location, capacity, media and publishing state.
"""

from sqlalchemy import String, Text, Integer, Numeric, Boolean, Float, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.review import Review


class PropertyStatus:
    """Publishing status values stored on a property."""
    DRAFT = "draft"
    ACTIVE = "active"


class Property(Base):
    """
    Rentable unit, usually imported from a Hospitable customer account.
    A listing is identified upstream by its platform id ``customerId:listingId``.
    """

    __tablename__ = "properties"

    # Naming and description
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Internal (private) property name"
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Public listing title"
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="Beautiful property",
        comment="Listing description"
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("99"),
        index=True,
        comment="Nightly base price"
    )

    # Media
    image_url: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Main image URL"
    )

    additional_images: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Gallery image URLs"
    )

    images_stored_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When images were last fetched from Hospitable"
    )

    # Location
    city: Mapped[str] = mapped_column(String(255), nullable=False, default="Unknown", index=True)
    state: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    zip_code: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(255), nullable=False, default="Unknown", index=True)
    location: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=10, scale=7), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=10, scale=7), nullable=True)

    # Capacity
    bedrooms: Mapped[int] = mapped_column(Integer, nullable=False, default=1, index=True)
    bathrooms: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_guests: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    type: Mapped[str] = mapped_column(String(100), nullable=False, default="Apartment")
    capacity: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    amenities: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    featured_amenities: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # External identifiers
    external_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        comment="Hospitable listing id"
    )

    external_source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    platform_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        index=True,
        comment="Composite customerId:listingId"
    )

    slug: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        unique=True,
        index=True
    )

    host_name: Mapped[str] = mapped_column(String(255), nullable=False, default="StayDirectly Host")

    # Denormalized review aggregates
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=PropertyStatus.DRAFT)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    reviews: Mapped[List["Review"]] = relationship(
        "Review",
        back_populates="property_rel",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        """String representation of the property."""
        return f"<Property(id={self.id}, title={self.title[:30]}..., platform_id={self.platform_id})>"

    @property
    def is_published(self) -> bool:
        return self.published_at is not None

    def has_complete_images(self) -> bool:
        """Whether both a main image and at least one gallery image are stored."""
        return bool(self.image_url) and isinstance(self.additional_images, list) and len(self.additional_images) > 0


# Composite index for city listings filtered by status
city_active_index = Index(
    'idx_properties_city_active',
    Property.city,
    Property.is_active
)

# Composite index for featured listings
featured_active_index = Index(
    'idx_properties_featured_active',
    Property.is_featured,
    Property.is_active,
    Property.created_at.desc()
)
