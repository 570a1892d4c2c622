"""
Database models for the StayDirectly API.
Includes Property and Review models.
"""

from app.models.property import Property, PropertyStatus
from app.models.review import Review

# Export all models for easy importing
__all__ = [
    "Property",
    "PropertyStatus",
    "Review",
]
