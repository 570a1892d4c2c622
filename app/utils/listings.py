"""
Helpers for normalizing Hospitable listing payloads.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import pycountry

# Airbnb-hosted photo URLs carry an "/im" segment that serves a resized copy
_IMAGE_RESIZE_SEGMENT = re.compile(r"/im(?=/)")
_SLUG_INVALID_CHARS = re.compile(r"[^a-z0-9]+")


def strip_image_url(url: Optional[str]) -> str:
    """Remove the ``/im`` path segment from a listing photo URL."""
    if not url:
        return ""
    return _IMAGE_RESIZE_SEGMENT.sub("", url)


def slugify(value: str) -> str:
    return _SLUG_INVALID_CHARS.sub("-", value.lower())


def listing_slug(listing_id: Any, name: Optional[str]) -> str:
    """
    Build the property slug for an imported listing.

    Example:
        >>> listing_slug("abc", "Ocean View Loft!")
        'abc-ocean-view-loft-'
    """
    return f"{listing_id}-{slugify(name or 'property')}"


def country_name(code: Optional[str]) -> str:
    """
    Resolve an ISO 3166 alpha-2 code to the official country name.

    Falls back to the code itself when it is not recognized, and to
    "Unknown" when no code is given.
    """
    if not code:
        return "Unknown"

    try:
        country = pycountry.countries.get(alpha_2=code.upper())
    except (KeyError, LookupError):
        country = None

    if country is None:
        return code
    return getattr(country, "official_name", None) or country.name


def format_location(city: Optional[str], state: Optional[str], country_code: Optional[str]) -> str:
    """Join city, state and country code, collapsing empty parts."""
    location = f"{city or ''}, {state or ''}, {country_code or ''}"
    location = location.replace(", ,", ",")
    if location.startswith(", "):
        location = location[2:]
    if location.endswith(", "):
        location = location[:-2]
    return location


def to_int(value: Any, default: int) -> int:
    """Coerce a numeric field, using ``default`` for missing, zero or invalid values."""
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return default
    return number or default


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return None
    return number if number else None
