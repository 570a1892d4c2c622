"""
API route handlers for the StayDirectly API.
"""

from .auth import router as auth_router, callback_router
from .hospitable import router as hospitable_router
from .onboarding import router as onboarding_router
from .properties import router as properties_router
from .reviews import router as reviews_router

__all__ = [
    "auth_router",
    "callback_router",
    "hospitable_router",
    "onboarding_router",
    "properties_router",
    "reviews_router",
]
