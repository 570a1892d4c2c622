"""
Middleware package for the StayDirectly API.
"""

from .validation import ValidationMiddleware

__all__ = ["ValidationMiddleware"]
