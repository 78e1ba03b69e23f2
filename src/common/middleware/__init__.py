"""Common middleware for the geolocation service."""

from .observability import StructlogContextMiddleware

__all__ = ["StructlogContextMiddleware"]
