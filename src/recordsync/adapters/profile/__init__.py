"""Profile service adapter."""

from __future__ import annotations

from .client import ProfileServiceClient
from .target import DEFAULT_API_PATHS, ProfileServiceTarget

__all__ = ["DEFAULT_API_PATHS", "ProfileServiceClient", "ProfileServiceTarget"]
