"""User profile lookups."""

from .services import get_user_profiles, to_profile

__all__ = ["get_user_profiles", "to_profile"]
