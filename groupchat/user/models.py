"""Data models for users as seen by the group backend."""

from typing import TypedDict


class UserProfile(TypedDict, total=False):
    """A lightweight projection of a user document."""

    id: str
    name: str
    email: str
    profilePictureUrl: str
