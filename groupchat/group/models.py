"""Data models for the group blueprint."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypedDict

from groupchat.core.types import FirestoreDocument

if TYPE_CHECKING:
    from groupchat.user.models import UserProfile


class Group(FirestoreDocument, total=False):
    """A group document in Firestore."""

    name: str
    description: str
    admin: str | UserProfile
    members: list[str] | list[UserProfile]
    groupImage: str


class GroupUpdate(TypedDict, total=False):
    """Fields an admin may change on a group."""

    name: str
    description: str
    groupImage: str
    updatedAt: Any
