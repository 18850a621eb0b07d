"""Service layer for reading user profiles."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from groupchat.core.constants import USERS_COLLECTION

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

    from .models import UserProfile

PROFILE_FIELDS = ("name", "email", "profilePictureUrl")
UNKNOWN_USER_NAME = "Unknown"


def to_profile(user_id: str, data: dict[str, Any] | None) -> UserProfile:
    """Project a user document onto the public profile fields."""
    if data is None:
        return {"id": user_id, "name": UNKNOWN_USER_NAME}
    profile: UserProfile = {"id": user_id}
    for field in PROFILE_FIELDS:
        if field in data:
            profile[field] = data[field]  # type: ignore[literal-required]
    return profile


def get_user_profiles(db: Client, user_ids: list[str]) -> dict[str, UserProfile]:
    """Fetch profile projections for the given user ids, keyed by id."""
    unique_ids = list(dict.fromkeys(user_ids))
    if not unique_ids:
        return {}

    users_ref = db.collection(USERS_COLLECTION)
    refs = [users_ref.document(user_id) for user_id in unique_ids]
    # get_all yields snapshots in no particular order
    snapshots = cast("list[DocumentSnapshot]", list(db.get_all(refs)))
    found = {
        snapshot.id: snapshot.to_dict()
        for snapshot in snapshots
        if snapshot.exists
    }
    return {user_id: to_profile(user_id, found.get(user_id)) for user_id in unique_ids}
