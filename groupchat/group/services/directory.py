"""Service layer for group records and membership management."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any, Callable, cast

from firebase_admin import firestore
from flask import current_app

from groupchat.core.constants import GROUP_IMAGE_FOLDER, GROUPS_COLLECTION
from groupchat.errors import InvalidOperationError, NotFoundError, ValidationError
from groupchat.user.services import get_user_profiles

from .membership import is_admin, is_member, require_admin, require_member

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

    from groupchat.group.models import Group, GroupUpdate

Uploader = Callable[[str, str], str]


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _clean_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Group name is required")
    return name.strip()


def _clean_member_ids(member_ids: Any) -> list[str]:
    if member_ids is None:
        return []
    if not isinstance(member_ids, (list, tuple)):
        raise ValidationError("Members must be a list of user ids")
    cleaned = []
    for member_id in member_ids:
        if not isinstance(member_id, str) or not member_id.strip():
            raise ValidationError("Members must be a list of user ids")
        cleaned.append(member_id.strip())
    return cleaned


class GroupDirectory:
    """Service class for group-related operations."""

    @staticmethod
    def _image_folder() -> str:
        return current_app.config.get("GROUP_IMAGE_FOLDER", GROUP_IMAGE_FOLDER)

    @staticmethod
    def create(
        db: Client,
        name: Any,
        description: str | None,
        admin_id: str,
        member_ids: Any = None,
        image: str | None = None,
        uploader: Uploader | None = None,
    ) -> Group:
        """Create a group. The admin is always made a member."""
        clean_name = _clean_name(name)
        members = list(dict.fromkeys(_clean_member_ids(member_ids) + [str(admin_id)]))

        image_url = ""
        if image:
            if uploader is None:
                raise ValidationError("Image uploads are not supported here")
            image_url = uploader(image, GroupDirectory._image_folder())

        now = _now()
        group_data = {
            "name": clean_name,
            "description": description or "",
            "admin": str(admin_id),
            "members": members,
            "groupImage": image_url,
            "createdAt": now,
            "updatedAt": now,
        }
        group_ref = db.collection(GROUPS_COLLECTION).document()
        group_ref.set(group_data)
        current_app.logger.info(
            f"Group {group_ref.id} created by {admin_id} with {len(members)} members"
        )
        return cast("Group", {"id": group_ref.id, **group_data})

    @staticmethod
    def get(db: Client, group_id: str) -> Group:
        """Fetch a group snapshot or raise NotFoundError."""
        group = db.collection(GROUPS_COLLECTION).document(group_id).get()
        if not group.exists:
            raise NotFoundError("Group not found")
        group_data = group.to_dict() or {}
        return cast("Group", {"id": group.id, **group_data})

    @staticmethod
    def populate(db: Client, groups: list[Group]) -> list[Group]:
        """Resolve admin and member ids to profile projections."""
        user_ids: list[str] = []
        for group in groups:
            user_ids.extend(cast("list[str]", group.get("members", [])))
            if group.get("admin"):
                user_ids.append(cast(str, group["admin"]))
        profiles = get_user_profiles(db, user_ids) if user_ids else {}

        populated = []
        for group in groups:
            enriched = dict(group)
            admin_id = cast(str, group.get("admin"))
            enriched["admin"] = profiles.get(admin_id, {"id": admin_id})
            enriched["members"] = [
                profiles[member_id]
                for member_id in cast("list[str]", group.get("members", []))
            ]
            populated.append(cast("Group", enriched))
        return populated

    @staticmethod
    def get_populated(db: Client, group_id: str, user_id: str) -> Group:
        """Fetch a group for one of its members, with profiles resolved."""
        group = GroupDirectory.get(db, group_id)
        require_member(group, user_id)
        return GroupDirectory.populate(db, [group])[0]

    @staticmethod
    def list_for_user(db: Client, user_id: str) -> list[Group]:
        """Return every group the user belongs to, with profiles resolved."""
        query = db.collection(GROUPS_COLLECTION).where(
            filter=firestore.FieldFilter("members", "array_contains", str(user_id))
        )
        groups = []
        for doc in query.stream():
            data = doc.to_dict()
            if data is not None:
                groups.append(cast("Group", {"id": doc.id, **data}))
        return GroupDirectory.populate(db, groups)

    @staticmethod
    def update(
        db: Client,
        group_id: str,
        caller_id: str,
        name: Any = None,
        description: str | None = None,
        image: str | None = None,
        uploader: Uploader | None = None,
    ) -> Group:
        """Apply the provided fields to a group. Admin only."""
        group = GroupDirectory.get(db, group_id)
        require_admin(group, caller_id, "Only admin can update group details")

        updates: GroupUpdate = {}
        if name is not None:
            updates["name"] = _clean_name(name)
        if description is not None:
            updates["description"] = description
        if image and image != group.get("groupImage"):
            if uploader is None:
                raise ValidationError("Image uploads are not supported here")
            updates["groupImage"] = uploader(image, GroupDirectory._image_folder())
        updates["updatedAt"] = _now()

        db.collection(GROUPS_COLLECTION).document(group_id).update(dict(updates))
        return cast("Group", {**group, **updates})

    @staticmethod
    def delete(db: Client, group_id: str, caller_id: str) -> None:
        """Hard delete a group. Its messages are left in place."""
        group = GroupDirectory.get(db, group_id)
        require_admin(group, caller_id, "Only admin can delete the group")
        db.collection(GROUPS_COLLECTION).document(group_id).delete()
        current_app.logger.info(f"Group {group_id} deleted by {caller_id}")

    @staticmethod
    def add_members(
        db: Client, group_id: str, caller_id: str, member_ids: Any
    ) -> Group:
        """Add users to a group. Ids already present are ignored."""
        group = GroupDirectory.get(db, group_id)
        require_admin(group, caller_id, "Only admin can add members")

        additions = list(dict.fromkeys(_clean_member_ids(member_ids)))
        if not additions:
            raise ValidationError("At least one member id is required")

        # ArrayUnion appends only ids not already present, atomically
        db.collection(GROUPS_COLLECTION).document(group_id).update(
            {"members": firestore.ArrayUnion(additions), "updatedAt": _now()}
        )
        current_app.logger.info(f"Added {additions} to group {group_id}")
        group = GroupDirectory.get(db, group_id)
        return GroupDirectory.populate(db, [group])[0]

    @staticmethod
    def remove_member(
        db: Client, group_id: str, caller_id: str, member_id: str
    ) -> None:
        """Remove a member from a group. The admin cannot be removed."""
        group = GroupDirectory.get(db, group_id)
        require_admin(group, caller_id, "Only admin can remove members")
        if is_admin(group, member_id):
            raise InvalidOperationError("Cannot remove the admin from the group")

        if not is_member(group, member_id):
            return
        db.collection(GROUPS_COLLECTION).document(group_id).update(
            {"members": firestore.ArrayRemove([str(member_id)]), "updatedAt": _now()}
        )
        current_app.logger.info(f"Removed {member_id} from group {group_id}")

    @staticmethod
    def leave(db: Client, group_id: str, caller_id: str) -> None:
        """Remove the caller from a group's members."""
        group = GroupDirectory.get(db, group_id)
        require_member(group, caller_id)
        if is_admin(group, caller_id):
            raise InvalidOperationError(
                "Admin cannot leave the group, transfer ownership first "
                "or delete the group"
            )

        db.collection(GROUPS_COLLECTION).document(group_id).update(
            {"members": firestore.ArrayRemove([str(caller_id)]), "updatedAt": _now()}
        )
        current_app.logger.info(f"{caller_id} left group {group_id}")
