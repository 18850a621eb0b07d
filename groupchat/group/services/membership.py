"""Authorization predicates evaluated against a group snapshot.

Nothing here is cached. Callers pass a group they have just fetched so that
a membership change is honoured by the very next request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from groupchat.errors import ForbiddenError

if TYPE_CHECKING:
    from groupchat.group.models import Group


def _normalize(user_id: Any) -> str:
    return str(user_id)


def _member_ids(group: Group) -> list[str]:
    ids = []
    for member in group.get("members", []):
        if isinstance(member, dict):
            ids.append(_normalize(member.get("id")))
        else:
            ids.append(_normalize(member))
    return ids


def _admin_id(group: Group) -> str | None:
    admin = group.get("admin")
    if admin is None:
        return None
    if isinstance(admin, dict):
        return _normalize(admin.get("id"))
    return _normalize(admin)


def is_member(group: Group, user_id: Any) -> bool:
    """Return True if the user is in the group's member set."""
    return _normalize(user_id) in _member_ids(group)


def is_admin(group: Group, user_id: Any) -> bool:
    """Return True if the user is the group's admin."""
    return _admin_id(group) == _normalize(user_id)


def require_member(
    group: Group, user_id: Any, message: str = "You are not a member of this group"
) -> None:
    """Raise ForbiddenError unless the user is a member."""
    if not is_member(group, user_id):
        raise ForbiddenError(message)


def require_admin(
    group: Group, user_id: Any, message: str = "Only admin can manage this group"
) -> None:
    """Raise ForbiddenError unless the user is the admin."""
    if not is_admin(group, user_id):
        raise ForbiddenError(message)
