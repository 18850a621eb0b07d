"""Services for the group blueprint."""

from .directory import GroupDirectory
from .membership import is_admin, is_member, require_admin, require_member
from .messaging import GroupMessagingService

__all__ = [
    "GroupDirectory",
    "GroupMessagingService",
    "is_admin",
    "is_member",
    "require_admin",
    "require_member",
]
