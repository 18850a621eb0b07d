"""Caller identity for HTTP and Socket.IO requests."""

from .decorators import login_required
from .identity import resolve_caller_id, user_id_from_token

__all__ = ["login_required", "resolve_caller_id", "user_id_from_token"]
