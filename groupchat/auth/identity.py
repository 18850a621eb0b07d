"""Resolve the caller's user id from a Firebase ID token or the session."""

from __future__ import annotations

from firebase_admin import auth
from flask import current_app, request, session


def user_id_from_token(id_token: str | None) -> str | None:
    """Verify a Firebase ID token and return its uid, or None if invalid."""
    if not id_token:
        return None
    try:
        decoded_token = auth.verify_id_token(id_token)
    except Exception as e:
        current_app.logger.warning(f"Rejected ID token: {e}")
        return None
    return decoded_token.get("uid")


def resolve_caller_id() -> str | None:
    """Return the authenticated user id for the current request, if any."""
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return user_id_from_token(header[len("Bearer ") :].strip())
    return session.get("user_id")
