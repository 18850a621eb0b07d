"""Data models for messages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from groupchat.core.types import FirestoreDocument


@dataclass(frozen=True)
class UserRecipient:
    """A direct message addressed to a single user."""

    id: str


@dataclass(frozen=True)
class GroupRecipient:
    """A message addressed to every member of a group."""

    id: str


Recipient = Union[UserRecipient, GroupRecipient]


def recipient_fields(recipient: Recipient) -> dict[str, Any]:
    """Return the persisted addressing fields for a recipient."""
    return {
        "receiverId": str(recipient.id),
        "isGroupMessage": isinstance(recipient, GroupRecipient),
    }


class Message(FirestoreDocument, total=False):
    """A message document in Firestore."""

    senderId: str
    receiverId: str
    isGroupMessage: bool
    text: str | None
    image: str | None
