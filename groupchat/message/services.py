"""Service layer for message persistence."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, cast

from firebase_admin import firestore

from groupchat.core.constants import MESSAGES_COLLECTION

from .models import Message, Recipient, recipient_fields

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client


class MessageStore:
    """Append-only storage of messages, ordered by creation time.

    The store performs no authorization. Callers decide whether the sender
    may address the recipient before calling :meth:`append`.
    """

    @staticmethod
    def append(
        db: Client,
        sender_id: str,
        recipient: Recipient,
        text: str | None = None,
        image: str | None = None,
    ) -> Message:
        """Persist a new message and return it with its id and timestamp."""
        message_data = {
            "senderId": str(sender_id),
            **recipient_fields(recipient),
            "text": text,
            "image": image,
            "createdAt": datetime.datetime.now(datetime.timezone.utc),
        }
        message_ref = db.collection(MESSAGES_COLLECTION).document()
        message_ref.set(message_data)
        return cast(Message, {"id": message_ref.id, **message_data})

    @staticmethod
    def list_for_target(db: Client, recipient: Recipient) -> list[Message]:
        """Return the whole thread for a recipient, oldest first."""
        fields = recipient_fields(recipient)
        query = (
            db.collection(MESSAGES_COLLECTION)
            .where(
                filter=firestore.FieldFilter("receiverId", "==", fields["receiverId"])
            )
            .where(
                filter=firestore.FieldFilter(
                    "isGroupMessage", "==", fields["isGroupMessage"]
                )
            )
            .order_by("createdAt", direction=firestore.Query.ASCENDING)
        )
        messages = []
        for doc in query.stream():
            data = doc.to_dict()
            if data is not None:
                messages.append(cast(Message, {"id": doc.id, **data}))
        return messages
