"""Group message orchestration: authorize, persist, then fan out."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from flask import current_app

from groupchat.core.constants import MESSAGE_IMAGE_FOLDER, NEW_GROUP_MESSAGE_EVENT
from groupchat.errors import ValidationError
from groupchat.message import GroupRecipient, MessageStore
from groupchat.storage import upload_image
from groupchat.utils import serialize_document

from .directory import GroupDirectory
from .membership import require_member

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

    from groupchat.message import Message
    from groupchat.realtime.bus import FanoutBus


class GroupMessagingService:
    """Sends and reads group messages on behalf of members.

    The fanout bus is handed in at construction. A message is only published
    after it has been persisted, and the outcome of publishing never affects
    the result returned to the caller.
    """

    def __init__(
        self, bus: FanoutBus, uploader: Callable[[str, str], str] = upload_image
    ) -> None:
        self.bus = bus
        self.uploader = uploader

    def send_group_message(
        self,
        db: Client,
        group_id: str,
        sender_id: str,
        text: str | None = None,
        image: str | None = None,
    ) -> Message:
        """Persist a message from a current member and push it to subscribers."""
        group = GroupDirectory.get(db, group_id)
        require_member(group, sender_id)

        if text is not None and not isinstance(text, str):
            raise ValidationError("Message text must be a string")
        if not (text and text.strip()) and not image:
            raise ValidationError("Message text or image is required")

        image_url = None
        if image:
            folder = current_app.config.get("MESSAGE_IMAGE_FOLDER", MESSAGE_IMAGE_FOLDER)
            image_url = self.uploader(image, f"{folder}/{group_id}")

        message = MessageStore.append(
            db, sender_id, GroupRecipient(group_id), text=text, image=image_url
        )
        self._fan_out(group_id, message)
        return message

    def get_group_messages(
        self, db: Client, group_id: str, user_id: str
    ) -> list[Message]:
        """Return a group's full thread to a current member."""
        group = GroupDirectory.get(db, group_id)
        require_member(group, user_id)
        return MessageStore.list_for_target(db, GroupRecipient(group_id))

    def _fan_out(self, group_id: str, message: Message) -> None:
        try:
            delivered_to = self.bus.publish(
                group_id, serialize_document(message), event=NEW_GROUP_MESSAGE_EVENT
            )
            current_app.logger.debug(
                f"Message {message['id']} queued for {delivered_to} subscriber(s)"
            )
        except Exception as e:
            current_app.logger.error(
                f"Fanout of message {message['id']} to group {group_id} failed: {e}"
            )
