"""Message persistence."""

from .models import GroupRecipient, Message, Recipient, UserRecipient
from .services import MessageStore

__all__ = ["GroupRecipient", "Message", "MessageStore", "Recipient", "UserRecipient"]
