"""Global constants for the groupchat application."""

# Firestore collections
GROUPS_COLLECTION = "groups"
MESSAGES_COLLECTION = "messages"
USERS_COLLECTION = "users"

# Realtime
NEW_GROUP_MESSAGE_EVENT = "newGroupMessage"
GROUP_CHANNEL_PREFIX = "group:"
FANOUT_EXTENSION_KEY = "fanout_bus"

# Fanout defaults
DEFAULT_FANOUT_QUEUE_SIZE = 100
DEFAULT_FANOUT_MAX_WORKERS = 8

# Storage folders
GROUP_IMAGE_FOLDER = "group_images"
MESSAGE_IMAGE_FOLDER = "message_images"


def group_channel(group_id):
    """Return the realtime channel name for a group."""
    return f"{GROUP_CHANNEL_PREFIX}{group_id}"
