"""Socket.IO handlers: group channel subscriptions.

Handlers are registered on the shared ``socketio`` extension when this
module is first imported, which must happen before ``socketio.init_app``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from firebase_admin import firestore
from flask import current_app, request, session

from groupchat.auth.identity import user_id_from_token
from groupchat.core.constants import FANOUT_EXTENSION_KEY, group_channel
from groupchat.errors import AppError
from groupchat.extensions import socketio
from groupchat.group.services import GroupDirectory, is_member

# sid -> user id of every authenticated connection
CONNECTED_USERS: dict[str, str] = {}
CONNECTED_USERS_LOCK = threading.Lock()


@dataclass(frozen=True)
class SocketIOSubscriber:
    """Fanout handle for one Socket.IO connection."""

    sid: str
    user_id: str
    namespace: str = field(default="/", compare=False)

    def deliver(self, event: str, payload: Any) -> None:
        """Emit the event to this connection only."""
        socketio.emit(event, payload, to=self.sid, namespace=self.namespace)


def _fanout_bus():
    return current_app.extensions[FANOUT_EXTENSION_KEY]


def _current_subscriber():
    with CONNECTED_USERS_LOCK:
        user_id = CONNECTED_USERS.get(request.sid)
    if user_id is None:
        return None
    return SocketIOSubscriber(request.sid, user_id)


def _group_id(data):
    group_id = data.get("groupId") if isinstance(data, dict) else None
    if not isinstance(group_id, str) or not group_id:
        return None
    return group_id


@socketio.on("connect")
def handle_connect(auth=None):
    """Accept the connection only when the caller can be identified."""
    token = auth.get("token") if isinstance(auth, dict) else None
    user_id = user_id_from_token(token) if token else session.get("user_id")
    if not user_id:
        current_app.logger.info(f"Refusing unauthenticated socket {request.sid}")
        return False
    with CONNECTED_USERS_LOCK:
        CONNECTED_USERS[request.sid] = user_id
    return True


@socketio.on("joinGroup")
def handle_join_group(data):
    """Subscribe the connection to a group's channel if the user is a member."""
    subscriber = _current_subscriber()
    if subscriber is None:
        return {"success": False, "error": "unauthorized"}
    group_id = _group_id(data)
    if group_id is None:
        return {"success": False, "error": "bad_group_id"}

    try:
        group = GroupDirectory.get(firestore.client(), group_id)
    except AppError as e:
        return {"success": False, "error": e.message}
    if not is_member(group, subscriber.user_id):
        return {"success": False, "error": "You are not a member of this group"}

    _fanout_bus().subscribe(group_id, subscriber)
    return {"success": True, "channel": group_channel(group_id)}


@socketio.on("leaveGroup")
def handle_leave_group(data):
    """Unsubscribe the connection from a group's channel."""
    subscriber = _current_subscriber()
    group_id = _group_id(data)
    if subscriber is None or group_id is None:
        return {"success": False}
    _fanout_bus().unsubscribe(group_id, subscriber)
    return {"success": True, "channel": group_channel(group_id)}


@socketio.on("disconnect")
def handle_disconnect(*args):
    """Forget the connection and drop all of its group subscriptions."""
    subscriber = _current_subscriber()
    with CONNECTED_USERS_LOCK:
        CONNECTED_USERS.pop(request.sid, None)
    if subscriber is not None:
        _fanout_bus().unsubscribe_all(subscriber)
