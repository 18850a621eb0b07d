"""Routes for the group blueprint."""

from firebase_admin import firestore
from flask import current_app, g, jsonify, request

from groupchat.auth.decorators import login_required
from groupchat.core.constants import FANOUT_EXTENSION_KEY
from groupchat.errors import ValidationError
from groupchat.storage import upload_image
from groupchat.utils import serialize_document

from . import bp
from .services import GroupDirectory, GroupMessagingService


def _fanout_bus():
    return current_app.extensions[FANOUT_EXTENSION_KEY]


def _json_body():
    """Return the JSON request body as a dictionary."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


@bp.route("/create", methods=["POST"])
@login_required
def create_group():
    """Create a new group with the caller as admin."""
    data = _json_body()
    group = GroupDirectory.create(
        firestore.client(),
        name=data.get("name"),
        description=data.get("description"),
        admin_id=g.user_id,
        member_ids=data.get("members"),
        image=data.get("groupImage"),
        uploader=upload_image,
    )
    return jsonify(serialize_document(group)), 201


@bp.route("/", methods=["GET"])
@login_required
def list_groups():
    """List the groups the caller belongs to."""
    groups = GroupDirectory.list_for_user(firestore.client(), g.user_id)
    return jsonify(serialize_document(groups)), 200


@bp.route("/<string:group_id>", methods=["GET"])
@login_required
def get_group(group_id):
    """Return a single group to one of its members."""
    group = GroupDirectory.get_populated(firestore.client(), group_id, g.user_id)
    return jsonify(serialize_document(group)), 200


@bp.route("/<string:group_id>", methods=["PUT"])
@login_required
def update_group(group_id):
    """Update a group's details."""
    data = _json_body()
    group = GroupDirectory.update(
        firestore.client(),
        group_id,
        g.user_id,
        name=data.get("name"),
        description=data.get("description"),
        image=data.get("groupImage"),
        uploader=upload_image,
    )
    return jsonify(serialize_document(group)), 200


@bp.route("/<string:group_id>", methods=["DELETE"])
@login_required
def delete_group(group_id):
    """Delete a group."""
    GroupDirectory.delete(firestore.client(), group_id, g.user_id)
    _fanout_bus().close_channel(group_id)
    return jsonify({"message": "Group deleted successfully"}), 200


@bp.route("/<string:group_id>/members", methods=["POST"])
@login_required
def add_group_members(group_id):
    """Add members to a group."""
    data = _json_body()
    group = GroupDirectory.add_members(
        firestore.client(), group_id, g.user_id, data.get("members")
    )
    return jsonify(serialize_document(group)), 200


@bp.route("/<string:group_id>/members/<string:member_id>", methods=["DELETE"])
@login_required
def remove_group_member(group_id, member_id):
    """Remove a member from a group."""
    GroupDirectory.remove_member(firestore.client(), group_id, g.user_id, member_id)
    _fanout_bus().evict_user(group_id, member_id)
    return jsonify({"message": "Member removed successfully"}), 200


@bp.route("/<string:group_id>/leave", methods=["POST"])
@login_required
def leave_group(group_id):
    """Leave a group."""
    GroupDirectory.leave(firestore.client(), group_id, g.user_id)
    _fanout_bus().evict_user(group_id, g.user_id)
    return jsonify({"message": "Left group successfully"}), 200


@bp.route("/<string:group_id>/messages", methods=["GET"])
@login_required
def get_group_messages(group_id):
    """Return the group's message thread."""
    service = GroupMessagingService(_fanout_bus(), uploader=upload_image)
    messages = service.get_group_messages(firestore.client(), group_id, g.user_id)
    return jsonify(serialize_document(messages)), 200


@bp.route("/<string:group_id>/messages", methods=["POST"])
@login_required
def send_group_message(group_id):
    """Send a message to the group."""
    data = _json_body()
    service = GroupMessagingService(_fanout_bus(), uploader=upload_image)
    message = service.send_group_message(
        firestore.client(),
        group_id,
        g.user_id,
        text=data.get("text"),
        image=data.get("image"),
    )
    return jsonify(serialize_document(message)), 201
