"""Quizzify room routes — create, list, fetch, rename/end, delete."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from audit import log_event
from db_stores import RoomDB
from helpers import current_user_id, json_body

logger = logging.getLogger(__name__)

bp = Blueprint("rooms", __name__, url_prefix="/api/rooms")


@bp.route("", methods=["POST"])
@login_required
def create_room():
    data = json_body()
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return jsonify({"error": "Room name is required"}), 400

    try:
        room = RoomDB.create(name.strip(), current_user_id())
    except Exception as e:
        logger.error("Create room failed: %s", e, exc_info=True)
        return jsonify({"error": "Failed to create room"}), 500

    log_event("room_created", current_user_id(), f"room_id={room.room_id}")
    return jsonify(room.to_dict())


@bp.route("", methods=["GET"])
@login_required
def list_rooms():
    return jsonify([r.to_dict() for r in RoomDB.list_for_owner(current_user_id())])


@bp.route("/<room_id>", methods=["GET"])
def get_room(room_id):
    room = RoomDB.get(room_id)
    if not room:
        return jsonify({"error": "Room not found"}), 404
    return jsonify(room.to_dict())


@bp.route("/<room_id>", methods=["PATCH"])
@login_required
def update_room(room_id):
    room = RoomDB.get_owned(room_id, current_user_id())
    if not room:
        return jsonify({"error": "Room not found"}), 404

    data = json_body()
    name = data.get("name")
    if isinstance(name, str) and name.strip():
        room.name = name.strip()
    # Only ending a room is supported; other status values are ignored
    if data.get("status") == "ended":
        room.status = "ended"

    return jsonify(RoomDB.save(room).to_dict())


@bp.route("/<room_id>/end", methods=["PATCH"])
@login_required
def end_room(room_id):
    room = RoomDB.get_owned(room_id, current_user_id())
    if not room:
        return jsonify({"error": "Room not found"}), 404
    room.status = "ended"
    return jsonify(RoomDB.save(room).to_dict())


@bp.route("/<room_id>", methods=["DELETE"])
@login_required
def delete_room(room_id):
    if not RoomDB.delete(room_id, current_user_id()):
        return jsonify({"error": "Room not found"}), 404
    log_event("room_deleted", current_user_id(), f"room_id={room_id}")
    return jsonify({"success": True})
