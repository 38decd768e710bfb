"""Quizzify participant routes — join a room, list a room's players."""

from __future__ import annotations

from flask import Blueprint, jsonify

from db_stores import ParticipantDB, RoomDB
from helpers import json_body, missing_fields

bp = Blueprint("participants", __name__, url_prefix="/api/participants")


@bp.route("", methods=["POST"])
def join_room():
    data = json_body()
    if missing_fields(data, "room_id", "nickname", "email"):
        return jsonify({"error": "Missing required fields"}), 400

    room_id = str(data["room_id"])
    nickname = str(data["nickname"]).strip()
    email = str(data["email"]).strip()

    room = RoomDB.get(room_id)
    if not room or not room.is_active:
        return jsonify({"error": "Room not found or not active"}), 404

    if ParticipantDB.find(room_id, email):
        return jsonify({"error": "You have already joined this room"}), 409

    participant = ParticipantDB.join(room_id, nickname, email)
    if participant is None:
        # Lost a race with a concurrent join for the same email
        return jsonify({"error": "You have already joined this room"}), 409

    return jsonify(participant.to_dict())


@bp.route("/room/<room_id>")
def room_participants(room_id):
    return jsonify([p.to_dict() for p in ParticipantDB.list_for_room(room_id)])
