"""Live leaderboard for a Quizzify room."""

from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, jsonify

from db_stores import ParticipantDB

bp = Blueprint("leaderboard", __name__, url_prefix="/api/leaderboard")


@bp.route("/<room_id>")
def room_leaderboard(room_id):
    return jsonify([asdict(entry) for entry in ParticipantDB.leaderboard(room_id)])
