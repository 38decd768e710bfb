"""Quizzify quiz routes — AI generation, fetch, host approval."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from audit import log_event
from db_stores import QuizDB, RoomDB
from helpers import current_user_id, json_body, missing_fields
from models import DIFFICULTIES, QUESTION_COUNTS
from quiz_generator import generate_quiz

logger = logging.getLogger(__name__)

bp = Blueprint("quiz", __name__, url_prefix="/api/quiz")


@bp.route("/generate", methods=["POST"])
@login_required
def generate():
    data = json_body()
    if missing_fields(data, "room_id", "topic", "difficulty", "total_questions"):
        return jsonify({"error": "Missing required fields"}), 400

    room_id = str(data["room_id"])
    topic = str(data["topic"]).strip()
    difficulty = str(data["difficulty"])
    try:
        total_questions = int(data["total_questions"])
    except (TypeError, ValueError):
        total_questions = None

    if difficulty not in DIFFICULTIES:
        return jsonify({"error": f"difficulty must be one of {', '.join(DIFFICULTIES)}"}), 400
    if total_questions not in QUESTION_COUNTS:
        return jsonify({
            "error": f"total_questions must be one of {', '.join(map(str, QUESTION_COUNTS))}",
        }), 400

    if not RoomDB.get(room_id):
        return jsonify({"error": "Room not found"}), 404

    try:
        questions = generate_quiz(topic, difficulty, total_questions)
    except Exception as e:
        logger.error("Quiz generation failed for room %s: %s", room_id, e, exc_info=True)
        return jsonify({"error": "Failed to generate quiz"}), 500

    if not questions:
        logger.error("Quiz generation returned no usable questions for room %s", room_id)
        return jsonify({"error": "Failed to generate valid quiz data"}), 500

    quiz = QuizDB.create(room_id, topic, difficulty, total_questions, questions)
    return jsonify(quiz.to_dict())


@bp.route("/<room_id>")
def get_quiz(room_id):
    quiz = QuizDB.latest_for_room(room_id)
    if not quiz:
        return jsonify({"error": "Quiz not found"}), 404
    return jsonify(quiz.to_dict())


@bp.route("/<room_id>/approve", methods=["POST"])
@login_required
def approve(room_id):
    quiz = QuizDB.latest_for_room(room_id)
    if not quiz:
        return jsonify({"error": "Quiz not found"}), 404
    QuizDB.approve(quiz.quiz_id)
    log_event("quiz_approved", current_user_id(), f"room_id={room_id} quiz_id={quiz.quiz_id}")
    return jsonify({"success": True, "approved": True})
