"""Post-quiz AI feedback route."""

from __future__ import annotations

from flask import Blueprint, jsonify

from feedback import generate_feedback
from helpers import json_body

bp = Blueprint("feedback", __name__, url_prefix="/api/feedback")


def _as_list(value) -> list | None:
    if isinstance(value, list):
        return value
    if isinstance(value, str) and value.strip():
        return [s.strip() for s in value.split(",") if s.strip()]
    return None


@bp.route("", methods=["POST"])
def create_feedback():
    data = json_body()
    topic = data.get("topic")
    if not topic or data.get("correct") is None or data.get("wrong") is None:
        return jsonify({"error": "Missing required fields"}), 400

    return jsonify(generate_feedback(
        topic=str(topic),
        correct=data["correct"],
        wrong=data["wrong"],
        total_questions=data.get("totalQuestions"),
        strengths=_as_list(data.get("strengths")),
        weaknesses=_as_list(data.get("weaknesses")),
        participant_count=data.get("participantCount"),
        average_score=data.get("averageScore"),
    ))
