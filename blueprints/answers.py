"""Quizzify answer submission and scoring."""

from __future__ import annotations

from flask import Blueprint, jsonify

from db_stores import AnswerDB, ParticipantDB, QuizDB
from helpers import json_body, missing_fields

bp = Blueprint("answers", __name__, url_prefix="/api/answers")


@bp.route("", methods=["POST"])
def submit_answer():
    data = json_body()
    # selected_option 0 is a valid choice
    if missing_fields(data, "participant_id", "quiz_id", "question_id", "selected_option"):
        return jsonify({"error": "Missing required fields"}), 400

    try:
        participant_id = int(data["participant_id"])
        selected_option = int(data["selected_option"])
    except (TypeError, ValueError):
        return jsonify({"error": "participant_id and selected_option must be integers"}), 400
    quiz_id = str(data["quiz_id"])
    question_id = str(data["question_id"])

    participant = ParticipantDB.get(participant_id)
    if not participant:
        return jsonify({"error": "Participant not found"}), 404

    quiz = QuizDB.get(quiz_id)
    if not quiz:
        return jsonify({"error": "Quiz not found"}), 404
    if quiz.room_id != participant.room_id:
        return jsonify({"error": "Quiz not found in participant's room"}), 404

    question = quiz.question(question_id)
    if not question:
        return jsonify({"error": "Question not found"}), 404

    if not quiz.approved:
        return jsonify({"error": "Quiz not approved"}), 403

    is_correct = selected_option == question.correctIndex
    answer = AnswerDB.record(participant_id, quiz_id, question_id, selected_option, is_correct)
    if answer is None:
        return jsonify({"error": "Question already answered"}), 409

    score = ParticipantDB.increment_score(participant_id) if is_correct else participant.score

    return jsonify({
        "success": True,
        "is_correct": is_correct,
        "correct_answer": question.correctIndex,
        "score": score,
    })
