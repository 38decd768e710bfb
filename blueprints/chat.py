"""AI study mentor chat routes."""

from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, jsonify
from flask_login import login_required

from extensions import limiter
from helpers import json_body
from mentor import MentorError, ask

bp = Blueprint("chat", __name__, url_prefix="/api/chat")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@bp.route("/chat", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def chat():
    message = json_body().get("message")
    if not isinstance(message, str) or not message.strip():
        return jsonify({"error": "Message is required and must be a non-empty string"}), 400

    try:
        result = ask(message)
    except MentorError as e:
        return jsonify({"error": e.message}), e.status_code

    body = {"success": True, "message": result["message"], "timestamp": _timestamp()}
    if result["fallback"]:
        body["fallback"] = True
    return jsonify(body)


@bp.route("/health")
def health():
    return jsonify({
        "status": "healthy",
        "timestamp": _timestamp(),
        "service": "DeepSeek Chat API",
    })
