"""Core routes — service index, health checks, database probe, admin audit log."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

import database
from audit import count_events, recent_events
from helpers import admin_required, paginate_args, paginated_response

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)

SERVICE_NAME = "studybuddy-backend"

_start_time = time.time()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_or_not(key: str) -> str:
    return "set" if current_app.config.get(key) else "not set"


@bp.route("/")
def index():
    return jsonify({"status": "ok", "service": SERVICE_NAME})


# ── Health checks ─────────────────────────────────────────

@bp.route("/api/health")
def health():
    connected = database.is_connected()
    return jsonify({
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": _now_iso(),
        "environment": current_app.config.get("ENV_NAME", "development"),
        "database": "connected" if connected else "disconnected",
        "uptime_seconds": int(time.time() - _start_time),
    })


@bp.route("/api/test-db")
def test_db():
    connected = database.is_connected()
    return jsonify({
        "database": "connected" if connected else "disconnected",
        "env": {
            "DATABASE": _set_or_not("DATABASE"),
            "JWT_SECRET": _set_or_not("JWT_SECRET"),
            "HF_TOKEN": _set_or_not("HF_TOKEN"),
            "FLASK_ENV": current_app.config.get("ENV_NAME", "development"),
        },
        "timestamp": _now_iso(),
    })


@bp.route("/live")
def live():
    return jsonify({"status": "alive"}), 200


# ── Admin ─────────────────────────────────────────────────

@bp.route("/api/admin/audit")
@admin_required
def admin_audit():
    page, limit = paginate_args(default_limit=50)
    user_id = request.args.get("user_id", type=int)
    items = recent_events(user_id, limit=limit, offset=(page - 1) * limit)
    return jsonify(paginated_response(items, count_events(user_id), page, limit))
