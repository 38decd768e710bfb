"""AI study schedule routes — generate, list, fetch, tick off, delete plans."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify
from flask_login import login_required

from db_stores import StudyPlanDB
from helpers import current_user_id, json_body
from schedule_generator import (
    MAX_PLAN_DAYS,
    days_until,
    generate_ai_schedule,
    generate_fallback_schedule,
    parse_deadline,
)

logger = logging.getLogger(__name__)

bp = Blueprint("schedule", __name__, url_prefix="/api/schedule")


def _subject_list(subjects) -> list[str]:
    if isinstance(subjects, list):
        return [str(s).strip() for s in subjects if str(s).strip()]
    return [s.strip() for s in str(subjects).split(",") if s.strip()]


@bp.route("/test")
def test():
    return jsonify({
        "message": "AI Schedule route is working",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


@bp.route("/generate-schedule", methods=["POST"])
@login_required
def generate_schedule():
    data = json_body()
    goal = data.get("goal")
    subjects = data.get("subjects")
    deadline = data.get("deadline")
    daily_study_time = data.get("dailyStudyTime")

    if not goal or not subjects or not deadline or not daily_study_time:
        return jsonify({
            "message": "Missing required fields",
            "received": {
                "goal": goal,
                "subjects": subjects,
                "deadline": deadline,
                "dailyStudyTime": daily_study_time,
            },
        }), 400

    subject_list = _subject_list(subjects)
    if not subject_list:
        return jsonify({"message": "At least one subject is required"}), 400
    try:
        minutes = int(daily_study_time)
        parse_deadline(deadline)
    except (TypeError, ValueError):
        return jsonify({"message": "dailyStudyTime must be a number and deadline an ISO date"}), 400
    if days_until(deadline) > MAX_PLAN_DAYS:
        return jsonify({"message": f"deadline must be within {MAX_PLAN_DAYS} days"}), 400

    generated_by = "ai"
    try:
        schedule = generate_ai_schedule(goal, subject_list, deadline, minutes)
    except Exception as e:
        logger.warning("AI schedule failed, using fallback: %s", e)
        schedule = generate_fallback_schedule(goal, subject_list, deadline, minutes)
        generated_by = "fallback"

    try:
        plan = StudyPlanDB(current_user_id()).create(
            goal=str(goal),
            subjects=subject_list,
            deadline=parse_deadline(deadline).isoformat(),
            daily_study_time=minutes,
            generated_by=generated_by,
            schedule=schedule,
        )
    except Exception as e:
        logger.error("Saving study plan failed: %s", e, exc_info=True)
        return jsonify({"message": "Schedule generation failed", "error": str(e)}), 500

    return jsonify({
        "success": True,
        "plan": plan.to_dict(),
        "message": (
            f"Schedule generated successfully with {plan.total_days} study sessions "
            f"across {plan.total_weeks} weeks"
        ),
    })


@bp.route("/plans")
@login_required
def list_plans():
    plans = StudyPlanDB(current_user_id()).list_plans()
    return jsonify([p.to_dict(include_schedule=False) for p in plans])


@bp.route("/plans/<int:plan_id>")
@login_required
def get_plan(plan_id):
    plan = StudyPlanDB(current_user_id()).get(plan_id)
    if not plan:
        return jsonify({"message": "Study plan not found"}), 404
    return jsonify(plan.to_dict())


@bp.route("/plans/<int:plan_id>/schedule/<int:item_id>", methods=["PATCH"])
@login_required
def update_item(plan_id, item_id):
    store = StudyPlanDB(current_user_id())
    if not store.get(plan_id):
        return jsonify({"message": "Study plan not found"}), 404

    completed = bool(json_body().get("completed"))
    item = store.set_item_completed(plan_id, item_id, completed)
    if not item:
        return jsonify({"message": "Schedule item not found"}), 404
    return jsonify({"success": True, "item": item.to_dict()})


@bp.route("/plans/<int:plan_id>", methods=["DELETE"])
@login_required
def delete_plan(plan_id):
    if not StudyPlanDB(current_user_id()).delete(plan_id):
        return jsonify({"message": "Study plan not found"}), 404
    return jsonify({"success": True})
