"""Tests for schedule_generator.py and the /api/schedule routes."""

import json
from datetime import date, timedelta
from unittest.mock import patch

import pytest

from ai_resilience import AIUnavailableError
from schedule_generator import (
    MAX_PLAN_DAYS,
    analyze_learning_requirements,
    convert_ai_items,
    days_until,
    generate_advanced_schedule,
    generate_ai_schedule,
    generate_fallback_schedule,
    parse_deadline,
    parse_schedule_items,
    repair_truncated_array,
)

# A Saturday, so the second day is a Sunday
SATURDAY = date(2026, 10, 17)


class TestDates:
    def test_parse_deadline_variants(self):
        assert parse_deadline("2026-11-01") == date(2026, 11, 1)
        assert parse_deadline("2026-11-01T12:30:00Z") == date(2026, 11, 1)
        assert parse_deadline(date(2026, 11, 1)) == date(2026, 11, 1)

    def test_parse_deadline_invalid(self):
        with pytest.raises(ValueError):
            parse_deadline("next tuesday")

    def test_days_until(self):
        assert days_until("2026-10-27", SATURDAY) == 10

    @pytest.mark.parametrize("deadline", ["2026-10-17", "2026-10-18", "2026-01-01"])
    def test_days_until_minimum_one(self, deadline):
        assert days_until(deadline, SATURDAY) == 1


class TestJsonRepair:
    def test_truncated_item_dropped(self):
        text = '[{"a": 1}, {"b": 2}, {"c":'
        assert json.loads(repair_truncated_array(text)) == [{"a": 1}, {"b": 2}]

    def test_trailing_comma(self):
        assert json.loads(repair_truncated_array('[{"a": 1},')) == [{"a": 1}]

    def test_complete_array_untouched(self):
        assert repair_truncated_array('[{"a": 1}]') == '[{"a": 1}]'

    def test_parse_truncated_reply(self):
        reply = 'Here: [{"week": 1, "subject": "Math"}, {"week": 1, "subj'
        assert parse_schedule_items(reply) == [{"week": 1, "subject": "Math"}]

    def test_parse_fenced_reply(self):
        reply = '```json\n[{"subject": "Art"}]\n```'
        assert parse_schedule_items(reply) == [{"subject": "Art"}]

    def test_parse_garbage(self):
        assert parse_schedule_items("no schedule today") == []


class TestConvertAiItems:
    def test_calendar_and_padding(self):
        parsed = [
            {"week": 1, "subject": "Math", "focus": "Fractions"},
            {"subject": "Physics", "activities": ["read", "solve"]},
            {},
        ]
        items = convert_ai_items(parsed, ["Math", "Physics"], "2026-10-22", 45, today=SATURDAY)

        assert len(items) == 5
        assert [it.day for it in items] == [
            "2026-10-17", "2026-10-18", "2026-10-19", "2026-10-20", "2026-10-21",
        ]
        assert items[0].focus == "Fractions"
        assert items[1].focus == "AI-generated: read, solve"
        assert items[2].focus == "AI-generated: Study session"
        assert items[2].subject == "Math"
        assert items[3].focus == "AI-optimized: Advanced Physics concepts with practical application"
        assert all(it.duration == 45 for it in items)
        # Sunday the 18th starts week 2
        assert [it.week for it in items[1:]] == [2, 2, 2, 2]

    def test_extra_items_truncated(self):
        parsed = [{"subject": "Math", "focus": f"Day {i}"} for i in range(10)]
        items = convert_ai_items(parsed, ["Math"], "2026-10-20", 30, today=SATURDAY)
        assert len(items) == 3

    def test_past_deadline_single_session(self):
        items = convert_ai_items([], ["Math"], "2020-01-01", 30, today=SATURDAY)
        assert len(items) == 1
        assert items[0].day == "2026-10-17"


class TestRuleBased:
    def test_fallback_rotation(self):
        items = generate_fallback_schedule("Pass exams", ["A", "B"], "2026-10-27", 60, today=SATURDAY)
        assert len(items) == 10
        assert [it.subject for it in items[:8]] == ["A", "B", "B", "B", "A", "A", "A", "B"]
        assert items[0].focus == "Master A Introduction"
        assert items[1].focus == "Practice B Advanced Topics"

    def test_weeks_advance_on_sunday(self):
        items = generate_fallback_schedule("Goal", ["A"], "2026-11-01", 30, today=SATURDAY)
        weeks = {it.day: it.week for it in items}
        assert weeks["2026-10-17"] == 1
        assert weeks["2026-10-18"] == 2
        assert weeks["2026-10-24"] == 2
        assert weeks["2026-10-25"] == 3

    def test_advanced_focus_prefix(self):
        items = generate_advanced_schedule("Master Python", ["Python"], "2026-10-20", 60, today=SATURDAY)
        assert items[0].focus.startswith("AI-optimized: Master Python Advanced Concepts")
        assert items[0].focus.endswith("with industry best practices")

    @pytest.mark.parametrize("goal,subjects,difficulty", [
        ("Become an expert", ["History"], "advanced"),
        ("Learn the basics", ["History"], "beginner"),
        ("Pass the exam", ["History"], "intermediate"),
        ("Learn the basics", ["Machine Learning"], "advanced"),
    ])
    def test_analysis_difficulty(self, goal, subjects, difficulty):
        assert analyze_learning_requirements(goal, subjects, 30, 60)["difficulty"] == difficulty

    def test_analysis_intensity(self):
        assert analyze_learning_requirements("Pass", ["History"], 5, 60)["focus"] == "essential"
        assert analyze_learning_requirements("Pass", ["History"], 200, 60)["approach"] == "comprehensive"


class TestGenerateAiSchedule:
    def test_uses_ai_reply(self):
        reply = json.dumps([{"week": 1, "subject": "Chem", "focus": "Moles"}])
        with patch("schedule_generator.configured_llm_call", return_value=reply) as mock_call:
            items = generate_ai_schedule("Pass chem", ["Chem"], "2026-10-19", 30, today=SATURDAY)
        assert [it.focus for it in items][0] == "Moles"
        assert len(items) == 2
        assert "Generate a JSON array of 2 study schedule items" in mock_call.call_args[0][0]

    def test_ai_prompt_capped_at_thirty_days(self):
        with patch("schedule_generator.configured_llm_call", return_value="[]") as mock_call:
            items = generate_ai_schedule("Goal", ["Chem"], "2027-01-01", 30, today=SATURDAY)
        assert "Generate a JSON array of 30 study schedule items" in mock_call.call_args[0][0]
        assert len(items) == days_until("2027-01-01", SATURDAY)

    def test_provider_failure_uses_advanced_plan(self):
        with patch("schedule_generator.configured_llm_call", side_effect=AIUnavailableError("no key")):
            items = generate_ai_schedule("Goal", ["Chem"], "2026-10-20", 30, today=SATURDAY)
        assert len(items) == 3
        assert items[0].focus.startswith("AI-")


def _deadline(days):
    return (date.today() + timedelta(days=days)).isoformat()


def _create_plan(auth_client, **overrides):
    payload = {
        "goal": "Pass finals",
        "subjects": ["Math", "Physics"],
        "deadline": _deadline(10),
        "dailyStudyTime": 60,
    }
    payload.update(overrides)
    return auth_client.post("/api/schedule/generate-schedule", json=payload)


class TestScheduleRoutes:
    def test_route_check(self, client):
        resp = client.get("/api/schedule/test")
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "AI Schedule route is working"

    def test_generate_without_key(self, auth_client):
        resp = _create_plan(auth_client)
        assert resp.status_code == 200
        data = resp.get_json()
        plan = data["plan"]
        assert data["success"] is True
        assert plan["totalDays"] == 10
        assert len(plan["schedule"]) == 10
        assert plan["subjects"] == ["Math", "Physics"]
        assert data["message"] == (
            f"Schedule generated successfully with 10 study sessions across {plan['totalWeeks']} weeks"
        )
        assert all(item["id"] for item in plan["schedule"])

    def test_generate_with_comma_subjects(self, auth_client):
        resp = _create_plan(auth_client, subjects="Math, Art ,")
        assert resp.get_json()["plan"]["subjects"] == ["Math", "Art"]

    def test_fallback_when_ai_path_raises(self, auth_client):
        with patch("blueprints.schedule.generate_ai_schedule", side_effect=RuntimeError("boom")):
            resp = _create_plan(auth_client)
        assert resp.status_code == 200
        plan = resp.get_json()["plan"]
        assert plan["generatedBy"] == "fallback"
        assert plan["schedule"][0]["focus"] == "Master Math Introduction"

    def test_missing_fields(self, auth_client):
        resp = auth_client.post("/api/schedule/generate-schedule", json={"goal": "x"})
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["message"] == "Missing required fields"
        assert data["received"]["goal"] == "x"
        assert data["received"]["deadline"] is None

    @pytest.mark.parametrize("overrides", [
        {"deadline": "someday"},
        {"dailyStudyTime": "an hour"},
        {"subjects": " , "},
    ])
    def test_invalid_input(self, auth_client, overrides):
        assert _create_plan(auth_client, **overrides).status_code == 400

    def test_far_future_deadline_rejected(self, auth_client):
        resp = _create_plan(auth_client, deadline="9999-12-31")
        assert resp.status_code == 400
        assert resp.get_json()["message"] == f"deadline must be within {MAX_PLAN_DAYS} days"

    def test_deadline_at_limit_accepted(self, auth_client):
        resp = _create_plan(auth_client, deadline=_deadline(MAX_PLAN_DAYS))
        assert resp.status_code == 200
        assert resp.get_json()["plan"]["totalDays"] == MAX_PLAN_DAYS

    def test_requires_auth(self, client):
        assert _create_plan(client).status_code == 401


class TestPlanRoutes:
    def test_list_and_get(self, auth_client):
        plan_id = _create_plan(auth_client).get_json()["plan"]["id"]

        listed = auth_client.get("/api/schedule/plans").get_json()
        assert [p["id"] for p in listed] == [plan_id]
        assert "schedule" not in listed[0]

        resp = auth_client.get(f"/api/schedule/plans/{plan_id}")
        assert resp.status_code == 200
        days = [it["day"] for it in resp.get_json()["schedule"]]
        assert days == sorted(days)

    def test_plans_are_private(self, auth_client, admin_client):
        plan_id = _create_plan(auth_client).get_json()["plan"]["id"]
        assert admin_client.get("/api/schedule/plans").get_json() == []
        assert admin_client.get(f"/api/schedule/plans/{plan_id}").status_code == 404
        assert admin_client.delete(f"/api/schedule/plans/{plan_id}").status_code == 404

    def test_toggle_item(self, auth_client):
        plan = _create_plan(auth_client).get_json()["plan"]
        item_id = plan["schedule"][0]["id"]

        resp = auth_client.patch(
            f"/api/schedule/plans/{plan['id']}/schedule/{item_id}", json={"completed": True},
        )
        assert resp.status_code == 200
        assert resp.get_json()["item"]["completed"] is True

        fetched = auth_client.get(f"/api/schedule/plans/{plan['id']}").get_json()
        assert next(it for it in fetched["schedule"] if it["id"] == item_id)["completed"] is True

    def test_toggle_unknown_item(self, auth_client):
        plan_id = _create_plan(auth_client).get_json()["plan"]["id"]
        resp = auth_client.patch(f"/api/schedule/plans/{plan_id}/schedule/99999", json={"completed": True})
        assert resp.status_code == 404

    def test_delete(self, auth_client):
        plan_id = _create_plan(auth_client).get_json()["plan"]["id"]
        resp = auth_client.delete(f"/api/schedule/plans/{plan_id}")
        assert resp.get_json() == {"success": True}
        assert auth_client.get(f"/api/schedule/plans/{plan_id}").status_code == 404

    def test_get_unknown(self, auth_client):
        resp = auth_client.get("/api/schedule/plans/12345")
        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Study plan not found"
