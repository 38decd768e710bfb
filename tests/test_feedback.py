"""Tests for feedback.py and the /api/feedback route."""

from unittest.mock import patch

import pytest

from ai_resilience import AIUnavailableError
from feedback import (
    DEFAULT_COMPARISON,
    build_prompt,
    fallback_feedback,
    generate_feedback,
    parse_feedback,
    percentage_of,
)

AI_REPLY = """COMPARISON: You scored well above the room average of 55%.
FEEDBACK:
1. Review the Krebs cycle intermediates once more.
2. Practice labelling diagrams of the mitochondrion.
3. Short
4. Summarise each chapter in your own words after reading.
5. Test yourself with flashcards on enzyme names.
6. Teach a classmate the electron transport chain.
"""


class TestPercentage:
    @pytest.mark.parametrize("correct,total,expected", [
        (8, 10, 80),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),  # 12.5 rounds up
        (0, 5, 0),
        (3, 0, 0),
        (3, None, 0),
        ("4", "5", 80),
    ])
    def test_percentage_of(self, correct, total, expected):
        assert percentage_of(correct, total) == expected


class TestParseFeedback:
    def test_comparison_and_points(self):
        comparison, points = parse_feedback(AI_REPLY)
        assert comparison == "You scored well above the room average of 55%."
        assert len(points) == 5
        assert points[0] == "Review the Krebs cycle intermediates once more."
        assert "Short" not in points

    def test_without_markers_uses_whole_reply(self):
        comparison, points = parse_feedback("Keep revising the glossary every night.\nok")
        assert comparison == DEFAULT_COMPARISON
        assert points == ["Keep revising the glossary every night."]

    def test_empty_reply(self):
        assert parse_feedback("") == (DEFAULT_COMPARISON, [])


class TestFallback:
    @pytest.mark.parametrize("percentage,prefix", [
        (100, "Excellent performance!"),
        (80, "Excellent performance!"),
        (79, "Good performance!"),
        (60, "Good performance!"),
        (59, "Keep working hard!"),
        (0, "Keep working hard!"),
    ])
    def test_bands(self, percentage, prefix):
        comparison, points = fallback_feedback(4, percentage)
        assert comparison.startswith(prefix)
        assert len(points) == 5
        assert points[0] == "Great job on getting 4 questions correct!"


class TestGenerateFeedback:
    def test_ai_feedback(self):
        with patch("feedback.configured_llm_call", return_value=AI_REPLY) as mock_call:
            result = generate_feedback("Cell biology", 8, 2, 10, strengths=["diagrams"])

        assert result["comparison"].startswith("You scored well")
        assert len(result["feedback"]) == 5
        assert result["score"] == {"correct": 8, "wrong": 2, "percentage": 80, "total": 10}
        prompt = mock_call.call_args[0][0]
        assert "Score: 8/10 (80%)" in prompt
        assert "STRENGTHS: diagrams" in prompt

    def test_identical_results_reuse_cached_reply(self):
        with patch("ai_resilience._call_with_retry", return_value=AI_REPLY) as mock_retry:
            first = generate_feedback("Cell biology", 8, 2, 10)
            second = generate_feedback("Cell biology", 8, 2, 10)
            generate_feedback("Cell biology", 5, 5, 10)
        assert first == second
        assert mock_retry.call_count == 2

    def test_provider_failure_falls_back(self):
        with patch("feedback.configured_llm_call", side_effect=AIUnavailableError("no key")):
            result = generate_feedback("Cell biology", 3, 7, 10)
        assert result["comparison"].startswith("Keep working hard!")
        assert result["score"]["percentage"] == 30

    def test_build_prompt_defaults(self):
        prompt = build_prompt("Topic", 1, 1, 2, 50)
        assert "Total participants: Unknown" in prompt
        assert "Average score: Not available" in prompt
        assert "WEAKNESSES: None specified" in prompt


class TestFeedbackRoute:
    def test_fallback_without_key(self, client):
        resp = client.post("/api/feedback", json={
            "topic": "Algebra", "correct": 9, "wrong": 1, "totalQuestions": 10,
        })
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["comparison"].startswith("Excellent performance!")
        assert data["score"] == {"correct": 9, "wrong": 1, "percentage": 90, "total": 10}
        assert len(data["feedback"]) == 5

    def test_zero_correct_is_present(self, client):
        resp = client.post("/api/feedback", json={"topic": "Algebra", "correct": 0, "wrong": 5})
        assert resp.status_code == 200
        assert resp.get_json()["score"]["percentage"] == 0

    def test_comma_separated_strengths(self, client):
        with patch("feedback.configured_llm_call", return_value=AI_REPLY) as mock_call:
            client.post("/api/feedback", json={
                "topic": "Algebra", "correct": 3, "wrong": 2, "totalQuestions": 5,
                "strengths": "fractions, graphs",
            })
        assert "STRENGTHS: fractions, graphs" in mock_call.call_args[0][0]

    @pytest.mark.parametrize("payload", [
        {"correct": 1, "wrong": 1},
        {"topic": "Algebra", "wrong": 1},
        {"topic": "Algebra", "correct": 1},
    ])
    def test_missing_fields(self, client, payload):
        resp = client.post("/api/feedback", json=payload)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Missing required fields"
