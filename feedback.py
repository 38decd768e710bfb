"""
Post-quiz performance feedback.

Builds a prompt from a participant's result, asks the LLM for a comparison
against the room plus five feedback points, and parses the COMPARISON /
FEEDBACK blocks out of the reply. Provider failures produce canned feedback
banded by percentage.
"""

from __future__ import annotations

import logging
import re

from ai_resilience import configured_llm_call

logger = logging.getLogger(__name__)

FEEDBACK_SYSTEM_PROMPT = (
    "You are StudyBuddy AI, an expert tutor providing personalized feedback to help "
    "students improve their learning. Be encouraging, constructive, and specific. "
    "Always provide exactly 5 feedback points and a participant comparison."
)

DEFAULT_COMPARISON = "Your performance shows good understanding of the topic."
MAX_POINTS = 5
MIN_POINT_LENGTH = 10
# Players finishing a quiz with the same result get the same feedback
FEEDBACK_CACHE_TTL = 3600  # seconds

_COMPARISON_RE = re.compile(r"COMPARISON:\s*(.+?)(?=FEEDBACK:|$)", re.DOTALL)
_FEEDBACK_RE = re.compile(r"FEEDBACK:\s*([\s\S]+)")
_NUMBER_PREFIX_RE = re.compile(r"^\d+\.\s*")


def percentage_of(correct, total) -> int:
    """Rounded percentage; 0 when there is no usable total."""
    try:
        correct = float(correct)
        total = float(total)
    except (TypeError, ValueError):
        return 0
    if total <= 0:
        return 0
    # Round half up to match the client's Math.round
    return int(correct / total * 100 + 0.5)


def build_prompt(
    topic: str,
    correct,
    wrong,
    total_questions,
    percentage: int,
    strengths: list | None = None,
    weaknesses: list | None = None,
    participant_count=None,
    average_score=None,
) -> str:
    return f"""Generate comprehensive study feedback for a quiz on "{topic}".

PERFORMANCE ANALYSIS:
- Score: {correct}/{total_questions} ({percentage}%)
- Wrong answers: {wrong}
- Total participants: {participant_count or 'Unknown'}
- Average score: {average_score or 'Not available'}

STRENGTHS: {', '.join(map(str, strengths)) if strengths else 'None specified'}
WEAKNESSES: {', '.join(map(str, weaknesses)) if weaknesses else 'None specified'}

Please provide:
1. A brief comparison of this performance against other participants
2. Exactly 5 specific, actionable feedback points

Format the response as:
COMPARISON: [Brief analysis of performance vs other participants]
FEEDBACK:
1. [First specific point]
2. [Second specific point]
3. [Third specific point]
4. [Fourth specific point]
5. [Fifth specific point]

Be encouraging but constructive, and make each point specific and actionable."""


def _points(text: str) -> list[str]:
    points = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        point = _NUMBER_PREFIX_RE.sub("", line).strip()
        if len(point) > MIN_POINT_LENGTH:
            points.append(point)
    return points[:MAX_POINTS]


def parse_feedback(content: str) -> tuple[str, list[str]]:
    """Split an LLM reply into (comparison, feedback points)."""
    comparison = DEFAULT_COMPARISON
    points: list[str] = []

    comparison_match = _COMPARISON_RE.search(content)
    if comparison_match:
        comparison = comparison_match.group(1).strip()

    feedback_match = _FEEDBACK_RE.search(content)
    if feedback_match:
        points = _points(feedback_match.group(1))

    if not points:
        points = _points(content)

    return comparison, points


def fallback_feedback(correct, percentage: int) -> tuple[str, list[str]]:
    if percentage >= 80:
        comparison = ("Excellent performance! You scored above average and demonstrated "
                      "strong understanding of the topic.")
    elif percentage >= 60:
        comparison = ("Good performance! You have a solid foundation but there's room "
                      "for improvement in some areas.")
    else:
        comparison = ("Keep working hard! Focus on the fundamentals and practice regularly "
                      "to improve your understanding.")
    points = [
        f"Great job on getting {correct} questions correct!",
        "Focus on reviewing the topics you missed to improve your understanding.",
        "Keep practicing regularly to strengthen your knowledge.",
        "Consider breaking down complex topics into smaller parts.",
        "Don't hesitate to ask for help when you need it.",
    ]
    return comparison, points


def generate_feedback(
    topic: str,
    correct,
    wrong,
    total_questions=None,
    strengths: list | None = None,
    weaknesses: list | None = None,
    participant_count=None,
    average_score=None,
) -> dict:
    """Feedback payload: comparison, up to five points, and the score summary."""
    percentage = percentage_of(correct, total_questions)
    prompt = build_prompt(
        topic, correct, wrong, total_questions, percentage,
        strengths, weaknesses, participant_count, average_score,
    )
    try:
        content = configured_llm_call(
            prompt,
            system=FEEDBACK_SYSTEM_PROMPT,
            cache_ttl=FEEDBACK_CACHE_TTL,
            temperature=0.7,
            max_tokens=800,
        )
        comparison, points = parse_feedback(content)
    except Exception as exc:
        logger.warning("AI feedback failed, using fallback: %s", exc)
        comparison, points = fallback_feedback(correct, percentage)

    return {
        "comparison": comparison,
        "feedback": points,
        "score": {
            "correct": correct,
            "wrong": wrong,
            "percentage": percentage,
            "total": total_questions,
        },
    }
