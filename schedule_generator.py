"""
Study Schedule Generator

Turns a goal, a list of subjects, a deadline and a daily time budget into a
day-by-day list of ScheduleItems. The LLM writes the plan when it can; the
rule-based generators below take over when it cannot.

Day/week layout shared by every generator: items start today, one per
calendar day, and the week counter advances whenever the following day is
a Sunday.
"""

from __future__ import annotations

import json
import logging
from datetime import date, timedelta

from ai_resilience import configured_llm_call
from models import ScheduleItem
from quiz_generator import extract_json_array

logger = logging.getLogger(__name__)

MAX_AI_DAYS = 30
MAX_PLAN_DAYS = 365
SUNDAY = 6

SCHEDULE_SYSTEM_PROMPT = """You are StudyBuddy AI, a planner that writes personalised study schedules.

Each schedule is a day-by-day JSON array. Every item has a week number, a
calendar day, a subject, a focus for the session, a duration in minutes, a
list of concrete activities and a learning technique. Schedules progress in
difficulty and include review and assessment sessions.

Rules:
- Output a single valid JSON array and nothing else.
- No markdown, intros, or explanations."""

SCHEDULE_USER_PROMPT = """Generate a JSON array of {num_days} study schedule items for:
Goal: {goal}
Subjects: {subjects}
Deadline: {deadline}
Daily Study Time: {minutes} minutes

Format: [{{"week":1,"day":"YYYY-MM-DD","subject":"string","focus":"string","duration":{minutes},"activities":["task1","task2"],"technique":"string"}}]
Output ONLY valid JSON array, no markdown, no explanations."""


def parse_deadline(deadline: str | date) -> date:
    """Accept a date or an ISO date/datetime string. Raises ValueError."""
    if isinstance(deadline, date):
        return deadline
    return date.fromisoformat(str(deadline).strip()[:10])


def days_until(deadline: str | date, today: date | None = None) -> int:
    """Whole days from today to the deadline, never less than one."""
    today = today or date.today()
    return max(1, (parse_deadline(deadline) - today).days)


class _Calendar:
    """Walks consecutive days from a start date, tracking the week number."""

    def __init__(self, start: date):
        self.current = start
        self.week = 1

    def advance(self) -> None:
        self.current += timedelta(days=1)
        if self.current.weekday() == SUNDAY:
            self.week += 1


# ── AI path ──────────────────────────────────────────────────────────


def repair_truncated_array(text: str) -> str:
    """Close a JSON array that was cut off mid-item.

    Everything after the last complete ``}`` is dropped and the array is
    closed. Text with no complete object just gets a closing bracket.
    """
    s = text.strip()
    if s.endswith("]"):
        try:
            json.loads(s)
            return s
        except ValueError:
            pass
    last = s.rfind("}")
    if last > 0:
        return s[: last + 1].rstrip().rstrip(",") + "]"
    return s + "]"


def parse_schedule_items(content: str) -> list:
    """Parse the LLM reply into a list, repairing truncation. [] on failure."""
    candidate = extract_json_array(content)
    attempts = []
    if candidate is not None:
        attempts.append(candidate)
    start = content.find("[")
    if start >= 0:
        attempts.append(repair_truncated_array(content[start:]))
    else:
        attempts.append(content)

    for attempt in attempts:
        try:
            parsed = json.loads(attempt)
        except ValueError:
            continue
        if isinstance(parsed, list):
            return parsed
    logger.warning("Schedule JSON parsing failed: %s", content[:200])
    return []


def _ai_focus(item: dict) -> str:
    if item.get("focus"):
        return str(item["focus"])
    activities = item.get("activities")
    if isinstance(activities, list) and activities:
        return f"AI-generated: {', '.join(str(a) for a in activities)}"
    return "AI-generated: Study session"


def convert_ai_items(
    parsed: list,
    subjects: list[str],
    deadline: str | date,
    daily_study_time: int,
    today: date | None = None,
) -> list[ScheduleItem]:
    """Lay parsed AI items onto the calendar and pad up to the deadline."""
    today = today or date.today()
    total_days = days_until(deadline, today)
    cal = _Calendar(today)
    schedule: list[ScheduleItem] = []

    for i, item in enumerate(parsed[:total_days]):
        if not isinstance(item, dict):
            item = {}
        week = item.get("week")
        schedule.append(ScheduleItem(
            week=week if isinstance(week, int) and not isinstance(week, bool) and week > 0 else cal.week,
            day=cal.current.isoformat(),
            subject=str(item.get("subject") or subjects[i % len(subjects)]),
            focus=_ai_focus(item),
            duration=int(daily_study_time),
        ))
        cal.advance()

    while len(schedule) < total_days:
        subject = subjects[len(schedule) % len(subjects)]
        schedule.append(ScheduleItem(
            week=cal.week,
            day=cal.current.isoformat(),
            subject=subject,
            focus=f"AI-optimized: Advanced {subject} concepts with practical application",
            duration=int(daily_study_time),
        ))
        cal.advance()

    return schedule


def generate_ai_schedule(
    goal: str,
    subjects: list[str],
    deadline: str | date,
    daily_study_time: int,
    today: date | None = None,
) -> list[ScheduleItem]:
    """LLM-written schedule; provider failures fall back to generate_advanced_schedule()."""
    today = today or date.today()
    num_days = min(days_until(deadline, today), MAX_AI_DAYS)
    prompt = SCHEDULE_USER_PROMPT.format(
        num_days=num_days,
        goal=goal,
        subjects=", ".join(subjects),
        deadline=deadline,
        minutes=daily_study_time,
    )
    try:
        content = configured_llm_call(
            prompt,
            system=SCHEDULE_SYSTEM_PROMPT,
            temperature=0.7,
            max_tokens=4096,
        )
    except Exception as exc:
        logger.warning("AI schedule generation failed, using rule-based plan: %s", exc)
        return generate_advanced_schedule(goal, subjects, deadline, daily_study_time, today)

    parsed = parse_schedule_items(content)
    logger.info("AI schedule returned %d items for %d days", len(parsed), num_days)
    return convert_ai_items(parsed, subjects, deadline, daily_study_time, today)


# ── Rule-based generators ────────────────────────────────────────────

COMPLEX_SUBJECTS = ("machine learning", "ai", "algorithms", "data structures")

PHASES_BY_DIFFICULTY: dict[str, list[dict]] = {
    "beginner": [
        {"name": "Foundation", "focus": "Fundamentals", "approach": "Conceptual Understanding"},
        {"name": "Practice", "focus": "Hands-on Learning", "approach": "Practical Application"},
        {"name": "Application", "focus": "Real Projects", "approach": "Portfolio Building"},
    ],
    "intermediate": [
        {"name": "Foundation", "focus": "Core Concepts", "approach": "Solid Understanding"},
        {"name": "Development", "focus": "Practical Skills", "approach": "Real-world Application"},
        {"name": "Mastery", "focus": "Advanced Techniques", "approach": "Professional Excellence"},
    ],
    "advanced": [
        {"name": "Deep Dive", "focus": "Advanced Concepts", "approach": "Expert-level Understanding"},
        {"name": "Mastery", "focus": "Complex Applications", "approach": "Professional Implementation"},
        {"name": "Innovation", "focus": "Creative Solutions", "approach": "Industry Leadership"},
    ],
}

FOCUS_MODIFIERS = [
    "with industry best practices",
    "through real-world projects",
    "using modern techniques",
    "with expert guidance",
    "through hands-on practice",
    "with comprehensive examples",
    "using advanced methodologies",
    "through practical applications",
]


def analyze_learning_requirements(
    goal: str,
    subjects: list[str],
    total_days: int,
    daily_study_time: int,
) -> dict:
    """Classify the plan by difficulty, focus, approach and intensity."""
    analysis = {
        "difficulty": "intermediate",
        "focus": "practical",
        "approach": "project-based",
        "intensity": "moderate",
    }

    goal_lower = goal.lower()
    if "master" in goal_lower or "expert" in goal_lower:
        analysis["difficulty"] = "advanced"
        analysis["intensity"] = "high"
    elif "learn" in goal_lower or "basics" in goal_lower:
        analysis["difficulty"] = "beginner"
        analysis["intensity"] = "moderate"

    if any(c in s.lower() for s in subjects for c in COMPLEX_SUBJECTS):
        analysis["difficulty"] = "advanced"
        analysis["approach"] = "theory-practice"

    total_hours = total_days * daily_study_time / 60
    if total_hours < 20:
        analysis["intensity"] = "high"
        analysis["focus"] = "essential"
    elif total_hours > 100:
        analysis["intensity"] = "moderate"
        analysis["approach"] = "comprehensive"

    return analysis


def _advanced_focus(subject: str, phase: dict, day: int, analysis: dict) -> str:
    templates = [
        f"AI-optimized: Master {subject} {phase['focus']} through {phase['approach']}",
        f"AI-structured: Deep dive into {subject} {phase['focus']} with {analysis['approach']} approach",
        f"AI-guided: Practice {subject} {phase['focus']} using {phase['approach']} methodology",
        f"AI-recommended: Apply {subject} {phase['focus']} in {analysis['focus']} context",
        f"AI-designed: Build {subject} expertise through {phase['approach']} learning",
    ]
    return f"{templates[day % len(templates)]} {FOCUS_MODIFIERS[day % len(FOCUS_MODIFIERS)]}"


def _rotating_schedule(subjects, total_days, daily_study_time, today, phases, focus_for):
    """Shared loop: subject rotates after every third day, phase after every seventh."""
    cal = _Calendar(today)
    schedule = []
    subject_idx = 0
    phase_idx = 0
    for day in range(total_days):
        subject = subjects[subject_idx % len(subjects)]
        phase = phases[phase_idx % len(phases)]
        schedule.append(ScheduleItem(
            week=cal.week,
            day=cal.current.isoformat(),
            subject=subject,
            focus=focus_for(subject, phase, day),
            duration=int(daily_study_time),
        ))
        cal.advance()
        if day % 3 == 0:
            subject_idx += 1
        if day % 7 == 0:
            phase_idx += 1
    return schedule


def generate_advanced_schedule(
    goal: str,
    subjects: list[str],
    deadline: str | date,
    daily_study_time: int,
    today: date | None = None,
) -> list[ScheduleItem]:
    """Rule-based plan whose phases follow analyze_learning_requirements()."""
    today = today or date.today()
    total_days = days_until(deadline, today)
    analysis = analyze_learning_requirements(goal, subjects, total_days, int(daily_study_time))
    phases = PHASES_BY_DIFFICULTY[analysis["difficulty"]]
    logger.info("Schedule analysis: %s", analysis)
    return _rotating_schedule(
        subjects, total_days, daily_study_time, today, phases,
        lambda subject, phase, day: _advanced_focus(subject, phase, day, analysis),
    )


FALLBACK_PHASES = [
    {"name": "Foundation", "topics": ["Introduction", "Basics", "Fundamentals", "Core Concepts"]},
    {"name": "Development", "topics": ["Intermediate Concepts", "Advanced Topics", "Deep Dive", "Complex Applications"]},
    {"name": "Mastery", "topics": ["Practice & Application", "Problem Solving", "Real-world Projects", "Review & Consolidation"]},
]


def _fallback_focus(subject: str, phase: dict, day: int) -> str:
    topic = phase["topics"][day % len(phase["topics"])]
    focus_areas = [
        f"Master {subject} {topic}",
        f"Practice {subject} {topic}",
        f"Apply {subject} {topic}",
        f"Review {subject} {topic}",
        f"Build projects with {subject}",
    ]
    return focus_areas[day % len(focus_areas)]


def generate_fallback_schedule(
    goal: str,
    subjects: list[str],
    deadline: str | date,
    daily_study_time: int,
    today: date | None = None,
) -> list[ScheduleItem]:
    """Plain three-phase plan used when the AI path raises."""
    today = today or date.today()
    return _rotating_schedule(
        subjects, days_until(deadline, today), daily_study_time, today,
        FALLBACK_PHASES, _fallback_focus,
    )
