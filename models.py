"""
Domain records for StudyBuddy.

Plain dataclasses shared by the DB stores, the AI generators and the
blueprints. ``to_dict()`` returns the JSON shape the frontend consumes.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Optional

DIFFICULTIES = ("Easy", "Medium", "Hard")
QUESTION_COUNTS = (5, 10, 15, 20)


# ── Quizzify ──────────────────────────────────────────────────────────

@dataclass
class Room:
    room_id: str
    name: str
    created_by: Optional[int] = None
    status: str = "active"  # "active"|"ended"
    created_at: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> dict:
        return {
            "room_id": self.room_id,
            "name": self.name,
            "status": self.status,
            "created_at": self.created_at,
        }


@dataclass
class Participant:
    id: int
    room_id: str
    nickname: str
    email: str
    score: int = 0
    joined_at: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class QuizQuestion:
    id: str
    question: str
    options: list[str]
    correctIndex: int  # index into options, 0..3

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "QuizQuestion":
        return cls(
            id=str(data.get("id", "")),
            question=str(data.get("question", "")),
            options=[str(o) for o in data.get("options", [])],
            correctIndex=int(data.get("correctIndex", 0)),
        )


@dataclass
class Quiz:
    quiz_id: str
    room_id: str
    difficulty: str
    total_questions: int
    quiz_data: list[QuizQuestion] = field(default_factory=list)
    topic: str = ""
    approved: bool = False
    created_at: str = ""

    def question(self, question_id: str) -> Optional[QuizQuestion]:
        for q in self.quiz_data:
            if q.id == question_id:
                return q
        return None

    def to_dict(self) -> dict:
        return {
            "quiz_id": self.quiz_id,
            "room_id": self.room_id,
            "topic": self.topic,
            "difficulty": self.difficulty,
            "total_questions": self.total_questions,
            "quiz_data": [q.to_dict() for q in self.quiz_data],
            "approved": self.approved,
            "created_at": self.created_at,
        }


@dataclass
class Answer:
    id: int
    participant_id: int
    quiz_id: str
    question_id: str
    selected_option: int
    is_correct: bool
    answered_at: str = ""


@dataclass
class LeaderboardEntry:
    participant_name: str
    score: int
    rank: int


# ── Study schedule ────────────────────────────────────────────────────

@dataclass
class ScheduleItem:
    week: int
    day: str  # YYYY-MM-DD
    subject: str
    focus: str
    duration: int
    completed: bool = False
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "week": self.week,
            "day": self.day,
            "subject": self.subject,
            "focus": self.focus,
            "duration": self.duration,
            "completed": self.completed,
        }


@dataclass
class StudyPlan:
    id: int
    user_id: int
    goal: str
    subjects: list[str]
    deadline: str
    daily_study_time: int
    generated_by: str = "ai"  # "ai"|"fallback"
    total_weeks: int = 0
    total_days: int = 0
    created_at: str = ""
    schedule: list[ScheduleItem] = field(default_factory=list)

    def item(self, item_id: int) -> Optional[ScheduleItem]:
        for it in self.schedule:
            if it.id == item_id:
                return it
        return None

    def to_dict(self, include_schedule: bool = True) -> dict:
        data = {
            "id": self.id,
            "goal": self.goal,
            "subjects": self.subjects,
            "deadline": self.deadline,
            "dailyStudyTime": self.daily_study_time,
            "generatedBy": self.generated_by,
            "totalWeeks": self.total_weeks,
            "totalDays": self.total_days,
            "createdAt": self.created_at,
        }
        if include_schedule:
            data["schedule"] = [it.to_dict() for it in self.schedule]
        return data
