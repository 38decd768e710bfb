"""
DB-backed store classes for StudyBuddy.

Each class wraps the SQL for one aggregate and hands back the dataclasses
from models.py. Callers commit nothing themselves; every mutating method
commits before returning.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime
from typing import Optional

from database import get_db
from models import (
    Answer,
    LeaderboardEntry,
    Participant,
    Quiz,
    QuizQuestion,
    Room,
    ScheduleItem,
    StudyPlan,
)


def _now() -> str:
    return datetime.now().isoformat()


# ── Rooms ────────────────────────────────────────────────────────────


def _row_to_room(row) -> Room:
    return Room(
        room_id=row["room_id"],
        name=row["name"],
        created_by=row["created_by"],
        status=row["status"],
        created_at=row["created_at"],
    )


class RoomDB:
    """Quizzify rooms. Mutations are scoped to the owning user."""

    @staticmethod
    def create(name: str, created_by: Optional[int]) -> Room:
        room = Room(
            room_id=str(uuid.uuid4()),
            name=name,
            created_by=created_by,
            status="active",
            created_at=_now(),
        )
        db = get_db()
        db.execute(
            "INSERT INTO rooms (room_id, name, created_by, status, created_at) VALUES (?, ?, ?, ?, ?)",
            (room.room_id, room.name, room.created_by, room.status, room.created_at),
        )
        db.commit()
        return room

    @staticmethod
    def get(room_id: str) -> Optional[Room]:
        row = get_db().execute("SELECT * FROM rooms WHERE room_id = ?", (room_id,)).fetchone()
        return _row_to_room(row) if row else None

    @staticmethod
    def get_owned(room_id: str, owner_id: int) -> Optional[Room]:
        row = get_db().execute(
            "SELECT * FROM rooms WHERE room_id = ? AND created_by = ?",
            (room_id, owner_id),
        ).fetchone()
        return _row_to_room(row) if row else None

    @staticmethod
    def list_for_owner(owner_id: int) -> list[Room]:
        rows = get_db().execute(
            "SELECT * FROM rooms WHERE created_by = ? ORDER BY created_at DESC, rowid DESC",
            (owner_id,),
        ).fetchall()
        return [_row_to_room(r) for r in rows]

    @staticmethod
    def save(room: Room) -> Room:
        db = get_db()
        db.execute(
            "UPDATE rooms SET name = ?, status = ? WHERE room_id = ?",
            (room.name, room.status, room.room_id),
        )
        db.commit()
        return room

    @staticmethod
    def delete(room_id: str, owner_id: int) -> bool:
        """Delete an owned room; participants, quizzes and answers cascade."""
        db = get_db()
        cur = db.execute(
            "DELETE FROM rooms WHERE room_id = ? AND created_by = ?",
            (room_id, owner_id),
        )
        db.commit()
        return cur.rowcount > 0


# ── Participants & leaderboard ──────────────────────────────────────


def _row_to_participant(row) -> Participant:
    return Participant(
        id=row["id"],
        room_id=row["room_id"],
        nickname=row["nickname"],
        email=row["email"],
        score=row["score"],
        joined_at=row["joined_at"],
    )


class ParticipantDB:

    @staticmethod
    def get(participant_id: int) -> Optional[Participant]:
        row = get_db().execute(
            "SELECT * FROM participants WHERE id = ?", (participant_id,)
        ).fetchone()
        return _row_to_participant(row) if row else None

    @staticmethod
    def find(room_id: str, email: str) -> Optional[Participant]:
        row = get_db().execute(
            "SELECT * FROM participants WHERE room_id = ? AND email = ?",
            (room_id, email),
        ).fetchone()
        return _row_to_participant(row) if row else None

    @staticmethod
    def join(room_id: str, nickname: str, email: str) -> Optional[Participant]:
        """Insert a participant. Returns None if the email already joined."""
        db = get_db()
        joined_at = _now()
        try:
            cur = db.execute(
                "INSERT INTO participants (room_id, nickname, email, score, joined_at) "
                "VALUES (?, ?, ?, 0, ?)",
                (room_id, nickname, email, joined_at),
            )
        except sqlite3.IntegrityError:
            db.rollback()
            return None
        db.commit()
        return Participant(
            id=cur.lastrowid,
            room_id=room_id,
            nickname=nickname,
            email=email,
            score=0,
            joined_at=joined_at,
        )

    @staticmethod
    def list_for_room(room_id: str) -> list[Participant]:
        rows = get_db().execute(
            "SELECT * FROM participants WHERE room_id = ? "
            "ORDER BY score DESC, joined_at ASC, id ASC",
            (room_id,),
        ).fetchall()
        return [_row_to_participant(r) for r in rows]

    @staticmethod
    def increment_score(participant_id: int) -> int:
        """Atomically add one point and return the new score."""
        db = get_db()
        db.execute("UPDATE participants SET score = score + 1 WHERE id = ?", (participant_id,))
        db.commit()
        row = db.execute("SELECT score FROM participants WHERE id = ?", (participant_id,)).fetchone()
        return row["score"] if row else 0

    @staticmethod
    def leaderboard(room_id: str) -> list[LeaderboardEntry]:
        return [
            LeaderboardEntry(participant_name=p.nickname, score=p.score, rank=idx + 1)
            for idx, p in enumerate(ParticipantDB.list_for_room(room_id))
        ]


# ── Quizzes & answers ────────────────────────────────────────────────


def _row_to_quiz(row) -> Quiz:
    return Quiz(
        quiz_id=row["quiz_id"],
        room_id=row["room_id"],
        topic=row["topic"],
        difficulty=row["difficulty"],
        total_questions=row["total_questions"],
        quiz_data=[QuizQuestion.from_dict(q) for q in json.loads(row["quiz_data"] or "[]")],
        approved=bool(row["approved"]),
        created_at=row["created_at"],
    )


class QuizDB:

    @staticmethod
    def create(
        room_id: str,
        topic: str,
        difficulty: str,
        total_questions: int,
        questions: list[QuizQuestion],
    ) -> Quiz:
        quiz = Quiz(
            quiz_id=str(uuid.uuid4()),
            room_id=room_id,
            topic=topic,
            difficulty=difficulty,
            total_questions=total_questions,
            quiz_data=list(questions),
            approved=False,
            created_at=_now(),
        )
        db = get_db()
        db.execute(
            "INSERT INTO quizzes (quiz_id, room_id, topic, difficulty, total_questions, "
            "quiz_data, approved, created_at) VALUES (?, ?, ?, ?, ?, ?, 0, ?)",
            (
                quiz.quiz_id, room_id, topic, difficulty, total_questions,
                json.dumps([q.to_dict() for q in quiz.quiz_data]), quiz.created_at,
            ),
        )
        db.commit()
        return quiz

    @staticmethod
    def get(quiz_id: str) -> Optional[Quiz]:
        row = get_db().execute("SELECT * FROM quizzes WHERE quiz_id = ?", (quiz_id,)).fetchone()
        return _row_to_quiz(row) if row else None

    @staticmethod
    def latest_for_room(room_id: str) -> Optional[Quiz]:
        row = get_db().execute(
            "SELECT * FROM quizzes WHERE room_id = ? ORDER BY created_at DESC, rowid DESC LIMIT 1",
            (room_id,),
        ).fetchone()
        return _row_to_quiz(row) if row else None

    @staticmethod
    def approve(quiz_id: str) -> None:
        db = get_db()
        db.execute("UPDATE quizzes SET approved = 1 WHERE quiz_id = ?", (quiz_id,))
        db.commit()


class AnswerDB:

    @staticmethod
    def record(
        participant_id: int,
        quiz_id: str,
        question_id: str,
        selected_option: int,
        is_correct: bool,
    ) -> Optional[Answer]:
        """Store an answer. Returns None if the question was already answered."""
        db = get_db()
        answered_at = _now()
        try:
            cur = db.execute(
                "INSERT INTO answers (participant_id, quiz_id, question_id, selected_option, "
                "is_correct, answered_at) VALUES (?, ?, ?, ?, ?, ?)",
                (participant_id, quiz_id, question_id, selected_option, int(is_correct), answered_at),
            )
        except sqlite3.IntegrityError:
            db.rollback()
            return None
        db.commit()
        return Answer(
            id=cur.lastrowid,
            participant_id=participant_id,
            quiz_id=quiz_id,
            question_id=question_id,
            selected_option=selected_option,
            is_correct=is_correct,
            answered_at=answered_at,
        )


# ── Study plans ──────────────────────────────────────────────────────


def _row_to_item(row) -> ScheduleItem:
    return ScheduleItem(
        id=row["id"],
        week=row["week"],
        day=row["day"],
        subject=row["subject"],
        focus=row["focus"],
        duration=row["duration"],
        completed=bool(row["completed"]),
    )


class StudyPlanDB:
    """DB-backed study plans for one user."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    def _row_to_plan(self, row, schedule: list[ScheduleItem] | None = None) -> StudyPlan:
        return StudyPlan(
            id=row["id"],
            user_id=row["user_id"],
            goal=row["goal"],
            subjects=json.loads(row["subjects"] or "[]"),
            deadline=row["deadline"],
            daily_study_time=row["daily_study_time"],
            generated_by=row["generated_by"],
            total_weeks=row["total_weeks"],
            total_days=row["total_days"],
            created_at=row["created_at"],
            schedule=schedule or [],
        )

    def create(
        self,
        goal: str,
        subjects: list[str],
        deadline: str,
        daily_study_time: int,
        generated_by: str,
        schedule: list[ScheduleItem],
    ) -> StudyPlan:
        db = get_db()
        total_weeks = max((it.week for it in schedule), default=0)
        created_at = _now()
        cur = db.execute(
            "INSERT INTO study_plans (user_id, goal, subjects, deadline, daily_study_time, "
            "generated_by, total_weeks, total_days, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                self.user_id, goal, json.dumps(subjects), deadline, daily_study_time,
                generated_by, total_weeks, len(schedule), created_at,
            ),
        )
        plan_id = cur.lastrowid
        for it in schedule:
            item_cur = db.execute(
                "INSERT INTO schedule_items (plan_id, week, day, subject, focus, duration, completed) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (plan_id, it.week, it.day, it.subject, it.focus, it.duration, int(it.completed)),
            )
            it.id = item_cur.lastrowid
        db.commit()
        return StudyPlan(
            id=plan_id,
            user_id=self.user_id,
            goal=goal,
            subjects=subjects,
            deadline=deadline,
            daily_study_time=daily_study_time,
            generated_by=generated_by,
            total_weeks=total_weeks,
            total_days=len(schedule),
            created_at=created_at,
            schedule=schedule,
        )

    def list_plans(self) -> list[StudyPlan]:
        """Plans newest first, without their schedule items."""
        rows = get_db().execute(
            "SELECT * FROM study_plans WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (self.user_id,),
        ).fetchall()
        return [self._row_to_plan(r) for r in rows]

    def get(self, plan_id: int) -> Optional[StudyPlan]:
        db = get_db()
        row = db.execute(
            "SELECT * FROM study_plans WHERE id = ? AND user_id = ?",
            (plan_id, self.user_id),
        ).fetchone()
        if not row:
            return None
        items = db.execute(
            "SELECT * FROM schedule_items WHERE plan_id = ? ORDER BY day ASC, id ASC",
            (plan_id,),
        ).fetchall()
        return self._row_to_plan(row, [_row_to_item(i) for i in items])

    def set_item_completed(self, plan_id: int, item_id: int, completed: bool) -> Optional[ScheduleItem]:
        """Update one schedule item. Returns None if the plan or item is unknown."""
        plan = self.get(plan_id)
        if plan is None:
            return None
        item = plan.item(item_id)
        if item is None:
            return None
        db = get_db()
        db.execute(
            "UPDATE schedule_items SET completed = ? WHERE id = ? AND plan_id = ?",
            (int(completed), item_id, plan_id),
        )
        db.commit()
        item.completed = completed
        return item

    def delete(self, plan_id: int) -> bool:
        db = get_db()
        cur = db.execute(
            "DELETE FROM study_plans WHERE id = ? AND user_id = ?",
            (plan_id, self.user_id),
        )
        db.commit()
        return cur.rowcount > 0
