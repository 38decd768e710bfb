"""
Test fixtures for StudyBuddy.

Provides app, client, auth_client, admin_client, token_for and db fixtures
with file-based SQLite. No provider keys are configured under the testing
config, so every AI path uses its local fallback unless a test patches the
LLM call.
"""

from __future__ import annotations

import pytest
from datetime import datetime

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

HOST_EMAIL = "host@example.com"
HOST_PASSWORD = "testpass123"


@pytest.fixture(autouse=True)
def reset_ai_state():
    """Clear the process-wide circuit breaker and response cache between tests."""
    from ai_resilience import get_cache, get_circuit_breaker
    get_circuit_breaker().reset()
    get_cache().clear()
    yield
    get_circuit_breaker().reset()
    get_cache().clear()


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app
    from werkzeug.security import generate_password_hash

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "JWT_SECRET": "test-jwt-secret",
    })

    with app.app_context():
        from database import init_db, run_migrations, get_db

        init_db()
        run_migrations()

        # Seed a host and an admin
        db = get_db()
        now = datetime.now().isoformat()
        db.execute(
            "INSERT INTO users (id, name, email, password_hash, role, created_at) "
            "VALUES (1, 'Test Host', ?, ?, 'user', ?)",
            (HOST_EMAIL, generate_password_hash(HOST_PASSWORD), now),
        )
        db.execute(
            "INSERT INTO users (id, name, email, password_hash, role, created_at) "
            "VALUES (2, 'Admin', 'admin@example.com', ?, 'admin', ?)",
            (generate_password_hash("adminpass123"), now),
        )
        db.commit()

    # Requests push their own app context so flask_login state stays per request
    yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


@pytest.fixture
def token_for(app):
    """Return a function that signs a bearer token for a user id."""
    from auth import User, issue_token

    def _token(user_id: int = 1) -> str:
        with app.app_context():
            return issue_token(User.get(user_id))
    return _token


def _bearer_client(app, token: str):
    client = app.test_client()
    client.environ_base["HTTP_AUTHORIZATION"] = f"Bearer {token}"
    return client


@pytest.fixture
def auth_client(app, token_for):
    """Test client carrying the host's bearer token."""
    return _bearer_client(app, token_for(1))


@pytest.fixture
def admin_client(app, token_for):
    """Test client carrying the admin's bearer token."""
    return _bearer_client(app, token_for(2))


@pytest.fixture
def db(app):
    """Direct database access for store tests."""
    with app.app_context():
        from database import get_db
        yield get_db()


@pytest.fixture
def room(app):
    """An active room owned by the host. Returns its room_id."""
    from db_stores import RoomDB
    with app.app_context():
        return RoomDB.create("Biology Review", 1).room_id


@pytest.fixture
def sample_questions():
    from models import QuizQuestion
    return [
        QuizQuestion(id="q1", question="2 + 2 = ?", options=["3", "4", "5", "6"], correctIndex=1),
        QuizQuestion(id="q2", question="Capital of France?", options=["Paris", "Rome", "Oslo", "Bern"], correctIndex=0),
    ]


@pytest.fixture
def quiz(app, room, sample_questions):
    """An approved quiz in ``room``. Returns the Quiz."""
    from db_stores import QuizDB
    with app.app_context():
        created = QuizDB.create(room, "General", "Easy", 5, sample_questions)
        QuizDB.approve(created.quiz_id)
        return QuizDB.get(created.quiz_id)


@pytest.fixture
def participant(app, room):
    """A participant who joined ``room``. Returns the Participant."""
    from db_stores import ParticipantDB
    with app.app_context():
        return ParticipantDB.join(room, "Alice", "alice@example.com")
