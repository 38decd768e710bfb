"""
User Authentication — Flask-Login with bearer tokens.

Provides signup, login, profile and whoami routes under /api/auth.
Passwords are hashed with werkzeug.security; sessions are stateless HS256
JWTs carried in the ``Authorization: Bearer`` header and resolved by a
Flask-Login request loader.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone

import jwt
from flask import Blueprint, current_app, g, jsonify, request
from flask_login import LoginManager, UserMixin, current_user, login_required
from werkzeug.security import check_password_hash, generate_password_hash

from audit import log_event
from database import get_db
from extensions import limiter

logger = logging.getLogger(__name__)

LOCKOUT_THRESHOLD = 5
LOCKOUT_MINUTES = 15

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
login_manager = LoginManager()


class User(UserMixin):
    """Wraps a DB user row for Flask-Login."""

    def __init__(self, id: int, name: str, email: str, role: str = "user"):
        self.id = id
        self.name = name
        self.email = email
        self.role = role

    @property
    def is_admin(self):
        return self.role == "admin"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role}

    @staticmethod
    def get(user_id: int):
        db = get_db()
        row = db.execute("SELECT id, name, email, role FROM users WHERE id = ?", (user_id,)).fetchone()
        if row:
            return User(row["id"], row["name"], row["email"], row["role"])
        return None

    @staticmethod
    def get_by_email(email: str):
        db = get_db()
        row = db.execute(
            "SELECT id, name, email, password_hash, role, login_attempts, locked_until "
            "FROM users WHERE email = ?", (email,),
        ).fetchone()
        if row:
            return row
        return None


# ── Tokens ────────────────────────────────────────────────────────────


def issue_token(user: User) -> str:
    """Sign a JWT carrying the user's id, role and email."""
    now = datetime.now(timezone.utc)
    days = int(current_app.config.get("JWT_EXPIRES_DAYS", 7))
    payload = {
        "id": user.id,
        "role": user.role,
        "email": user.email,
        "iat": now,
        "exp": now + timedelta(days=days),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def decode_token(token: str) -> dict:
    """Verify signature and expiry. Raises jwt.InvalidTokenError."""
    return jwt.decode(
        token,
        current_app.config["JWT_SECRET"],
        algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
    )


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    return None


@login_manager.user_loader
def load_user(user_id):
    return User.get(int(user_id))


@login_manager.request_loader
def load_user_from_request(req):
    token = _bearer_token()
    if not token:
        g.auth_error = None
        return None
    try:
        claims = decode_token(token)
    except jwt.InvalidTokenError as exc:
        g.auth_error = str(exc)
        return None
    user = User.get(claims.get("id"))
    if user is None:
        g.auth_error = "User no longer exists"
    return user


@login_manager.unauthorized_handler
def unauthorized():
    error = getattr(g, "auth_error", None)
    if error is None:
        return jsonify({"message": "Missing token"}), 401
    return jsonify({"message": "Invalid token", "error": error}), 401


# ── Routes ────────────────────────────────────────────────────────────


def _auth_response(user: User):
    return jsonify({"token": issue_token(user), "user": user.to_dict()})


@auth_bp.route("/signup", methods=["POST"])
@limiter.limit("10 per hour")
def signup():
    data = request.get_json(silent=True) or {}
    name = str(data.get("name") or "").strip()
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")

    if not name or not email or not password:
        return jsonify({"message": "Missing fields"}), 400

    if User.get_by_email(email):
        return jsonify({"message": "Email already in use"}), 409

    db = get_db()
    cur = db.execute(
        "INSERT INTO users (name, email, password_hash, role, created_at) VALUES (?, ?, ?, 'user', ?)",
        (name, email, generate_password_hash(password), datetime.now().isoformat()),
    )
    db.commit()
    user_id = cur.lastrowid

    log_event("signup", user_id, f"email={email}")
    return _auth_response(User(user_id, name, email, "user"))


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("20 per 15 minutes")
def login():
    data = request.get_json(silent=True) or {}
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")

    if not email or not password:
        return jsonify({"message": "Email and password are required"}), 400

    row = User.get_by_email(email)
    if not row:
        return jsonify({"message": "Invalid credentials"}), 401

    # Check account lockout
    prior_attempts = row["login_attempts"] or 0
    locked_until = row["locked_until"]
    if locked_until:
        try:
            lock_time = datetime.fromisoformat(locked_until)
        except (ValueError, TypeError):
            lock_time = None
        if lock_time is not None:
            remaining = (lock_time - datetime.now()).total_seconds()
            if remaining > 0:
                mins = math.ceil(remaining / 60)
                log_event("login_locked", row["id"], f"email={email}")
                return jsonify({
                    "message": f"Account temporarily locked. Try again in {mins} minute(s).",
                }), 429
            # Lock expired, count afresh
            prior_attempts = 0

    if not row["password_hash"] or not check_password_hash(row["password_hash"], password):
        db = get_db()
        attempts = prior_attempts + 1
        if attempts >= LOCKOUT_THRESHOLD:
            db.execute(
                "UPDATE users SET login_attempts=?, locked_until=? WHERE id=?",
                (attempts, (datetime.now() + timedelta(minutes=LOCKOUT_MINUTES)).isoformat(), row["id"]),
            )
        else:
            db.execute("UPDATE users SET login_attempts=?, locked_until='' WHERE id=?", (attempts, row["id"]))
        db.commit()
        log_event("login_failed", row["id"], f"email={email} attempts={attempts}")
        return jsonify({"message": "Invalid credentials"}), 401

    # Success, reset lockout fields
    db = get_db()
    db.execute("UPDATE users SET login_attempts=0, locked_until='' WHERE id=?", (row["id"],))
    db.commit()

    log_event("login_success", row["id"])
    return _auth_response(User(row["id"], row["name"], row["email"], row["role"]))


@auth_bp.route("/profile", methods=["PUT"])
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}
    user = User.get(current_user.id)
    if user is None:
        return jsonify({"message": "User not found"}), 404

    name = str(data.get("name") or "").strip()
    email = str(data.get("email") or "").strip().lower()

    if email and email != user.email:
        existing = User.get_by_email(email)
        if existing and existing["id"] != user.id:
            return jsonify({"message": "Email already in use"}), 409
        user.email = email
    if name:
        user.name = name

    try:
        db = get_db()
        db.execute("UPDATE users SET name=?, email=? WHERE id=?", (user.name, user.email, user.id))
        db.commit()
    except Exception as e:
        logger.error("Profile update failed for user %s: %s", user.id, e, exc_info=True)
        return jsonify({"message": "Profile update failed"}), 500

    log_event("profile_update", user.id)
    return jsonify({"user": user.to_dict()})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
