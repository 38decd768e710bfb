"""
Blueprint registration for StudyBuddy.

Each blueprint carries its own /api/... URL prefix; core owns the root.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.rooms import bp as rooms_bp
    from blueprints.participants import bp as participants_bp
    from blueprints.quiz import bp as quiz_bp
    from blueprints.answers import bp as answers_bp
    from blueprints.leaderboard import bp as leaderboard_bp
    from blueprints.feedback import bp as feedback_bp
    from blueprints.chat import bp as chat_bp
    from blueprints.schedule import bp as schedule_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(rooms_bp)
    app.register_blueprint(participants_bp)
    app.register_blueprint(quiz_bp)
    app.register_blueprint(answers_bp)
    app.register_blueprint(leaderboard_bp)
    app.register_blueprint(feedback_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(schedule_bp)
