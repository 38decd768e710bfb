"""
Extension singletons (rate limiter, CORS) initialised in create_app().
"""

from __future__ import annotations

import os

from flask_cors import CORS


def _create_limiter():
    """Create a real Limiter or a no-op stub depending on environment."""
    if os.environ.get("VERCEL"):
        # No shared state between serverless invocations.
        class _NoOpLimiter:
            enabled = False
            def init_app(self, app): pass
            def limit(self, *a, **kw):
                def decorator(f): return f
                return decorator
        return _NoOpLimiter()

    from flask_limiter import Limiter
    from flask_limiter.util import get_remote_address
    return Limiter(key_func=get_remote_address, default_limits=["500 per hour"])


limiter = _create_limiter()
cors = CORS()


def cors_origins(config) -> list[str] | str:
    """Origins passed to Flask-CORS: everything outside production."""
    if config.get("ENV_NAME", "development") != "production":
        return "*"
    origins: list[str] = list(config.get("CORS_ORIGINS", []))
    if config.get("FRONTEND_URL"):
        origins.append(config["FRONTEND_URL"].rstrip("/"))
    origins.append(r"https://.*\.vercel\.app")
    return origins
