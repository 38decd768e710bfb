"""
Application configuration: environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent

DEV_SECRET_KEY = "dev-key-change-in-production"
DEV_JWT_SECRET = "dev-jwt-secret-change-in-production"


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", DEV_SECRET_KEY)
    # SQLite file path
    DATABASE = os.environ.get("DATABASE_URL", str(BASE_DIR / "studybuddy.db"))
    JSON_SORT_KEYS = False

    # Bearer tokens
    JWT_SECRET = os.environ.get("JWT_SECRET", DEV_JWT_SECRET)
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRES_DAYS = int(os.environ.get("JWT_EXPIRES_DAYS", "7"))

    # AI provider
    AI_PROVIDER = os.environ.get("AI_PROVIDER", "huggingface")
    AI_MODEL = os.environ.get("AI_MODEL", "deepseek-ai/DeepSeek-V3.1-Terminus:novita")
    HF_TOKEN = os.environ.get("HF_TOKEN", "")
    HF_BASE_URL = os.environ.get("HF_BASE_URL", "https://router.huggingface.co/v1")
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
    ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")

    # CORS
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "")
    CORS_ORIGINS = [
        "http://localhost:5173",
        "http://localhost:5174",
        "http://localhost:3000",
    ]

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rate limiting (in-memory unless a storage URI is given)
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "") or "memory://"


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    ENV_NAME = "development"
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    ENV_NAME = "production"
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in (DEV_SECRET_KEY, ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")
        if cls.JWT_SECRET in (DEV_JWT_SECRET, ""):
            errors.append("JWT_SECRET must be set to a secure value in production.")

        if not cls.HF_TOKEN and cls.AI_PROVIDER == "huggingface":
            warnings.warn("HF_TOKEN is not set; AI features will use local fallbacks.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    ENV_NAME = "testing"
    RATELIMIT_ENABLED = False
    # Never reach a real provider from tests
    HF_TOKEN = ""
    OPENAI_API_KEY = ""
    ANTHROPIC_API_KEY = ""
    GOOGLE_API_KEY = ""


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
