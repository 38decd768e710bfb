"""
AI Study Mentor — single-turn chat.

Sends the student's message to the configured LLM with a study-assistant
persona. When the provider rejects the credentials (or none are set) the
mentor answers with canned, keyword-matched study advice instead of an
error. Other provider failures are translated into MentorError with the
HTTP status the chat route should return.
"""

from __future__ import annotations

import logging

import openai

from ai_resilience import AIUnavailableError, CircuitOpenError, configured_llm_call, root_cause

logger = logging.getLogger(__name__)

MENTOR_SYSTEM_PROMPT = (
    "You are an AI study assistant. Help students with their questions by providing "
    "helpful, encouraging, and educational responses. Keep responses concise but "
    "informative. Focus on learning and understanding."
)

EMPTY_REPLY = "I apologize, I could not generate a response."

FALLBACK_RESPONSES: list[tuple[tuple[str, ...], str]] = [
    (("study", "learn", "help"),
     "I'm here to help you with your studies! While our AI service is temporarily "
     "unavailable, I can suggest some general study tips: create a study schedule, take "
     "regular breaks, and practice active recall. What specific subject would you like "
     "help with?"),
    (("math", "calculate", "solve"),
     "I'd love to help you with math! While our AI service is temporarily unavailable, I "
     "recommend breaking down complex problems into smaller steps, practicing regularly, "
     "and seeking help from teachers or study groups. What math topic are you working on?"),
    (("code", "programming", "javascript", "python"),
     "Programming can be challenging but rewarding! While our AI service is temporarily "
     "unavailable, I suggest starting with the basics, practicing regularly, and working "
     "on small projects. What programming language or concept are you learning?"),
    (("hello", "hi", "hey"),
     "Hello! I'm your study assistant. While our AI service is temporarily unavailable, "
     "I'm still here to help guide you with your studies. What would you like to learn "
     "about today?"),
]

DEFAULT_FALLBACK = (
    "I'm your study assistant! While our AI service is temporarily unavailable, I'm still "
    "here to help. Could you tell me more about what you'd like to study or learn? I can "
    "provide general guidance and study tips."
)


class MentorError(Exception):
    """Provider failure mapped to an HTTP status for the chat route."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def fallback_response(message: str) -> str:
    lower = (message or "").lower()
    for keywords, response in FALLBACK_RESPONSES:
        if any(k in lower for k in keywords):
            return response
    return DEFAULT_FALLBACK


def _status_detail(exc: BaseException) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or "Unknown error")
        if err:
            return str(err)
    return getattr(exc, "message", None) or str(exc) or "Unknown error"


def classify_error(exc: BaseException) -> MentorError | None:
    """Map a provider exception to a MentorError; None means answer with the fallback."""
    if isinstance(exc, CircuitOpenError):
        return MentorError(503, "AI service is temporarily unavailable. Please try again later.")
    if isinstance(exc, AIUnavailableError):
        return None

    cause = root_cause(exc)
    status = getattr(cause, "status_code", None)
    if isinstance(status, int):
        if status == 401:
            return None
        if status == 429:
            return MentorError(429, "AI service is currently busy. Please try again in a moment.")
        if status == 503:
            return MentorError(503, "AI service is temporarily unavailable. Please try again later.")
        return MentorError(500, f"AI service error: {_status_detail(cause)}")

    if isinstance(cause, (TimeoutError, openai.APITimeoutError)):
        return MentorError(504, "AI service request timed out. Please try again.")
    if isinstance(cause, (ConnectionError, openai.APIConnectionError)):
        return MentorError(503, "AI service is unavailable. Please try again later.")
    return MentorError(500, "An unexpected error occurred. Please try again.")


def ask(message: str) -> dict:
    """Answer one student message.

    Returns ``{"message": str, "fallback": bool}``. Raises MentorError for
    provider failures that should surface as HTTP errors.
    """
    try:
        reply = configured_llm_call(
            message,
            system=MENTOR_SYSTEM_PROMPT,
            temperature=0.7,
            max_tokens=500,
        )
    except Exception as exc:
        mapped = classify_error(exc)
        if mapped is not None:
            logger.error("Chat provider error (%s): %s", mapped.status_code, exc, exc_info=True)
            raise mapped from exc
        logger.warning("Chat provider unavailable, answering with fallback: %s", exc)
        return {"message": fallback_response(message), "fallback": True}

    return {"message": (reply or EMPTY_REPLY).strip(), "fallback": False}
