"""Tests for the AI study mentor (mentor.py) and the chat routes."""

from unittest.mock import patch

import pytest

from ai_resilience import AIUnavailableError, CircuitOpenError, TransientLLMError
from mentor import (
    DEFAULT_FALLBACK,
    EMPTY_REPLY,
    FALLBACK_RESPONSES,
    MentorError,
    ask,
    classify_error,
    fallback_response,
)


class FakeStatusError(Exception):
    """Stands in for a provider SDK error that carries an HTTP status."""

    def __init__(self, status_code, message="boom", body=None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.body = body


def _wrapped(cause):
    try:
        raise TransientLLMError(str(cause)) from cause
    except TransientLLMError as exc:
        return exc


class TestFallbackResponse:
    def test_study_keywords(self):
        assert fallback_response("Can you HELP me?") == FALLBACK_RESPONSES[0][1]

    def test_math_keywords(self):
        assert fallback_response("solve x + 2 = 5") == FALLBACK_RESPONSES[1][1]

    def test_programming_keywords(self):
        assert fallback_response("python decorators") == FALLBACK_RESPONSES[2][1]

    def test_greeting(self):
        assert fallback_response("hey there") == FALLBACK_RESPONSES[3][1]

    def test_default(self):
        assert fallback_response("quantum physics") == DEFAULT_FALLBACK


class TestClassifyError:
    def test_missing_credentials_fall_back(self):
        assert classify_error(AIUnavailableError("no key")) is None

    def test_circuit_open(self):
        err = classify_error(CircuitOpenError("Circuit breaker open for provider: huggingface"))
        assert err.status_code == 503

    def test_rejected_credentials_fall_back(self):
        assert classify_error(FakeStatusError(401)) is None

    def test_rate_limited(self):
        err = classify_error(_wrapped(FakeStatusError(429)))
        assert err.status_code == 429
        assert err.message == "AI service is currently busy. Please try again in a moment."

    def test_service_unavailable(self):
        err = classify_error(_wrapped(FakeStatusError(503)))
        assert err.status_code == 503

    def test_other_status_uses_provider_detail(self):
        err = classify_error(FakeStatusError(400, body={"error": {"message": "bad model"}}))
        assert err.status_code == 500
        assert err.message == "AI service error: bad model"

    def test_timeout(self):
        err = classify_error(_wrapped(TimeoutError("timed out")))
        assert err.status_code == 504

    def test_connection(self):
        err = classify_error(_wrapped(ConnectionError("refused")))
        assert err.status_code == 503
        assert err.message == "AI service is unavailable. Please try again later."

    def test_unexpected(self):
        err = classify_error(ValueError("weird"))
        assert err.status_code == 500
        assert err.message == "An unexpected error occurred. Please try again."


class TestAsk:
    def test_reply_is_trimmed(self):
        with patch("mentor.configured_llm_call", return_value="  Try spaced repetition.  ") as mock_call:
            result = ask("How should I revise?")
        assert result == {"message": "Try spaced repetition.", "fallback": False}
        assert mock_call.call_args.kwargs["max_tokens"] == 500

    def test_empty_reply(self):
        with patch("mentor.configured_llm_call", return_value=""):
            assert ask("anything")["message"] == EMPTY_REPLY

    def test_missing_key_falls_back(self):
        with patch("mentor.configured_llm_call", side_effect=AIUnavailableError("no key")):
            result = ask("hello")
        assert result["fallback"] is True
        assert result["message"] == FALLBACK_RESPONSES[3][1]

    def test_provider_error_raises(self):
        with patch("mentor.configured_llm_call", side_effect=_wrapped(FakeStatusError(429))):
            with pytest.raises(MentorError) as exc_info:
                ask("hello")
        assert exc_info.value.status_code == 429


class TestChatRoute:
    def test_chat(self, auth_client):
        with patch("mentor.configured_llm_call", return_value="Break it into steps."):
            resp = auth_client.post("/api/chat/chat", json={"message": "How do I study?"})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is True
        assert data["message"] == "Break it into steps."
        assert data["timestamp"]
        assert "fallback" not in data

    def test_chat_without_key_uses_fallback(self, auth_client):
        resp = auth_client.post("/api/chat/chat", json={"message": "quantum physics"})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["fallback"] is True
        assert data["message"] == DEFAULT_FALLBACK

    @pytest.mark.parametrize("payload", [{}, {"message": ""}, {"message": "   "}, {"message": 5}])
    def test_invalid_message(self, auth_client, payload):
        resp = auth_client.post("/api/chat/chat", json=payload)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Message is required and must be a non-empty string"

    def test_provider_error_status(self, auth_client):
        with patch("mentor.configured_llm_call", side_effect=_wrapped(TimeoutError("timed out"))):
            resp = auth_client.post("/api/chat/chat", json={"message": "hi"})
        assert resp.status_code == 504
        assert resp.get_json()["error"] == "AI service request timed out. Please try again."

    def test_rejected_key_keeps_falling_back(self, app, auth_client):
        app.config["HF_TOKEN"] = "bad-key"
        with patch("ai_resilience._do_call", side_effect=FakeStatusError(401, "Invalid credentials")):
            responses = [
                auth_client.post("/api/chat/chat", json={"message": "help me study"})
                for _ in range(5)
            ]
        assert [r.status_code for r in responses] == [200] * 5
        assert all(r.get_json()["fallback"] is True for r in responses)

    def test_requires_auth(self, client):
        resp = client.post("/api/chat/chat", json={"message": "hi"})
        assert resp.status_code == 401

    def test_health(self, client):
        resp = client.get("/api/chat/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "healthy"
        assert data["service"] == "DeepSeek Chat API"
