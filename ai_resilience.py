"""AI Resilience Layer — Retry, Circuit Breaker, Cache, Cost Tracking.

Provides a unified resilient_llm_call() entry point that wraps all LLM API
calls with retry logic, circuit breaking, response caching, and cost tracking.
configured_llm_call() reads the provider, model and credentials from the
Flask config so callers only supply prompts.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
import time
from dataclasses import dataclass

from flask import current_app, has_app_context
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "huggingface"
DEFAULT_MODEL = "deepseek-ai/DeepSeek-V3.1-Terminus:novita"
DEFAULT_HF_BASE_URL = "https://router.huggingface.co/v1"
REQUEST_TIMEOUT = 60  # seconds

# provider -> config key holding its credential
_PROVIDER_KEYS: dict[str, str] = {
    "huggingface": "HF_TOKEN",
    "openai": "OPENAI_API_KEY",
    "claude": "ANTHROPIC_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}


class AIUnavailableError(RuntimeError):
    """No usable provider: missing credentials or an open circuit."""


class CircuitOpenError(AIUnavailableError):
    pass


def _setting(name: str, default: str = "") -> str:
    # App config wins when present, so the testing config can blank out keys
    if has_app_context() and name in current_app.config:
        return current_app.config[name] or default
    return os.getenv(name, default)


def api_key_for(provider: str) -> str:
    key_name = _PROVIDER_KEYS.get(provider)
    if key_name is None:
        raise ValueError(f"Unknown provider: {provider}")
    return _setting(key_name)


# ── TTL Cache ───────────────────────────────────────────────

class TTLCache:
    """In-memory dict with expiry timestamps and LRU eviction at 1000 entries."""

    MAX_ENTRIES = 1000

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float]] = {}  # key -> (value, expires_at)
        self._lock = threading.Lock()

    @staticmethod
    def _make_key(prompt: str, system: str, model: str) -> str:
        raw = f"{prompt}|{system}|{model}"
        return hashlib.sha256(raw.encode()).hexdigest()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if time.time() > expires_at:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int = 86400) -> None:
        with self._lock:
            if len(self._store) >= self.MAX_ENTRIES:
                self._evict_oldest()
            self._store[key] = (value, time.time() + ttl_seconds)

    def _evict_oldest(self) -> None:
        """Remove the entry with the earliest expiry."""
        if not self._store:
            return
        oldest_key = min(self._store, key=lambda k: self._store[k][1])
        del self._store[oldest_key]

    def cleanup(self) -> int:
        """Remove all expired entries. Returns count removed."""
        now = time.time()
        with self._lock:
            expired = [k for k, (_, exp) in self._store.items() if now > exp]
            for k in expired:
                del self._store[k]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


# ── Circuit Breaker ─────────────────────────────────────────

@dataclass
class _ProviderState:
    failures: int = 0
    state: str = "closed"  # closed | open | half_open
    last_failure_time: float = 0.0


class CircuitBreaker:
    """Per-provider state machine: closed -> open -> half_open -> closed."""

    FAILURE_THRESHOLD = 3
    RECOVERY_TIMEOUT = 60  # seconds

    def __init__(self) -> None:
        self._providers: dict[str, _ProviderState] = {}
        self._lock = threading.Lock()

    def _get_state(self, provider: str) -> _ProviderState:
        if provider not in self._providers:
            self._providers[provider] = _ProviderState()
        return self._providers[provider]

    def record_success(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures = 0
            state.state = "closed"

    def record_failure(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures += 1
            state.last_failure_time = time.time()
            if state.failures >= self.FAILURE_THRESHOLD:
                state.state = "open"

    def is_open(self, provider: str) -> bool:
        with self._lock:
            state = self._get_state(provider)
            if state.state == "closed":
                return False
            if state.state == "open":
                elapsed = time.time() - state.last_failure_time
                if elapsed >= self.RECOVERY_TIMEOUT:
                    state.state = "half_open"
                    return False  # allow one attempt
                return True
            # half_open: allow attempt
            return False

    def get_state(self, provider: str) -> str:
        with self._lock:
            return self._get_state(provider).state

    def reset(self) -> None:
        with self._lock:
            self._providers.clear()


# Module-level singletons
_circuit_breaker = CircuitBreaker()
_cache: TTLCache | None = None


def _get_cache() -> TTLCache:
    """Lazy-init the module-level TTLCache."""
    global _cache
    if _cache is None:
        _cache = TTLCache()
    return _cache


# ── Cost Tracker ────────────────────────────────────────────

# Approximate pricing per 1M tokens (input + output averaged)
_MODEL_PRICING: dict[str, float] = {
    "deepseek-ai/DeepSeek-V3.1-Terminus:novita": 0.6,
    "gemini-2.0-flash": 0.075,
    "gemini-1.5-flash": 0.075,
    "claude-sonnet-4-5-20250929": 3.0,
    "claude-sonnet-4-20250514": 3.0,
    "gpt-4o": 2.5,
    "gpt-4o-mini": 0.15,
}


class CostTracker:
    """Estimates tokens from character count and applies model-specific pricing."""

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough estimate: 1 token ~ 4 characters."""
        return max(1, len(text) // 4)

    @staticmethod
    def track_call(
        model: str,
        input_text: str,
        output_text: str,
        latency_ms: int,
    ) -> dict:
        input_tokens = CostTracker.estimate_tokens(input_text)
        output_tokens = CostTracker.estimate_tokens(output_text)
        total_tokens = input_tokens + output_tokens

        price_per_million = _MODEL_PRICING.get(model, 1.0)
        cost_usd = (total_tokens / 1_000_000) * price_per_million

        return {
            "input_tokens_est": input_tokens,
            "output_tokens_est": output_tokens,
            "total_tokens_est": total_tokens,
            "cost_estimate_usd": round(cost_usd, 6),
            "model": model,
            "latency_ms": latency_ms,
        }


# ── Transient error detection ───────────────────────────────

_TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
    OSError,
)


def _is_transient(exc: BaseException) -> bool:
    """Check if an exception is transient (worth retrying)."""
    if isinstance(exc, _TRANSIENT_ERRORS):
        return True
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status == 429 or status >= 500
    msg = str(exc).lower()
    transient_patterns = [
        "rate limit",
        "429",
        "503",
        "502",
        "500",
        "overloaded",
        "temporarily unavailable",
        "timeout",
        "timed out",
        "connection",
    ]
    return any(p in msg for p in transient_patterns)


class TransientLLMError(Exception):
    """Wrapper for transient LLM errors that should be retried."""
    pass


def root_cause(exc: BaseException) -> BaseException:
    """Unwrap TransientLLMError and chained causes down to the provider error."""
    seen = set()
    while exc.__cause__ is not None and id(exc) not in seen:
        seen.add(id(exc))
        exc = exc.__cause__
    return exc


# ── Main entry point ────────────────────────────────────────

def _openai_messages(prompt: str, system: str, messages: list[dict] | None) -> list[dict]:
    oai_messages: list[dict] = []
    if system:
        oai_messages.append({"role": "system", "content": system})
    if messages:
        oai_messages.extend(messages)
    else:
        oai_messages.append({"role": "user", "content": prompt})
    return oai_messages


def _do_call(
    provider: str,
    model: str,
    prompt: str,
    system: str,
    messages: list[dict] | None,
    temperature: float | None = None,
    max_tokens: int = 4096,
) -> str:
    """Execute the actual LLM API call (no retry, no cache)."""
    api_key = api_key_for(provider)
    if not api_key:
        raise AIUnavailableError(f"No API key configured for provider: {provider}")

    if provider in ("huggingface", "openai"):
        from openai import OpenAI
        client_kwargs: dict = {
            "api_key": api_key,
            "timeout": REQUEST_TIMEOUT,
            "max_retries": 0,  # tenacity owns retries
        }
        if provider == "huggingface":
            client_kwargs["base_url"] = _setting("HF_BASE_URL", DEFAULT_HF_BASE_URL)
        client = OpenAI(**client_kwargs)
        kwargs: dict = {
            "model": model,
            "messages": _openai_messages(prompt, system, messages),
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""

    elif provider == "gemini":
        import google.generativeai as genai
        genai.configure(api_key=api_key)
        m = genai.GenerativeModel(model)
        full_prompt = f"{system}\n\n{prompt}" if system else prompt
        generation_config: dict = {"max_output_tokens": max_tokens}
        if temperature is not None:
            generation_config["temperature"] = temperature
        response = m.generate_content(full_prompt, generation_config=generation_config)
        return response.text

    elif provider == "claude":
        import anthropic
        client = anthropic.Anthropic(api_key=api_key, timeout=REQUEST_TIMEOUT, max_retries=0)
        msgs = messages or [{"role": "user", "content": prompt}]
        kwargs = {"model": model, "max_tokens": max_tokens, "messages": msgs}
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = client.messages.create(**kwargs)
        return response.content[0].text

    else:
        raise ValueError(f"Unknown provider: {provider}")


@retry(
    retry=retry_if_exception_type(TransientLLMError),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    stop=stop_after_attempt(3),
    reraise=True,
)
def _call_with_retry(
    provider: str,
    model: str,
    prompt: str,
    system: str,
    messages: list[dict] | None,
    temperature: float | None,
    max_tokens: int,
) -> str:
    """Call LLM with tenacity retry on transient errors."""
    try:
        return _do_call(provider, model, prompt, system, messages, temperature, max_tokens)
    except AIUnavailableError:
        raise
    except Exception as exc:
        if _is_transient(exc):
            raise TransientLLMError(str(exc)) from exc
        raise


def resilient_llm_call(
    provider: str,
    model: str,
    prompt: str,
    system: str = "",
    messages: list[dict] | None = None,
    cache_ttl: int = 0,
    temperature: float | None = None,
    max_tokens: int = 4096,
) -> tuple[str, dict]:
    """Main entry point for resilient LLM calls.

    Args:
        provider: 'huggingface', 'openai', 'claude', or 'gemini'
        model: Model name string
        prompt: The prompt text
        system: System prompt (optional)
        messages: Chat messages for multi-turn (optional)
        cache_ttl: Cache TTL in seconds (0 = no caching)
        temperature: Sampling temperature (provider default when None)
        max_tokens: Completion token cap

    Returns:
        (response_text, metadata_dict) where metadata includes tokens, cost,
        latency, cache_hit, provider, model.

    Raises:
        AIUnavailableError: no credentials, or the provider's circuit is open.
        TransientLLMError: retries exhausted; the provider error is its cause.
    """
    # Check circuit breaker
    if _circuit_breaker.is_open(provider):
        raise CircuitOpenError(f"Circuit breaker open for provider: {provider}")

    cache = _get_cache()
    cache_key = TTLCache._make_key(prompt, system, model)
    if cache_ttl > 0:
        cached = cache.get(cache_key)
        if cached is not None:
            return cached, {
                "cache_hit": True,
                "provider": provider,
                "model": model,
                "input_tokens_est": 0,
                "output_tokens_est": 0,
                "cost_estimate_usd": 0.0,
                "latency_ms": 0,
            }

    # Call with retry
    start = time.time()
    try:
        response_text = _call_with_retry(
            provider, model, prompt, system, messages, temperature, max_tokens,
        )
    except TransientLLMError as exc:
        _circuit_breaker.record_failure(provider)
        logger.warning("LLM call failed provider=%s model=%s: %s", provider, model, exc)
        raise
    except AIUnavailableError:
        raise
    except Exception as exc:
        # Rejected request (bad key, bad input); the provider itself is reachable
        logger.warning("LLM call rejected provider=%s model=%s: %s", provider, model, exc)
        raise

    latency_ms = int((time.time() - start) * 1000)
    _circuit_breaker.record_success(provider)

    # Cache the result
    if cache_ttl > 0:
        cache.set(cache_key, response_text, cache_ttl)

    # Track cost
    input_text = system + prompt + (str(messages) if messages else "")
    metrics = CostTracker.track_call(model, input_text, response_text, latency_ms)
    metrics["cache_hit"] = False
    metrics["provider"] = provider

    logger.info(
        "LLM call provider=%s model=%s latency_ms=%s tokens_est=%s",
        provider, model, latency_ms, metrics["total_tokens_est"],
    )
    return response_text, metrics


def configured_llm_call(
    prompt: str,
    system: str = "",
    messages: list[dict] | None = None,
    cache_ttl: int = 0,
    temperature: float | None = None,
    max_tokens: int = 4096,
) -> str:
    """resilient_llm_call() against the app's configured provider and model."""
    provider = _setting("AI_PROVIDER", DEFAULT_PROVIDER)
    model = _setting("AI_MODEL", DEFAULT_MODEL)
    text, _ = resilient_llm_call(
        provider, model, prompt,
        system=system,
        messages=messages,
        cache_ttl=cache_ttl,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return text


def get_circuit_breaker() -> CircuitBreaker:
    """Access the module-level circuit breaker singleton."""
    return _circuit_breaker


def get_cache() -> TTLCache:
    """Access the module-level TTLCache singleton."""
    return _get_cache()
