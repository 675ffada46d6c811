"""
Generation Engine Adapter
=========================

Thin adapter over an OpenAI-compatible chat completion backend. The pipeline
only sees the ``GenerationEngine`` protocol; provider exceptions are
classified into ``EngineUnavailable`` (transient) or ``EngineRejected``
(permanent) before they leave this module.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Optional, Protocol

import httpx
import openai

from config import config
from errors import EngineRejected, EngineUnavailable, GenerationError
from models import EngineResponse, PromptPayload, SamplingConfig, TokenUsage

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {408, 409, 425, 429, 500, 502, 503, 504}
REJECTED_STATUS_CODES = {400, 401, 403, 404, 422}
REJECTED_FINISH_REASONS = {"content_filter"}

TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "temporarily unavailable",
    "internal server error",
    "gateway",
    "rate limit",
    "overloaded",
    "service unavailable",
    "connection reset",
    "connection refused",
    "dns",
    "network",
)


class GenerationEngine(Protocol):
    async def generate(self, payload: PromptPayload, sampling: SamplingConfig) -> EngineResponse:
        ...


def _status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_engine_error(exc: BaseException) -> GenerationError:
    """Map any backend exception onto the pipeline's error taxonomy."""
    if isinstance(exc, GenerationError):
        return exc

    if isinstance(exc, (asyncio.TimeoutError, openai.APITimeoutError)):
        return EngineUnavailable(f"Engine call timed out: {exc}", cause=exc)
    if isinstance(exc, openai.APIConnectionError):
        return EngineUnavailable(f"Engine connection failed: {exc}", cause=exc)

    status = _status_of(exc)
    if status is not None:
        if status in TRANSIENT_STATUS_CODES or status >= 500:
            return EngineUnavailable(f"Engine returned HTTP {status}: {exc}", cause=exc)
        if status in REJECTED_STATUS_CODES or 400 <= status < 500:
            return EngineRejected(f"Engine rejected the request (HTTP {status}): {exc}", cause=exc)

    if isinstance(exc, (ConnectionError, OSError)):
        return EngineUnavailable(f"Engine connection failed: {exc}", cause=exc)

    message = str(exc).lower()
    if any(marker in message for marker in TRANSIENT_MARKERS):
        return EngineUnavailable(f"Engine call failed: {exc}", cause=exc)

    # Anything unrecognised is treated as an internal fault and surfaced as retryable
    return EngineUnavailable(f"Unexpected engine failure: {exc}", cause=exc)


def _normalize_usage(usage_obj: Any) -> TokenUsage:
    """Extract token metrics from provider usage objects or dicts."""
    if usage_obj is None:
        return TokenUsage()

    def _pluck(*names: str) -> Optional[int]:
        for name in names:
            if isinstance(usage_obj, dict) and usage_obj.get(name) is not None:
                return usage_obj[name]
            value = getattr(usage_obj, name, None)
            if isinstance(value, int):
                return value
        return None

    prompt_tokens = _pluck("prompt_tokens", "input_tokens") or 0
    completion_tokens = _pluck("completion_tokens", "output_tokens") or 0
    total_tokens = _pluck("total_tokens")
    return TokenUsage(
        prompt_tokens=int(prompt_tokens),
        completion_tokens=int(completion_tokens),
        total_tokens=int(total_tokens) if total_tokens is not None else int(prompt_tokens + completion_tokens),
    )


class OpenAIEngine:
    """Chat-completions engine authenticated with a bearer token from config."""

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Any = None,
    ):
        self.model = model or config.ENGINE_MODEL
        self._api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self._base_url = base_url if base_url is not None else config.ENGINE_BASE_URL
        self._client = client
        self._client_lock = threading.Lock()

    def _get_client(self):
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    if not self._api_key:
                        raise EngineRejected("Engine API key is not configured (set OPENAI_API_KEY)")
                    # Retries are owned by the refinement controller
                    self._client = openai.AsyncOpenAI(
                        api_key=self._api_key,
                        base_url=self._base_url or None,
                        max_retries=0,
                        timeout=httpx.Timeout(config.ENGINE_TIMEOUT_SECONDS, connect=10.0),
                    )
        return self._client

    async def generate(self, payload: PromptPayload, sampling: SamplingConfig) -> EngineResponse:
        client = self._get_client()
        messages = [
            {"role": "system", "content": payload.system_prompt},
            {"role": "user", "content": payload.user_prompt},
        ]
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=sampling.temperature,
                max_tokens=sampling.max_tokens,
            )
        except Exception as exc:
            raise classify_engine_error(exc) from exc

        if not getattr(response, "choices", None):
            raise EngineUnavailable("Engine returned no choices")

        choice = response.choices[0]
        finish_reason = getattr(choice, "finish_reason", None)
        message = getattr(choice, "message", None)
        refusal = getattr(message, "refusal", None)
        if finish_reason in REJECTED_FINISH_REASONS or refusal:
            raise EngineRejected(f"Engine refused to generate content: {refusal or finish_reason}")

        text = (getattr(message, "content", None) or "").strip()
        if not text:
            raise EngineUnavailable("Engine returned an empty completion")

        return EngineResponse(
            text=text,
            usage=_normalize_usage(getattr(response, "usage", None)),
            finish_reason=finish_reason,
            model=getattr(response, "model", None) or self.model,
        )


async def generate_with_retries(
    engine: GenerationEngine,
    payload: PromptPayload,
    sampling: SamplingConfig,
    *,
    timeout: float,
    max_attempts: int,
    base_delay: float,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, GenerationError], None]] = None,
    deadline: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> EngineResponse:
    """
    Call the engine with a per-call timeout, retrying transient failures.

    ``EngineUnavailable`` is retried up to ``max_attempts`` with exponential
    backoff (``base_delay * 2 ** (attempt - 1)``); ``EngineRejected`` is
    raised on the first occurrence.

    ``deadline`` is an absolute ``clock()`` value: each attempt's timeout is
    cut to the time left, and no attempt or backoff sleep starts past it.
    """
    last_error: Optional[GenerationError] = None
    attempts = 0
    out_of_time = False
    for attempt in range(1, max_attempts + 1):
        attempt_timeout = timeout
        if deadline is not None:
            remaining = deadline - clock()
            if remaining <= 0:
                out_of_time = True
                break
            attempt_timeout = min(timeout, remaining)
        attempts = attempt
        try:
            return await asyncio.wait_for(engine.generate(payload, sampling), timeout=attempt_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = classify_engine_error(exc)
            if isinstance(error, EngineRejected):
                if error is exc:
                    raise
                raise error from exc
            last_error = error
            if attempt >= max_attempts:
                break
            delay = base_delay * (2 ** (attempt - 1))
            if deadline is not None and clock() + delay >= deadline:
                logger.warning("Engine call failed on attempt %d/%d; no time left to retry", attempt, max_attempts)
                out_of_time = True
                break
            logger.warning("Engine call failed on attempt %d/%d: %s", attempt, max_attempts, error.message)
            if on_retry is not None:
                on_retry(attempt, error)
            await sleep(delay)

    if last_error is None:
        raise EngineUnavailable("Deadline passed before the engine could be called", deadline_reached=True)
    raise EngineUnavailable(
        f"Engine unavailable after {attempts} attempt(s): {last_error.message}",
        cause=last_error,
        deadline_reached=out_of_time or (deadline is not None and clock() >= deadline),
    )


_shared_engine: Optional[OpenAIEngine] = None
_engine_init_lock = threading.Lock()


def get_engine() -> OpenAIEngine:
    """Return the shared engine adapter, creating it on first use."""
    global _shared_engine
    if _shared_engine is None:
        with _engine_init_lock:
            if _shared_engine is None:
                _shared_engine = OpenAIEngine()
    return _shared_engine
