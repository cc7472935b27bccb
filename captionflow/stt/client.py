"""Async HTTP client for remote speech-to-text endpoints.

One :meth:`TranscriptionClient.transcribe` call sends one segment's audio to
the configured provider and returns the parsed JSON payload. Transient
failures (rate limiting, model warm-up, transport errors) are retried here,
at call level, under a :class:`~captionflow.utils.retry.RetryPolicy`. The
payload is returned uninterpreted; see :mod:`captionflow.timestamps.normalize`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import httpx

from captionflow.config import STTConfig
from captionflow.errors import (
    ConfigurationError,
    MalformedResponseError,
    ModelLoadingError,
    RateLimitedError,
    RetryableCallError,
    TranscriptionCallError,
    TransportCallError,
)
from captionflow.stt.providers import OPENAI
from captionflow.utils.constant import ACCEPTED_AUDIO_MIME_TYPES
from captionflow.utils.retry import RetryPolicy, exponential_backoff, retry_async

__all__ = ["TranscriptionClient", "error_detail"]

logger = logging.getLogger(__name__)

_DETAIL_KEYS = ("error", "detail", "message")
_DETAIL_SNIPPET_CHARS = 300


def error_detail(response: httpx.Response) -> str:
    """Extract a human-readable error message from an HTTP response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()[:_DETAIL_SNIPPET_CHARS]
    if isinstance(body, dict):
        for key in _DETAIL_KEYS:
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    return response.text.strip()[:_DETAIL_SNIPPET_CHARS]


def _mentions_loading(text: str) -> bool:
    return "loading" in text.lower()


class TranscriptionClient:
    """Send audio to a Hugging Face or OpenAI-compatible STT endpoint.

    Hugging Face receives the raw audio as the request body with
    ``return_timestamps=word`` and an optional ``language`` query parameter.
    OpenAI receives a multipart upload asking for ``verbose_json`` with word
    and segment timestamps.

    The client owns an ``httpx.AsyncClient`` only when none is injected; use
    it as an async context manager to reuse one connection pool across
    segments.
    """

    def __init__(
        self,
        config: STTConfig,
        http_client: httpx.AsyncClient | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self._http = http_client
        self._owns_http = http_client is None
        self._sleep = sleep
        self._rate_limit_wait = exponential_backoff(config.backoff_base_sec, config.backoff_max_sec)
        self.policy = RetryPolicy(
            max_attempts=config.max_retries,
            wait=self._wait_seconds,
            retry_on=(RetryableCallError,),
            name=f"{config.provider} STT call",
        )

    async def __aenter__(self) -> TranscriptionClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.config.timeout_sec)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http is not None:
            yield self._http
            return
        async with httpx.AsyncClient(timeout=self.config.timeout_sec) as http:
            yield http

    def _wait_seconds(self, attempt: int, exc: BaseException | None) -> float:
        """Fixed warm-up wait for a loading model, exponential backoff otherwise."""
        if isinstance(exc, ModelLoadingError):
            return self.config.loading_wait_sec
        return self._rate_limit_wait(attempt, exc)  # type: ignore[arg-type]

    async def transcribe(
        self,
        audio: bytes,
        language: str | None = None,
        content_type: str = "audio/wav",
    ) -> dict[str, Any]:
        """Transcribe one segment's audio.

        Args:
            audio: Encoded audio bytes.
            language: ``"hi"``, ``"en"`` or ``None``/``"auto"`` to let the
                provider detect the language.
            content_type: MIME type of ``audio``.

        Returns:
            The provider's JSON payload.

        Raises:
            RetryableCallError: When retries are exhausted on a transient error.
            MalformedResponseError: When a 2xx body is empty or not a JSON object.
            ConfigurationError: When the provider rejects the API key (401/403).
            TranscriptionCallError: For any other provider error.
        """
        lang = None if not language or language == "auto" else language
        return await retry_async(
            self.policy,
            self._attempt,
            audio,
            lang,
            content_type,
            sleep=self._sleep,
            log=logger,
        )

    async def _attempt(
        self, audio: bytes, language: str | None, content_type: str
    ) -> dict[str, Any]:
        provider = self.config.provider
        try:
            async with self._session() as http:
                if provider == OPENAI:
                    response = await self._post_openai(http, audio, language, content_type)
                else:
                    response = await self._post_huggingface(http, audio, language, content_type)
        except httpx.TransportError as exc:
            raise TransportCallError(
                f"{provider} STT request failed: {exc.__class__.__name__}: {exc}",
                provider=provider,
            ) from exc
        return self._parse(response)

    async def _post_huggingface(
        self,
        http: httpx.AsyncClient,
        audio: bytes,
        language: str | None,
        content_type: str,
    ) -> httpx.Response:
        params = {"return_timestamps": "word"}
        if language:
            params["language"] = language
        return await http.post(
            self.config.endpoint,
            params=params,
            content=audio,
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": content_type,
            },
            timeout=self.config.timeout_sec,
        )

    async def _post_openai(
        self,
        http: httpx.AsyncClient,
        audio: bytes,
        language: str | None,
        content_type: str,
    ) -> httpx.Response:
        data: dict[str, Any] = {
            "model": self.config.model or "whisper-1",
            "response_format": "verbose_json",
            "timestamp_granularities[]": ["word", "segment"],
        }
        if language:
            data["language"] = language
        suffix = ACCEPTED_AUDIO_MIME_TYPES.get(content_type, ".wav")
        return await http.post(
            self.config.endpoint,
            data=data,
            files={"file": (f"audio{suffix}", audio, content_type)},
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            timeout=self.config.timeout_sec,
        )

    def _parse(self, response: httpx.Response) -> dict[str, Any]:
        provider = self.config.provider
        status = response.status_code

        if status == 429:
            raise RateLimitedError(
                f"{provider} STT rate limited (HTTP 429)",
                provider=provider,
                status_code=status,
                detail=error_detail(response),
            )
        if status == 503 or (status >= 400 and _mentions_loading(response.text)):
            raise ModelLoadingError(
                f"{provider} STT model is loading (HTTP {status})",
                provider=provider,
                status_code=status,
                detail=error_detail(response),
            )
        if status in (401, 403):
            raise ConfigurationError(
                f"{provider} STT rejected the API key (HTTP {status}): {error_detail(response)}"
            )
        if not response.is_success:
            detail = error_detail(response)
            raise TranscriptionCallError(
                f"{provider} STT request failed with HTTP {status}: {detail}",
                provider=provider,
                status_code=status,
                detail=detail,
            )

        if not response.content.strip():
            raise MalformedResponseError(
                f"{provider} STT returned an empty body", provider=provider, status_code=status
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"{provider} STT returned a non-JSON body",
                provider=provider,
                status_code=status,
                detail=response.text.strip()[:_DETAIL_SNIPPET_CHARS],
            ) from exc
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"{provider} STT returned {type(payload).__name__} instead of an object",
                provider=provider,
                status_code=status,
            )

        error = payload.get("error")
        if error:
            message = error if isinstance(error, str) else str(error)
            if _mentions_loading(message):
                raise ModelLoadingError(
                    f"{provider} STT model is loading",
                    provider=provider,
                    status_code=status,
                    detail=message,
                )
            raise TranscriptionCallError(
                f"{provider} STT error: {message}",
                provider=provider,
                status_code=status,
                detail=message,
            )
        return payload
