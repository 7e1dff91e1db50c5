"""Async OpenAI-compatible LLM client.

Wraps ``openai.AsyncOpenAI`` with bounded concurrency, retry with exponential backoff and an
optional fallback model. The same client talks to hosted models (``model_mode="external"``)
and to OpenAI-compatible local servers such as Ollama (``model_mode="local"``).
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Literal, Sequence

from openai import AsyncOpenAI

from taskmind.config import Settings
from taskmind.logging import get_logger

logger = get_logger(__name__)

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """A chat message."""

    role: Role
    content: str


class LLMError(RuntimeError):
    """Raised when a completion fails after all retries and fallbacks."""


class AsyncLLMClient:
    """Async LLM client with concurrency limiting and retry logic."""

    def __init__(self, settings: Settings, *, client: AsyncOpenAI | None = None) -> None:
        """Initialize the client.

        Args:
            settings: Application settings.
            client: Pre-built SDK client; built from ``settings`` when omitted.
        """

        self._settings = settings
        if client is None:
            if settings.model_mode == "local":
                client = AsyncOpenAI(
                    api_key=settings.openai_api_key or "ollama",
                    base_url=settings.local_base_url,
                    max_retries=0,
                )
            else:
                if not settings.openai_api_key:
                    raise ValueError(
                        "Missing TASKMIND_OPENAI_API_KEY. "
                        "Set it in environment variables or a .env file, "
                        "or set TASKMIND_MODEL_MODE=local."
                    )
                client = AsyncOpenAI(
                    api_key=settings.openai_api_key,
                    base_url=settings.openai_base_url,
                    max_retries=0,  # We handle retries ourselves
                )
        self._client = client
        self._semaphore = asyncio.Semaphore(settings.llm_max_concurrent)

    @property
    def default_model(self) -> str:
        if self._settings.model_mode == "local":
            return self._settings.local_model
        return self._settings.openai_model

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        model: str | None = None,
        temperature: float = 0.2,
        json_mode: bool = False,
    ) -> str:
        """Generate a completion.

        The primary model is retried ``llm_max_retries`` times; if it still fails and a
        fallback model is configured (external mode only), the fallback is tried once.

        Args:
            messages: Chat messages.
            model: Model override; defaults to the mode's generation model.
            temperature: Sampling temperature.
            json_mode: Request a JSON object response format.

        Returns:
            Assistant message content.

        Raises:
            LLMError: If every attempt failed.
        """

        primary = model or self.default_model
        try:
            return await self._complete_with_retry(messages, primary, temperature, json_mode)
        except LLMError:
            fallback = self._settings.openai_fallback_model
            if self._settings.model_mode == "local" or not fallback or fallback == primary:
                raise
            logger.warning("Primary model failed, falling back", extra={"model": primary, "fallback": fallback})
            return await self._complete_with_retry(messages, fallback, temperature, json_mode, max_retries=0)

    async def _complete_with_retry(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        temperature: float,
        json_mode: bool,
        *,
        max_retries: int | None = None,
    ) -> str:
        payload: list[dict[str, str]] = [{"role": m.role, "content": m.content} for m in messages]
        retries = self._settings.llm_max_retries if max_retries is None else max_retries
        extra: dict[str, Any] = {}
        if json_mode:
            extra["response_format"] = {"type": "json_object"}

        last_error: Exception | None = None
        for attempt in range(retries + 1):
            try:
                async with self._semaphore:
                    started = time.monotonic()
                    resp = await self._client.chat.completions.create(
                        model=model,
                        messages=payload,
                        temperature=temperature,
                        timeout=self._settings.openai_timeout_s,
                        **extra,
                    )
                logger.debug(
                    "LLM completion successful",
                    extra={"model": model, "latency_ms": int((time.monotonic() - started) * 1000)},
                )
                choice = resp.choices[0]
                if not choice.message or choice.message.content is None:
                    return ""
                return choice.message.content
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                if attempt < retries:
                    wait_time = self._settings.llm_retry_backoff_s * (2**attempt)
                    logger.warning(
                        "LLM request failed, retrying",
                        extra={"model": model, "attempt": attempt + 1, "wait_time": wait_time, "error": str(e)},
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error("LLM request failed after retries", extra={"model": model, "error": str(e)})

        raise LLMError(f"LLM request failed after {retries} retries: {last_error}") from last_error
