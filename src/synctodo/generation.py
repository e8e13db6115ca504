from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx
import openai
from openai import AsyncOpenAI

from .errors import GenerationError
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


class GenerationService(Protocol):
    """Text completion port used by the assistant adapter."""

    async def generate(self, prompt: str, *, json_mode: bool = False) -> str: ...


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


# PUBLIC_INTERFACE
class OpenAIGenerationService:
    """
    Generation service backed by an OpenAI-compatible chat completions endpoint.

    Behavior:
    - Tries models in the configured order (ASSISTANT_MODELS).
    - 404 / rate limit / network issues on one model -> try the next one.
    - Auth issues -> fail fast.
    - Any failure, or an empty answer from every model, raises GenerationError.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None) -> None:
        self._settings = settings or get_settings()
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        """Lazily create the client; no secrets are needed until the first call."""
        if self._client is not None:
            return self._client
        if not self._settings.assistant_api_key:
            raise GenerationError("Assistant API key is missing. Set ASSISTANT_API_KEY in your environment.")
        timeout = self._settings.assistant_timeout_seconds
        self._client = AsyncOpenAI(
            api_key=self._settings.assistant_api_key,
            base_url=self._settings.assistant_base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            # Retries are not the adapter's job; fall through to the next model instead
            max_retries=0,
        )
        return self._client

    async def generate(self, prompt: str, *, json_mode: bool = False) -> str:
        models: List[str] = [m for m in self._settings.assistant_models if m.strip()]
        if not models:
            raise GenerationError("Assistant model list is empty. Set ASSISTANT_MODELS in your environment.")
        client = self._get_client()

        kwargs: Dict[str, Any] = {
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.3,
            "top_p": 0.95,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        last_error: Optional[Exception] = None
        for model in models:
            logger.info("Assistant: calling model=%s json_mode=%s", model, json_mode)
            try:
                completion = await client.chat.completions.create(model=model, **kwargs)
            except openai.OpenAIError as e:
                last_error = e
                if _is_auth_error(e):
                    raise GenerationError(f"Assistant authentication failed: {e}") from e
                if _is_not_found_error(e):
                    logger.info("Assistant: model not available (404): %s", model)
                else:
                    logger.info("Assistant: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            text = ""
            if completion.choices:
                text = (completion.choices[0].message.content or "").strip()
            if text:
                return text
            logger.info("Assistant: model=%s returned no content", model)
            last_error = GenerationError(f"Model returned no content: {model}")

        if isinstance(last_error, GenerationError):
            raise last_error
        raise GenerationError(f"Assistant request failed: {last_error}") from last_error
