# src/todovex/llm/client.py

from __future__ import annotations

import logging
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ..errors import ConfigurationError, ContextLengthError, InvalidResponseError, UpstreamError

logger = logging.getLogger(__name__)


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_context_length_error(exc: Exception) -> bool:
    if not isinstance(exc, openai.BadRequestError):
        return False
    if getattr(exc, "code", None) == "context_length_exceeded":
        return True
    return "context length" in str(exc).lower()


def _is_connection_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.APIConnectionError, openai.APITimeoutError))


class OpenAIChatClient:
    """
    Chat completions that must answer with one JSON object.

    - One request per call; the SDK's automatic retries are disabled.
    - Provider failures are mapped onto todovex error kinds.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = "gpt-3.5-turbo",
        base_url: str | None = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
        client: AsyncOpenAI | Any | None = None,
    ) -> None:
        if client is None:
            if not api_key or not api_key.strip():
                raise ConfigurationError("LLM API key is not set. Set TODOVEX_OPENAI_API_KEY in your .env.")
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url or None,
                timeout=httpx.Timeout(connect=connect_timeout, read=read_timeout, write=10.0, pool=connect_timeout),
                max_retries=0,
            )
        self._client = client
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            await close()

    async def complete_json(self, system_prompt: str, user_content: str) -> str:
        logger.info("LLM: requesting JSON completion model=%s input_chars=%d", self._model, len(user_content))
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            if _is_context_length_error(e):
                raise ContextLengthError("Input exceeds the model's context length.") from e
            if _is_auth_error(e):
                raise UpstreamError("LLM authentication failed. Check your API key (TODOVEX_OPENAI_API_KEY).") from e
            if _is_connection_error(e):
                raise UpstreamError("LLM network/timeout error. Try again later.") from e
            raise UpstreamError(f"LLM request failed: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError):
            content = None

        if not content:
            raise InvalidResponseError("No suggestions received from AI")
        logger.debug("LLM: completion received chars=%d", len(content))
        return content
