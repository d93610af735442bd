# src/todovex/llm/embeddings.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)


class OpenAIEmbeddingClient:
    """
    Text embeddings over the provider's REST endpoint.

    One POST per text: no caching, no batching, no retries.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = "text-embedding-ada-002",
        base_url: str = "https://api.openai.com/v1",
        dimensions: int | None = 1536,
        timeout: float | httpx.Timeout = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ConfigurationError("OpenAI API key is not defined. Set TODOVEX_OPENAI_API_KEY in your .env.")
        self._api_key = api_key
        self._model = model
        self._dims = dimensions
        self._url = base_url.rstrip("/") + "/embeddings"
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def embed(self, text: str) -> list[float]:
        payload = {"input": text, "model": self._model, "encoding_format": "float"}
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            resp = await self._http.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Embedding request failed: {e.__class__.__name__}") from e

        if not resp.is_success:
            raise UpstreamError(f"OpenAI API Error: {_error_message(resp)}")

        try:
            body: Any = resp.json()
        except ValueError as e:
            raise UpstreamError("Embedding response is not JSON") from e

        vector = _extract_vector(body)
        if vector is None:
            raise UpstreamError("Unexpected embedding response shape")
        if self._dims is not None and len(vector) != self._dims:
            raise UpstreamError(
                f"Unexpected embedding size from {self._model}: {len(vector)} dimensions, expected {self._dims}"
            )

        logger.info("Generated embedding for %r: %d dimensions", text[:80], len(vector))
        return vector


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return resp.text[:200] or f"HTTP {resp.status_code}"


def _extract_vector(body: Any) -> list[float] | None:
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return None
    emb = data[0].get("embedding")
    if not isinstance(emb, list) or not emb:
        return None
    if not all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in emb):
        return None
    return [float(x) for x in emb]
