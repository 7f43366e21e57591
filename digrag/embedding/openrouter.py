"""Client for the OpenRouter embeddings endpoint."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from ..cache import LruCache
from ..clients.base import BaseHttpClient, ClientError, RequestRejectedError, ResponseParseError
from ..exceptions import ConfigError
from ..telemetry import TelemetryCollector

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "openai/text-embedding-3-small"
MAX_TEXT_CHARS = 6000
EMPTY_TEXT_PLACEHOLDER = "(empty)"
DEFAULT_REFERER = "https://github.com/takets/changelog"
DEFAULT_TITLE = "digrag"


def prepare_text(text: str) -> str:
    """Trim ``text`` and clamp it to what the embedding model accepts."""

    trimmed = text.strip()
    if not trimmed:
        return EMPTY_TEXT_PLACEHOLDER
    if len(trimmed) > MAX_TEXT_CHARS:
        return trimmed[: MAX_TEXT_CHARS - 3] + "..."
    return trimmed


class OpenRouterEmbeddingClient(BaseHttpClient):
    """Embed texts through OpenRouter's OpenAI-compatible ``/embeddings`` API."""

    BASE_URL = "https://openrouter.ai/api/v1"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        cache: Optional[LruCache[List[float]]] = None,
        telemetry: Optional[TelemetryCollector] = None,
        referer: str = DEFAULT_REFERER,
        title: str = DEFAULT_TITLE,
    ) -> None:
        if not api_key:
            raise ConfigError("An OpenRouter API key is required for embeddings")
        super().__init__(session=session, base_url=base_url, timeout=timeout)
        self._api_key = api_key
        self._model = model
        self.cache = cache
        self.telemetry = telemetry
        self._extra_headers = {"HTTP-Referer": referer, "X-Title": title}

    @property
    def model_name(self) -> str:
        return self._model

    def embed(self, text: str) -> List[float]:
        """Embed one text, consulting the cache when one is attached."""

        key = None
        if self.cache is not None:
            key = LruCache.generate_key(prepare_text(text), self._model)
            cached = self.cache.get(key)
            if cached is not None:
                return list(cached)

        vector = self.embed_batch([text])[0]
        if self.cache is not None and key is not None:
            self.cache.insert(key, vector)
        return vector

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []

        payload = {"model": self._model, "input": [prepare_text(text) for text in texts]}
        headers = {"Authorization": f"Bearer {self._api_key}", **self._extra_headers}

        started = time.perf_counter()
        try:
            response = self._request("POST", "/embeddings", json=payload, headers=headers)
            vectors, prompt_tokens = self._parse_embeddings(response, expected=len(texts))
        except ClientError as exc:
            status = exc.status if isinstance(exc, RequestRejectedError) else None
            self._log_failed_request("embeddings", status=status, detail=str(exc))
            if self.telemetry is not None:
                self.telemetry.record_exception(exc, model=self._model)
            raise

        if self.telemetry is not None:
            self.telemetry.record_success(prompt_tokens, latency_s=time.perf_counter() - started)
        logger.debug("Embedded %d texts with %s", len(texts), self._model)
        return vectors

    def _parse_embeddings(
        self, response: requests.Response, *, expected: int
    ) -> Tuple[List[List[float]], int]:
        try:
            body: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise ResponseParseError(f"Embedding response is not JSON: {exc}") from exc

        if not isinstance(body, dict):
            raise ResponseParseError("Embedding response is not a JSON object")

        error = body.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ResponseParseError(f"API error: {message}")

        data = body.get("data")
        if not isinstance(data, list):
            raise ResponseParseError("Embedding response has no 'data' list")
        if len(data) != expected:
            raise ResponseParseError(f"Expected {expected} embeddings, got {len(data)}")

        try:
            ordered = sorted(data, key=lambda item: int(item.get("index", 0)))
            vectors = [[float(value) for value in item["embedding"]] for item in ordered]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ResponseParseError(f"Malformed embedding entry: {exc}") from exc

        usage = body.get("usage") or {}
        if not isinstance(usage, dict):
            raise ResponseParseError("Embedding response has a malformed 'usage' field")
        try:
            prompt_tokens = int(usage.get("prompt_tokens") or usage.get("total_tokens") or 0)
        except (TypeError, ValueError) as exc:
            raise ResponseParseError(f"Malformed token usage: {exc}") from exc
        return vectors, prompt_tokens


__all__ = ["DEFAULT_MODEL", "OpenRouterEmbeddingClient", "prepare_text"]
