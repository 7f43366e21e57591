"""Embedding backends."""

from .base import Embedder
from .openrouter import DEFAULT_MODEL, OpenRouterEmbeddingClient, prepare_text

__all__ = ["DEFAULT_MODEL", "Embedder", "OpenRouterEmbeddingClient", "prepare_text"]
