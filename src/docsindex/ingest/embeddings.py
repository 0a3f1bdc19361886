"""Embedding providers — text → fixed-dimension vectors via LiteLLM.

A provider's ``id`` decides which vector table its vectors are stored in;
vectors from two providers are never mixed in one table.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod

import litellm

from docsindex.config import EmbeddingCfg, PreIndexedCfg

_ENV_KEYS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
}


class MissingApiKeyError(RuntimeError):
    """Raised when the embedding model's provider has no API key configured."""

    def __init__(self, provider: str, env_var: str) -> None:
        super().__init__(
            f"No API key found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )
        self.provider = provider
        self.env_var = env_var


class EmbeddingProvider(ABC):
    """Abstract embedding capability.

    Attributes:
        id: Stable identity string; determines the vector table name.
        max_chunk_size: Largest chunk (in tokens) the provider accepts.
    """

    id: str
    max_chunk_size: int

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in input order."""


class LiteLLMEmbeddingProvider(EmbeddingProvider):
    """Embed texts with ``litellm.aembedding()`` in batches.

    Args:
        model: LiteLLM model string (provider/model format).
        max_chunk_size: Maximum chunk size in tokens.
        batch_size: Texts per embedding request.
    """

    def __init__(self, model: str, max_chunk_size: int = 512, batch_size: int = 64) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.id = model
        self.model = model
        self.max_chunk_size = max_chunk_size
        self.batch_size = batch_size

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        self._check_api_key()

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            response = await litellm.aembedding(model=self.model, input=batch)
            vectors.extend(item["embedding"] for item in response.data)

        if len(vectors) != len(texts):
            raise RuntimeError(
                f"Embedding model '{self.model}' returned {len(vectors)} vectors "
                f"for {len(texts)} texts."
            )
        return vectors

    def _check_api_key(self) -> None:
        """Raise MissingApiKeyError if no API key is available for the model's provider."""
        provider = self.model.split("/")[0].lower() if "/" in self.model else ""
        required_env = _ENV_KEYS.get(provider)
        if required_env and not os.environ.get(required_env):
            raise MissingApiKeyError(provider, required_env)

    def __repr__(self) -> str:
        return f"LiteLLMEmbeddingProvider(model={self.model!r})"


def provider_from_config(cfg: EmbeddingCfg) -> LiteLLMEmbeddingProvider:
    """Build the configured embedding provider."""
    return LiteLLMEmbeddingProvider(
        cfg.model, max_chunk_size=cfg.max_chunk_size, batch_size=cfg.batch_size
    )


def preindexed_provider_from_config(cfg: PreIndexedCfg) -> LiteLLMEmbeddingProvider:
    """Build the provider that pre-indexed bundles were embedded with."""
    return LiteLLMEmbeddingProvider(cfg.model, max_chunk_size=cfg.max_chunk_size)
