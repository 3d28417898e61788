from __future__ import annotations

import hashlib
from typing import Any, List, Optional, Protocol, Sequence

import numpy as np
from openai import OpenAI

from paperlens.store.bm25 import default_tokenizer


class Embedder(Protocol):
    """Simple embedding interface for pluggable models."""

    def embed(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        """Return vector representations for the provided texts."""


class HashingEmbedder:
    """Deterministic bag-of-words embedder using the hashing trick.

    Tokens are hashed with BLAKE2b so vectors are stable across processes.
    Good enough for keyword-level similarity without a model download.
    """

    def __init__(self, dimension: int = 256) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self.dimension = dimension

    def _bucket(self, token: str) -> tuple[int, float]:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self.dimension, sign

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        matrix = np.zeros((len(texts), self.dimension), dtype="float32")
        for row, text in enumerate(texts):
            for token in default_tokenizer(text):
                column, sign = self._bucket(token)
                matrix[row, column] += sign
        return matrix


class OpenAIEmbedder:
    """Embeddings from the OpenAI embeddings endpoint."""

    def __init__(
        self,
        model: str,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        client: Any = None,
    ) -> None:
        if client is None:
            client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self.client = client
        self.model = model

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        response = self.client.embeddings.create(model=self.model, input=list(texts))
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]


__all__ = ["Embedder", "HashingEmbedder", "OpenAIEmbedder"]
