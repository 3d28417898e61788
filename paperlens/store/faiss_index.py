from __future__ import annotations

from typing import Any, Iterable, List, Tuple

import numpy as np

from paperlens.models import PaperChunk
from paperlens.store.embeddings import Embedder


class FaissVectorIndex:
    """Inner-product FAISS index over L2-normalized chunk embeddings."""

    def __init__(self, embedder: Embedder, *, normalize: bool = True) -> None:
        self.embedder = embedder
        self.normalize = normalize
        self._faiss = _load_faiss()
        self._index: Any | None = None
        self._chunks: List[PaperChunk] = []
        self._dim: int | None = None

    def __len__(self) -> int:
        return len(self._chunks)

    def add_many(self, chunks: Iterable[PaperChunk]) -> None:
        chunks = list(chunks)
        if not chunks:
            return
        matrix = self._embed_texts([chunk.text for chunk in chunks])
        dimension = matrix.shape[1]
        if self._dim is None:
            self._dim = dimension
            self._index = self._faiss.IndexFlatIP(dimension)
        elif dimension != self._dim:
            raise ValueError(f"Embedding dimension mismatch: expected {self._dim}, got {dimension}")
        self._index.add(matrix)
        self._chunks.extend(chunks)

    def search(self, query: str, *, k: int = 10) -> List[Tuple[PaperChunk, float]]:
        if not query or not self._chunks or self._index is None:
            return []

        query_vector = self._embed_texts([query])
        if query_vector.shape[1] != self._dim:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self._dim}, got {query_vector.shape[1]}"
            )
        scores, indices = self._index.search(query_vector, min(k, len(self._chunks)))

        results: List[Tuple[PaperChunk, float]] = []
        for score, idx in zip(scores[0], indices[0]):
            if idx == -1:
                continue
            results.append((self._chunks[idx], float(score)))
        return results

    def _embed_texts(self, texts: List[str]) -> np.ndarray:
        matrix = np.ascontiguousarray(np.array(self.embedder.embed(texts), dtype="float32"))
        if matrix.ndim != 2:
            raise ValueError("Embedder must return one vector per text")
        if self.normalize:
            self._faiss.normalize_L2(matrix)
        return matrix


def _load_faiss():
    try:
        import faiss
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise ImportError(
            "Hybrid retrieval requires 'faiss-cpu'. Install it with `pip install faiss-cpu`."
        ) from exc
    return faiss


__all__ = ["FaissVectorIndex"]
