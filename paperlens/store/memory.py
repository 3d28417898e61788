from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from paperlens.exceptions import StoreError
from paperlens.models import PaperChunk, PaperFigure, PaperReference
from paperlens.store.base import ChunkHit
from paperlens.store.bm25 import BM25Index
from paperlens.store.embeddings import Embedder, HashingEmbedder
from paperlens.store.faiss_index import FaissVectorIndex

logger = logging.getLogger(__name__)


@dataclass
class _PaperRecords:
    chunks: Dict[str, PaperChunk] = field(default_factory=dict)
    figures: Dict[str, PaperFigure] = field(default_factory=dict)
    citations: Dict[str, PaperReference] = field(default_factory=dict)
    bm25: Optional[BM25Index] = None
    vector: Optional[FaissVectorIndex] = None


class InMemoryPaperStore:
    """Process-local store with BM25 and FAISS indices per paper.

    Hybrid queries fuse both rankings with weighted reciprocal rank fusion:
    each hit contributes ``weight / (rrf_k + rank)``, where the vector side
    carries ``alpha`` and the lexical side ``1 - alpha``.
    """

    def __init__(
        self,
        embedder: Optional[Embedder] = None,
        *,
        rrf_k: int = 60,
        candidate_multiplier: int = 3,
        bm25_factory: Callable[[], BM25Index] = BM25Index,
    ) -> None:
        self.embedder = embedder or HashingEmbedder()
        self.rrf_k = rrf_k
        self.candidate_multiplier = candidate_multiplier
        self._bm25_factory = bm25_factory
        self._papers: Dict[str, _PaperRecords] = {}
        self._lock = threading.RLock()

    def _records(self, paper_id: str) -> _PaperRecords:
        if not paper_id:
            raise StoreError("paper_id is required")
        return self._papers.setdefault(paper_id, _PaperRecords())

    def upsert_chunks(self, chunks: Sequence[PaperChunk]) -> None:
        by_paper: Dict[str, List[PaperChunk]] = {}
        for chunk in chunks:
            by_paper.setdefault(chunk.paper_id, []).append(chunk)

        with self._lock:
            for paper_id, items in by_paper.items():
                records = self._records(paper_id)
                for chunk in items:
                    records.chunks[chunk.chunk_id] = chunk
                self._reindex(paper_id, records)

    def _reindex(self, paper_id: str, records: _PaperRecords) -> None:
        ordered = list(records.chunks.values())
        bm25 = self._bm25_factory()
        bm25.add_many(ordered)
        vector = FaissVectorIndex(self.embedder)
        try:
            vector.add_many(ordered)
        except ValueError as exc:
            raise StoreError(f"Unable to index chunks for {paper_id}: {exc}") from exc
        records.bm25 = bm25
        records.vector = vector
        logger.debug("Indexed %d chunks for %s", len(ordered), paper_id)

    def upsert_figures(self, paper_id: str, figures: Sequence[PaperFigure]) -> None:
        with self._lock:
            records = self._records(paper_id)
            for figure in figures:
                records.figures[figure.id] = figure

    def upsert_citations(self, paper_id: str, references: Sequence[PaperReference]) -> None:
        with self._lock:
            records = self._records(paper_id)
            for reference in references:
                records.citations[reference.id] = reference

    def fetch_chunks(self, paper_id: str) -> List[PaperChunk]:
        records = self._papers.get(paper_id)
        return list(records.chunks.values()) if records else []

    def fetch_figures(self, paper_id: str) -> List[PaperFigure]:
        records = self._papers.get(paper_id)
        return list(records.figures.values()) if records else []

    def fetch_citations(self, paper_id: str) -> List[PaperReference]:
        records = self._papers.get(paper_id)
        return list(records.citations.values()) if records else []

    def hybrid_query(self, paper_id: str, text: str, limit: int, alpha: float) -> List[ChunkHit]:
        records = self._papers.get(paper_id)
        if records is None or records.bm25 is None or records.vector is None or limit <= 0:
            return []
        if not text.strip():
            return []

        candidates = max(limit * self.candidate_multiplier, limit)
        fused: Dict[str, ChunkHit] = {}
        if alpha < 1.0:
            self._accumulate(fused, records.bm25.search(text, k=candidates), weight=1.0 - alpha)
        if alpha > 0.0:
            try:
                vector_hits = records.vector.search(text, k=candidates)
            except ValueError as exc:
                raise StoreError(f"Vector query failed for {paper_id}: {exc}") from exc
            self._accumulate(fused, vector_hits, weight=alpha)

        order = {chunk_id: index for index, chunk_id in enumerate(records.chunks)}
        ranked = sorted(fused.values(), key=lambda hit: (-(hit.score or 0.0), order[hit.chunk_id]))
        return ranked[:limit]

    def _accumulate(
        self, fused: Dict[str, ChunkHit], results: List[Tuple[PaperChunk, float]], *, weight: float
    ) -> None:
        for rank, (chunk, _score) in enumerate(results, start=1):
            contribution = weight / (self.rrf_k + rank)
            hit = fused.get(chunk.chunk_id)
            if hit is None:
                fused[chunk.chunk_id] = ChunkHit(chunk=chunk, score=contribution)
            else:
                hit.score = (hit.score or 0.0) + contribution

    def range_query(self, paper_id: str, page_min: int, page_max: int, limit: int) -> List[ChunkHit]:
        records = self._papers.get(paper_id)
        if records is None or limit <= 0:
            return []
        hits = [
            ChunkHit(chunk=chunk)
            for chunk in records.chunks.values()
            if chunk.page_number is not None and page_min <= chunk.page_number <= page_max
        ]
        return hits[:limit]


__all__ = ["InMemoryPaperStore"]
