"""Query contract between the pipelines and a chunk store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from paperlens.models import PaperChunk, PaperFigure, PaperReference


@dataclass
class ChunkHit:
    """A stored chunk returned by a query, with its relevance score when ranked."""

    chunk: PaperChunk
    score: Optional[float] = None

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    @property
    def page_number(self) -> Optional[int]:
        return self.chunk.page_number


class PaperStore(Protocol):
    """Storage for chunks, figures and citations, scoped by paper id.

    Upserts are keyed by ``(paper_id, record id)``; the last write wins.
    """

    def upsert_chunks(self, chunks: Sequence[PaperChunk]) -> None: ...

    def upsert_figures(self, paper_id: str, figures: Sequence[PaperFigure]) -> None: ...

    def upsert_citations(self, paper_id: str, references: Sequence[PaperReference]) -> None: ...

    def fetch_chunks(self, paper_id: str) -> List[PaperChunk]: ...

    def fetch_figures(self, paper_id: str) -> List[PaperFigure]: ...

    def fetch_citations(self, paper_id: str) -> List[PaperReference]: ...

    def hybrid_query(self, paper_id: str, text: str, limit: int, alpha: float) -> List[ChunkHit]:
        """Blend lexical and vector ranking; ``alpha`` is the vector weight."""

    def range_query(self, paper_id: str, page_min: int, page_max: int, limit: int) -> List[ChunkHit]:
        """Chunks whose page number lies in ``[page_min, page_max]``, in document order."""


__all__ = ["ChunkHit", "PaperStore"]
