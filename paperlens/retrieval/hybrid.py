from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from paperlens.config import DEFAULT_HYBRID_ALPHA, DEFAULT_HYBRID_LIMIT, DEFAULT_PAGE_WINDOW
from paperlens.store.base import ChunkHit, PaperStore

logger = logging.getLogger(__name__)

MAX_WINDOW_LIMIT = 100


@dataclass
class HybridRetrievalConfig:
    limit: int = DEFAULT_HYBRID_LIMIT
    alpha: float = DEFAULT_HYBRID_ALPHA
    page_window: int = DEFAULT_PAGE_WINDOW


@dataclass
class HybridResult:
    """Ranked hits plus page-neighboring chunks that are not hits themselves."""

    hits: List[ChunkHit] = field(default_factory=list)
    expanded_window: List[ChunkHit] = field(default_factory=list)


def window_pages(hits: List[ChunkHit], page_window: int) -> Set[int]:
    """Every page within ``page_window`` of a hit page, clamped at zero."""

    pages: Set[int] = set()
    for hit in hits:
        if hit.page_number is None:
            continue
        start = max(0, hit.page_number - page_window)
        pages.update(range(start, hit.page_number + page_window + 1))
    return pages


def _unique(hits: List[ChunkHit]) -> List[ChunkHit]:
    seen: Set[str] = set()
    unique: List[ChunkHit] = []
    for hit in hits:
        if hit.chunk_id in seen:
            continue
        seen.add(hit.chunk_id)
        unique.append(hit)
    return unique


class HybridRetriever:
    """Hybrid lexical and vector search over one paper, with page-window expansion."""

    def __init__(self, store: PaperStore, *, config: Optional[HybridRetrievalConfig] = None) -> None:
        self.store = store
        self.config = config or HybridRetrievalConfig()

    def search(
        self,
        paper_id: str,
        query: str,
        *,
        limit: Optional[int] = None,
        alpha: Optional[float] = None,
        page_window: Optional[int] = None,
    ) -> HybridResult:
        limit = self.config.limit if limit is None else limit
        alpha = self.config.alpha if alpha is None else alpha
        page_window = self.config.page_window if page_window is None else page_window

        hits = _unique(self.store.hybrid_query(paper_id, query, limit, alpha))
        if page_window <= 0 or not hits:
            return HybridResult(hits=hits)

        pages = window_pages(hits, page_window)
        if not pages:
            return HybridResult(hits=hits)

        window_limit = min(MAX_WINDOW_LIMIT, limit * (page_window + 1))
        neighbors = self.store.range_query(paper_id, min(pages), max(pages), window_limit)
        hit_ids = {hit.chunk_id for hit in hits}
        expanded = _unique(
            [
                hit
                for hit in neighbors
                if hit.page_number is not None
                and hit.page_number in pages
                and hit.chunk_id not in hit_ids
            ]
        )
        logger.debug(
            "Hybrid search for %s: %d hits, %d window chunks over pages %s",
            paper_id,
            len(hits),
            len(expanded),
            sorted(pages),
        )
        return HybridResult(hits=hits, expanded_window=expanded)


__all__ = ["HybridResult", "HybridRetrievalConfig", "HybridRetriever", "window_pages"]
