from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Mapping, Optional, Union

from paperlens.config import MAX_CITATIONS_TO_ENRICH
from paperlens.evidence.citations import MetadataCache, MetadataFetcher, enrich_citations
from paperlens.evidence.models import (
    EvidenceBundle,
    EvidenceChunk,
    EvidenceCitation,
    EvidenceFigure,
    Selection,
)
from paperlens.exceptions import StoreError
from paperlens.retrieval.hybrid import HybridResult, HybridRetriever
from paperlens.store.base import PaperStore

logger = logging.getLogger(__name__)

SelectionInput = Union[Selection, Mapping[str, object], None]


def _clean(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def normalize_selection(selection: SelectionInput) -> Optional[Selection]:
    """Trim a selection; ``None`` when it carries no text, section or page."""

    if selection is None:
        return None
    if isinstance(selection, Selection):
        raw_text, raw_section, raw_page = selection.text, selection.section, selection.page
    else:
        raw_text, raw_section, raw_page = selection.get("text"), selection.get("section"), selection.get("page")

    text = _clean(raw_text)
    section = _clean(raw_section)
    page = raw_page if isinstance(raw_page, int) and not isinstance(raw_page, bool) else None
    if text is None and section is None and page is None:
        return None
    return Selection(text=text, section=section, page=page)


def build_query(question: str, selection: Optional[Selection]) -> str:
    parts = [question.strip()]
    if selection is not None and selection.text:
        parts.append(selection.text)
    return " ".join(parts).strip()


def mentioned_figure_ids(chunks: Iterable[EvidenceChunk]) -> List[str]:
    ids: List[str] = []
    for chunk in chunks:
        for figure_id in chunk.figure_ids:
            if figure_id and figure_id not in ids:
                ids.append(figure_id)
    return ids


def top_citation_ids(chunks: Iterable[EvidenceChunk], limit: int) -> List[str]:
    """Most-mentioned citation ids; ties keep first-seen order."""

    counts: Counter[str] = Counter()
    for chunk in chunks:
        for citation_id in chunk.citations:
            citation_id = (citation_id or "").strip()
            if citation_id:
                counts[citation_id] += 1
    return [citation_id for citation_id, _ in counts.most_common(limit)]


class EvidenceContextBuilder:
    """Assemble the evidence bundle for one question."""

    def __init__(
        self,
        store: PaperStore,
        retriever: HybridRetriever,
        metadata_fetcher: MetadataFetcher,
        *,
        max_citations: int = MAX_CITATIONS_TO_ENRICH,
    ) -> None:
        self.store = store
        self.retriever = retriever
        self.metadata_fetcher = metadata_fetcher
        self.max_citations = max_citations

    def build(
        self,
        paper_id: str,
        question: str,
        selection: SelectionInput = None,
        *,
        limit: Optional[int] = None,
        alpha: Optional[float] = None,
        page_window: Optional[int] = None,
        cache: Optional[MetadataCache] = None,
    ) -> EvidenceBundle:
        """Retrieve chunks for ``question`` and gather the figures and citations they mention.

        ``cache`` defaults to a fresh dict, so enrichment lookups are shared
        only within this call unless the caller passes its own.
        """

        cleaned = _clean(question)
        if cleaned is None:
            raise ValueError("Question text is required")

        normalized = normalize_selection(selection)
        query = build_query(cleaned, normalized)
        try:
            result = self.retriever.search(paper_id, query, limit=limit, alpha=alpha, page_window=page_window)
        except StoreError as exc:
            logger.warning("Retrieval store unavailable for %s: %s", paper_id, exc)
            result = HybridResult()
        hits = [EvidenceChunk.from_hit(hit) for hit in result.hits]
        window = [EvidenceChunk.from_hit(hit) for hit in result.expanded_window]
        if not hits:
            logger.info("No evidence chunks retrieved for %s", paper_id)

        combined = [*hits, *window]
        cache = {} if cache is None else cache
        with ThreadPoolExecutor(max_workers=2) as executor:
            figures_future = executor.submit(self._figures, paper_id, combined)
            citations_future = executor.submit(self._citations, paper_id, combined, cache)
            figures = figures_future.result()
            citations = citations_future.result()

        return EvidenceBundle(
            paper_id=paper_id,
            query=query,
            hits=hits,
            expanded_window=window,
            figures=figures,
            citations=citations,
            selection=normalized,
        )

    def _figures(self, paper_id: str, chunks: List[EvidenceChunk]) -> List[EvidenceFigure]:
        wanted = mentioned_figure_ids(chunks)
        if not wanted:
            return []
        try:
            stored = self.store.fetch_figures(paper_id)
        except StoreError as exc:
            logger.warning("Figures unavailable for %s: %s", paper_id, exc)
            return []
        by_id = {figure.id: figure for figure in stored}
        return [EvidenceFigure.from_figure(by_id[fid]) for fid in wanted if fid in by_id]

    def _citations(
        self, paper_id: str, chunks: List[EvidenceChunk], cache: MetadataCache
    ) -> List[EvidenceCitation]:
        wanted = top_citation_ids(chunks, self.max_citations)
        if not wanted:
            return []
        try:
            stored = self.store.fetch_citations(paper_id)
        except StoreError as exc:
            logger.warning("Citations unavailable for %s: %s", paper_id, exc)
            return []
        references: Dict = {ref.id: ref for ref in stored}
        return enrich_citations(wanted, references, self.metadata_fetcher, cache)


__all__ = [
    "EvidenceContextBuilder",
    "build_query",
    "mentioned_figure_ids",
    "normalize_selection",
    "top_citation_ids",
]
