"""Resolve cited references to arXiv metadata.

The metadata cache is an ordinary dict owned by the caller: create one per
request and pass it to every :func:`enrich_citations` call that should share
lookups. Failed lookups are cached as ``None`` so they are not retried within
the same request.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Protocol, Sequence

from paperlens.evidence.models import EvidenceCitation
from paperlens.identifiers import extract_arxiv_id
from paperlens.models import PaperMetadata, PaperReference

logger = logging.getLogger(__name__)

MetadataCache = Dict[str, Optional[PaperMetadata]]


class MetadataFetcher(Protocol):
    def fetch_metadata(self, paper_id: str) -> Optional[PaperMetadata]: ...


def citation_arxiv_id(citation_id: str, reference: Optional[PaperReference]) -> Optional[str]:
    """arXiv id of a reference, searched in its url, doi, id and title, in that order."""

    if reference is None:
        return extract_arxiv_id([citation_id])
    return extract_arxiv_id([reference.url, reference.doi, citation_id, reference.title])


def apply_metadata(context: EvidenceCitation, arxiv_id: str, metadata: Optional[PaperMetadata]) -> EvidenceCitation:
    """Fill a citation from the cited paper's metadata without overwriting local fields."""

    if metadata is None:
        return context
    context.arxiv_id = metadata.paper_id or arxiv_id
    context.abstract = metadata.abstract or context.abstract
    if not context.title and metadata.title:
        context.title = metadata.title
    if not context.authors and metadata.authors:
        context.authors = list(metadata.authors)
    if not context.year and metadata.published_at:
        context.year = metadata.published_at[:4]
    return context


def _fetch_into(
    arxiv_id: str, fetcher: MetadataFetcher, cache: MetadataCache, lock: threading.Lock
) -> None:
    metadata: Optional[PaperMetadata] = None
    try:
        metadata = fetcher.fetch_metadata(arxiv_id)
    except Exception as exc:  # noqa: BLE001 - a failed lookup only skips enrichment
        logger.debug("Citation metadata lookup for %s skipped: %s", arxiv_id, exc)
    if metadata is None:
        logger.debug("No arXiv metadata for cited paper %s", arxiv_id)
    with lock:
        cache[arxiv_id] = metadata


def enrich_citations(
    citation_ids: Sequence[str],
    references: Dict[str, PaperReference],
    fetcher: MetadataFetcher,
    cache: MetadataCache,
    *,
    max_workers: int = 4,
) -> List[EvidenceCitation]:
    """Build citation contexts in input order, enriching those that cite arXiv papers.

    Each distinct arXiv id missing from ``cache`` is fetched once, in parallel.
    """

    contexts: List[EvidenceCitation] = []
    arxiv_ids: List[Optional[str]] = []
    for citation_id in citation_ids:
        reference = references.get(citation_id)
        contexts.append(EvidenceCitation.from_reference(citation_id, reference))
        arxiv_ids.append(citation_arxiv_id(citation_id, reference))

    lock = threading.Lock()
    with lock:
        missing = list(dict.fromkeys(a for a in arxiv_ids if a and a not in cache))
    if missing:
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(missing)))) as executor:
            for future in [executor.submit(_fetch_into, a, fetcher, cache, lock) for a in missing]:
                future.result()

    return [
        apply_metadata(context, arxiv_id, cache.get(arxiv_id)) if arxiv_id else context
        for context, arxiv_id in zip(contexts, arxiv_ids)
    ]


__all__ = [
    "MetadataCache",
    "MetadataFetcher",
    "apply_metadata",
    "citation_arxiv_id",
    "enrich_citations",
]
