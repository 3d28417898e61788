"""Retrieval-time projections handed to prompt assembly. Never persisted."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from paperlens.models import PaperChunk, PaperFigure, PaperReference
from paperlens.store.base import ChunkHit


@dataclass
class Selection:
    """Text the user highlighted, with where it came from."""

    text: Optional[str] = None
    section: Optional[str] = None
    page: Optional[int] = None


@dataclass
class EvidenceChunk:
    chunk_id: str
    text: str
    section: Optional[str] = None
    page_number: Optional[int] = None
    score: Optional[float] = None
    citations: List[str] = field(default_factory=list)
    figure_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_chunk(cls, chunk: PaperChunk, score: Optional[float] = None) -> "EvidenceChunk":
        return cls(
            chunk_id=chunk.chunk_id,
            text=chunk.text,
            section=chunk.section,
            page_number=chunk.page_number,
            score=score,
            citations=list(chunk.citations),
            figure_ids=list(chunk.figure_ids),
        )

    @classmethod
    def from_hit(cls, hit: ChunkHit) -> "EvidenceChunk":
        return cls.from_chunk(hit.chunk, hit.score)


@dataclass
class EvidenceFigure:
    figure_id: str
    caption: str = ""
    page_number: Optional[int] = None
    image_url: Optional[str] = None

    @classmethod
    def from_figure(cls, figure: PaperFigure) -> "EvidenceFigure":
        return cls(
            figure_id=figure.id,
            caption=figure.caption,
            page_number=figure.page_number,
            image_url=figure.image_url,
        )


@dataclass
class EvidenceCitation:
    """A cited reference, optionally resolved to the cited arXiv paper."""

    citation_id: str
    title: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    year: Optional[str] = None
    source: Optional[str] = None
    doi: Optional[str] = None
    url: Optional[str] = None
    arxiv_id: Optional[str] = None
    abstract: Optional[str] = None

    @classmethod
    def from_reference(cls, citation_id: str, reference: Optional[PaperReference]) -> "EvidenceCitation":
        if reference is None:
            return cls(citation_id=citation_id)
        return cls(
            citation_id=citation_id,
            title=reference.title,
            authors=list(reference.authors),
            year=reference.year,
            source=reference.source,
            doi=reference.doi,
            url=reference.url,
        )


@dataclass
class EvidenceBundle:
    paper_id: str
    query: str
    hits: List[EvidenceChunk] = field(default_factory=list)
    expanded_window: List[EvidenceChunk] = field(default_factory=list)
    figures: List[EvidenceFigure] = field(default_factory=list)
    citations: List[EvidenceCitation] = field(default_factory=list)
    selection: Optional[Selection] = None

    @property
    def chunks(self) -> List[EvidenceChunk]:
        return [*self.hits, *self.expanded_window]


__all__ = [
    "EvidenceBundle",
    "EvidenceChunk",
    "EvidenceCitation",
    "EvidenceFigure",
    "Selection",
]
