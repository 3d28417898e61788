"""Core data structures shared by ingestion, storage and retrieval."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

CaptionKind = Literal["figure", "table"]


@dataclass
class PaperMetadata:
    """Bibliographic record from the arXiv metadata feed."""

    paper_id: str
    title: str
    abstract: str = ""
    authors: List[str] = field(default_factory=list)
    published_at: Optional[str] = None
    updated_at: Optional[str] = None
    pdf_url: Optional[str] = None
    primary_category: Optional[str] = None
    categories: List[str] = field(default_factory=list)


@dataclass
class SectionParagraph:
    id: str
    text: str
    citations: List[str] = field(default_factory=list)
    figure_ids: List[str] = field(default_factory=list)
    page_number: Optional[int] = None


@dataclass
class PaperSection:
    id: str
    title: str
    level: int
    paragraphs: List[SectionParagraph] = field(default_factory=list)
    page_start: Optional[int] = None
    page_end: Optional[int] = None


@dataclass
class PaperFigure:
    id: str
    caption: str = ""
    label: Optional[str] = None
    page_number: Optional[int] = None
    image_url: Optional[str] = None
    chunk_ids: Optional[List[str]] = None


@dataclass
class PaperReference:
    id: str
    title: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    year: Optional[str] = None
    source: Optional[str] = None
    doi: Optional[str] = None
    url: Optional[str] = None
    chunk_ids: Optional[List[str]] = None


@dataclass
class PaperChunk:
    """One retrievable paragraph with its anchors."""

    paper_id: str
    chunk_id: str
    text: str
    section: Optional[str] = None
    page_number: Optional[int] = None
    citations: List[str] = field(default_factory=list)
    figure_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CaptionMatch:
    """A figure or table caption found in raw page text."""

    id: str
    kind: CaptionKind
    label: str
    number: str
    caption: str
    page_number: int
    normalized_label: str


@dataclass
class PdfImage:
    page_number: int
    name: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class PdfPage:
    page_number: int
    text: str
    images: List[PdfImage] = field(default_factory=list)


@dataclass
class PdfAnalysis:
    """Summary of the scan heuristic over sampled pages."""

    sampled_pages: int
    sampled_text_length: int
    sampled_image_count: int
    avg_text_per_page: float
    avg_images_per_page: float
    is_likely_scanned: bool
    confidence: Literal["high", "medium", "low"]
    recommended_tool: Literal["deepseek-ocr", "pymupdf"]


@dataclass
class PdfExtraction:
    """Text and layout extracted from a PDF, by text layer or OCR."""

    pages: List[PdfPage]
    combined_text: str
    figure_captions: List[CaptionMatch] = field(default_factory=list)
    table_captions: List[CaptionMatch] = field(default_factory=list)
    analysis: Optional[PdfAnalysis] = None

    @property
    def captions(self) -> List[CaptionMatch]:
        return [*self.figure_captions, *self.table_captions]


@dataclass
class TeiDocument:
    sections: List[PaperSection]
    references: List[PaperReference]
    figures: List[PaperFigure]
    page_count: Optional[int] = None


@dataclass
class HtmlDocument:
    sections: List[PaperSection]
    figures: List[PaperFigure]


@dataclass
class IngestResult:
    """Summary returned to callers after a paper is ingested."""

    paper_id: str
    title: str
    abstract: str
    authors: List[str]
    pages: Optional[int]
    sections: List[PaperSection]
    references: List[PaperReference]
    figures: List[PaperFigure]
    chunk_count: int
    sources: Dict[str, str] = field(default_factory=dict)


__all__ = [
    "CaptionKind",
    "CaptionMatch",
    "HtmlDocument",
    "IngestResult",
    "PaperChunk",
    "PaperFigure",
    "PaperMetadata",
    "PaperReference",
    "PaperSection",
    "PdfAnalysis",
    "PdfExtraction",
    "PdfImage",
    "PdfPage",
    "SectionParagraph",
    "TeiDocument",
]
