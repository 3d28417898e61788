"""Priority-ordered choice of one source per content type.

Every candidate is an optional extractor result; nothing here raises or
performs I/O, so the chain reads as a decision table:

* sections: GROBID TEI, then ar5iv HTML, then one section per PDF/OCR page
* figures: GROBID TEI, then ar5iv HTML, then raw-text caption matches
* references: GROBID TEI only
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from paperlens.models import (
    CaptionMatch,
    HtmlDocument,
    PaperFigure,
    PaperReference,
    PaperSection,
    PdfExtraction,
    SectionParagraph,
    TeiDocument,
)

_PARAGRAPH_BREAK = re.compile(r"\n{2,}")


@dataclass(frozen=True)
class SourceCandidates:
    """Everything the extractors produced for one ingestion run."""

    tei: Optional[TeiDocument] = None
    html: Optional[HtmlDocument] = None
    pdf: Optional[PdfExtraction] = None
    ocr: Optional[PdfExtraction] = None

    @property
    def fallback(self) -> Optional[PdfExtraction]:
        """Page-level extraction used for fallback sections and caption matches."""

        return self.ocr if self.ocr is not None else self.pdf

    @property
    def fallback_label(self) -> str:
        return "OCR" if self.ocr is not None else "PDF"


@dataclass
class SourceSelection:
    sections: List[PaperSection]
    figures: List[PaperFigure]
    references: List[PaperReference]
    sources: Dict[str, str] = field(default_factory=dict)


def sections_from_pages(extraction: Optional[PdfExtraction], label: str) -> List[PaperSection]:
    """One synthetic section per page, paragraphs split on blank-line runs."""

    if extraction is None:
        return []
    sections: List[PaperSection] = []
    for page in extraction.pages:
        chunks = [part.strip() for part in _PARAGRAPH_BREAK.split(page.text)]
        paragraphs = [
            SectionParagraph(id=f"page{page.page_number}-p{index + 1}", text=text, page_number=page.page_number)
            for index, text in enumerate(part for part in chunks if part)
        ]
        sections.append(
            PaperSection(
                id=f"page-{page.page_number}",
                title=f"{label} Page {page.page_number}",
                level=1,
                paragraphs=paragraphs,
                page_start=page.page_number,
                page_end=page.page_number,
            )
        )
    return sections


def figure_from_caption(match: CaptionMatch) -> PaperFigure:
    return PaperFigure(
        id=match.id,
        caption=match.caption,
        label=match.label,
        page_number=match.page_number,
    )


def select_sections(candidates: SourceCandidates) -> tuple[List[PaperSection], Optional[str]]:
    if candidates.tei is not None and candidates.tei.sections:
        return candidates.tei.sections, "grobid"
    if candidates.html is not None and candidates.html.sections:
        return candidates.html.sections, "ar5iv"
    fallback = sections_from_pages(candidates.fallback, candidates.fallback_label)
    if fallback:
        return fallback, candidates.fallback_label.lower()
    return [], None


def select_figures(candidates: SourceCandidates) -> tuple[List[PaperFigure], Optional[str]]:
    if candidates.tei is not None and candidates.tei.figures:
        return candidates.tei.figures, "grobid"
    if candidates.html is not None and candidates.html.figures:
        return candidates.html.figures, "ar5iv"
    fallback = candidates.fallback
    if fallback is not None and fallback.captions:
        figures: List[PaperFigure] = []
        seen = set()
        for match in fallback.captions:
            if match.id in seen:
                continue
            seen.add(match.id)
            figures.append(figure_from_caption(match))
        return figures, candidates.fallback_label.lower()
    return [], None


def select_references(candidates: SourceCandidates) -> List[PaperReference]:
    if candidates.tei is not None:
        return candidates.tei.references
    return []


def select_sources(candidates: SourceCandidates) -> SourceSelection:
    """Apply the priority chain to every content type.

    An empty ``sections`` list is returned as-is; the orchestrator decides
    that it is fatal.
    """

    sections, section_source = select_sections(candidates)
    figures, figure_source = select_figures(candidates)
    references = select_references(candidates)
    sources: Dict[str, str] = {}
    if section_source:
        sources["sections"] = section_source
    if figure_source:
        sources["figures"] = figure_source
    if references:
        sources["references"] = "grobid"
    return SourceSelection(
        sections=sections,
        figures=figures,
        references=references,
        sources=sources,
    )


__all__ = [
    "SourceCandidates",
    "SourceSelection",
    "figure_from_caption",
    "sections_from_pages",
    "select_figures",
    "select_references",
    "select_sections",
    "select_sources",
]
