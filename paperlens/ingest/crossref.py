"""Reconcile figure references across sources.

Sources disagree on figure identifiers, so nothing here tries to share ids
between extractors. Instead each ingestion run builds a :class:`LabelLookup`
from the selected figures, uses it to turn free-text mentions ("Fig. 3a") into
figure ids, and backfills what the selected figure records are missing from
the page-level caption matches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from paperlens.models import (
    CaptionMatch,
    PaperFigure,
    PaperReference,
    PaperSection,
    PdfExtraction,
    SectionParagraph,
)
from paperlens.parsing.labels import figure_keys, mention_keys
from paperlens.parsing.text import collapse_whitespace

logger = logging.getLogger(__name__)

_PAGE_PREFIX_LENGTH = 60


@dataclass(frozen=True)
class LabelLookup:
    """Normalized label key -> canonical figure id, frozen once built."""

    keys: Mapping[str, str]

    def resolve(self, key: str) -> Optional[str]:
        return self.keys.get(key)

    def figure_ids_in(self, text: str) -> List[str]:
        ids: List[str] = []
        for key in mention_keys(text):
            figure_id = self.keys.get(key)
            if figure_id and figure_id not in ids:
                ids.append(figure_id)
        return ids

    def __len__(self) -> int:
        return len(self.keys)


def build_label_lookup(figures: Sequence[PaperFigure]) -> LabelLookup:
    """Index every figure under all of its normalized keys.

    Keys are registered rank by rank across figures, so a key derived from one
    figure's label beats the same key derived from another figure's id.
    """

    per_figure = [(figure.id, figure_keys(figure)) for figure in figures]
    table: Dict[str, str] = {}
    depth = max((len(keys) for _, keys in per_figure), default=0)
    for rank in range(depth):
        for figure_id, keys in per_figure:
            if rank < len(keys):
                table.setdefault(keys[rank], figure_id)
    return LabelLookup(keys=MappingProxyType(table))


class _CaptionIndex:
    def __init__(self, matches: Sequence[CaptionMatch]) -> None:
        self.matches = list(matches)
        self.by_id: Dict[str, CaptionMatch] = {}
        self.by_key: Dict[str, CaptionMatch] = {}
        self.by_label: Dict[str, CaptionMatch] = {}
        for match in self.matches:
            self.by_id.setdefault(match.id, match)
            self.by_key.setdefault(match.normalized_label, match)
            if match.label:
                self.by_label.setdefault(match.label.lower(), match)

    def find(self, figure: PaperFigure) -> Optional[CaptionMatch]:
        match = self.by_id.get(figure.id)
        if match is not None:
            return match
        for key in figure_keys(figure):
            match = self.by_key.get(key)
            if match is not None:
                return match
        if figure.label:
            match = self.by_label.get(figure.label.lower())
            if match is not None:
                return match
        caption = collapse_whitespace(figure.caption).lower()
        if not caption:
            return None
        for candidate in self.matches:
            other = collapse_whitespace(candidate.caption).lower()
            if other.startswith(caption) or caption.startswith(other):
                return candidate
        return None


def enrich_figure_pages(
    figures: Sequence[PaperFigure], extraction: Optional[PdfExtraction]
) -> List[PaperFigure]:
    """Fill missing page numbers, labels and captions from raw-text caption matches.

    Matching tries the same id, then normalized keys from the figure's label,
    id and caption, then the lowercase label, then caption prefix containment.
    """

    if extraction is None or not extraction.captions:
        return list(figures)
    index = _CaptionIndex(extraction.captions)
    enriched: List[PaperFigure] = []
    for figure in figures:
        if figure.page_number:
            enriched.append(figure)
            continue
        match = index.find(figure)
        if match is None:
            enriched.append(figure)
            continue
        enriched.append(
            replace(
                figure,
                page_number=match.page_number,
                label=figure.label or match.label,
                caption=figure.caption or match.caption,
            )
        )
    return enriched


def link_figure_mentions(sections: Iterable[PaperSection], lookup: LabelLookup) -> List[PaperSection]:
    """Add figure ids for free-text mentions to every paragraph."""

    if not len(lookup):
        return list(sections)
    linked: List[PaperSection] = []
    for section in sections:
        paragraphs: List[SectionParagraph] = []
        for paragraph in section.paragraphs:
            figure_ids = list(paragraph.figure_ids)
            for figure_id in lookup.figure_ids_in(paragraph.text):
                if figure_id not in figure_ids:
                    figure_ids.append(figure_id)
            paragraphs.append(replace(paragraph, figure_ids=figure_ids))
        linked.append(replace(section, paragraphs=paragraphs))
    return linked


def drop_dangling(
    sections: Iterable[PaperSection],
    figures: Sequence[PaperFigure],
    references: Sequence[PaperReference],
) -> List[PaperSection]:
    """Remove paragraph figure and citation ids with no matching record."""

    figure_ids = {figure.id for figure in figures}
    reference_ids = {reference.id for reference in references}
    cleaned: List[PaperSection] = []
    dropped = 0
    for section in sections:
        paragraphs: List[SectionParagraph] = []
        for paragraph in section.paragraphs:
            kept_figures = [fid for fid in paragraph.figure_ids if fid in figure_ids]
            kept_citations = [cid for cid in paragraph.citations if cid in reference_ids]
            dropped += len(paragraph.figure_ids) - len(kept_figures)
            dropped += len(paragraph.citations) - len(kept_citations)
            paragraphs.append(replace(paragraph, figure_ids=kept_figures, citations=kept_citations))
        cleaned.append(replace(section, paragraphs=paragraphs))
    if dropped:
        logger.debug("Dropped %d unresolved figure/citation references", dropped)
    return cleaned


def assign_paragraph_pages(
    sections: Iterable[PaperSection], extraction: Optional[PdfExtraction]
) -> List[PaperSection]:
    """Locate paragraphs without a page number in the page-level text.

    A paragraph is placed on the first page, at or after the previous
    paragraph's page, whose text contains the paragraph's opening words.
    Paragraphs that cannot be located keep ``None``. Section page bounds are
    recomputed from the located paragraphs.
    """

    sections = list(sections)
    if extraction is None or not extraction.pages:
        return sections
    pages = [(page.page_number, collapse_whitespace(page.text).lower()) for page in extraction.pages]

    located: List[PaperSection] = []
    cursor = 0
    for section in sections:
        paragraphs: List[SectionParagraph] = []
        for paragraph in section.paragraphs:
            if paragraph.page_number is not None:
                paragraphs.append(paragraph)
                continue
            prefix = collapse_whitespace(paragraph.text).lower()[:_PAGE_PREFIX_LENGTH]
            page_number = None
            if prefix:
                for position in range(cursor, len(pages)):
                    if prefix in pages[position][1]:
                        page_number = pages[position][0]
                        cursor = position
                        break
            paragraphs.append(replace(paragraph, page_number=page_number))

        numbers = [p.page_number for p in paragraphs if p.page_number is not None]
        located.append(
            replace(
                section,
                paragraphs=paragraphs,
                page_start=section.page_start if section.page_start is not None else min(numbers, default=None),
                page_end=section.page_end if section.page_end is not None else max(numbers, default=None),
            )
        )
    return located


def resolve_cross_references(
    sections: Sequence[PaperSection],
    figures: Sequence[PaperFigure],
    references: Sequence[PaperReference],
    extraction: Optional[PdfExtraction],
) -> tuple[List[PaperSection], List[PaperFigure]]:
    """Run the full reconciliation for one ingestion run.

    Returns the linked sections and the enriched figures. The label lookup is
    built here and discarded once mentions are linked.
    """

    enriched = enrich_figure_pages(figures, extraction)
    lookup = build_label_lookup(enriched)
    linked = link_figure_mentions(sections, lookup)
    linked = drop_dangling(linked, enriched, references)
    linked = assign_paragraph_pages(linked, extraction)
    return linked, enriched


__all__ = [
    "LabelLookup",
    "assign_paragraph_pages",
    "build_label_lookup",
    "drop_dangling",
    "enrich_figure_pages",
    "link_figure_mentions",
    "resolve_cross_references",
]
