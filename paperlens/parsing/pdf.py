"""Raw text, caption and image extraction from PDF bytes with PyMuPDF."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import pymupdf

from paperlens.config import ScanThresholds
from paperlens.exceptions import ParseError
from paperlens.models import CaptionMatch, PdfExtraction, PdfImage, PdfPage
from paperlens.parsing.labels import build_caption_matches
from paperlens.parsing.scan import DEFAULT_THRESHOLDS, analyze_pages
from paperlens.parsing.text import normalize_page_text

logger = logging.getLogger(__name__)


def _page_images(page: "pymupdf.Page", page_number: int) -> List[PdfImage]:
    images: List[PdfImage] = []
    for entry in page.get_images(full=True):
        # (xref, smask, width, height, bpc, colorspace, alt colorspace, name, filter, referencer)
        images.append(
            PdfImage(
                page_number=page_number,
                name=entry[7] or None,
                width=entry[2],
                height=entry[3],
            )
        )
    return images


def build_extraction(
    pages: Iterable[PdfPage],
    total_pages: int,
    thresholds: ScanThresholds = DEFAULT_THRESHOLDS,
) -> PdfExtraction:
    """Assemble an extraction result from per-page text, finding captions on every page."""

    kept: List[PdfPage] = []
    figures: List[CaptionMatch] = []
    tables: List[CaptionMatch] = []
    for page in pages:
        text = normalize_page_text(page.text)
        if not text:
            continue
        kept.append(PdfPage(page_number=page.page_number, text=text, images=page.images))
        figures.extend(build_caption_matches(text, "figure", page.page_number))
        tables.extend(build_caption_matches(text, "table", page.page_number))

    return PdfExtraction(
        pages=kept,
        combined_text="\n\n".join(page.text for page in kept).strip(),
        figure_captions=figures,
        table_captions=tables,
        analysis=analyze_pages(kept, total_pages, thresholds),
    )


def extract_pdf(pdf_bytes: bytes, thresholds: ScanThresholds = DEFAULT_THRESHOLDS) -> Optional[PdfExtraction]:
    """Extract text layer, captions and image metadata from a PDF.

    Returns ``None`` for empty input. A document PyMuPDF cannot open raises
    :class:`ParseError`.
    """

    if not pdf_bytes:
        return None

    try:
        document = pymupdf.open(stream=pdf_bytes, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        raise ParseError(f"Unable to open PDF: {exc}", source="pdf") from exc

    try:
        raw_pages = [
            PdfPage(
                page_number=index + 1,
                text=page.get_text("text"),
                images=_page_images(page, index + 1),
            )
            for index, page in enumerate(document)
        ]
        total_pages = document.page_count
    finally:
        document.close()

    extraction = build_extraction(raw_pages, total_pages, thresholds)
    logger.debug(
        "PDF text layer: %d/%d pages with text, %d captions",
        len(extraction.pages),
        total_pages,
        len(extraction.captions),
    )
    return extraction


__all__ = ["build_extraction", "extract_pdf"]
