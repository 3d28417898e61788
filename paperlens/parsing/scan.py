"""Decide whether a PDF looks scanned and whether OCR is worth running."""

from __future__ import annotations

from typing import Optional, Sequence

from paperlens.config import ScanThresholds
from paperlens.models import PdfAnalysis, PdfExtraction, PdfPage

DEFAULT_THRESHOLDS = ScanThresholds()


def analyze_pages(
    pages: Sequence[PdfPage],
    total_pages: int,
    thresholds: ScanThresholds = DEFAULT_THRESHOLDS,
) -> PdfAnalysis:
    """Classify a document from its first ``thresholds.sample_pages`` pages.

    ``pages`` only holds pages that yielded text; a sampled page with no text
    still counts toward the averages as an empty page.
    """

    sample_limit = min(total_pages, thresholds.sample_pages)
    sampled = [page for page in pages if page.page_number <= sample_limit]
    text_length = sum(len(page.text) for page in sampled)
    image_count = sum(len(page.images) for page in sampled)

    avg_text = text_length / sample_limit if sample_limit > 0 else 0.0
    avg_images = image_count / sample_limit if sample_limit > 0 else 0.0
    return classify(
        avg_text,
        avg_images,
        thresholds,
        sampled_pages=sample_limit,
        sampled_text_length=text_length,
        sampled_image_count=image_count,
    )


def classify(
    avg_text_per_page: float,
    avg_images_per_page: float,
    thresholds: ScanThresholds = DEFAULT_THRESHOLDS,
    *,
    sampled_pages: int = 0,
    sampled_text_length: int = 0,
    sampled_image_count: int = 0,
) -> PdfAnalysis:
    is_scanned = (
        avg_text_per_page < thresholds.scanned_avg_text
        or avg_images_per_page >= thresholds.scanned_image_ratio
        or (
            avg_text_per_page < thresholds.mixed_avg_text
            and avg_images_per_page >= thresholds.mixed_image_ratio
        )
    )
    if avg_text_per_page > thresholds.high_confidence_text:
        confidence = "high"
    elif avg_text_per_page > thresholds.medium_confidence_text:
        confidence = "medium"
    else:
        confidence = "low"

    return PdfAnalysis(
        sampled_pages=sampled_pages,
        sampled_text_length=sampled_text_length,
        sampled_image_count=sampled_image_count,
        avg_text_per_page=avg_text_per_page,
        avg_images_per_page=avg_images_per_page,
        is_likely_scanned=is_scanned,
        confidence=confidence,
        recommended_tool="deepseek-ocr" if is_scanned else "pymupdf",
    )


def should_use_ocr(analysis: Optional[PdfAnalysis], combined_text_length: int, threshold: int) -> bool:
    """Graduated OCR policy: text-rich documents with a few scanned figures skip OCR."""

    if analysis is None or not analysis.is_likely_scanned:
        return combined_text_length < threshold
    if analysis.confidence == "high":
        return True
    if analysis.confidence == "medium":
        return combined_text_length < threshold * 2
    return combined_text_length < threshold


def should_attempt_ocr(
    extraction: Optional[PdfExtraction],
    *,
    has_pdf: bool,
    force_ocr: bool,
    allow_fallback: bool,
    threshold: int,
) -> bool:
    """Whether the orchestrator should run OCR after raw text extraction."""

    if not has_pdf:
        return False
    if force_ocr:
        return True
    if not allow_fallback:
        return False
    if extraction is None:
        return True
    return should_use_ocr(extraction.analysis, len(extraction.combined_text), threshold)


__all__ = ["analyze_pages", "classify", "should_use_ocr", "should_attempt_ocr"]
