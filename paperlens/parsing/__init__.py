"""Parsers that turn TEI, ar5iv HTML and PDF bytes into paper structure."""

from .html import parse_html
from .labels import build_caption_matches, figure_keys, mention_keys, normalize_reference
from .pdf import extract_pdf
from .scan import DEFAULT_THRESHOLDS, classify, should_attempt_ocr
from .tei import parse_tei

__all__ = [
    "DEFAULT_THRESHOLDS",
    "build_caption_matches",
    "classify",
    "extract_pdf",
    "figure_keys",
    "mention_keys",
    "normalize_reference",
    "parse_html",
    "parse_tei",
    "should_attempt_ocr",
]
