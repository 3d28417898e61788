from __future__ import annotations

import pymupdf
import pytest

from paperlens.exceptions import ParseError
from paperlens.models import PdfImage, PdfPage
from paperlens.parsing.pdf import build_extraction, extract_pdf


def _pdf_bytes() -> bytes:
    document = pymupdf.open()
    first = document.new_page()
    first.insert_text((72, 72), "Introduction text about attention.")
    first.insert_text((72, 120), "Figure 1: Architecture overview.")
    document.new_page()
    third = document.new_page()
    third.insert_text((72, 72), "Table 2: Results on WMT.")
    payload = document.tobytes()
    document.close()
    return payload


def test_extract_pdf_reads_text_layer_and_captions():
    extraction = extract_pdf(_pdf_bytes())

    assert extraction is not None
    assert [page.page_number for page in extraction.pages] == [1, 3]
    assert "Introduction text about attention." in extraction.pages[0].text
    (figure,) = extraction.figure_captions
    assert (figure.id, figure.page_number) == ("figure-1", 1)
    assert figure.caption.startswith("Architecture overview")
    (table,) = extraction.table_captions
    assert (table.id, table.page_number) == ("table-2", 3)
    assert extraction.analysis.sampled_pages == 3
    assert extraction.analysis.is_likely_scanned is True


def test_empty_and_unreadable_input():
    assert extract_pdf(b"") is None
    with pytest.raises(ParseError):
        extract_pdf(b"definitely not a pdf")


def test_build_extraction_counts_images_for_scan_analysis():
    pages = [
        PdfPage(page_number=1, text="x" * 2500, images=[PdfImage(page_number=1, width=10, height=10)]),
        PdfPage(page_number=2, text="y" * 2500),
        PdfPage(page_number=3, text="   "),
    ]

    extraction = build_extraction(pages, total_pages=3)

    assert [page.page_number for page in extraction.pages] == [1, 2]
    assert extraction.analysis.sampled_image_count == 1
    assert extraction.analysis.avg_text_per_page == pytest.approx(5000 / 3)
    assert extraction.analysis.confidence == "medium"
    assert extraction.analysis.is_likely_scanned is False
