from __future__ import annotations

from pathlib import Path

from paperlens.parsing.html import parse_html

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures"


def _document():
    html = (FIXTURES / "attention.ar5iv.html").read_text(encoding="utf-8")
    return parse_html(html, base_url="https://ar5iv.org")


def test_sections_need_heading_and_direct_paragraphs():
    document = _document()

    assert [section.id for section in document.sections] == ["S1", "S2.SS1"]
    assert [section.title for section in document.sections] == ["1 Introduction", "2.1 Self-Attention"]
    assert [section.level for section in document.sections] == [2, 3]


def test_anchors_are_classified_against_known_figures():
    intro = _document().sections[0]
    first, second = intro.paragraphs

    assert first.id == "S1-p1"
    assert first.citations == ["bib.bib1"]
    assert first.figure_ids == ["S1.F1"]
    assert second.citations == []
    assert second.figure_ids == []
    assert "Table 2" in second.text


def test_figures_resolve_relative_image_urls():
    (figure,) = _document().figures

    assert figure.id == "S1.F1"
    assert figure.caption == "Figure 1: The Transformer model architecture."
    assert figure.label == "Figure 1:"
    assert figure.image_url == "https://ar5iv.org/html/1706.03762/assets/x1.png"


def test_blank_html_returns_none_and_sectionless_body_is_empty():
    assert parse_html("") is None

    document = parse_html("<html><body><p>No sections here.</p></body></html>")
    assert document is not None
    assert document.sections == []
    assert document.figures == []
