from __future__ import annotations

import pytest

from paperlens.ingest.crossref import (
    assign_paragraph_pages,
    build_label_lookup,
    enrich_figure_pages,
    link_figure_mentions,
    resolve_cross_references,
)
from paperlens.models import PaperFigure, PaperReference, PaperSection, PdfPage, SectionParagraph
from paperlens.parsing.pdf import build_extraction


@pytest.fixture()
def extraction():
    return build_extraction(
        [
            PdfPage(page_number=1, text="Attention Is All You Need\n\nSequence models dominate transduction tasks today and for years."),
            PdfPage(page_number=2, text="Figure 1: The Transformer model architecture.\n\nSelf-attention relates positions."),
            PdfPage(page_number=3, text="Table 2: Variations on the Transformer.\n\nWe vary the number of attention heads and the key sizes in this section."),
        ],
        total_pages=3,
    )


def _sections():
    return [
        PaperSection(
            id="S1",
            title="1 Introduction",
            level=2,
            paragraphs=[
                SectionParagraph(
                    id="S1-p1",
                    text="Sequence models dominate transduction tasks today and for years. As shown in Figure 1, attention helps.",
                    citations=["bib.bib1", "bib.bib9"],
                    figure_ids=["S9.F9"],
                ),
            ],
        ),
        PaperSection(
            id="S2",
            title="2 Background",
            level=2,
            paragraphs=[
                SectionParagraph(id="S2-p1", text="Self-attention relates positions."),
                SectionParagraph(id="S2-p2", text="We vary the number of attention heads and the key sizes in this section, see Table 2."),
            ],
        ),
    ]


def test_label_lookup_is_read_only_and_prefers_labels():
    figures = [
        PaperFigure(id="fig_2", caption="Encoder stack.", label="Figure 1"),
        PaperFigure(id="fig_1", caption="Decoder stack.", label="Figure 7"),
    ]
    lookup = build_label_lookup(figures)

    assert lookup.resolve("figure:1") == "fig_2"
    assert lookup.resolve("figure:7") == "fig_1"
    assert lookup.figure_ids_in("Compare Fig. 7 with Figure 1.") == ["fig_1", "fig_2"]
    with pytest.raises(TypeError):
        lookup.keys["figure:3"] = "fig_3"  # type: ignore[index]


def test_enrich_figure_pages_fills_page_and_missing_fields(extraction):
    figures = [
        PaperFigure(id="S1.F1", caption="The Transformer model architecture.", label="Figure 1:"),
        PaperFigure(id="S4.T2", caption="", label="Table 2"),
        PaperFigure(id="S5.F8", caption="Unmatched.", label="Figure 8"),
        PaperFigure(id="kept", caption="Already paged.", page_number=9),
    ]

    enriched = enrich_figure_pages(figures, extraction)

    assert [figure.page_number for figure in enriched] == [2, 3, None, 9]
    assert enriched[1].caption == "Variations on the Transformer."
    assert figures[0].page_number is None


def test_link_mentions_only_adds_known_figures():
    lookup = build_label_lookup([PaperFigure(id="S1.F1", caption="Arch.", label="Figure 1")])

    linked = link_figure_mentions(_sections(), lookup)

    assert linked[0].paragraphs[0].figure_ids == ["S9.F9", "S1.F1"]
    assert linked[1].paragraphs[1].figure_ids == []


def test_assign_paragraph_pages_moves_forward_and_sets_bounds(extraction):
    located = assign_paragraph_pages(_sections(), extraction)

    assert [p.page_number for p in located[0].paragraphs] == [1]
    assert [p.page_number for p in located[1].paragraphs] == [2, 3]
    assert (located[1].page_start, located[1].page_end) == (2, 3)


def test_resolve_cross_references_leaves_no_dangling_ids(extraction):
    figures = [
        PaperFigure(id="S1.F1", caption="The Transformer model architecture.", label="Figure 1"),
        PaperFigure(id="S3.T2", caption="Variations on the Transformer.", label="Table 2"),
    ]
    references = [PaperReference(id="bib.bib1", title="Sequence to sequence learning")]

    sections, enriched = resolve_cross_references(_sections(), figures, references, extraction)

    figure_ids = {figure.id for figure in enriched}
    reference_ids = {reference.id for reference in references}
    for section in sections:
        for paragraph in section.paragraphs:
            assert set(paragraph.figure_ids) <= figure_ids
            assert set(paragraph.citations) <= reference_ids

    assert sections[0].paragraphs[0].figure_ids == ["S1.F1"]
    assert sections[0].paragraphs[0].citations == ["bib.bib1"]
    assert sections[1].paragraphs[1].figure_ids == ["S3.T2"]
    assert [figure.page_number for figure in enriched] == [2, 3]
