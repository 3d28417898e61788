from __future__ import annotations

import json

import pytest

from paperlens.exceptions import GenerationSchemaViolation
from paperlens.generation.models import PageSpan
from paperlens.generation.summary import (
    FALLBACK_FIGURE_INSIGHT,
    build_summary_context,
    build_summary_user_prompt,
    parse_summary_reply,
    postprocess_summary,
    summary_system_prompt,
)
from paperlens.models import PaperChunk, PaperFigure, PaperMetadata

PAPER = "1706.03762"


@pytest.fixture()
def context():
    chunks = [
        PaperChunk(PAPER, "c1", "Intro text one.", "Introduction", 1),
        PaperChunk(PAPER, "c2", "Intro mentions the architecture.", "Introduction", 2, [], ["fig_1"]),
        PaperChunk(PAPER, "c3", "Model text.", "Model", 3, [], ["fig_1", "fig_2"]),
        PaperChunk(PAPER, "c4", "Results text.", "Results", 6),
        PaperChunk(PAPER, "c5", "Loose text.", None, None),
    ]
    figures = [
        PaperFigure(id="fig_1", caption="Architecture.", page_number=3),
        PaperFigure(id="fig_2", caption="Heads."),
        PaperFigure(id="fig_0", caption="Overview.", page_number=2),
    ]
    return build_summary_context(PAPER, chunks, figures)


def _section(section_id: str, title: str = "") -> dict:
    return {"section_id": section_id, "title": title, "summary": f"{section_id} summary", "reasoning": "why", "key_points": ["k"]}


def test_context_groups_sections_and_joins_figures(context):
    assert [(s.id, s.title) for s in context.sections] == [
        ("S1", "Introduction"),
        ("S2", "Model"),
        ("S3", "Results"),
        ("S4", "General Overview"),
    ]
    assert context.sections[0].page_span == PageSpan(1, 2)
    assert context.sections[3].page_span is None
    assert context.sections[1].figure_ids == ["fig_1", "fig_2"]

    assert [f.id for f in context.figures] == ["fig_0", "fig_1", "fig_2"]
    fig_1 = context.figures[1]
    assert fig_1.section_ids == ["S1", "S2"]
    assert fig_1.paragraphs == ["Intro mentions the architecture.", "Model text."]


def test_user_prompt_sections(context):
    prompt = build_summary_user_prompt(context)
    lines = prompt.splitlines()

    assert lines[0] == f"Paper ID: {PAPER}"
    assert "Paper metadata unavailable (fallback to section content)." in lines
    assert "- [S1] Introduction (pages 1-2)" in lines
    assert "- [S2] Model (page 3)" in lines
    assert "- [S4] General Overview (page ?)" in lines
    assert "    Figures: fig_1, fig_2" in lines
    assert "- [fig_0] Overview. (page 2)" in lines
    assert "- [fig_2] Heads. (page ?)" in lines
    assert "    Sections: S1, S2" in lines
    assert prompt.index("# Metadata") < prompt.index("# Section Outline") < prompt.index("# Figure Context")
    assert prompt.rstrip().endswith("keep claims no stronger than the text supports.")


def test_user_prompt_metadata_block():
    metadata = PaperMetadata(
        paper_id=PAPER,
        title="Attention Is All You Need",
        authors=["Ashish Vaswani"],
        abstract="The dominant models are recurrent.",
        primary_category="cs.CL",
        published_at="2017-06-12T17:57:34+00:00",
    )
    prompt = build_summary_user_prompt(build_summary_context(PAPER, [], [], metadata))

    assert "Title: Attention Is All You Need" in prompt
    assert "Primary field: cs.CL" in prompt
    assert "Abstract: The dominant models are recurrent." in prompt
    assert "No figures were extracted for this paper." in prompt


def test_system_prompt_puts_persona_first():
    assert summary_system_prompt("Be brief.").startswith("Be brief.\n\n---\n")


def test_postprocess_orders_sections_and_anchors_findings(context):
    raw = json.dumps(
        {
            "sections": [_section("S3"), _section("S1", "Intro"), _section("S2"), {"section_id": "S4"}],
            "key_findings": [
                {
                    "statement": "Attention replaces recurrence.",
                    "evidence": "Model section.",
                    "supporting_sections": ["S2", "S9"],
                    "related_figures": ["fig_1", "fig_2"],
                },
                {"statement": "No support.", "evidence": "x", "supporting_sections": []},
            ],
            "figures": [
                {"figure_id": "fig_2", "caption_summary": "Heads", "insight": "Unpaged."},
                {"figure_id": "fig_1", "caption_summary": "", "insight": "Shows the encoder."},
            ],
        }
    )

    summary = postprocess_summary(parse_summary_reply(raw), context)

    assert [s.section_id for s in summary.sections] == ["S1", "S2", "S3"]
    assert [s.page_anchor for s in summary.sections] == ["(page 1)", "(page 3)", "(page 6)"]
    assert summary.sections[0].title == "Intro"
    assert summary.sections[1].title == "Model"
    assert len(summary.key_findings) == 1
    assert summary.key_findings[0].page_anchors == ["(page 3)"]
    assert [(f.figure_id, f.caption, f.page_anchor) for f in summary.figures] == [
        ("fig_1", "Architecture.", "(page 3)")
    ]


def test_postprocess_falls_back_to_first_anchored_figure(context):
    raw = json.dumps(
        {
            "sections": [_section("S1"), _section("S2"), _section("S3")],
            "key_findings": [],
            "figures": [{"figure_id": "fig_9", "caption_summary": "?", "insight": "Invented."}],
        }
    )

    summary = postprocess_summary(parse_summary_reply(raw), context)

    assert [(f.figure_id, f.insight) for f in summary.figures] == [("fig_0", FALLBACK_FIGURE_INSIGHT)]


def test_postprocess_requires_three_sections_when_available(context):
    raw = json.dumps({"sections": [_section("S1"), _section("S2")], "key_findings": [], "figures": []})

    with pytest.raises(GenerationSchemaViolation):
        postprocess_summary(parse_summary_reply(raw), context)


def test_parse_reply_without_sections_is_rejected():
    with pytest.raises(GenerationSchemaViolation):
        parse_summary_reply(json.dumps({"sections": [{"section_id": "S1"}], "key_findings": [], "figures": []}))
