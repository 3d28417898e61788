from __future__ import annotations

import json

import pytest

from paperlens.evidence.models import EvidenceBundle, EvidenceChunk, EvidenceFigure, Selection
from paperlens.exceptions import GenerationSchemaViolation
from paperlens.generation.selection import (
    FALLBACK_BULLET,
    build_selection_user_prompt,
    parse_selection_reply,
    selection_system_prompt,
)

SELECTION = Selection(text="scaled by 1/sqrt(d_k)", section="3.2.1", page=4)


@pytest.fixture()
def evidence():
    return EvidenceBundle(
        paper_id="1706.03762",
        query="scaled by 1/sqrt(d_k)",
        hits=[
            EvidenceChunk(chunk_id="sec3-p2", text="We scale the dot products by 1/sqrt(d_k).", section="Attention", page_number=4),
            EvidenceChunk(chunk_id="sec3-p3", text="Large values push softmax\ninto small gradients.", page_number=None),
        ],
        expanded_window=[EvidenceChunk(chunk_id="sec3-p1", text="Scaled dot-product attention.", section="Attention", page_number=3)],
        figures=[EvidenceFigure(figure_id="fig_1", caption="Scaled Dot-Product Attention.", page_number=4)],
        selection=SELECTION,
    )


def _bare(selection=SELECTION):
    return EvidenceBundle(paper_id="1706.03762", query="q", selection=selection)


def test_user_prompt_lists_highlight_hits_and_figures(evidence):
    prompt = build_selection_user_prompt(SELECTION, evidence)

    assert prompt.startswith("Paper ID: 1706.03762\nHighlighted text: “scaled by 1/sqrt(d_k)”")
    assert "Section hint: 3.2.1\nPage hint: 4" in prompt
    assert "Chunk 1: [chunk_id=sec3-p2] · section: Attention · page: 4" in prompt
    assert "Chunk 2: [chunk_id=sec3-p3]\nLarge values push softmax into small gradients." in prompt
    assert "sec3-p1" not in prompt
    assert "- fig_1 (page 4): Scaled Dot-Product Attention." in prompt
    assert prompt.rstrip().endswith("using the citation_ids field.")


def test_user_prompt_without_hits_relies_on_highlight():
    prompt = build_selection_user_prompt(SELECTION, _bare())

    assert "- No matching chunks were retrieved; rely on the highlight." in prompt
    assert "Nearby figures" not in prompt


def test_system_prompt_appends_persona():
    assert selection_system_prompt("Be brief.").endswith("Persona guidance:\nBe brief.")
    assert "Persona guidance" not in selection_system_prompt(None)


def test_parse_reply_keeps_grounded_bullets_and_adds_their_citations(evidence):
    raw = json.dumps(
        {
            "bullets": [
                {"text": " Scaling keeps logits small. ", "citation_ids": ["sec3-p2", "made-up", "sec3-p2"]},
                {"text": "The window frames the mechanism.", "citation_ids": ["sec3-p1"]},
                {"text": "  ", "citation_ids": ["sec3-p2"]},
            ],
            "more": ["Read section 3.2.1.", ""],
            "citations": [{"chunk_id": "sec3-p2", "page": 9, "quote": "scale"}],
        }
    )

    summary = parse_selection_reply(raw, evidence)

    assert [(b.text, b.citation_ids) for b in summary.bullets] == [
        ("Scaling keeps logits small.", ["sec3-p2"]),
        ("The window frames the mechanism.", ["sec3-p1"]),
    ]
    assert summary.more == ["Read section 3.2.1."]
    assert [(c.chunk_id, c.page, c.quote) for c in summary.citations] == [
        ("sec3-p2", 4, "scale"),
        ("sec3-p1", 3, None),
    ]


def test_parse_reply_falls_back_to_top_hit(evidence):
    summary = parse_selection_reply(json.dumps({"bullets": [], "more": [], "citations": []}), evidence)

    assert [(b.text, b.citation_ids) for b in summary.bullets] == [
        ("We scale the dot products by 1/sqrt(d_k).", ["sec3-p2"])
    ]
    assert summary.more == ["Deeper context: We scale the dot products by 1/sqrt(d_k)."]
    assert [(c.chunk_id, c.page) for c in summary.citations] == [("sec3-p2", 4)]


def test_bullet_citing_only_unknown_chunks_cites_top_hit(evidence):
    raw = json.dumps({"bullets": [{"text": "Unsupported claim.", "citation_ids": ["zzz"]}], "more": ["x"], "citations": []})

    summary = parse_selection_reply(raw, evidence)

    assert summary.bullets[0].citation_ids == ["sec3-p2"]
    assert [c.chunk_id for c in summary.citations] == ["sec3-p2"]


def test_parse_reply_without_evidence_uses_highlight_then_placeholder():
    empty = json.dumps({"bullets": [], "more": [], "citations": []})

    from_highlight = parse_selection_reply(empty, _bare())
    placeholder = parse_selection_reply(empty, _bare(selection=None))

    assert [(b.text, b.citation_ids) for b in from_highlight.bullets] == [("scaled by 1/sqrt(d_k)", [])]
    assert from_highlight.more == []
    assert from_highlight.citations == []
    assert placeholder.bullets[0].text == FALLBACK_BULLET


def test_parse_reply_rejects_non_json(evidence):
    with pytest.raises(GenerationSchemaViolation):
        parse_selection_reply("not json", evidence)
