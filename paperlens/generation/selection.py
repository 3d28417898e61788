"""Inline explanations of a highlighted passage.

A highlight is used as the retrieval query; the model returns a few cited
bullets plus pointers for deeper reading. Replies are reshaped so every
bullet cites a chunk the model was actually shown whenever retrieval found
one.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from paperlens.evidence.models import EvidenceBundle, Selection
from paperlens.generation.models import AnswerCitation, SelectionBullet, SelectionSummary
from paperlens.generation.prompts import (
    DEFAULT_LIMITS,
    SELECTION_SYSTEM_PROMPT,
    PromptLimits,
    clean_string,
    clean_strings,
    decode_json_reply,
    format_page,
    merge_persona,
    truncate,
)
from paperlens.generation.qa import MAX_ANSWER_CITATIONS, evidence_pages, grounded_citations
from paperlens.parsing.text import collapse_whitespace

logger = logging.getLogger(__name__)

SELECTION_SCHEMA_NAME = "selection_summary"
MAX_SELECTION_BULLETS = 5
MAX_DEEPER_POINTERS = 3
MAX_SELECTION_FIGURES = 6
FALLBACK_BULLET = "No inline summary available."

_STRING = {"type": "string"}

SELECTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": ["bullets", "more", "citations"],
    "properties": {
        "bullets": {
            "type": "array",
            "minItems": 2,
            "maxItems": MAX_SELECTION_BULLETS,
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["text", "citation_ids"],
                "properties": {
                    "text": _STRING,
                    "citation_ids": {"type": "array", "minItems": 1, "items": _STRING},
                },
            },
        },
        "more": {"type": "array", "minItems": 1, "maxItems": MAX_DEEPER_POINTERS, "items": _STRING},
        "citations": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["chunk_id", "page", "quote"],
                "properties": {
                    "chunk_id": _STRING,
                    "page": {"type": "integer", "minimum": 1},
                    "quote": _STRING,
                },
            },
        },
    },
}

SELECTION_INSTRUCTIONS = (
    "\nInstructions: Return JSON matching the provided schema. Each bullet must cite at "
    "least one chunk_id from the evidence list using the citation_ids field."
)


def selection_system_prompt(persona_prompt: Optional[str] = None) -> str:
    return merge_persona(SELECTION_SYSTEM_PROMPT, persona_prompt)


def build_selection_user_prompt(
    selection: Selection, evidence: EvidenceBundle, limits: PromptLimits = DEFAULT_LIMITS
) -> str:
    lines: List[str] = [f"Paper ID: {evidence.paper_id}"]
    if selection.text:
        lines.append(f"Highlighted text: “{truncate(selection.text, limits.selection_highlight)}”")
    if selection.section:
        lines.append(f"Section hint: {selection.section}")
    if selection.page is not None:
        lines.append(f"Page hint: {selection.page}")

    lines.append("\nEvidence chunks (reference chunk_ids in citations):")
    if not evidence.hits:
        lines.append("- No matching chunks were retrieved; rely on the highlight.")
    for index, chunk in enumerate(evidence.hits[: limits.selection_chunks]):
        header = [f"[chunk_id={chunk.chunk_id}]"]
        if chunk.section:
            header.append(f"section: {chunk.section}")
        if chunk.page_number is not None:
            header.append(f"page: {chunk.page_number}")
        lines.append(f"Chunk {index + 1}: " + " · ".join(header))
        lines.append(truncate(collapse_whitespace(chunk.text), limits.selection_chunk_text))

    if evidence.figures:
        lines.append("\nNearby figures:")
        for figure in evidence.figures:
            caption = truncate(figure.caption, limits.selection_figure_caption)
            lines.append(f"- {figure.figure_id} ({format_page(figure.page_number)}): {caption}")

    lines.append(SELECTION_INSTRUCTIONS)
    return "\n".join(lines)


def _bullets(payload: Any, known: Dict[str, Optional[int]]) -> List[SelectionBullet]:
    if not isinstance(payload, list):
        return []
    bullets: List[SelectionBullet] = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        text = clean_string(entry.get("text"))
        if not text:
            continue
        ids: List[str] = []
        for chunk_id in clean_strings(entry.get("citation_ids"), MAX_ANSWER_CITATIONS):
            if chunk_id not in known:
                logger.debug("Dropping bullet citation of unknown chunk %s", chunk_id)
            elif chunk_id not in ids:
                ids.append(chunk_id)
        bullets.append(SelectionBullet(text=text, citation_ids=ids))
    return bullets[:MAX_SELECTION_BULLETS]


def parse_selection_reply(
    raw: str, evidence: EvidenceBundle, limits: PromptLimits = DEFAULT_LIMITS
) -> SelectionSummary:
    """Validate the model reply and reshape it into a :class:`SelectionSummary`.

    Citations are restricted to chunks in ``evidence`` with pages taken from
    there. When the reply has no usable bullet, one is built from the top
    hit (or the highlight). Bullets without citations cite the top hit, and
    every cited chunk gets a citation entry.
    """

    payload = decode_json_reply(raw)
    pages = evidence_pages(evidence)
    top = evidence.hits[0] if evidence.hits else None

    bullets = _bullets(payload.get("bullets"), pages)
    more = clean_strings(payload.get("more"), MAX_DEEPER_POINTERS)
    citations: Dict[str, AnswerCitation] = {
        citation.chunk_id: citation for citation in grounded_citations(payload.get("citations"), evidence)
    }

    if not bullets:
        if top is not None:
            text = top.text[: limits.selection_fallback].strip()
        elif evidence.selection is not None and evidence.selection.text:
            text = evidence.selection.text
        else:
            text = FALLBACK_BULLET
        bullets.append(SelectionBullet(text=text or FALLBACK_BULLET))

    for bullet in bullets:
        if not bullet.citation_ids and top is not None:
            bullet.citation_ids = [top.chunk_id]
        for chunk_id in bullet.citation_ids:
            citations.setdefault(chunk_id, AnswerCitation(chunk_id=chunk_id, page=pages[chunk_id]))

    if not more and top is not None:
        more.append("Deeper context: " + truncate(collapse_whitespace(top.text), limits.selection_deeper))

    if not citations and top is not None:
        citations[top.chunk_id] = AnswerCitation(chunk_id=top.chunk_id, page=top.page_number)

    return SelectionSummary(bullets=bullets, more=more, citations=list(citations.values()))


__all__ = [
    "MAX_SELECTION_FIGURES",
    "SELECTION_SCHEMA",
    "SELECTION_SCHEMA_NAME",
    "build_selection_user_prompt",
    "parse_selection_reply",
    "selection_system_prompt",
]
