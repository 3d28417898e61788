"""Grounded question answering: prompt rendering and reply post-processing."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from paperlens.evidence.models import EvidenceBundle, EvidenceChunk
from paperlens.exceptions import GenerationSchemaViolation
from paperlens.generation.models import AnswerCitation, AnswerResult
from paperlens.generation.prompts import (
    DEFAULT_LIMITS,
    QA_SYSTEM_PROMPT,
    PromptLimits,
    clean_string,
    decode_json_reply,
    format_page,
    merge_persona,
    truncate,
)
from paperlens.parsing.text import collapse_whitespace

logger = logging.getLogger(__name__)

QA_SCHEMA_NAME = "paper_answer"
MAX_ANSWER_CITATIONS = 8

QA_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": ["answer", "citations"],
    "properties": {
        "answer": {"type": "string"},
        "citations": {
            "type": "array",
            "maxItems": MAX_ANSWER_CITATIONS,
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["chunk_id", "page", "quote"],
                "properties": {
                    "chunk_id": {"type": "string"},
                    "page": {"type": "integer", "minimum": 1},
                    "quote": {"type": "string"},
                },
            },
        },
    },
}

QA_INSTRUCTIONS = (
    "\nInstructions: Use the evidence above to answer the question. Reference specific "
    'chunk_ids and include page numbers in the answer (e.g., "(page 4)"). If the evidence '
    "is insufficient, respond that the paper does not address the question. Return JSON "
    "that matches the provided schema."
)


def qa_system_prompt(persona_prompt: Optional[str] = None) -> str:
    return merge_persona(QA_SYSTEM_PROMPT, persona_prompt)


def _format_chunk(chunk: EvidenceChunk, index: int, label: str, limits: PromptLimits) -> str:
    section = f" · section: {chunk.section}" if chunk.section else ""
    header = f"{label} {index + 1}: chunk_id={chunk.chunk_id} ({format_page(chunk.page_number)}{section})"
    return f"{header}\n{truncate(collapse_whitespace(chunk.text), limits.chunk_text)}"


def build_qa_user_prompt(
    question: str, evidence: EvidenceBundle, limits: PromptLimits = DEFAULT_LIMITS
) -> str:
    """Render the evidence bundle as the user turn of a QA request."""

    lines: List[str] = [f"Paper ID: {evidence.paper_id}", f"Question: {question.strip()}"]

    selection = evidence.selection
    if selection is not None:
        parts: List[str] = []
        if selection.text:
            parts.append(f"“{truncate(selection.text, limits.selection_text)}”")
        if selection.page is not None:
            parts.append(f"page {selection.page}")
        if selection.section:
            parts.append(f"section {selection.section}")
        if parts:
            lines.append("User selection context: " + " · ".join(parts))

    if evidence.hits:
        lines.append("\nPrimary evidence chunks:")
        for index, chunk in enumerate(evidence.hits[: limits.hit_chunks]):
            lines.append(_format_chunk(chunk, index, "Hit", limits))
    else:
        lines.append("\nNo direct evidence chunks retrieved.")

    if evidence.expanded_window:
        lines.append("\nNeighboring context:")
        for index, chunk in enumerate(evidence.expanded_window[: limits.window_chunks]):
            lines.append(_format_chunk(chunk, index, "Window", limits))

    if evidence.figures:
        lines.append("\nReferenced figures:")
        for figure in evidence.figures:
            caption = truncate(figure.caption, limits.figure_caption)
            lines.append(f"- {figure.figure_id} ({format_page(figure.page_number)}): {caption}")

    if evidence.citations:
        lines.append("\nCited background for potential prerequisites:")
        for citation in evidence.citations:
            parts = [
                truncate(citation.title, limits.citation_title)
                if citation.title
                else f"Citation {citation.citation_id}"
            ]
            if citation.source:
                parts.append(f"source: {citation.source}")
            if citation.year:
                parts.append(f"year: {citation.year}")
            if citation.authors:
                parts.append("authors: " + ", ".join(citation.authors))
            if citation.url:
                parts.append(f"url: {citation.url}")
            if citation.arxiv_id:
                parts.append(f"arXiv: {citation.arxiv_id}")
            lines.append("- " + " · ".join(parts))
            if citation.abstract:
                abstract = truncate(collapse_whitespace(citation.abstract), limits.citation_abstract)
                lines.append(f"  abstract: {abstract}")

    lines.append(QA_INSTRUCTIONS)
    return "\n".join(lines)


def evidence_pages(evidence: EvidenceBundle) -> Dict[str, Optional[int]]:
    """Chunk id -> page for every chunk the model was shown."""

    pages: Dict[str, Optional[int]] = {}
    for chunk in evidence.chunks:
        pages.setdefault(chunk.chunk_id, chunk.page_number)
    return pages


def grounded_citations(payload: Any, evidence: EvidenceBundle) -> List[AnswerCitation]:
    """Keep cited chunk ids that exist in the evidence; pages come from the evidence."""

    if not isinstance(payload, list):
        return []
    pages = evidence_pages(evidence)
    citations: List[AnswerCitation] = []
    seen = set()
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        chunk_id = clean_string(entry.get("chunk_id"))
        if not chunk_id or chunk_id in seen:
            continue
        if chunk_id not in pages:
            logger.debug("Dropping citation of unknown chunk %s", chunk_id)
            continue
        citations.append(
            AnswerCitation(chunk_id=chunk_id, page=pages[chunk_id], quote=clean_string(entry.get("quote")))
        )
        seen.add(chunk_id)
    return citations


def parse_qa_reply(raw: str, evidence: EvidenceBundle) -> AnswerResult:
    """Validate the model reply and reshape it into an :class:`AnswerResult`.

    Citations of chunks the model was not shown are dropped and every page is
    taken from the evidence. When nothing valid remains but retrieval produced
    hits, the top hit is cited so every answer stays traceable to a chunk.
    """

    payload = decode_json_reply(raw)
    answer = clean_string(payload.get("answer"))
    if not answer:
        raise GenerationSchemaViolation("Model reply is missing answer text", raw=raw)

    citations = grounded_citations(payload.get("citations"), evidence)
    if not citations and evidence.hits:
        top = evidence.hits[0]
        logger.debug("Answer cited no chunks; citing top hit %s", top.chunk_id)
        citations.append(AnswerCitation(chunk_id=top.chunk_id, page=top.page_number))
    return AnswerResult(answer=answer, citations=citations)


__all__ = [
    "QA_RESPONSE_SCHEMA",
    "QA_SCHEMA_NAME",
    "build_qa_user_prompt",
    "evidence_pages",
    "grounded_citations",
    "parse_qa_reply",
    "qa_system_prompt",
]
