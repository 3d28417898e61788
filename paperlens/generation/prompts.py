"""System prompts, prompt text helpers and model reply decoding."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from paperlens.exceptions import GenerationSchemaViolation

QA_SYSTEM_PROMPT = (
    "You are a grounded research Q&A assistant. Use only the evidence provided from the "
    "paper to answer the user's question.\n"
    '- Cite page numbers inline in the answer using the format "(page N)".\n'
    "- Prefer concise explanations that tie directly to the evidence.\n"
    "- Summarize relevant figures or citations when they clarify the answer.\n"
    "- If the evidence does not contain the answer, say so explicitly and suggest the "
    "closest related insight if available.\n"
    "- Obey the required JSON schema exactly; do not include any additional text."
)

SUMMARY_SYSTEM_PROMPT = (
    "You are a research assistant that writes faithful, structured summaries of "
    "scientific papers. Work only from the metadata, section outline and figure "
    "context you are given.\n"
    "- Keep section ids exactly as they appear in the outline.\n"
    "- Ground every key finding in named sections and, where relevant, figures.\n"
    "- Do not invent results, numbers or figures that are not in the context.\n"
    "- Obey the required JSON schema exactly; do not include any additional text."
)

SELECTION_SYSTEM_PROMPT = (
    "You explain a passage a reader highlighted in a research paper. Work only from "
    "the highlight and the evidence chunks provided.\n"
    "- Write two to five short bullets that restate and clarify the highlighted idea.\n"
    "- Every bullet cites at least one chunk_id from the evidence list.\n"
    "- Offer up to three pointers for deeper reading drawn from the evidence.\n"
    "- Obey the required JSON schema exactly; do not include any additional text."
)

SUMMARY_REQUIREMENTS = (
    "Summarize between three and six sections, using the section ids from the outline.",
    "For each section give a short summary, the reasoning that connects it to the paper's goal and up to four key points.",
    "List at least three key findings, each with its evidence and the section ids that support it.",
    "Reference figures by their ids and explain what each contributes.",
    "Prefer the paper's own terminology and keep claims no stronger than the text supports.",
)

ELLIPSIS = "…"
_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


@dataclass(frozen=True)
class PromptLimits:
    """Truncation and count limits applied while rendering prompts."""

    chunk_text: int = 700
    hit_chunks: int = 6
    window_chunks: int = 6
    selection_text: int = 360
    figure_caption: int = 360
    citation_title: int = 240
    citation_abstract: int = 480
    summary_sections: int = 8
    summary_paragraphs: int = 3
    summary_figures: int = 6
    summary_paragraph: int = 420
    summary_figure_caption: int = 240
    summary_figure_context: int = 280
    summary_abstract: int = 900
    selection_highlight: int = 420
    selection_chunks: int = 6
    selection_chunk_text: int = 520
    selection_figure_caption: int = 240
    selection_fallback: int = 180
    selection_deeper: int = 360


DEFAULT_LIMITS = PromptLimits()


def merge_persona(base: str, persona_prompt: Optional[str]) -> str:
    """Append persona guidance to a base system prompt."""

    if not persona_prompt:
        return base
    return f"{base}\n\nPersona guidance:\n{persona_prompt}"


def truncate(text: str, max_length: int = 600) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 1] + ELLIPSIS


def format_page(page: Optional[int]) -> str:
    if isinstance(page, int) and page > 0:
        return f"page {page}"
    return "page ?"


def page_anchor(page: Optional[int]) -> Optional[str]:
    if isinstance(page, int) and page > 0:
        return f"(page {page})"
    return None


def decode_json_reply(raw: str) -> Dict[str, Any]:
    """Parse a model reply, accepting a fenced ```json block."""

    text = raw.strip()
    fenced = _FENCED_JSON.search(text)
    if fenced:
        text = fenced.group(1)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise GenerationSchemaViolation(f"Model reply is not valid JSON: {exc}", raw=raw) from exc
    if not isinstance(payload, dict):
        raise GenerationSchemaViolation("Model reply is not a JSON object", raw=raw)
    return payload


def clean_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def clean_strings(value: Any, limit: int) -> List[str]:
    if not isinstance(value, list):
        return []
    cleaned = [item for item in (clean_string(entry) for entry in value) if item]
    return cleaned[:limit]


__all__ = [
    "DEFAULT_LIMITS",
    "PromptLimits",
    "QA_SYSTEM_PROMPT",
    "SELECTION_SYSTEM_PROMPT",
    "SUMMARY_REQUIREMENTS",
    "SUMMARY_SYSTEM_PROMPT",
    "clean_string",
    "clean_strings",
    "decode_json_reply",
    "format_page",
    "merge_persona",
    "page_anchor",
    "truncate",
]
