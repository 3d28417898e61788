"""Paper summarization: context assembly, prompt rendering and reply post-processing.

The summary context groups stored chunks by section title in document order
(``S1``, ``S2``, ...) and joins figures to the sections and paragraphs that
mention them. Model replies are coerced leniently (invalid entries are
dropped) and then anchored back to pages through that context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from paperlens.exceptions import GenerationSchemaViolation
from paperlens.generation.models import (
    PageSpan,
    SummaryFigure,
    SummaryKeyFinding,
    SummaryResult,
    SummarySection,
)
from paperlens.generation.prompts import (
    DEFAULT_LIMITS,
    SUMMARY_REQUIREMENTS,
    SUMMARY_SYSTEM_PROMPT,
    PromptLimits,
    clean_string,
    clean_strings,
    decode_json_reply,
    format_page,
    page_anchor,
    truncate,
)
from paperlens.models import PaperChunk, PaperFigure, PaperMetadata
from paperlens.parsing.text import collapse_whitespace

logger = logging.getLogger(__name__)

SUMMARY_SCHEMA_NAME = "paper_summary"
DEFAULT_SECTION_TITLE = "General Overview"
MAX_PARAGRAPHS_PER_SECTION = 8
MAX_PARAGRAPHS_PER_FIGURE = 4
FALLBACK_FIGURE_INSIGHT = "Figure referenced in the paper; review the caption for context."

_STRING = {"type": "string"}

SUMMARY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": ["sections", "key_findings", "figures"],
    "properties": {
        "sections": {
            "type": "array",
            "minItems": 3,
            "maxItems": 6,
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["section_id", "title", "summary", "reasoning", "key_points"],
                "properties": {
                    "section_id": _STRING,
                    "title": _STRING,
                    "summary": _STRING,
                    "reasoning": _STRING,
                    "key_points": {"type": "array", "minItems": 1, "maxItems": 4, "items": _STRING},
                },
            },
        },
        "key_findings": {
            "type": "array",
            "minItems": 3,
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["statement", "evidence", "supporting_sections", "related_figures"],
                "properties": {
                    "statement": _STRING,
                    "evidence": _STRING,
                    "supporting_sections": {"type": "array", "minItems": 1, "maxItems": 4, "items": _STRING},
                    "related_figures": {"type": "array", "maxItems": 3, "items": _STRING},
                },
            },
        },
        "figures": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["figure_id", "caption_summary", "insight"],
                "properties": {"figure_id": _STRING, "caption_summary": _STRING, "insight": _STRING},
            },
        },
    },
}


@dataclass
class SectionContext:
    id: str
    title: str
    page_span: Optional[PageSpan] = None
    paragraphs: List[str] = field(default_factory=list)
    figure_ids: List[str] = field(default_factory=list)


@dataclass
class FigureContext:
    id: str
    caption: str = ""
    page_number: Optional[int] = None
    section_ids: List[str] = field(default_factory=list)
    paragraphs: List[str] = field(default_factory=list)


@dataclass
class SummaryContext:
    paper_id: str
    metadata: Optional[PaperMetadata]
    sections: List[SectionContext]
    figures: List[FigureContext]


def _page_span(pages: Sequence[int]) -> Optional[PageSpan]:
    if not pages:
        return None
    return PageSpan(start=min(pages), end=max(pages))


def build_summary_context(
    paper_id: str,
    chunks: Sequence[PaperChunk],
    figures: Sequence[PaperFigure],
    metadata: Optional[PaperMetadata] = None,
) -> SummaryContext:
    """Group chunks into section contexts and join figures to their mentions."""

    grouped: Dict[str, Dict[str, Any]] = {}
    chunk_sections: List[tuple[PaperChunk, str]] = []
    for chunk in chunks:
        key = (chunk.section or "").strip() or DEFAULT_SECTION_TITLE
        entry = grouped.setdefault(key, {"paragraphs": [], "pages": [], "figure_ids": []})
        chunk_sections.append((chunk, key))
        text = collapse_whitespace(chunk.text)
        if text and len(entry["paragraphs"]) < MAX_PARAGRAPHS_PER_SECTION:
            entry["paragraphs"].append(text)
        if chunk.page_number is not None:
            entry["pages"].append(chunk.page_number)
        for figure_id in chunk.figure_ids:
            if figure_id and figure_id not in entry["figure_ids"]:
                entry["figure_ids"].append(figure_id)

    sections: List[SectionContext] = []
    key_to_id: Dict[str, str] = {}
    for index, (key, entry) in enumerate(grouped.items()):
        section_id = f"S{index + 1}"
        key_to_id[key] = section_id
        sections.append(
            SectionContext(
                id=section_id,
                title=key,
                page_span=_page_span(entry["pages"]),
                paragraphs=entry["paragraphs"],
                figure_ids=entry["figure_ids"],
            )
        )

    figure_map: Dict[str, FigureContext] = {
        figure.id: FigureContext(id=figure.id, caption=figure.caption, page_number=figure.page_number)
        for figure in figures
    }
    for chunk, key in chunk_sections:
        if not chunk.figure_ids:
            continue
        text = collapse_whitespace(chunk.text)
        for figure_id in chunk.figure_ids:
            if not figure_id:
                continue
            context = figure_map.setdefault(figure_id, FigureContext(id=figure_id))
            if key_to_id[key] not in context.section_ids:
                context.section_ids.append(key_to_id[key])
            if text and len(context.paragraphs) < MAX_PARAGRAPHS_PER_FIGURE:
                context.paragraphs.append(text)

    ordered = sorted(
        figure_map.values(),
        key=lambda fig: (0, fig.page_number, fig.id) if fig.page_number else (1, 0, fig.id),
    )
    return SummaryContext(paper_id=paper_id, metadata=metadata, sections=sections, figures=ordered)


def summary_system_prompt(persona_prompt: Optional[str] = None) -> str:
    if not persona_prompt:
        return SUMMARY_SYSTEM_PROMPT
    return f"{persona_prompt}\n\n---\n{SUMMARY_SYSTEM_PROMPT}"


def format_page_span(span: Optional[PageSpan]) -> str:
    if span is None or (span.start is None and span.end is None):
        return "page ?"
    if span.start is not None and span.end is not None:
        return f"page {span.start}" if span.start == span.end else f"pages {span.start}-{span.end}"
    return f"page {span.start if span.start is not None else span.end}"


def span_anchor(span: Optional[PageSpan]) -> Optional[str]:
    if span is None:
        return None
    return page_anchor(span.start if span.start is not None else span.end)


def _metadata_block(metadata: Optional[PaperMetadata], limits: PromptLimits) -> str:
    if metadata is None:
        return "Paper metadata unavailable (fallback to section content)."
    parts: List[str] = []
    if metadata.title:
        parts.append(f"Title: {metadata.title}")
    if metadata.authors:
        parts.append("Authors: " + ", ".join(metadata.authors))
    if metadata.primary_category:
        parts.append(f"Primary field: {metadata.primary_category}")
    if metadata.published_at:
        parts.append(f"Published: {metadata.published_at}")
    if metadata.updated_at and metadata.updated_at != metadata.published_at:
        parts.append(f"Updated: {metadata.updated_at}")
    if metadata.abstract:
        parts.append(f"Abstract: {truncate(metadata.abstract, limits.summary_abstract)}")
    return "\n".join(parts)


def _section_outline(sections: Sequence[SectionContext], limits: PromptLimits) -> str:
    blocks: List[str] = []
    for section in sections[: limits.summary_sections]:
        lines = [f"- [{section.id}] {section.title} ({format_page_span(section.page_span)})"]
        if section.figure_ids:
            lines.append("    Figures: " + ", ".join(section.figure_ids))
        for index, paragraph in enumerate(section.paragraphs[: limits.summary_paragraphs]):
            lines.append(f"    Key {index + 1}: {truncate(paragraph, limits.summary_paragraph)}")
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


def _figure_outline(figures: Sequence[FigureContext], limits: PromptLimits) -> str:
    if not figures:
        return "No figures were extracted for this paper."
    blocks: List[str] = []
    for figure in figures[: limits.summary_figures]:
        caption = truncate(figure.caption or "No caption available", limits.summary_figure_caption)
        lines = [f"- [{figure.id}] {caption} ({format_page(figure.page_number)})"]
        if figure.section_ids:
            lines.append("    Sections: " + ", ".join(figure.section_ids))
        for index, paragraph in enumerate(figure.paragraphs):
            lines.append(f"    Context {index + 1}: {truncate(paragraph, limits.summary_figure_context)}")
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


def build_summary_user_prompt(context: SummaryContext, limits: PromptLimits = DEFAULT_LIMITS) -> str:
    return "\n".join(
        [
            f"Paper ID: {context.paper_id}",
            "",
            "# Metadata",
            _metadata_block(context.metadata, limits),
            "",
            "# Section Outline",
            _section_outline(context.sections, limits),
            "",
            "# Figure Context",
            _figure_outline(context.figures, limits),
            "",
            "# Task Requirements",
            "\n".join(f"- {line}" for line in SUMMARY_REQUIREMENTS),
        ]
    )


def _records(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def _coerce_sections(value: Any) -> List[SummarySection]:
    sections: List[SummarySection] = []
    for record in _records(value):
        section_id = clean_string(record.get("section_id"))
        summary = clean_string(record.get("summary"))
        reasoning = clean_string(record.get("reasoning"))
        if not section_id or not summary or not reasoning:
            continue
        title = record.get("title")
        sections.append(
            SummarySection(
                section_id=section_id,
                title=title.strip() if isinstance(title, str) else section_id,
                summary=summary,
                reasoning=reasoning,
                key_points=clean_strings(record.get("key_points"), 4),
            )
        )
    return sections


def _coerce_findings(value: Any) -> List[SummaryKeyFinding]:
    findings: List[SummaryKeyFinding] = []
    for record in _records(value):
        statement = clean_string(record.get("statement"))
        evidence = clean_string(record.get("evidence"))
        supporting = clean_strings(record.get("supporting_sections"), 4)
        if not statement or not evidence or not supporting:
            continue
        findings.append(
            SummaryKeyFinding(
                statement=statement,
                evidence=evidence,
                supporting_sections=supporting,
                related_figures=clean_strings(record.get("related_figures"), 3),
            )
        )
    return findings


def _coerce_figures(value: Any) -> List[SummaryFigure]:
    figures: List[SummaryFigure] = []
    for record in _records(value):
        figure_id = clean_string(record.get("figure_id"))
        insight = clean_string(record.get("insight"))
        if not figure_id or not insight:
            continue
        figures.append(
            SummaryFigure(figure_id=figure_id, insight=insight, caption=clean_string(record.get("caption_summary")))
        )
    return figures


def parse_summary_reply(raw: str) -> SummaryResult:
    payload = decode_json_reply(raw)
    sections = _coerce_sections(payload.get("sections"))
    if not sections:
        raise GenerationSchemaViolation("Model reply did not include any sections", raw=raw)
    return SummaryResult(
        sections=sections,
        key_findings=_coerce_findings(payload.get("key_findings")),
        figures=_coerce_figures(payload.get("figures")),
    )


def postprocess_summary(summary: SummaryResult, context: SummaryContext) -> SummaryResult:
    """Order sections by the paper, attach page anchors and keep only anchored figures."""

    order = {section.id: index for index, section in enumerate(context.sections)}
    by_section = {section.id: section for section in context.sections}
    by_figure = {figure.id: figure for figure in context.figures}

    sections: List[SummarySection] = []
    for section in summary.sections:
        source = by_section.get(section.section_id)
        span = source.page_span if source else None
        title = section.title or (source.title if source else "") or section.section_id
        sections.append(
            SummarySection(
                section_id=section.section_id,
                title=title,
                summary=section.summary,
                reasoning=section.reasoning,
                key_points=list(section.key_points),
                page_span=span,
                page_anchor=span_anchor(span),
            )
        )
    sections.sort(key=lambda item: order.get(item.section_id, len(order)))

    if len(sections) < 3 and len(context.sections) >= 3:
        raise GenerationSchemaViolation("Model reply returned fewer than three sections")

    findings: List[SummaryKeyFinding] = []
    for finding in summary.key_findings:
        anchors: List[str] = []
        candidates = [span_anchor(by_section[s].page_span) for s in finding.supporting_sections if s in by_section]
        candidates += [page_anchor(by_figure[f].page_number) for f in finding.related_figures if f in by_figure]
        for anchor in candidates:
            if anchor and anchor not in anchors:
                anchors.append(anchor)
        findings.append(
            SummaryKeyFinding(
                statement=finding.statement,
                evidence=finding.evidence,
                page_anchors=anchors,
                supporting_sections=list(finding.supporting_sections),
                related_figures=list(finding.related_figures),
            )
        )

    figures: List[SummaryFigure] = []
    for figure in summary.figures:
        source = by_figure.get(figure.figure_id)
        anchor = page_anchor(source.page_number) if source else None
        if source is None or anchor is None:
            continue
        figures.append(
            SummaryFigure(
                figure_id=figure.figure_id,
                insight=figure.insight,
                caption=figure.caption or source.caption,
                page_anchor=anchor,
            )
        )

    if not figures:
        fallback = next((fig for fig in context.figures if page_anchor(fig.page_number)), None)
        if fallback is not None:
            figures.append(
                SummaryFigure(
                    figure_id=fallback.id,
                    insight=FALLBACK_FIGURE_INSIGHT,
                    caption=fallback.caption,
                    page_anchor=page_anchor(fallback.page_number),
                )
            )

    return SummaryResult(sections=sections, key_findings=findings, figures=figures)


__all__ = [
    "FigureContext",
    "SUMMARY_SCHEMA",
    "SUMMARY_SCHEMA_NAME",
    "SectionContext",
    "SummaryContext",
    "build_summary_context",
    "build_summary_user_prompt",
    "parse_summary_reply",
    "postprocess_summary",
    "summary_system_prompt",
]
