"""Answer and summary records returned to callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class AnswerCitation:
    chunk_id: str
    page: Optional[int] = None
    quote: Optional[str] = None


@dataclass
class AnswerResult:
    answer: str
    citations: List[AnswerCitation] = field(default_factory=list)


@dataclass
class PageSpan:
    start: Optional[int] = None
    end: Optional[int] = None


@dataclass
class SummarySection:
    section_id: str
    title: str
    summary: str
    reasoning: str
    key_points: List[str] = field(default_factory=list)
    page_span: Optional[PageSpan] = None
    page_anchor: Optional[str] = None


@dataclass
class SummaryKeyFinding:
    statement: str
    evidence: str
    page_anchors: List[str] = field(default_factory=list)
    supporting_sections: List[str] = field(default_factory=list)
    related_figures: List[str] = field(default_factory=list)


@dataclass
class SummaryFigure:
    figure_id: str
    insight: str
    caption: Optional[str] = None
    page_anchor: Optional[str] = None


@dataclass
class SummaryResult:
    sections: List[SummarySection] = field(default_factory=list)
    key_findings: List[SummaryKeyFinding] = field(default_factory=list)
    figures: List[SummaryFigure] = field(default_factory=list)


@dataclass
class SelectionBullet:
    text: str
    citation_ids: List[str] = field(default_factory=list)


@dataclass
class SelectionSummary:
    """Inline explanation of a highlighted passage."""

    bullets: List[SelectionBullet] = field(default_factory=list)
    more: List[str] = field(default_factory=list)
    citations: List[AnswerCitation] = field(default_factory=list)


__all__ = [
    "AnswerCitation",
    "AnswerResult",
    "PageSpan",
    "SelectionBullet",
    "SelectionSummary",
    "SummaryFigure",
    "SummaryKeyFinding",
    "SummaryResult",
    "SummarySection",
]
