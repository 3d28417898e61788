"""Ingest arXiv papers and ask grounded questions about them."""

from __future__ import annotations

from typing import Optional

from .api import PaperLensClient
from .clients.persona import PersonaOptions
from .evidence.context import SelectionInput
from .evidence.models import Selection
from .generation.models import AnswerResult, SelectionSummary, SummaryResult
from .models import IngestResult

_default_client: Optional[PaperLensClient] = None


def get_default_client() -> PaperLensClient:
    """Return the default ``PaperLensClient`` instance, creating it lazily."""

    global _default_client
    if _default_client is None:
        _default_client = PaperLensClient()
    return _default_client


def ingest(paper_id: str, *, force_ocr: bool = False, contact_email: Optional[str] = None) -> IngestResult:
    """Ingest an arXiv paper into the default client's store."""

    return get_default_client().ingest(paper_id, force_ocr=force_ocr, contact_email=contact_email)


def answer_question(
    paper_id: str,
    question: str,
    selection: SelectionInput = None,
    persona: Optional[PersonaOptions] = None,
) -> AnswerResult:
    """Answer a question about an ingested paper."""

    return get_default_client().answer_question(paper_id, question, selection, persona)


def summarize(paper_id: str, persona: Optional[PersonaOptions] = None) -> SummaryResult:
    """Summarize an ingested paper."""

    return get_default_client().summarize(paper_id, persona)


def summarize_selection(
    paper_id: str, selection: SelectionInput, persona: Optional[PersonaOptions] = None
) -> SelectionSummary:
    """Explain a highlighted passage of an ingested paper."""

    return get_default_client().summarize_selection(paper_id, selection, persona)


__all__ = [
    "PaperLensClient",
    "PersonaOptions",
    "Selection",
    "answer_question",
    "get_default_client",
    "ingest",
    "summarize",
    "summarize_selection",
]
