"""Caller-facing facade over ingestion, question answering and summarization.

Example
-------
```python
from paperlens.api import PaperLensClient

client = PaperLensClient()
client.ingest("1706.03762")
result = client.answer_question("1706.03762", "What does multi-head attention add?")
print(result.answer)
for cite in result.citations:
    print(cite.chunk_id, cite.page)
```
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import requests

from .clients.arxiv import ArxivClient
from .clients.base import ClientError, build_session
from .clients.persona import QA_TASK, SELECTION_TASK, SUMMARY_TASK, PersonaOptions, PersonaPromptClient
from .config import PaperLensConfig
from .evidence.context import EvidenceContextBuilder, SelectionInput, normalize_selection
from .evidence.models import EvidenceBundle, EvidenceCitation, EvidenceFigure, Selection
from .exceptions import ConfigError, PaperNotIngested
from .generation.client import GenerationClient, OpenAIGenerationClient
from .generation.models import AnswerResult, SelectionSummary, SummaryResult
from .generation.qa import QA_RESPONSE_SCHEMA, QA_SCHEMA_NAME, build_qa_user_prompt, parse_qa_reply, qa_system_prompt
from .generation.selection import (
    MAX_SELECTION_FIGURES,
    SELECTION_SCHEMA,
    SELECTION_SCHEMA_NAME,
    build_selection_user_prompt,
    parse_selection_reply,
    selection_system_prompt,
)
from .generation.summary import (
    SUMMARY_SCHEMA,
    SUMMARY_SCHEMA_NAME,
    build_summary_context,
    build_summary_user_prompt,
    parse_summary_reply,
    postprocess_summary,
    summary_system_prompt,
)
from .identifiers import canonical_paper_id
from .ingest.pipeline import IngestPipeline
from .models import IngestResult
from .retrieval.hybrid import HybridRetrievalConfig, HybridRetriever
from .store.base import PaperStore
from .store.embeddings import Embedder, HashingEmbedder, OpenAIEmbedder
from .store.memory import InMemoryPaperStore

logger = logging.getLogger(__name__)


def build_embedder(config: PaperLensConfig) -> Embedder:
    if config.openai_embedding_model and config.openai_api_key:
        return OpenAIEmbedder(
            config.openai_embedding_model,
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout=config.generation_timeout_s,
        )
    return HashingEmbedder()


class PaperLensClient:
    """Ingest arXiv papers and answer grounded questions about them.

    Every collaborator can be injected; anything not given is built from
    ``config``. The generation client is created on first use so ingestion
    works without OpenAI credentials.
    """

    def __init__(
        self,
        config: Optional[PaperLensConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        store: Optional[PaperStore] = None,
        pipeline: Optional[IngestPipeline] = None,
        metadata_client: Optional[ArxivClient] = None,
        generator: Optional[GenerationClient] = None,
        persona_client: Optional[PersonaPromptClient] = None,
    ) -> None:
        self.config = config or PaperLensConfig()
        self.session = session or build_session()
        self.store: PaperStore = store or InMemoryPaperStore(build_embedder(self.config))
        self.pipeline = pipeline or IngestPipeline.from_config(self.config, self.store, session=self.session)
        self.metadata_client = metadata_client or self.pipeline.arxiv
        self.retriever = HybridRetriever(
            self.store,
            config=HybridRetrievalConfig(
                limit=self.config.hybrid_limit,
                alpha=self.config.hybrid_alpha,
                page_window=self.config.page_window,
            ),
        )
        self.evidence = EvidenceContextBuilder(
            self.store,
            self.retriever,
            self.metadata_client,
            max_citations=self.config.max_citations_to_enrich,
        )
        self.persona_client = persona_client or PersonaPromptClient(
            self.config.kontext_api_key,
            base_url=self.config.kontext_url,
            path=self.config.kontext_path,
            session=self.session,
            timeout=self.config.kontext_timeout_s,
        )
        self._generator = generator

    @property
    def generator(self) -> GenerationClient:
        if self._generator is None:
            if not self.config.openai_api_key:
                raise ConfigError("PAPERLENS_OPENAI_API_KEY is required for question answering and summaries")
            self._generator = OpenAIGenerationClient(
                api_key=self.config.openai_api_key,
                model=self.config.openai_model,
                base_url=self.config.openai_base_url,
                timeout=self.config.generation_timeout_s,
                temperature=self.config.generation_temperature,
            )
        return self._generator

    def ingest(
        self, paper_id: str, *, force_ocr: bool = False, contact_email: Optional[str] = None
    ) -> IngestResult:
        """Fetch, parse and store an arXiv paper."""

        return self.pipeline.ingest(paper_id, force_ocr=force_ocr, contact_email=contact_email)

    def answer_question(
        self,
        paper_id: str,
        question: str,
        selection: SelectionInput = None,
        persona: Optional[PersonaOptions] = None,
    ) -> AnswerResult:
        """Answer ``question`` from the stored chunks of ``paper_id`` with page citations."""

        paper_id = canonical_paper_id(paper_id)
        evidence = self.evidence.build(paper_id, question, selection)
        persona_prompt = self.persona_client.fetch_system_prompt(QA_TASK, paper_id=paper_id, persona=persona)
        raw = self.generator.complete(
            qa_system_prompt(persona_prompt),
            build_qa_user_prompt(question, evidence),
            QA_RESPONSE_SCHEMA,
            name=QA_SCHEMA_NAME,
        )
        return parse_qa_reply(raw, evidence)

    def summarize(self, paper_id: str, persona: Optional[PersonaOptions] = None) -> SummaryResult:
        """Summarize a previously ingested paper section by section."""

        paper_id = canonical_paper_id(paper_id)
        chunks = self.store.fetch_chunks(paper_id)
        if not chunks:
            raise PaperNotIngested(paper_id)
        metadata = None
        try:
            metadata = self.metadata_client.fetch_metadata(paper_id)
        except ClientError as exc:
            logger.warning("Metadata unavailable for %s summary: %s", paper_id, exc)

        context = build_summary_context(paper_id, chunks, self.store.fetch_figures(paper_id), metadata)
        persona_prompt = self.persona_client.fetch_system_prompt(SUMMARY_TASK, paper_id=paper_id, persona=persona)
        raw = self.generator.complete(
            summary_system_prompt(persona_prompt),
            build_summary_user_prompt(context),
            SUMMARY_SCHEMA,
            name=SUMMARY_SCHEMA_NAME,
        )
        return postprocess_summary(parse_summary_reply(raw), context)

    def summarize_selection(
        self, paper_id: str, selection: SelectionInput, persona: Optional[PersonaOptions] = None
    ) -> SelectionSummary:
        """Explain a highlighted passage in a few cited bullets."""

        normalized, evidence = self._selection_evidence(paper_id, selection)
        persona_prompt = self.persona_client.fetch_system_prompt(
            SELECTION_TASK, paper_id=evidence.paper_id, persona=persona
        )
        raw = self.generator.complete(
            selection_system_prompt(persona_prompt),
            build_selection_user_prompt(normalized, evidence),
            SELECTION_SCHEMA,
            name=SELECTION_SCHEMA_NAME,
        )
        return parse_selection_reply(raw, evidence)

    def selection_figures(self, paper_id: str, selection: SelectionInput) -> List[EvidenceFigure]:
        """Figures mentioned by the chunks retrieved for a highlight."""

        _, evidence = self._selection_evidence(paper_id, selection)
        return evidence.figures[:MAX_SELECTION_FIGURES]

    def selection_citations(self, paper_id: str, selection: SelectionInput) -> List[EvidenceCitation]:
        """Enriched references cited by the chunks retrieved for a highlight."""

        _, evidence = self._selection_evidence(paper_id, selection)
        return evidence.citations

    def _selection_evidence(self, paper_id: str, selection: SelectionInput) -> Tuple[Selection, EvidenceBundle]:
        normalized = normalize_selection(selection)
        if normalized is None or not normalized.text:
            raise ValueError("Selection text is required")
        return normalized, self.evidence.build(canonical_paper_id(paper_id), normalized.text, normalized)


__all__ = ["PaperLensClient", "build_embedder"]
