"""Ingestion orchestrator: fetch, extract, select, reconcile, chunk, store."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, TypeVar
from urllib.parse import urlparse

import requests

from paperlens.clients.ar5iv import Ar5ivClient
from paperlens.clients.arxiv import ArxivClient
from paperlens.clients.base import ClientError, build_session
from paperlens.clients.grobid import GrobidClient
from paperlens.clients.ocr import DirectOcrTransport, OcrClient, RunpodOcrTransport
from paperlens.config import PaperLensConfig, ScanThresholds
from paperlens.exceptions import IngestionFailed, SourceUnavailable, StoreError
from paperlens.identifiers import canonical_paper_id
from paperlens.ingest.chunks import attach_chunk_refs, build_chunks
from paperlens.ingest.crossref import resolve_cross_references
from paperlens.ingest.selection import SourceCandidates, select_sources
from paperlens.models import HtmlDocument, IngestResult, PaperMetadata, PdfExtraction, TeiDocument
from paperlens.parsing.html import parse_html
from paperlens.parsing.pdf import extract_pdf
from paperlens.parsing.scan import DEFAULT_THRESHOLDS, should_attempt_ocr
from paperlens.parsing.tei import parse_tei
from paperlens.store.base import PaperStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_ocr_client(config: PaperLensConfig, session: Optional[requests.Session] = None) -> Optional[OcrClient]:
    """RunPod when its credentials are set, else the direct endpoint, else nothing."""

    if config.runpod_enabled:
        return OcrClient(
            RunpodOcrTransport(
                config.runpod_endpoint_id,  # type: ignore[arg-type]
                config.runpod_api_key,  # type: ignore[arg-type]
                base_url=config.runpod_base_url,
                session=session,
                timeout=config.ocr_timeout_s,
            )
        )
    if config.ocr_url:
        return OcrClient(DirectOcrTransport(config.ocr_url, session=session, timeout=config.ocr_timeout_s))
    return None


class IngestPipeline:
    """Turn an arXiv id into stored chunks, figures and citations.

    Every upstream step is optional: a failed fetch, parse or OCR call is
    logged and the selection chain continues with what is left. Only an empty
    section list, zero chunks or a failed store write abort the run, as
    :class:`IngestionFailed`.
    """

    def __init__(
        self,
        *,
        arxiv: ArxivClient,
        ar5iv: Ar5ivClient,
        store: PaperStore,
        grobid: Optional[GrobidClient] = None,
        ocr: Optional[OcrClient] = None,
        enable_ocr_fallback: bool = True,
        pdf_text_threshold: int = 1000,
        thresholds: ScanThresholds = DEFAULT_THRESHOLDS,
    ) -> None:
        self.arxiv = arxiv
        self.ar5iv = ar5iv
        self.store = store
        self.grobid = grobid
        self.ocr = ocr
        self.enable_ocr_fallback = enable_ocr_fallback
        self.pdf_text_threshold = pdf_text_threshold
        self.thresholds = thresholds

    @classmethod
    def from_config(
        cls,
        config: PaperLensConfig,
        store: PaperStore,
        *,
        session: Optional[requests.Session] = None,
    ) -> "IngestPipeline":
        session = session or build_session()
        grobid = (
            GrobidClient(session=session, base_url=config.grobid_url, timeout=config.grobid_timeout_s)
            if config.grobid_url
            else None
        )
        return cls(
            arxiv=ArxivClient(
                session=session,
                base_url=config.arxiv_api_base_url,
                pdf_base_url=config.arxiv_pdf_base_url,
                timeout=config.fetch_timeout_s,
                pdf_timeout=config.pdf_timeout_s,
                contact_email=config.contact_email,
            ),
            ar5iv=Ar5ivClient(session=session, base_url=config.ar5iv_base_url, timeout=config.fetch_timeout_s),
            store=store,
            grobid=grobid,
            ocr=build_ocr_client(config, session),
            enable_ocr_fallback=config.enable_ocr_fallback,
            pdf_text_threshold=config.pdf_text_threshold,
        )

    # ------------------------------------------------------------------
    # Optional steps
    # ------------------------------------------------------------------
    def _optional(self, paper_id: str, stage: str, func: Callable[..., T], *args, **kwargs) -> Optional[T]:
        try:
            return func(*args, **kwargs)
        except (ClientError, SourceUnavailable) as exc:
            logger.warning("%s unavailable for %s: %s", stage, paper_id, exc)
            return None

    def _fetch_html_document(self, paper_id: str) -> Optional[HtmlDocument]:
        html = self._optional(paper_id, "ar5iv HTML", self.ar5iv.fetch_html, paper_id)
        if not html:
            return None
        parsed = urlparse(self.ar5iv.html_url(paper_id))
        origin = f"{parsed.scheme}://{parsed.netloc}" if parsed.netloc else None
        return self._optional(paper_id, "ar5iv HTML parse", parse_html, html, base_url=origin)

    def _grobid_document(self, paper_id: str, pdf_bytes: bytes) -> Optional[TeiDocument]:
        if self.grobid is None:
            return None
        tei_xml = self._optional(paper_id, "GROBID", self.grobid.process_fulltext, pdf_bytes)
        if not tei_xml:
            return None
        return self._optional(paper_id, "GROBID TEI parse", parse_tei, tei_xml)

    def _ocr_extraction(self, paper_id: str, pdf_bytes: bytes) -> Optional[PdfExtraction]:
        if self.ocr is None:
            logger.info("OCR requested for %s but no OCR service is configured", paper_id)
            return None
        return self._optional(paper_id, "OCR", self.ocr.extract, pdf_bytes)

    # ------------------------------------------------------------------
    # Public entrypoint
    # ------------------------------------------------------------------
    def ingest(
        self,
        paper_id: str,
        *,
        force_ocr: bool = False,
        contact_email: Optional[str] = None,
    ) -> IngestResult:
        arxiv_id = canonical_paper_id(paper_id)
        if not arxiv_id:
            raise ValueError("paper_id is required")

        with ThreadPoolExecutor(max_workers=3) as executor:
            metadata_future = executor.submit(
                self._optional, arxiv_id, "arXiv metadata", self.arxiv.fetch_metadata,
                arxiv_id, contact_email=contact_email,
            )
            html_future = executor.submit(self._fetch_html_document, arxiv_id)
            pdf_future = executor.submit(
                self._optional, arxiv_id, "PDF", self.arxiv.fetch_pdf,
                arxiv_id, contact_email=contact_email,
            )
            metadata: Optional[PaperMetadata] = metadata_future.result()
            html_document = html_future.result()
            pdf_bytes: Optional[bytes] = pdf_future.result() or None

        if metadata is None:
            logger.warning("Continuing %s without arXiv metadata", arxiv_id)
            metadata = PaperMetadata(paper_id=arxiv_id, title=arxiv_id)

        tei_document: Optional[TeiDocument] = None
        pdf_extraction: Optional[PdfExtraction] = None
        if pdf_bytes:
            with ThreadPoolExecutor(max_workers=2) as executor:
                tei_future = executor.submit(self._grobid_document, arxiv_id, pdf_bytes)
                pdf_extraction_future = executor.submit(
                    self._optional, arxiv_id, "PDF text extraction", extract_pdf, pdf_bytes, self.thresholds
                )
                tei_document = tei_future.result()
                pdf_extraction = pdf_extraction_future.result()

        ocr_extraction: Optional[PdfExtraction] = None
        if should_attempt_ocr(
            pdf_extraction,
            has_pdf=bool(pdf_bytes),
            force_ocr=force_ocr,
            allow_fallback=self.enable_ocr_fallback or force_ocr,
            threshold=self.pdf_text_threshold,
        ):
            ocr_extraction = self._ocr_extraction(arxiv_id, pdf_bytes)  # type: ignore[arg-type]

        candidates = SourceCandidates(
            tei=tei_document, html=html_document, pdf=pdf_extraction, ocr=ocr_extraction
        )
        selection = select_sources(candidates)
        if not selection.sections:
            raise IngestionFailed(
                arxiv_id, "sections", f"Unable to extract meaningful sections for arXiv paper {arxiv_id}."
            )

        sections, figures = resolve_cross_references(
            selection.sections, selection.figures, selection.references, candidates.fallback
        )
        build = build_chunks(arxiv_id, sections)
        if not build.chunks:
            raise IngestionFailed(
                arxiv_id, "chunks", f"No chunkable paragraphs were produced for arXiv paper {arxiv_id}."
            )

        figures = attach_chunk_refs(arxiv_id, figures, build.figure_to_chunks)
        references = attach_chunk_refs(arxiv_id, selection.references, build.citation_to_chunks)

        try:
            self.store.upsert_chunks(build.chunks)
            if figures:
                self.store.upsert_figures(arxiv_id, figures)
            if references:
                self.store.upsert_citations(arxiv_id, references)
        except StoreError as exc:
            raise IngestionFailed(arxiv_id, "store", str(exc)) from exc

        fallback = candidates.fallback
        pages = tei_document.page_count if tei_document and tei_document.page_count else None
        if pages is None and fallback is not None:
            pages = len(fallback.pages)

        logger.info(
            "Ingested %s: %d sections, %d chunks, %d figures, %d references (sources: %s)",
            arxiv_id,
            len(sections),
            len(build.chunks),
            len(figures),
            len(references),
            selection.sources,
        )
        return IngestResult(
            paper_id=arxiv_id,
            title=metadata.title,
            abstract=metadata.abstract,
            authors=list(metadata.authors),
            pages=pages,
            sections=sections,
            references=references,
            figures=figures,
            chunk_count=len(build.chunks),
            sources=selection.sources,
        )


__all__ = ["IngestPipeline", "build_ocr_client"]
