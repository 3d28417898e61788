"""OCR extraction over a direct HTTP endpoint or a RunPod serverless job."""

from __future__ import annotations

import base64
import logging
import re
from typing import Any, Dict, List, Optional, Protocol

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from paperlens.clients.base import BaseHttpClient, ClientError
from paperlens.exceptions import OcrError
from paperlens.models import CaptionKind, CaptionMatch, PdfExtraction, PdfPage
from paperlens.parsing.labels import LABEL_PREFIX, build_caption_matches, normalize_reference
from paperlens.parsing.scan import classify
from paperlens.parsing.text import collapse_whitespace, normalize_page_text

logger = logging.getLogger(__name__)

_VERSIONED_OCR_PATH = re.compile(r"/v\d+/ocr$", re.IGNORECASE)


class _OcrPage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    page: Optional[int] = None
    page_number: Optional[int] = Field(None, alias="pageNumber")
    text: Optional[str] = None


class _OcrVisual(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    page: Optional[int] = None
    page_number: Optional[int] = Field(None, alias="pageNumber")
    number: Optional[str] = None
    caption: Optional[str] = None
    text: Optional[str] = None

    @field_validator("number", mode="before")
    @classmethod
    def stringify_number(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(value)
        return value


class OcrPayload(BaseModel):
    """Body returned by the OCR model, either directly or as a job ``output``."""

    model_config = ConfigDict(extra="ignore")

    pages: Optional[List[_OcrPage]] = None
    text: Optional[str] = None
    figures: List[_OcrVisual] = Field(default_factory=list)
    tables: List[_OcrVisual] = Field(default_factory=list)


class OcrTransport(Protocol):
    def run(self, pdf_bytes: bytes) -> OcrPayload:
        """Submit the document and return the parsed OCR payload."""


def _parse_payload(body: Any, *, transport: str) -> OcrPayload:
    if not isinstance(body, dict):
        raise OcrError(f"{transport} response was not a JSON object")
    try:
        return OcrPayload.model_validate(body)
    except ValidationError as exc:
        raise OcrError(f"{transport} response did not match the OCR payload shape: {exc}") from exc


def _json_body(response: requests.Response, *, transport: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise OcrError(f"{transport} response was not valid JSON") from exc


class DirectOcrTransport(BaseHttpClient):
    """POST the PDF as multipart ``file`` to ``{base}/v1/ocr``."""

    def __init__(self, base_url: str, *, session: Optional[requests.Session] = None, timeout: float = 90.0) -> None:
        base = base_url.rstrip("/")
        endpoint = base if _VERSIONED_OCR_PATH.search(base) else f"{base}/v1/ocr"
        super().__init__(session=session, base_url=endpoint, timeout=timeout, max_attempts=1)

    def run(self, pdf_bytes: bytes) -> OcrPayload:
        try:
            response = self._request(
                "POST",
                "",
                files={"file": ("paper.pdf", pdf_bytes, "application/pdf")},
                headers={"Accept": "application/json"},
            )
        except ClientError as exc:
            raise OcrError(f"OCR request failed: {exc}") from exc
        return _parse_payload(_json_body(response, transport="OCR"), transport="OCR")


class RunpodOcrTransport(BaseHttpClient):
    """Run the OCR model as a synchronous RunPod serverless job."""

    BASE_URL = "https://api.runpod.ai/v2"

    def __init__(
        self,
        endpoint_id: str,
        api_key: str,
        *,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 90.0,
    ) -> None:
        super().__init__(session=session, base_url=base_url, timeout=timeout, max_attempts=1)
        self.endpoint_id = endpoint_id
        self.api_key = api_key

    def run(self, pdf_bytes: bytes) -> OcrPayload:
        body: Dict[str, Any] = {
            "input": {
                "pdf_base64": base64.b64encode(pdf_bytes).decode("ascii"),
                "task": "extract_all",
                "output_format": "json",
            }
        }
        try:
            response = self._request(
                "POST",
                f"/{self.endpoint_id}/runsync",
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except ClientError as exc:
            raise OcrError(f"RunPod OCR request failed: {exc}") from exc

        raw = _json_body(response, transport="RunPod OCR")
        if not isinstance(raw, dict):
            raise OcrError("RunPod OCR response was not a JSON object")
        if raw.get("error"):
            raise OcrError(f"RunPod OCR error: {raw['error']}")
        output = raw.get("output")
        return _parse_payload(output if output is not None else raw, transport="RunPod OCR")


def _payload_pages(payload: OcrPayload) -> List[PdfPage]:
    if payload.pages is not None:
        pages: List[PdfPage] = []
        for index, entry in enumerate(payload.pages):
            text = normalize_page_text(entry.text)
            if not text:
                continue
            number = entry.page_number or entry.page or index + 1
            pages.append(PdfPage(page_number=number, text=text))
        return pages
    text = normalize_page_text(payload.text)
    return [PdfPage(page_number=1, text=text)] if text else []


def _payload_captions(entries: List[_OcrVisual], kind: CaptionKind) -> List[CaptionMatch]:
    matches: List[CaptionMatch] = []
    for index, entry in enumerate(entries):
        page_number = entry.page_number or entry.page or index + 1
        caption = collapse_whitespace(entry.caption or entry.text or entry.number or "")
        if not caption:
            continue
        number = (entry.number or "").strip()
        normalized = normalize_reference(kind, number or f"{page_number}-{index + 1}")
        slug = normalized.split(":", 1)[1] or f"{page_number}-{index + 1}"
        matches.append(
            CaptionMatch(
                id=f"{kind}-{slug}",
                kind=kind,
                label=f"{LABEL_PREFIX[kind]} {number}" if number else LABEL_PREFIX[kind],
                number=number,
                caption=caption,
                page_number=page_number,
                normalized_label=normalized,
            )
        )
    return matches


def payload_to_extraction(payload: OcrPayload, sample_pages: int = 3) -> Optional[PdfExtraction]:
    """Normalize an OCR payload to the same shape the text-layer extractor returns.

    Captions reported by the model are used as-is; when it reports none they
    are found in the recognized page text.
    """

    pages = _payload_pages(payload)
    if not pages:
        return None

    figures = _payload_captions(payload.figures, "figure")
    tables = _payload_captions(payload.tables, "table")
    if not figures and not tables:
        for page in pages:
            figures.extend(build_caption_matches(page.text, "figure", page.page_number))
            tables.extend(build_caption_matches(page.text, "table", page.page_number))

    sampled = pages[:sample_pages]
    text_length = sum(len(page.text) for page in sampled)
    analysis = classify(
        text_length / len(sampled),
        0.0,
        sampled_pages=len(sampled),
        sampled_text_length=text_length,
    )
    # OCR output is by definition treated as coming from a scanned source.
    analysis.is_likely_scanned = True
    analysis.recommended_tool = "deepseek-ocr"

    return PdfExtraction(
        pages=pages,
        combined_text="\n\n".join(page.text for page in pages),
        figure_captions=figures,
        table_captions=tables,
        analysis=analysis,
    )


class OcrClient:
    """Run OCR through whichever transport is configured."""

    def __init__(self, transport: OcrTransport) -> None:
        self.transport = transport

    def extract(self, pdf_bytes: bytes) -> Optional[PdfExtraction]:
        """Return the OCR extraction, ``None`` when the model recognized no text.

        Transport failures and malformed payloads raise :class:`OcrError`.
        """

        payload = self.transport.run(pdf_bytes)
        extraction = payload_to_extraction(payload)
        if extraction is None:
            logger.info("OCR returned no text")
        return extraction


__all__ = [
    "DirectOcrTransport",
    "OcrClient",
    "OcrPayload",
    "OcrTransport",
    "RunpodOcrTransport",
    "payload_to_extraction",
]
