"""Application configuration for paperlens."""

from __future__ import annotations

from dataclasses import dataclass
from email.utils import parseaddr
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HYBRID_LIMIT = 8
DEFAULT_HYBRID_ALPHA = 0.65
DEFAULT_PAGE_WINDOW = 1
MAX_CITATIONS_TO_ENRICH = 4
MIN_TEXT_THRESHOLD_FOR_PDF = 1000


@dataclass(frozen=True)
class ScanThresholds:
    """Constants of the scanned-document heuristic.

    The values are characterization constants observed to work on arXiv PDFs;
    they are not derived from a model and may be tuned per deployment.
    """

    sample_pages: int = 3
    scanned_avg_text: float = 500.0
    scanned_image_ratio: float = 0.8
    mixed_avg_text: float = 1000.0
    mixed_image_ratio: float = 0.5
    high_confidence_text: float = 2000.0
    medium_confidence_text: float = 1000.0


class PaperLensConfig(BaseSettings):  # type: ignore[misc]
    """Settings controlling upstream endpoints, timeouts and retrieval defaults."""

    arxiv_api_base_url: str = Field(
        "https://export.arxiv.org/api/query", description="arXiv Atom API endpoint"
    )
    ar5iv_base_url: str = Field("https://ar5iv.org/html", description="HTML mirror base URL")
    arxiv_pdf_base_url: str = Field("https://arxiv.org/pdf", description="PDF download base URL")
    grobid_url: Optional[str] = Field(None, description="GROBID service base URL")
    ocr_url: Optional[str] = Field(None, description="Direct OCR service base URL")
    runpod_api_key: Optional[str] = Field(None, description="API key for the RunPod OCR endpoint")
    runpod_endpoint_id: Optional[str] = Field(None, description="RunPod serverless endpoint id")
    runpod_base_url: str = Field("https://api.runpod.ai/v2", description="RunPod API base URL")
    contact_email: Optional[str] = Field(None, description="Contact email forwarded to arXiv")

    fetch_timeout_s: float = Field(20.0, description="Timeout for metadata and HTML fetches")
    pdf_timeout_s: float = Field(20.0, description="Timeout for PDF downloads")
    grobid_timeout_s: float = Field(60.0, description="Timeout for GROBID processing")
    ocr_timeout_s: float = Field(90.0, description="Timeout for OCR processing")

    enable_ocr_fallback: bool = Field(True, description="Run OCR when PDF text is missing or thin")
    pdf_text_threshold: int = Field(
        MIN_TEXT_THRESHOLD_FOR_PDF, description="Minimum PDF text length before OCR is considered"
    )

    hybrid_limit: int = Field(DEFAULT_HYBRID_LIMIT, description="Hits returned by hybrid search")
    hybrid_alpha: float = Field(
        DEFAULT_HYBRID_ALPHA, description="Vector weight of hybrid search (lexical gets 1 - alpha)"
    )
    page_window: int = Field(DEFAULT_PAGE_WINDOW, description="Neighboring pages added to hits")
    max_citations_to_enrich: int = Field(
        MAX_CITATIONS_TO_ENRICH, description="Top cited references enriched per question"
    )

    openai_api_key: Optional[str] = Field(None, description="OpenAI API key for generation")
    openai_model: str = Field("gpt-4o-mini", description="Chat model used for JSON generation")
    openai_base_url: Optional[str] = Field(None, description="Override for the OpenAI API base URL")
    openai_embedding_model: Optional[str] = Field(
        None, description="OpenAI embedding model; the local hashing embedder is used when unset"
    )
    generation_timeout_s: float = Field(60.0, description="Timeout for generation requests")
    generation_temperature: float = Field(0.3, description="Sampling temperature for generation")

    kontext_api_key: Optional[str] = Field(None, description="API key for the persona prompt service")
    kontext_url: str = Field("https://api.kontext.dev", description="Persona prompt service base URL")
    kontext_path: str = Field("/v1/context/get", description="Persona prompt endpoint path")
    kontext_timeout_s: float = Field(8.0, description="Timeout for persona prompt lookups")

    model_config = SettingsConfigDict(env_prefix="PAPERLENS_", env_file=".env", extra="ignore")

    @field_validator(
        "arxiv_api_base_url",
        "ar5iv_base_url",
        "arxiv_pdf_base_url",
        "grobid_url",
        "ocr_url",
        "runpod_base_url",
        "openai_base_url",
        "kontext_url",
    )
    @classmethod
    def strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        return value or None

    @field_validator(
        "fetch_timeout_s",
        "pdf_timeout_s",
        "grobid_timeout_s",
        "ocr_timeout_s",
        "generation_timeout_s",
        "kontext_timeout_s",
    )
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    @field_validator("hybrid_alpha")
    @classmethod
    def validate_alpha(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("hybrid_alpha must be between 0 and 1")
        return value

    @field_validator("page_window", "max_citations_to_enrich")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("value must not be negative")
        return value

    @field_validator("contact_email")
    @classmethod
    def validate_contact_email(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        _, addr = parseaddr(value)
        if "@" not in addr:
            raise ValueError("contact_email must contain a valid email address")
        return addr

    @property
    def runpod_enabled(self) -> bool:
        return bool(self.runpod_api_key and self.runpod_endpoint_id)


__all__ = [
    "PaperLensConfig",
    "ScanThresholds",
    "DEFAULT_HYBRID_LIMIT",
    "DEFAULT_HYBRID_ALPHA",
    "DEFAULT_PAGE_WINDOW",
    "MAX_CITATIONS_TO_ENRICH",
    "MIN_TEXT_THRESHOLD_FOR_PDF",
]
