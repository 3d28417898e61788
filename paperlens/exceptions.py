"""Custom exception hierarchy for paperlens."""

from __future__ import annotations

from typing import Optional


class PaperLensError(Exception):
    """Base exception for paperlens errors."""


class ConfigError(PaperLensError):
    """Raised when configuration is invalid or incomplete."""


class SourceUnavailable(PaperLensError):
    """Raised when a single upstream source cannot be used for a paper."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class ParseError(SourceUnavailable):
    """Raised when a fetched source cannot be parsed into structure."""

    def __init__(self, message: str, *, source: str = "parser") -> None:
        super().__init__(source, message)


class OcrError(SourceUnavailable):
    """Raised when the OCR service fails or returns an unusable payload."""

    def __init__(self, message: str) -> None:
        super().__init__("ocr", message)


class IngestionFailed(PaperLensError):
    """Raised when ingestion cannot produce a usable paper."""

    def __init__(self, paper_id: str, stage: str, message: str) -> None:
        super().__init__(f"Ingestion of {paper_id} failed during {stage}: {message}")
        self.paper_id = paper_id
        self.stage = stage


class PaperNotIngested(PaperLensError):
    """Raised when a paper has no stored chunks to work from."""

    def __init__(self, paper_id: str) -> None:
        super().__init__(f"No chunks stored for {paper_id}; ingest the paper first")
        self.paper_id = paper_id


class StoreError(PaperLensError):
    """Raised when the chunk store rejects a write or query."""


class GenerationError(PaperLensError):
    """Raised when the generation service cannot produce a reply."""


class GenerationSchemaViolation(GenerationError):
    """Raised when a model reply does not satisfy the expected shape."""

    def __init__(self, message: str, raw: Optional[str] = None) -> None:
        super().__init__(message)
        self.raw = raw
