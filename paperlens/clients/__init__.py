"""HTTP clients for arXiv, ar5iv, GROBID, OCR and the persona prompt service."""

from .ar5iv import Ar5ivClient
from .arxiv import ArxivClient
from .base import BaseHttpClient, ClientError, NotFoundError, RateLimitedError, RequestRejectedError, UpstreamError
from .grobid import GrobidClient
from .ocr import DirectOcrTransport, OcrClient, OcrPayload, OcrTransport, RunpodOcrTransport
from .persona import PersonaOptions, PersonaPromptClient

__all__ = [
    "Ar5ivClient",
    "ArxivClient",
    "BaseHttpClient",
    "ClientError",
    "DirectOcrTransport",
    "GrobidClient",
    "NotFoundError",
    "OcrClient",
    "OcrPayload",
    "OcrTransport",
    "PersonaOptions",
    "PersonaPromptClient",
    "RateLimitedError",
    "RequestRejectedError",
    "RunpodOcrTransport",
    "UpstreamError",
]
