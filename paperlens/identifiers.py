"""Identifier helpers for arXiv papers and stored records."""

from __future__ import annotations

import re
import uuid
from typing import Iterable, Optional

RECORD_NAMESPACE = "readable"

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE
)

# Order matters: the more specific forms must win over the bare patterns.
ARXIV_PATTERNS = (
    re.compile(r"arxiv[:\s]+(\d{4}\.\d{4,5}(?:v\d+)?)", re.IGNORECASE),
    re.compile(
        r"arxiv\.org/(?:abs|pdf)/([\w\-./]+?)(?:v\d+)?(?:\.pdf)?(?:[#?].*)?$", re.IGNORECASE
    ),
    re.compile(r"10\.48550/arxiv\.(\d{4}\.\d{4,5}(?:v\d+)?)", re.IGNORECASE),
    re.compile(r"\b(\w+/\d{7})(?:v\d+)?\b", re.IGNORECASE),
    re.compile(r"\b(\d{4}\.\d{4,5})(?:v\d+)?\b"),
)

_PDF_SUFFIX = re.compile(r"\.pdf$", re.IGNORECASE)
_VERSION_SUFFIX = re.compile(r"v\d+$", re.IGNORECASE)
_LEGACY_ID = re.compile(r"^[a-z\-]+(?:\.[A-Z]{2})?/\d{7}(?:v\d+)?$")


def normalize_arxiv_id(value: Optional[str]) -> Optional[str]:
    """Strip a trailing ``.pdf`` and version suffix from an arXiv identifier."""

    if not value:
        return None
    cleaned = _PDF_SUFFIX.sub("", value.strip())
    cleaned = _VERSION_SUFFIX.sub("", cleaned).strip()
    return cleaned or None


def extract_arxiv_id(candidates: Iterable[Optional[str]]) -> Optional[str]:
    """Return the first arXiv identifier found in *candidates*.

    Each candidate string is tried against every pattern before moving on to
    the next candidate, so callers control precedence through ordering.
    """

    for candidate in candidates:
        if not candidate:
            continue
        for pattern in ARXIV_PATTERNS:
            match = pattern.search(candidate)
            if match and match.group(1):
                normalized = normalize_arxiv_id(match.group(1))
                if normalized:
                    return normalized
    return None


def canonical_paper_id(value: str) -> str:
    """Reduce user input (bare id, abs/pdf URL, arXiv DOI) to a bare arXiv id."""

    stripped = value.strip()
    if _LEGACY_ID.match(stripped):
        return normalize_arxiv_id(stripped) or stripped
    extracted = extract_arxiv_id([stripped])
    if extracted:
        return extracted
    return normalize_arxiv_id(value) or value.strip()


def is_uuid(value: str) -> bool:
    return bool(_UUID_PATTERN.match(value))


def record_uuid(paper_id: str, local_id: str) -> str:
    """Stable UUID5 for a record that belongs to one paper."""

    return str(uuid.uuid5(uuid.NAMESPACE_DNS, f"{paper_id}:{local_id}{RECORD_NAMESPACE}"))


def chunk_uuid(paper_id: str, chunk_id: str) -> str:
    if is_uuid(chunk_id):
        return chunk_id
    return record_uuid(paper_id, chunk_id)


__all__ = [
    "ARXIV_PATTERNS",
    "canonical_paper_id",
    "chunk_uuid",
    "extract_arxiv_id",
    "is_uuid",
    "normalize_arxiv_id",
    "record_uuid",
]
