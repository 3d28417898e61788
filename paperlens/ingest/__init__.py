"""Ingestion pipeline: source selection, cross-references and chunking."""

from .chunks import ChunkBuild, build_chunks
from .crossref import LabelLookup, build_label_lookup, resolve_cross_references
from .pipeline import IngestPipeline, build_ocr_client
from .selection import SourceCandidates, SourceSelection, select_sources

__all__ = [
    "ChunkBuild",
    "IngestPipeline",
    "LabelLookup",
    "SourceCandidates",
    "SourceSelection",
    "build_chunks",
    "build_label_lookup",
    "build_ocr_client",
    "resolve_cross_references",
    "select_sources",
]
