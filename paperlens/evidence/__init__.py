"""Evidence bundles for grounded question answering."""

from .citations import MetadataCache, enrich_citations
from .context import EvidenceContextBuilder
from .models import EvidenceBundle, EvidenceChunk, EvidenceCitation, EvidenceFigure, Selection

__all__ = [
    "EvidenceBundle",
    "EvidenceChunk",
    "EvidenceCitation",
    "EvidenceContextBuilder",
    "EvidenceFigure",
    "MetadataCache",
    "Selection",
    "enrich_citations",
]
