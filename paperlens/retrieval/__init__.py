"""Hybrid retrieval with page-window expansion."""

from .hybrid import HybridResult, HybridRetrievalConfig, HybridRetriever

__all__ = ["HybridResult", "HybridRetrievalConfig", "HybridRetriever"]
