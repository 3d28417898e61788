"""Chunk storage with lexical and vector indexes."""

from .base import ChunkHit, PaperStore
from .bm25 import BM25Index, chunk_document, default_tokenizer
from .embeddings import Embedder, HashingEmbedder, OpenAIEmbedder
from .faiss_index import FaissVectorIndex
from .memory import InMemoryPaperStore

__all__ = [
    "BM25Index",
    "ChunkHit",
    "Embedder",
    "FaissVectorIndex",
    "HashingEmbedder",
    "InMemoryPaperStore",
    "OpenAIEmbedder",
    "PaperStore",
    "chunk_document",
    "default_tokenizer",
]
