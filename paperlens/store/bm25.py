from __future__ import annotations

import math
import re
from collections import Counter, defaultdict
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from paperlens.models import PaperChunk

TokenizeFn = Callable[[str], List[str]]


def default_tokenizer(text: str, *, stopwords: Set[str] | None = None) -> List[str]:
    tokens = [token for token in re.split(r"[\W_]+", text.lower()) if token]
    if stopwords:
        tokens = [token for token in tokens if token not in stopwords]
    return tokens


def chunk_document(chunk: PaperChunk) -> str:
    """Text indexed for a chunk: its section title followed by the paragraph."""

    if chunk.section:
        return f"{chunk.section}\n{chunk.text}"
    return chunk.text


class BM25Index:
    """Okapi BM25 over the chunks of one paper.

    Section titles are indexed with each paragraph so a query naming a section
    ("results", "ablation") reaches paragraphs that never repeat the heading.
    Re-adding a chunk id replaces the earlier entry.
    """

    def __init__(
        self,
        *,
        tokenizer: TokenizeFn | None = None,
        stopwords: Set[str] | None = None,
        k1: float = 1.5,
        b: float = 0.75,
    ) -> None:
        self.tokenizer: TokenizeFn = tokenizer or (
            lambda text: default_tokenizer(text, stopwords=stopwords)
        )
        self.k1 = k1
        self.b = b
        self._chunks: List[PaperChunk] = []
        self._positions: Dict[str, int] = {}
        self._term_freqs: List[Counter[str]] = []
        self._doc_lengths: List[int] = []
        self._doc_freqs: Dict[str, int] = defaultdict(int)
        self._total_doc_len = 0
        self._avg_doc_len: Optional[float] = None

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def avg_doc_len(self) -> float:
        if self._avg_doc_len is None:
            self._avg_doc_len = (self._total_doc_len / len(self._chunks) if self._chunks else 0.0) or 1.0
        return self._avg_doc_len

    def add(self, chunk: PaperChunk) -> None:
        tokens = self.tokenizer(chunk_document(chunk))
        term_freq = Counter(tokens)
        position = self._positions.get(chunk.chunk_id)
        if position is None:
            self._positions[chunk.chunk_id] = len(self._chunks)
            self._chunks.append(chunk)
            self._term_freqs.append(term_freq)
            self._doc_lengths.append(len(tokens))
        else:
            self._forget(position)
            self._chunks[position] = chunk
            self._term_freqs[position] = term_freq
            self._doc_lengths[position] = len(tokens)
        self._total_doc_len += len(tokens)
        for token in term_freq:
            self._doc_freqs[token] += 1
        self._avg_doc_len = None

    def add_many(self, chunks: Iterable[PaperChunk]) -> None:
        for chunk in chunks:
            self.add(chunk)

    def search(self, query: str, *, k: int = 10) -> List[Tuple[PaperChunk, float]]:
        if not query or not self._chunks or k <= 0:
            return []

        idfs = {token: self._idf(token) for token in set(self.tokenizer(query)) if token in self._doc_freqs}
        if not idfs:
            return []
        scores: List[Tuple[PaperChunk, float]] = []
        for idx, chunk in enumerate(self._chunks):
            score = sum(idf * self._term_weight(token, idx) for token, idf in idfs.items())
            if score:
                scores.append((chunk, score))

        scores.sort(key=lambda item: item[1], reverse=True)
        return scores[:k]

    def _forget(self, position: int) -> None:
        self._total_doc_len -= self._doc_lengths[position]
        for token in self._term_freqs[position]:
            self._doc_freqs[token] -= 1
            if self._doc_freqs[token] <= 0:
                del self._doc_freqs[token]

    def _idf(self, token: str) -> float:
        df = self._doc_freqs.get(token, 0)
        return math.log(1 + (len(self._chunks) - df + 0.5) / (df + 0.5))

    def _term_weight(self, token: str, doc_idx: int) -> float:
        tf = self._term_freqs[doc_idx].get(token, 0)
        if tf == 0:
            return 0.0
        denom = tf + self.k1 * (1 - self.b + self.b * self._doc_lengths[doc_idx] / self.avg_doc_len)
        return (tf * (self.k1 + 1)) / denom


__all__ = ["BM25Index", "chunk_document", "default_tokenizer"]
