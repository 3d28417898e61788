from __future__ import annotations

import threading

import pytest

from paperlens.clients.base import UpstreamError
from paperlens.evidence.citations import citation_arxiv_id, enrich_citations
from paperlens.evidence.context import (
    EvidenceContextBuilder,
    build_query,
    normalize_selection,
    top_citation_ids,
)
from paperlens.evidence.models import EvidenceChunk, Selection
from paperlens.exceptions import StoreError
from paperlens.models import PaperChunk, PaperFigure, PaperMetadata, PaperReference
from paperlens.retrieval.hybrid import HybridRetrievalConfig, HybridRetriever
from paperlens.store.memory import InMemoryPaperStore

PAPER = "1706.03762"


class CountingFetcher:
    def __init__(self, records=None, fail=()):
        self.records = records or {}
        self.fail = set(fail)
        self.calls = []
        self._lock = threading.Lock()

    def fetch_metadata(self, paper_id):
        with self._lock:
            self.calls.append(paper_id)
        if paper_id in self.fail:
            raise UpstreamError("arXiv unavailable")
        return self.records.get(paper_id)


BAHDANAU = PaperMetadata(
    paper_id="1409.0473",
    title="Neural Machine Translation by Jointly Learning to Align and Translate",
    abstract="We conjecture that the use of a fixed-length vector is a bottleneck.",
    authors=["Dzmitry Bahdanau"],
    published_at="2014-09-01T00:00:00+00:00",
)

REFERENCES = {
    "b0": PaperReference(id="b0", title="Long short-term memory", year="1997"),
    "b1": PaperReference(id="b1", doi="10.48550/arXiv.1409.0473"),
    "b2": PaperReference(id="b2", title="Adam", url="https://arxiv.org/abs/1412.6980v9"),
}


def test_citation_arxiv_id_checks_url_doi_id_and_title():
    assert citation_arxiv_id("b1", REFERENCES["b1"]) == "1409.0473"
    assert citation_arxiv_id("b2", REFERENCES["b2"]) == "1412.6980"
    assert citation_arxiv_id("b0", REFERENCES["b0"]) is None
    assert citation_arxiv_id("arXiv:1512.03385", None) == "1512.03385"


def test_enrich_citations_fills_missing_fields_only():
    fetcher = CountingFetcher({"1409.0473": BAHDANAU})

    b0, b1 = enrich_citations(["b0", "b1"], REFERENCES, fetcher, {})

    assert b0.title == "Long short-term memory"
    assert b0.arxiv_id is None
    assert b1.arxiv_id == "1409.0473"
    assert b1.title == BAHDANAU.title
    assert b1.authors == ["Dzmitry Bahdanau"]
    assert b1.year == "2014"
    assert b1.abstract.startswith("We conjecture")
    assert b1.doi == "10.48550/arXiv.1409.0473"


def test_shared_cache_fetches_each_arxiv_id_once():
    fetcher = CountingFetcher({"1409.0473": BAHDANAU}, fail={"1412.6980"})
    cache = {}

    enrich_citations(["b1", "b2", "b1"], REFERENCES, fetcher, cache)
    second = enrich_citations(["b2", "b1"], REFERENCES, fetcher, cache)

    assert sorted(fetcher.calls) == ["1409.0473", "1412.6980"]
    assert cache["1412.6980"] is None
    assert second[0].title == "Adam"
    assert second[0].abstract is None
    assert second[1].arxiv_id == "1409.0473"


def test_selection_normalization_and_query():
    assert normalize_selection(None) is None
    assert normalize_selection({"text": "  ", "page": True}) is None
    assert normalize_selection({"text": " scaled dot-product ", "page": 4}) == Selection(
        text="scaled dot-product", page=4
    )
    assert build_query(" Why scale? ", Selection(text="divide by sqrt(d_k)")) == "Why scale? divide by sqrt(d_k)"


def test_top_citation_ids_counts_mentions_and_keeps_first_seen_ties():
    chunks = [
        EvidenceChunk(chunk_id="a", text="", citations=["b2", "b0"]),
        EvidenceChunk(chunk_id="b", text="", citations=["b0", " ", "b1"]),
        EvidenceChunk(chunk_id="c", text="", citations=["b1", "b3"]),
    ]
    assert top_citation_ids(chunks, 3) == ["b0", "b1", "b2"]


@pytest.fixture()
def builder():
    store = InMemoryPaperStore()
    store.upsert_chunks(
        [
            PaperChunk(PAPER, "sec1-p1", "Recurrent models process tokens one at a time.", "Intro", 1, ["b0"]),
            PaperChunk(
                PAPER,
                "sec2-p1",
                "Attention weights align source and target words.",
                "Background",
                2,
                ["b1", "b0"],
                ["fig_0"],
            ),
            PaperChunk(PAPER, "sec3-p1", "The encoder stacks six identical layers.", "Model", 3),
            PaperChunk(PAPER, "sec5-p1", "Training used eight GPUs.", "Training", 7),
        ]
    )
    store.upsert_figures(PAPER, [PaperFigure(id="fig_0", caption="Attention heatmap.", page_number=2)])
    store.upsert_citations(PAPER, list(REFERENCES.values()))
    fetcher = CountingFetcher({"1409.0473": BAHDANAU})
    retriever = HybridRetriever(store, config=HybridRetrievalConfig(limit=2, alpha=0.0, page_window=1))
    return EvidenceContextBuilder(store, retriever, fetcher), fetcher


def test_build_collects_window_figures_and_citations(builder):
    context_builder, _ = builder

    bundle = context_builder.build(PAPER, "How do attention weights align words?")

    assert [chunk.chunk_id for chunk in bundle.hits] == ["sec2-p1"]
    assert [chunk.chunk_id for chunk in bundle.expanded_window] == ["sec1-p1", "sec3-p1"]
    assert [figure.figure_id for figure in bundle.figures] == ["fig_0"]
    assert [citation.citation_id for citation in bundle.citations] == ["b0", "b1"]
    assert bundle.citations[1].arxiv_id == "1409.0473"
    assert bundle.selection is None


def test_build_with_caller_cache_reuses_lookups(builder):
    context_builder, fetcher = builder
    cache = {}

    context_builder.build(PAPER, "attention weights", cache=cache)
    context_builder.build(PAPER, "attention weights align", {"text": "source and target"}, cache=cache)

    assert fetcher.calls == ["1409.0473"]


def test_build_rejects_blank_question(builder):
    context_builder, _ = builder

    with pytest.raises(ValueError):
        context_builder.build(PAPER, "   ")


def test_build_keeps_hits_when_figure_and_citation_fetches_fail(builder, monkeypatch):
    context_builder, fetcher = builder

    def unavailable(paper_id):
        raise StoreError("store offline")

    monkeypatch.setattr(context_builder.store, "fetch_figures", unavailable)
    monkeypatch.setattr(context_builder.store, "fetch_citations", unavailable)

    bundle = context_builder.build(PAPER, "How do attention weights align words?")

    assert [chunk.chunk_id for chunk in bundle.hits] == ["sec2-p1"]
    assert bundle.figures == []
    assert bundle.citations == []
    assert fetcher.calls == []
