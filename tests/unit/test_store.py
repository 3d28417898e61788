from __future__ import annotations

import numpy as np
import pytest

from paperlens.exceptions import StoreError
from paperlens.models import PaperChunk, PaperFigure, PaperReference
from paperlens.store.bm25 import BM25Index, chunk_document, default_tokenizer
from paperlens.store.embeddings import HashingEmbedder, OpenAIEmbedder
from paperlens.store.memory import InMemoryPaperStore

PAPER = "1706.03762"


def _chunk(chunk_id: str, text: str, page):
    return PaperChunk(paper_id=PAPER, chunk_id=chunk_id, text=text, section="Body", page_number=page)


@pytest.fixture()
def chunks():
    return [
        _chunk("c1", "Multi-head attention lets the model attend to information jointly.", 1),
        _chunk("c2", "Positional encodings inject order information into the sequence.", 2),
        _chunk("c3", "We train on WMT 2014 English-German with byte-pair encoding.", 3),
        _chunk("c4", "Label smoothing improves BLEU at the cost of perplexity.", 3),
        _chunk("c5", "The decoder stack masks future positions.", 5),
        _chunk("c6", "Acknowledgements.", None),
    ]


@pytest.fixture()
def store(chunks):
    store = InMemoryPaperStore()
    store.upsert_chunks(chunks)
    return store


def test_default_tokenizer_splits_on_non_word_characters():
    assert default_tokenizer("Multi-head attention_layer, BLEU!") == ["multi", "head", "attention", "layer", "bleu"]
    assert default_tokenizer("the model", stopwords={"the"}) == ["model"]


def test_bm25_ranks_matching_chunk_first(chunks):
    index = BM25Index()
    index.add_many(chunks)

    results = index.search("label smoothing", k=3)

    assert len(index) == 6
    assert results[0][0].chunk_id == "c4"
    assert all(score > 0 for _, score in results)
    assert index.search("") == []


def test_bm25_matches_section_titles(chunks):
    ablation = PaperChunk(PAPER, "c7", "Removing heads hurts quality.", "Ablation Study", 7)
    index = BM25Index()
    index.add_many([*chunks, ablation])

    results = index.search("ablation", k=3)

    assert chunk_document(ablation) == "Ablation Study\nRemoving heads hurts quality."
    assert [chunk.chunk_id for chunk, _ in results] == ["c7"]
    assert index.search("nothing matches zebra") == []


def test_bm25_readding_a_chunk_replaces_it(chunks):
    index = BM25Index()
    index.add_many(chunks)
    before = index.avg_doc_len

    index.add(_chunk("c4", "Dropout regularizes every sublayer.", 3))

    assert len(index) == 6
    assert index.search("smoothing") == []
    assert index.search("dropout")[0][0].chunk_id == "c4"
    assert index.avg_doc_len != before


def test_hashing_embedder_is_deterministic():
    embedder = HashingEmbedder(dimension=32)
    first = embedder.embed(["attention heads", "attention heads"])

    assert first.shape == (2, 32)
    assert np.array_equal(first[0], first[1])
    assert np.array_equal(first, HashingEmbedder(dimension=32).embed(["attention heads", "attention heads"]))
    with pytest.raises(ValueError):
        HashingEmbedder(dimension=0)


def test_openai_embedder_orders_vectors_by_index():
    class _Item:
        def __init__(self, index, embedding):
            self.index = index
            self.embedding = embedding

    class _Embeddings:
        def __init__(self):
            self.calls = []

        def create(self, *, model, input):
            self.calls.append((model, input))
            return type("Response", (), {"data": [_Item(1, [0.0, 1.0]), _Item(0, [1.0, 0.0])]})()

    class _Client:
        embeddings = _Embeddings()

    embedder = OpenAIEmbedder("text-embedding-3-small", client=_Client())

    assert embedder.embed(["a", "b"]) == [[1.0, 0.0], [0.0, 1.0]]
    assert _Client.embeddings.calls == [("text-embedding-3-small", ["a", "b"])]
    assert embedder.embed([]) == []


def test_lexical_only_query(store):
    hits = store.hybrid_query(PAPER, "label smoothing BLEU", limit=3, alpha=0.0)

    assert hits[0].chunk_id == "c4"
    assert len(hits) <= 3


def test_vector_only_query(store):
    hits = store.hybrid_query(PAPER, "label smoothing", limit=2, alpha=1.0)

    assert hits[0].chunk_id == "c4"
    assert len(hits) == 2


def test_hybrid_query_respects_limit_and_unknown_papers(store):
    hits = store.hybrid_query(PAPER, "attention information", limit=2, alpha=0.65)

    assert 0 < len(hits) <= 2
    assert all(hit.score and hit.score > 0 for hit in hits)
    assert store.hybrid_query("0000.00000", "attention", limit=2, alpha=0.5) == []
    assert store.hybrid_query(PAPER, "   ", limit=2, alpha=0.5) == []


def test_range_query_is_inclusive_in_document_order(store):
    assert [hit.chunk_id for hit in store.range_query(PAPER, 3, 3, 10)] == ["c3", "c4"]
    assert [hit.chunk_id for hit in store.range_query(PAPER, 2, 5, 2)] == ["c2", "c3"]
    assert store.range_query(PAPER, 6, 9, 10) == []


def test_upserts_are_idempotent_and_last_write_wins(store, chunks):
    store.upsert_chunks(chunks)
    store.upsert_chunks([_chunk("c4", "Dropout regularizes the residual connections.", 4)])

    fetched = {chunk.chunk_id: chunk for chunk in store.fetch_chunks(PAPER)}
    assert len(fetched) == 6
    assert fetched["c4"].page_number == 4
    assert store.hybrid_query(PAPER, "dropout residual", limit=1, alpha=0.0)[0].chunk_id == "c4"

    store.upsert_figures(PAPER, [PaperFigure(id="fig_0", caption="Arch")])
    store.upsert_figures(PAPER, [PaperFigure(id="fig_0", caption="Architecture")])
    store.upsert_citations(PAPER, [PaperReference(id="b0", title="LSTM")])
    assert [figure.caption for figure in store.fetch_figures(PAPER)] == ["Architecture"]
    assert [reference.id for reference in store.fetch_citations(PAPER)] == ["b0"]


def test_empty_paper_id_is_rejected():
    store = InMemoryPaperStore()

    with pytest.raises(StoreError):
        store.upsert_figures("", [PaperFigure(id="fig_0")])
    with pytest.raises(StoreError):
        store.upsert_chunks([PaperChunk(paper_id="", chunk_id="c1", text="x")])
    assert store.fetch_chunks("missing") == []
