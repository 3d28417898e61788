from pathlib import Path
from urllib.parse import parse_qs, urlparse

import pytest
import responses

from paperlens.clients import Ar5ivClient, ArxivClient
from paperlens.clients.base import NotFoundError

FIXTURES = Path(__file__).parent / "fixtures"
API_URL = "https://export.arxiv.org/api/query"


@responses.activate
def test_fetch_metadata_parses_atom_entry():
    responses.add(
        responses.GET,
        API_URL,
        body=(FIXTURES / "attention.atom.xml").read_text(encoding="utf-8"),
        status=200,
        content_type="application/atom+xml",
    )
    client = ArxivClient(contact_email="ada@example.org")

    metadata = client.fetch_metadata("1706.03762")

    assert metadata is not None
    assert metadata.paper_id == "1706.03762"
    assert metadata.title == "Attention Is All You Need"
    assert metadata.abstract.startswith("The dominant sequence transduction models")
    assert metadata.authors == ["Ashish Vaswani", "Noam Shazeer"]
    assert metadata.pdf_url == "http://arxiv.org/pdf/1706.03762v7"
    assert metadata.primary_category == "cs.CL"
    assert metadata.categories == ["cs.CL", "cs.LG"]
    assert metadata.published_at.startswith("2017-06-12T17:57:34")

    request = responses.calls[0].request
    query = parse_qs(urlparse(request.url).query)
    assert query["id_list"] == ["1706.03762"]
    assert query["mailto"] == ["ada@example.org"]
    assert "mailto:ada@example.org" in request.headers["User-Agent"]


@responses.activate
def test_fetch_metadata_without_entry_returns_none():
    responses.add(
        responses.GET,
        API_URL,
        body='<feed xmlns="http://www.w3.org/2005/Atom"><title>empty</title></feed>',
        status=200,
    )

    assert ArxivClient().fetch_metadata("1706.03762") is None


@responses.activate
def test_fetch_metadata_not_found_returns_none():
    responses.add(responses.GET, API_URL, status=404)

    assert ArxivClient().fetch_metadata("1706.03762") is None


@responses.activate
def test_fetch_pdf_returns_bytes():
    responses.add(
        responses.GET,
        "https://arxiv.org/pdf/1706.03762.pdf",
        body=b"%PDF-1.4 body",
        status=200,
        content_type="application/pdf",
    )

    payload = ArxivClient().fetch_pdf("1706.03762")

    assert payload == b"%PDF-1.4 body"
    assert responses.calls[0].request.headers["Accept"] == "application/pdf"


@responses.activate
def test_ar5iv_fetch_html():
    responses.add(
        responses.GET,
        "https://ar5iv.org/html/1706.03762",
        body="<html><body>ok</body></html>",
        status=200,
        content_type="text/html",
    )
    client = Ar5ivClient()

    assert client.fetch_html("1706.03762") == "<html><body>ok</body></html>"
    assert client.html_url("1706.03762") == "https://ar5iv.org/html/1706.03762"


@responses.activate
def test_ar5iv_missing_render_raises_not_found():
    responses.add(responses.GET, "https://ar5iv.org/html/9999.99999", status=404)

    with pytest.raises(NotFoundError):
        Ar5ivClient().fetch_html("9999.99999")
