import base64
import json

import pytest
import responses

from paperlens.clients.ocr import (
    DirectOcrTransport,
    OcrClient,
    OcrPayload,
    RunpodOcrTransport,
    payload_to_extraction,
)
from paperlens.exceptions import OcrError


def test_direct_transport_appends_default_path():
    assert DirectOcrTransport("http://ocr.test/").base_url == "http://ocr.test/v1/ocr"
    assert DirectOcrTransport("http://ocr.test/v2/ocr").base_url == "http://ocr.test/v2/ocr"


@responses.activate
def test_direct_transport_parses_pages_and_scans_captions():
    responses.add(
        responses.POST,
        "http://ocr.test/v1/ocr",
        json={
            "pages": [
                {"pageNumber": 1, "text": "Intro text.\n\nFigure 1: Overall architecture.\n\nMore text."},
                {"page": 2, "text": "Table 2: Results on WMT.\n\nDiscussion."},
                {"pageNumber": 3, "text": "   "},
            ]
        },
        status=200,
    )
    client = OcrClient(DirectOcrTransport("http://ocr.test"))

    extraction = client.extract(b"%PDF-1.4 scanned")

    assert extraction is not None
    assert [page.page_number for page in extraction.pages] == [1, 2]
    assert [(m.id, m.caption, m.page_number) for m in extraction.figure_captions] == [
        ("figure-1", "Overall architecture.", 1)
    ]
    assert [(m.id, m.page_number) for m in extraction.table_captions] == [("table-2", 2)]
    assert extraction.analysis.is_likely_scanned is True
    assert extraction.analysis.recommended_tool == "deepseek-ocr"

    request = responses.calls[0].request
    assert b'name="file"' in request.body
    assert request.headers["Accept"] == "application/json"


@responses.activate
def test_direct_transport_server_error_raises_ocr_error():
    responses.add(responses.POST, "http://ocr.test/v1/ocr", status=500, body="boom")

    with pytest.raises(OcrError):
        DirectOcrTransport("http://ocr.test").run(b"%PDF")


@responses.activate
def test_direct_transport_rejects_non_object_body():
    responses.add(responses.POST, "http://ocr.test/v1/ocr", json=["not", "an", "object"], status=200)

    with pytest.raises(OcrError):
        DirectOcrTransport("http://ocr.test").run(b"%PDF")


@responses.activate
def test_runpod_transport_uses_job_output_and_reported_figures():
    responses.add(
        responses.POST,
        "https://api.runpod.ai/v2/endpoint-1/runsync",
        json={
            "status": "COMPLETED",
            "output": {
                "text": "Scanned page text.",
                "figures": [{"pageNumber": 1, "number": 1, "caption": "A scanned chart."}],
            },
        },
        status=200,
    )
    transport = RunpodOcrTransport("endpoint-1", "secret")

    extraction = OcrClient(transport).extract(b"%PDF-1.4")

    assert extraction is not None
    assert extraction.pages[0].text == "Scanned page text."
    assert [(m.id, m.label, m.caption) for m in extraction.figure_captions] == [
        ("figure-1", "Figure 1", "A scanned chart.")
    ]
    request = responses.calls[0].request
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.body)
    assert base64.b64decode(body["input"]["pdf_base64"]) == b"%PDF-1.4"


@responses.activate
def test_runpod_error_field_raises():
    responses.add(
        responses.POST,
        "https://api.runpod.ai/v2/endpoint-1/runsync",
        json={"status": "FAILED", "error": "worker crashed"},
        status=200,
    )

    with pytest.raises(OcrError, match="worker crashed"):
        RunpodOcrTransport("endpoint-1", "secret").run(b"%PDF")


@responses.activate
def test_runpod_invalid_shape_raises():
    responses.add(
        responses.POST,
        "https://api.runpod.ai/v2/endpoint-1/runsync",
        json={"output": {"pages": "not a list"}},
        status=200,
    )

    with pytest.raises(OcrError):
        RunpodOcrTransport("endpoint-1", "secret").run(b"%PDF")


def test_empty_payload_yields_no_extraction():
    assert payload_to_extraction(OcrPayload(text="  ")) is None
