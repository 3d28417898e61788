import pytest
from pydantic import ValidationError

from paperlens.config import DEFAULT_HYBRID_ALPHA, PaperLensConfig
from paperlens.ingest.pipeline import build_ocr_client
from paperlens.clients.ocr import DirectOcrTransport, RunpodOcrTransport


def test_environment_overrides_with_prefix(monkeypatch):
    monkeypatch.setenv("PAPERLENS_GROBID_URL", "http://grobid.local:8070/")
    monkeypatch.setenv("PAPERLENS_HYBRID_LIMIT", "5")
    monkeypatch.setenv("PAPERLENS_CONTACT_EMAIL", "Ada <ada@example.org>")

    config = PaperLensConfig()

    assert config.grobid_url == "http://grobid.local:8070"
    assert config.hybrid_limit == 5
    assert config.contact_email == "ada@example.org"
    assert config.hybrid_alpha == DEFAULT_HYBRID_ALPHA


@pytest.mark.parametrize(
    "overrides",
    [
        {"fetch_timeout_s": 0},
        {"hybrid_alpha": 1.5},
        {"page_window": -1},
        {"contact_email": "not-an-email"},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValidationError):
        PaperLensConfig(**overrides)


def test_ocr_transport_follows_configuration():
    assert build_ocr_client(PaperLensConfig(ocr_url=None, runpod_api_key=None, runpod_endpoint_id=None)) is None

    direct = build_ocr_client(PaperLensConfig(ocr_url="http://ocr.local", runpod_api_key=None))
    assert isinstance(direct.transport, DirectOcrTransport)

    runpod = build_ocr_client(
        PaperLensConfig(ocr_url="http://ocr.local", runpod_api_key="key", runpod_endpoint_id="ep")
    )
    assert isinstance(runpod.transport, RunpodOcrTransport)
    assert runpod.transport.endpoint_id == "ep"
