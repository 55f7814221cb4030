import httpx
import pytest

from pdfsuite import FontLoader as font_loader
from pdfsuite.FontLoader import (
    FileFontLoader, HttpFontLoader, needs_unicode_font, resolve_font,
)
from pdfsuite.WatermarkConfig import FontLoadError


def client_factory(handler):
    return lambda: httpx.Client(transport=httpx.MockTransport(handler))


class RecordingLoader:
    def __init__(self, payload: bytes = b"") -> None:
        self.payload = payload
        self.calls = []

    def load(self, requirement: str) -> bytes:
        self.calls.append(requirement)
        return self.payload


def test_needs_unicode_font():
    assert not needs_unicode_font("CONFIDENTIAL {page}")
    assert needs_unicode_font("机密")
    assert needs_unicode_font("Café")


def test_http_loader_falls_back_to_next_url():
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if "first" in str(request.url):
            return httpx.Response(503)
        return httpx.Response(200, content=b"font-bytes")

    loader = HttpFontLoader(
        ["https://first.example/font.ttf", "https://second.example/font.ttf"],
        client_factory=client_factory(handler),
    )
    assert loader.load("unicode") == b"font-bytes"
    assert requested == ["https://first.example/font.ttf", "https://second.example/font.ttf"]

    # Served from memory the second time
    assert loader.load("unicode") == b"font-bytes"
    assert len(requested) == 2


def test_http_loader_raises_when_every_url_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    loader = HttpFontLoader(["https://a.example/f.ttf", "https://b.example/f.ttf"],
                            client_factory=client_factory(handler))
    with pytest.raises(FontLoadError) as exc:
        loader.load("unicode")
    assert "network" in str(exc.value)


def test_file_loader_reads_and_reports_missing_files(tmp_path):
    font = tmp_path / "font.ttf"
    font.write_bytes(b"ttf")
    assert FileFontLoader(font).load("unicode") == b"ttf"
    with pytest.raises(FontLoadError):
        FileFontLoader(tmp_path / "missing.ttf").load("unicode")


def test_ascii_text_uses_builtin_font_without_loading():
    loader = RecordingLoader()
    assert resolve_font("CONFIDENTIAL", loader) == "Helvetica"
    assert loader.calls == []


def test_unparseable_font_is_a_font_load_error(monkeypatch):
    monkeypatch.setattr(font_loader.pdfmetrics, "getRegisteredFontNames", lambda: [])
    loader = RecordingLoader(b"definitely not a font")
    with pytest.raises(FontLoadError):
        resolve_font("机密", loader)
    assert loader.calls == ["unicode"]
