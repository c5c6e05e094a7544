import io
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest
import requests
from requests.structures import CaseInsensitiveDict
from PIL import Image

from posterforge.decoders import image_loader
from posterforge.decoders.image_loader import fetch_image_bytes, get_image_metadata, load_image, validate_url
from posterforge.errors import ImageProcessingError, InvalidInputError


def _jpeg_bytes(size: tuple[int, int] = (100, 100)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color="#336699").save(buffer, format="JPEG")
    return buffer.getvalue()


class _FakeResponse:
    def __init__(self, status: int = 200, headers: dict | None = None, body: bytes = b"") -> None:
        self.status_code = status
        self.reason = "OK" if status == 200 else "Error"
        self.headers = CaseInsensitiveDict(headers or {})
        self.body = body
        self.body_read = False

    @property
    def is_redirect(self) -> bool:
        return "location" in self.headers and self.status_code in (301, 302, 303, 307, 308)

    def iter_content(self, chunk_size: int = 1):
        self.body_read = True
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start : start + chunk_size]

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        return None


@pytest.mark.parametrize(
    "url",
    [
        "http://127.0.0.1/x.png",
        "http://localhost/x.png",
        "http://[::1]/x.png",
        "http://0.0.0.0/x.png",
        "http://169.254.169.254/latest",
        "http://2130706433/x.png",
        "http://127.1/x.png",
        "http://0x7f.0.0.1/x.png",
        "http://[::ffff:127.0.0.1]/x.png",
        "ftp://host/x.png",
        "file:///etc/passwd",
    ],
)
def test_validate_url_rejects_local_and_non_http(url: str) -> None:
    with pytest.raises(InvalidInputError):
        validate_url(url)


def test_blocked_url_never_reaches_the_network(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(*_args, **_kwargs):
        raise AssertionError("network must not be touched")

    monkeypatch.setattr(image_loader.requests, "get", _boom)
    with pytest.raises(InvalidInputError):
        load_image("http://127.0.0.1/x.png")


def test_content_length_over_limit_rejected_before_body(monkeypatch: pytest.MonkeyPatch) -> None:
    response = _FakeResponse(headers={"content-type": "image/png", "content-length": "15000000"}, body=b"x")
    monkeypatch.setattr(image_loader.requests, "get", lambda *_a, **_k: response)

    with pytest.raises(InvalidInputError, match="exceeds"):
        fetch_image_bytes("https://example.com/x.png")
    assert response.body_read is False


def test_streamed_body_over_limit_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    response = _FakeResponse(headers={"content-type": "image/png"}, body=b"x" * 2048)
    monkeypatch.setattr(image_loader.requests, "get", lambda *_a, **_k: response)

    with pytest.raises(InvalidInputError):
        fetch_image_bytes("https://example.com/x.png", max_bytes=1024)


def test_non_image_content_type_is_invalid(monkeypatch: pytest.MonkeyPatch) -> None:
    response = _FakeResponse(headers={"content-type": "text/html"}, body=b"<html>")
    monkeypatch.setattr(image_loader.requests, "get", lambda *_a, **_k: response)

    with pytest.raises(InvalidInputError, match="content type"):
        fetch_image_bytes("https://example.com/x.png")


def test_http_error_status_is_processing_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(image_loader.requests, "get", lambda *_a, **_k: _FakeResponse(status=404))

    with pytest.raises(ImageProcessingError, match="404"):
        fetch_image_bytes("https://example.com/x.png")


def test_timeout_is_processing_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _timeout(*_args, **_kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(image_loader.requests, "get", _timeout)
    with pytest.raises(ImageProcessingError, match="timed out"):
        fetch_image_bytes("https://example.com/x.png", timeout=2)


def test_redirect_to_loopback_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    def _get(url, **_kwargs):
        calls.append(url)
        return _FakeResponse(status=302, headers={"location": "http://127.0.0.1/private.png"})

    monkeypatch.setattr(image_loader.requests, "get", _get)
    with pytest.raises(InvalidInputError):
        fetch_image_bytes("https://example.com/x.png")
    assert calls == ["https://example.com/x.png"]


def test_url_fetch_decodes_image(monkeypatch: pytest.MonkeyPatch) -> None:
    body = _jpeg_bytes((40, 30))
    response = _FakeResponse(headers={"content-type": "image/jpeg", "content-length": str(len(body))}, body=body)
    monkeypatch.setattr(image_loader.requests, "get", lambda *_a, **_k: response)

    image = load_image("https://example.com/photo.jpg")

    assert image.size == (40, 30)


def test_load_image_from_bytes_and_path(tmp_path: Path) -> None:
    data = _jpeg_bytes((64, 48))
    path = tmp_path / "photo.jpg"
    path.write_bytes(data)

    assert load_image(data).size == (64, 48)
    assert load_image(path).size == (64, 48)
    assert load_image(str(path)).size == (64, 48)


def test_load_image_rejects_bad_sources(tmp_path: Path) -> None:
    with pytest.raises(InvalidInputError):
        load_image(b"")
    with pytest.raises(InvalidInputError):
        load_image(b"not an image")
    with pytest.raises(InvalidInputError):
        load_image(tmp_path / "missing.jpg")
    with pytest.raises(InvalidInputError):
        load_image(12345)  # type: ignore[arg-type]


def test_get_image_metadata_reports_lowercase_format() -> None:
    metadata = get_image_metadata(_jpeg_bytes((100, 80)))
    assert (metadata.width, metadata.height, metadata.format) == (100, 80, "jpeg")


def test_validate_url_accepts_public_hosts() -> None:
    validate_url("https://example.com/x.png")
    validate_url("http://93.184.216.34/x.png")


class _SlowDripHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        self.send_response(200)
        self.send_header("Content-Type", "image/png")
        self.send_header("Content-Length", "40")
        self.end_headers()
        try:
            for _ in range(40):
                self.wfile.write(b"x")
                self.wfile.flush()
                time.sleep(0.25)
        except OSError:
            return

    def log_message(self, *_args) -> None:
        return None


def test_slow_body_is_cut_off_at_the_deadline(monkeypatch: pytest.MonkeyPatch) -> None:
    server = ThreadingHTTPServer(("127.0.0.1", 0), _SlowDripHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    monkeypatch.setattr(image_loader, "validate_url", lambda _url: None)
    for name in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    try:
        started = time.monotonic()
        with pytest.raises(ImageProcessingError, match="timed out"):
            fetch_image_bytes(f"http://127.0.0.1:{server.server_port}/slow.png", timeout=1)
        assert time.monotonic() - started < 3.0
    finally:
        server.shutdown()
        server.server_close()
