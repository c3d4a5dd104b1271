"""Image fetcher, blob stores and the Gemini backend with the network faked."""

from types import SimpleNamespace

import pytest
import requests

from shop_app.errors import BlobStoreError, FetchError, UpstreamError, UpstreamUnavailable
from tools import generative_backend, image_fetcher
from tools.blob_store import InMemoryBlobStore, LocalBlobStore
from tools.generative_backend import GeminiBackend
from tools.image_fetcher import ImageFetcher


class FakeResponse:
    def __init__(self, content: bytes = b"", status_code: int = 200, headers: dict | None = None) -> None:
        self.content = content
        self.status_code = status_code
        self.headers = headers or {}


def test_fetch_returns_bytes_and_mime_type(monkeypatch) -> None:
    seen = {}

    def fake_get(url, timeout=None):
        seen["timeout"] = timeout
        return FakeResponse(b"\x89PNG", headers={"content-type": "image/png; charset=binary"})

    monkeypatch.setattr(image_fetcher.requests, "get", fake_get)

    image = ImageFetcher(timeout_seconds=7.5).fetch("https://cdn.example.com/look.png")

    assert image.data == b"\x89PNG"
    assert image.mime_type == "image/png"
    assert seen["timeout"] == 7.5


def test_fetch_defaults_mime_type_for_non_image_headers(monkeypatch) -> None:
    monkeypatch.setattr(
        image_fetcher.requests,
        "get",
        lambda url, timeout=None: FakeResponse(b"bytes", headers={"content-type": "application/octet-stream"}),
    )

    assert ImageFetcher().fetch("https://cdn.example.com/look").mime_type == "image/jpeg"


@pytest.mark.parametrize(
    "response",
    [FakeResponse(b"missing", status_code=404), FakeResponse(b"", status_code=200)],
)
def test_fetch_rejects_bad_responses(monkeypatch, response) -> None:
    monkeypatch.setattr(image_fetcher.requests, "get", lambda url, timeout=None: response)

    with pytest.raises(FetchError):
        ImageFetcher().fetch("https://cdn.example.com/look.png")


def test_fetch_wraps_network_errors_and_invalid_urls(monkeypatch) -> None:
    def timeout_get(url, timeout=None):
        raise requests.ConnectTimeout("connect timed out")

    monkeypatch.setattr(image_fetcher.requests, "get", timeout_get)

    with pytest.raises(FetchError):
        ImageFetcher().fetch("https://cdn.example.com/look.png")
    with pytest.raises(FetchError):
        ImageFetcher().fetch("ftp://cdn.example.com/look.png")
    with pytest.raises(FetchError):
        ImageFetcher().fetch("http://[cdn.example.com/look.png")


def test_local_blob_store_writes_under_public_url(tmp_path) -> None:
    store = LocalBlobStore(tmp_path / "generated", "http://localhost:3001/")

    blob = store.save(b"png-bytes", "extracted-item 1")

    assert blob.url.startswith("http://localhost:3001/generated/extracted-item-1-")
    assert blob.url.endswith(".png")
    with open(blob.path, "rb") as handle:
        assert handle.read() == b"png-bytes"


def test_blob_stores_reject_empty_payloads(tmp_path) -> None:
    with pytest.raises(BlobStoreError):
        LocalBlobStore(tmp_path, "http://localhost").save(b"", "flat-lay")
    with pytest.raises(BlobStoreError):
        InMemoryBlobStore().save(b"", "flat-lay")


class FakeModel:
    instances: list = []

    def __init__(self, model_name, tools=None) -> None:
        self.model_name = model_name
        self.tools = tools
        FakeModel.instances.append(self)

    def generate_content(self, contents, request_options=None):
        self.contents = contents
        self.request_options = request_options
        parts = [
            SimpleNamespace(text="Here is ", inline_data=None),
            SimpleNamespace(text="the crop", inline_data=SimpleNamespace(data=b"img", mime_type="image/png")),
        ]
        return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])


def test_gemini_backend_collects_text_and_inline_images(monkeypatch) -> None:
    FakeModel.instances = []
    monkeypatch.setattr(generative_backend.genai, "configure", lambda **kwargs: None)
    monkeypatch.setattr(generative_backend.genai, "GenerativeModel", FakeModel)

    backend = GeminiBackend("gemini-key", "gemini-2.5-flash-image-preview")
    result = backend.generate("Isolate the bag", image_bytes=b"raw", mime_type="image/png", grounded=True)

    assert result.text == "Here is the crop"
    assert result.first_image.data == b"img"
    model = FakeModel.instances[0]
    assert model.tools == "google_search_retrieval"
    assert model.contents[1] == {"mime_type": "image/png", "data": b"raw"}
    assert model.request_options == {"timeout": 60}


def test_gemini_backend_wraps_sdk_errors(monkeypatch) -> None:
    class ExplodingModel(FakeModel):
        def generate_content(self, contents, request_options=None):
            raise RuntimeError("429 resource exhausted")

    monkeypatch.setattr(generative_backend.genai, "configure", lambda **kwargs: None)
    monkeypatch.setattr(generative_backend.genai, "GenerativeModel", ExplodingModel)

    backend = GeminiBackend("gemini-key", "gemini-2.5-flash")

    with pytest.raises(UpstreamError):
        backend.generate("hello")
    assert backend.test_connection() is False


def test_gemini_backend_without_key_is_unavailable() -> None:
    backend = GeminiBackend(None, "gemini-2.5-flash")

    assert not backend.is_configured
    assert backend.test_connection() is False
    with pytest.raises(UpstreamUnavailable):
        backend.generate("hello")


def test_gemini_backends_share_one_sdk_configuration(monkeypatch) -> None:
    configured = []
    monkeypatch.setattr(generative_backend, "_configured_api_key", None)
    monkeypatch.setattr(generative_backend.genai, "configure", lambda **kwargs: configured.append(kwargs))

    GeminiBackend("gemini-key", "gemini-2.5-flash-image-preview")
    GeminiBackend("gemini-key", "gemini-2.5-flash")
    GeminiBackend(None, "gemini-2.5-flash")
    GeminiBackend("rotated-key", "gemini-2.5-flash")

    assert configured == [{"api_key": "gemini-key"}, {"api_key": "rotated-key"}]
