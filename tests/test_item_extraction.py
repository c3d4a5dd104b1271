"""Item extractor coverage: parsing, pair dedup, crops and degraded paths."""

import json

import pytest

from agents.item_extractor import ItemExtractor
from models.extracted_item import item_id_for
from shop_app.errors import BlobStoreError, FetchError, UpstreamError, UpstreamUnavailable
from tools.blob_store import InMemoryBlobStore
from tools.generative_backend import GenerationResult, InlineImage, MockGenerativeBackend
from tools.image_fetcher import FetchedImage

FLAT_LAY_URL = "https://cdn.example.com/flat-lay-1.png"

ITEMS = [
    {
        "pieceType": "dress",
        "description": "Red midi dress with belt",
        "boundingBox": {"x": 0.2, "y": 0.1, "width": 0.5, "height": 0.6},
        "confidence": 0.95,
        "color": "red",
        "pattern": "solid",
        "style": "casual",
    },
    {
        "pieceType": "shoes",
        "description": "Black leather ankle boot left",
        "boundingBox": {"x": 0.1, "y": 0.8, "width": 0.2, "height": 0.15},
        "confidence": 0.9,
        "color": "black",
    },
    {
        "pieceType": "boots",
        "description": "Black leather ankle boot right",
        "boundingBox": {"x": 0.6, "y": 0.8, "width": 0.2, "height": 0.15},
        "confidence": 0.88,
        "color": "charcoal",
    },
]


class FakeFetcher:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.urls: list[str] = []

    def fetch(self, url: str) -> FetchedImage:
        self.urls.append(url)
        if self.error:
            raise self.error
        return FetchedImage(data=b"flat-lay-bytes", mime_type="image/png")


class FailingBlobStore(InMemoryBlobStore):
    def save(self, data: bytes, suggested_name: str):
        raise BlobStoreError("disk full")


def _fenced(items: list) -> str:
    return "Here are the items:\n```json\n" + json.dumps(items) + "\n```"


def _responder(extraction_text: str, crop_on_retry: bool = False, crop_error: Exception | None = None):
    def respond(prompt: str, has_image: bool) -> GenerationResult:
        if prompt.startswith("Analyze this flat lay"):
            return GenerationResult(text=extraction_text)
        if crop_error is not None:
            raise crop_error
        if prompt.startswith("Extract and isolate") and crop_on_retry:
            return GenerationResult(text="I could not isolate it")
        return GenerationResult(inline_images=[InlineImage(data=b"crop-bytes")])

    return respond


def _extractor(backend, fetcher=None, blob_store=None, **kwargs) -> ItemExtractor:
    return ItemExtractor(
        backend,
        fetcher or FakeFetcher(),
        blob_store if blob_store is not None else InMemoryBlobStore(),
        **kwargs,
    )


def test_extract_removes_pair_halves_and_enhances_descriptions() -> None:
    backend = MockGenerativeBackend(responder=_responder(_fenced(ITEMS)))
    extractor = _extractor(backend, generate_item_images=False)

    result = extractor.extract(FLAT_LAY_URL)

    assert result.status == "ok"
    assert not result.degraded
    assert [item.piece_type for item in result.items] == ["dress", "shoes"]
    dress, shoes = result.items
    assert dress.description == "red dress casual women's fashion"
    assert shoes.description == "black shoes footwear"
    assert dress.id == item_id_for(FLAT_LAY_URL, 0)
    assert len(backend.calls) == 1


def test_extract_ids_are_deterministic() -> None:
    first = _extractor(MockGenerativeBackend(responder=_responder(_fenced(ITEMS))), generate_item_images=False)
    second = _extractor(MockGenerativeBackend(responder=_responder(_fenced(ITEMS))), generate_item_images=False)

    assert [item.id for item in first.extract(FLAT_LAY_URL).items] == [
        item.id for item in second.extract(FLAT_LAY_URL).items
    ]


def test_extract_accepts_raw_json_array() -> None:
    backend = MockGenerativeBackend(responder=_responder(json.dumps(ITEMS[:1])))

    result = _extractor(backend, generate_item_images=False).extract(FLAT_LAY_URL)

    assert result.status == "ok"
    assert len(result.items) == 1
    assert result.items[0].bounding_box.width == pytest.approx(0.5)


def test_unparseable_reply_falls_back_to_keyword_heuristic() -> None:
    text = "I can see a lovely dress, a pair of shoes and a leather bag."
    backend = MockGenerativeBackend(responder=_responder(text))

    result = _extractor(backend, generate_item_images=False).extract(FLAT_LAY_URL)

    assert result.status == "heuristic"
    assert result.degraded
    assert [item.piece_type for item in result.items] == ["dress", "shoes", "bag"]
    assert all(item.confidence == pytest.approx(0.7) for item in result.items)
    boxes = {(item.bounding_box.x, item.bounding_box.y) for item in result.items}
    assert len(boxes) == 3


def test_keyword_heuristic_is_capped_at_five_items() -> None:
    text = "dress shirt pants shoes bag sunglasses jacket skirt"
    backend = MockGenerativeBackend(responder=_responder(text))

    result = _extractor(backend, generate_item_images=False).extract(FLAT_LAY_URL)

    assert len(result.items) == 5


def test_fetch_failure_returns_placeholder_items_with_error() -> None:
    backend = MockGenerativeBackend(responder=_responder(_fenced(ITEMS)))
    extractor = _extractor(backend, fetcher=FakeFetcher(error=FetchError("HTTP 404")))

    result = extractor.extract(FLAT_LAY_URL)

    assert result.status == "placeholder"
    assert isinstance(result.error, FetchError)
    assert [item.piece_type for item in result.items] == ["dress", "shoes", "bag"]
    assert all(item.confidence == pytest.approx(0.6) for item in result.items)
    assert result.items[0].id.startswith("fallback-dress-")
    assert backend.calls == []


def test_backend_failure_without_placeholders_returns_empty_failed_result() -> None:
    def respond(prompt: str, has_image: bool) -> GenerationResult:
        raise UpstreamError("503 from model")

    extractor = _extractor(MockGenerativeBackend(responder=respond), allow_placeholder_items=False)

    result = extractor.extract(FLAT_LAY_URL)

    assert result.status == "failed"
    assert result.items == []
    assert isinstance(result.error, UpstreamError)


@pytest.mark.parametrize("backend", [None, MockGenerativeBackend(configured=False)])
def test_missing_backend_is_fatal(backend) -> None:
    with pytest.raises(UpstreamUnavailable):
        _extractor(backend).extract(FLAT_LAY_URL)


def test_crop_retry_attaches_stored_image() -> None:
    backend = MockGenerativeBackend(responder=_responder(_fenced(ITEMS[:1]), crop_on_retry=True))
    store = InMemoryBlobStore()

    result = _extractor(backend, blob_store=store).extract(FLAT_LAY_URL)

    item = result.items[0]
    assert item.has_image
    assert item.extracted_image_url.startswith("memory://blobs/extracted-")
    assert item.extracted_image_path in store.blobs
    # extraction + first crop attempt + retry
    assert len(backend.calls) == 3


def test_crop_backend_errors_keep_item_without_image() -> None:
    backend = MockGenerativeBackend(responder=_responder(_fenced(ITEMS[:2]), crop_error=UpstreamError("timeout")))

    result = _extractor(backend).extract(FLAT_LAY_URL)

    assert result.status == "ok"
    assert len(result.items) == 2
    assert not any(item.has_image for item in result.items)


def test_blob_store_errors_keep_item_without_image() -> None:
    backend = MockGenerativeBackend(responder=_responder(_fenced(ITEMS[:1])))

    result = _extractor(backend, blob_store=FailingBlobStore()).extract(FLAT_LAY_URL)

    assert len(result.items) == 1
    assert result.items[0].extracted_image_url is None


def test_test_connection_reports_backend_state() -> None:
    ok_backend = MockGenerativeBackend(responses=[GenerationResult(text="ok")])

    assert _extractor(ok_backend).test_connection() is True
    assert _extractor(MockGenerativeBackend(configured=False)).test_connection() is False
    assert _extractor(None).test_connection() is False
