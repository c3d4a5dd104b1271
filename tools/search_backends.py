"""Product search backends queried by the matcher.

Each backend turns one :class:`ExtractedItem` into a list of normalised
:class:`ProductCandidate` objects. Backends raise :class:`UpstreamError` or
:class:`ParseError` on failure; isolating those failures is the matcher's job.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from logic.candidates import (
    ALLOW_LIST,
    ALLOW_LIST_AND_PRODUCT_PAGE,
    PRODUCT_PAGE,
    build_candidate,
    price_from_snippet,
)
from logic.item_descriptions import build_image_search_query, build_text_query
from logic.prompts import web_search_prompt
from logic.response_parsing import extract_urls, parse_web_search_products
from models.extracted_item import ExtractedItem
from models.product import ProductCandidate
from models.retailers import retailer_for_url
from shop_app.errors import ParseError, UpstreamError
from tools.generative_backend import GenerativeBackend
from tools.image_fetcher import ImageFetcher
from tools.observability import instrument_call

LOGGER = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search"
CUSTOM_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"

GEMINI_WEB_SEARCH = "gemini_web_search"
GEMINI_WEB_SEARCH_FALLBACK = "gemini_web_search_fallback"
GOOGLE_LENS = "google_lens"
GOOGLE_REVERSE = "google_reverse"
BING_REVERSE = "bing_reverse"
GOOGLE_IMAGE_SEARCH = "google_image_search"
ENHANCED_TEXT_SEARCH = "enhanced_text_search"

_FALLBACK_URL_LIMIT = 5
_VISUAL_MATCH_LIMIT = 10
_IMAGE_RESULT_LIMIT = 8


class _SerpResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    link: Optional[str] = None
    original: Optional[str] = None
    price: Optional[str] = None
    source: Optional[str] = None
    thumbnail: Optional[str] = None
    snippet: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def _flatten_price(cls, value: Any) -> Any:
        # Lens reports {"value": "$29.99", "extracted_value": 29.99}.
        if isinstance(value, dict):
            value = value.get("value") or value.get("extracted_value")
        return None if value is None else str(value)

    @field_validator("title", "link", "original", "source", "thumbnail", "snippet", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        return None if value is None else str(value)


class _SerpResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    shopping_results: List[_SerpResult] = Field(default_factory=list)
    visual_matches: List[_SerpResult] = Field(default_factory=list)
    inline_shopping_results: List[_SerpResult] = Field(default_factory=list)
    image_results: List[_SerpResult] = Field(default_factory=list)
    images_results: List[_SerpResult] = Field(default_factory=list)


class _CseImage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    context_link: Optional[str] = Field(default=None, alias="contextLink")
    thumbnail_link: Optional[str] = Field(default=None, alias="thumbnailLink")


class _CseItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    link: Optional[str] = None
    snippet: Optional[str] = None
    image: Optional[_CseImage] = None
    pagemap: Dict[str, Any] = Field(default_factory=dict)

    @property
    def page_thumbnail(self) -> Optional[str]:
        thumbnails = self.pagemap.get("cse_thumbnail")
        if isinstance(thumbnails, dict):
            thumbnails = [thumbnails]
        if isinstance(thumbnails, list) and thumbnails and isinstance(thumbnails[0], dict):
            return thumbnails[0].get("src")
        return None


class _CseResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: List[_CseItem] = Field(default_factory=list)


@instrument_call("search_http_get")
def _get_json(url: str, params: Dict[str, Any], timeout: float) -> Dict[str, Any]:
    try:
        response = requests.get(url, params=params, timeout=timeout)
    except requests.RequestException as exc:
        raise UpstreamError(f"Search request to {url} failed: {exc}") from exc
    if not 200 <= response.status_code < 300:
        raise UpstreamError(f"Search request to {url} failed: HTTP {response.status_code}")
    try:
        payload = response.json()
    except ValueError as exc:
        raise ParseError(f"Search response from {url} is not JSON") from exc
    if not isinstance(payload, dict):
        raise ParseError(f"Search response from {url} is not a JSON object")
    return payload


def _validate(model: type[BaseModel], payload: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ParseError(f"Unexpected search response shape: {exc}") from exc


def _keep(candidates: List[Optional[ProductCandidate]], limit: Optional[int] = None) -> List[ProductCandidate]:
    kept = [candidate for candidate in candidates if candidate is not None]
    return kept[:limit] if limit is not None else kept


class SearchBackend(ABC):
    """Abstract product search backend."""

    source = "unknown"
    requires_image = True
    timeout_seconds = 15.0

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def search(self, item: ExtractedItem) -> List[ProductCandidate]:
        """Return candidates for ``item``; raise ``UpstreamError``/``ParseError`` on failure."""


class GeminiWebSearchBackend(SearchBackend):
    """Visual matching via Gemini with Google Search grounding."""

    source = GEMINI_WEB_SEARCH

    def __init__(self, backend: GenerativeBackend | None, fetcher: ImageFetcher) -> None:
        self.backend = backend
        self.fetcher = fetcher

    @property
    def is_configured(self) -> bool:
        return self.backend is not None and self.backend.is_configured

    def search(self, item: ExtractedItem) -> List[ProductCandidate]:
        if not item.extracted_image_url or self.backend is None:
            return []
        image = self.fetcher.fetch(item.extracted_image_url)
        result = self.backend.generate(
            web_search_prompt(item), image_bytes=image.data, mime_type=image.mime_type, grounded=True
        )
        try:
            products = parse_web_search_products(result.text)
        except ParseError:
            LOGGER.info("Web search reply was not JSON, scraping URLs", extra={"item_id": item.id})
            return self._from_urls(result.text)

        return _keep(
            [
                build_candidate(
                    title=product.title,
                    url=product.url,
                    source=GEMINI_WEB_SEARCH,
                    url_policy=PRODUCT_PAGE,
                    price=product.price,
                    retailer=product.retailer,
                )
                for product in products
            ]
        )

    def _from_urls(self, text: str) -> List[ProductCandidate]:
        candidates = [
            build_candidate(
                title=f"Product from {retailer_for_url(url)}",
                url=url,
                source=GEMINI_WEB_SEARCH_FALLBACK,
                url_policy=ALLOW_LIST_AND_PRODUCT_PAGE,
            )
            for url in extract_urls(text)
        ]
        return _keep(candidates, _FALLBACK_URL_LIMIT)


class _SerpApiBackend(SearchBackend):
    engine = ""
    timeout_seconds = 20.0

    def __init__(self, api_key: str | None, timeout_seconds: float | None = None) -> None:
        self.api_key = api_key
        if timeout_seconds is not None:
            self.timeout_seconds = timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    def _image_params(self, image_url: str) -> Dict[str, Any]:
        """Engine-specific query parameters for the image URL."""

    def _query(self, item: ExtractedItem) -> Optional[_SerpResponse]:
        if not item.extracted_image_url or not self.api_key:
            return None
        params = {"api_key": self.api_key, "engine": self.engine, "hl": "en", "gl": "us"}
        params.update(self._image_params(item.extracted_image_url))
        payload = _get_json(SERPAPI_URL, params=params, timeout=self.timeout_seconds)
        return _validate(_SerpResponse, payload)

    def _shopping(self, results: Sequence[_SerpResult]) -> List[ProductCandidate]:
        return _keep(
            [
                build_candidate(
                    title=result.title,
                    url=result.link,
                    source=self.source,
                    url_policy=ALLOW_LIST,
                    price=result.price,
                    image_url=result.thumbnail,
                    retailer=result.source,
                )
                for result in results
                if result.price
            ]
        )

    def _visual_matches(self, results: Sequence[_SerpResult]) -> List[ProductCandidate]:
        return _keep(
            [
                build_candidate(
                    title=result.title,
                    url=result.link,
                    source=self.source,
                    url_policy=ALLOW_LIST_AND_PRODUCT_PAGE,
                    price=price_from_snippet(result.snippet),
                    image_url=result.thumbnail,
                )
                for result in results
            ],
            _VISUAL_MATCH_LIMIT,
        )

    def _images(self, results: Sequence[_SerpResult]) -> List[ProductCandidate]:
        return _keep(
            [
                build_candidate(
                    title=result.title,
                    url=result.original,
                    source=self.source,
                    url_policy=ALLOW_LIST_AND_PRODUCT_PAGE,
                    price=price_from_snippet(result.snippet),
                    image_url=result.thumbnail,
                )
                for result in results
            ],
            _IMAGE_RESULT_LIMIT,
        )


class SerpApiLensBackend(_SerpApiBackend):
    """Google Lens through SerpAPI: shopping results, else visual matches."""

    source = GOOGLE_LENS
    engine = "google_lens"

    def _image_params(self, image_url: str) -> Dict[str, Any]:
        return {"url": image_url}

    def search(self, item: ExtractedItem) -> List[ProductCandidate]:
        response = self._query(item)
        if response is None:
            return []
        if response.shopping_results:
            return self._shopping(response.shopping_results)
        return self._visual_matches(response.visual_matches)


class SerpApiReverseImageBackend(_SerpApiBackend):
    """Google reverse image search through SerpAPI."""

    source = GOOGLE_REVERSE
    engine = "google_reverse_image"

    def _image_params(self, image_url: str) -> Dict[str, Any]:
        return {"image_url": image_url}

    def search(self, item: ExtractedItem) -> List[ProductCandidate]:
        response = self._query(item)
        if response is None:
            return []
        return self._shopping(response.inline_shopping_results) + self._images(response.image_results)


class BingImagesBackend(_SerpApiBackend):
    source = BING_REVERSE
    engine = "bing_images"
    timeout_seconds = 15.0

    def _image_params(self, image_url: str) -> Dict[str, Any]:
        return {"q": image_url}

    def search(self, item: ExtractedItem) -> List[ProductCandidate]:
        response = self._query(item)
        if response is None:
            return []
        return self._images(response.images_results)


class _CustomSearchBackend(SearchBackend):
    def __init__(
        self, api_key: str | None, search_engine_id: str | None, timeout_seconds: float | None = None
    ) -> None:
        self.api_key = api_key
        self.search_engine_id = search_engine_id
        if timeout_seconds is not None:
            self.timeout_seconds = timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.search_engine_id)

    def _request(self, query: str, extra: Dict[str, Any]) -> _CseResponse:
        params = {
            "key": self.api_key,
            "cx": self.search_engine_id,
            "q": query,
            "safe": "active",
            "cr": "countryUS",
            "lr": "lang_en",
            "num": 10,
        }
        params.update(extra)
        payload = _get_json(CUSTOM_SEARCH_URL, params=params, timeout=self.timeout_seconds)
        return _validate(_CseResponse, payload)


class CustomSearchImageBackend(_CustomSearchBackend):
    """Google Custom Search in image mode, keyed by type and colour."""

    source = GOOGLE_IMAGE_SEARCH
    timeout_seconds = 15.0

    def search(self, item: ExtractedItem) -> List[ProductCandidate]:
        if not item.extracted_image_url or not self.is_configured:
            return []
        response = self._request(
            build_image_search_query(item),
            {"searchType": "image", "imgType": "photo", "imgSize": "medium", "imgColorType": "color"},
        )
        candidates = []
        for entry in response.items:
            image = entry.image or _CseImage()
            candidates.append(
                build_candidate(
                    title=entry.title,
                    url=image.context_link or entry.link,
                    source=self.source,
                    url_policy=ALLOW_LIST,
                    price=price_from_snippet(entry.snippet),
                    image_url=image.thumbnail_link or entry.link,
                )
            )
        return _keep(candidates)


class CustomSearchTextBackend(_CustomSearchBackend):
    """Attribute-query web search used when visual search comes back empty."""

    source = ENHANCED_TEXT_SEARCH
    requires_image = False
    timeout_seconds = 10.0

    def search(self, item: ExtractedItem) -> List[ProductCandidate]:
        if not self.is_configured:
            return []
        response = self._request(build_text_query(item), {})
        return _keep(
            [
                build_candidate(
                    title=entry.title,
                    url=entry.link,
                    source=self.source,
                    url_policy=ALLOW_LIST_AND_PRODUCT_PAGE,
                    price=price_from_snippet(entry.snippet),
                    image_url=entry.page_thumbnail,
                )
                for entry in response.items
            ]
        )


class MockSearchBackend(SearchBackend):
    """Backend returning canned candidates, optionally failing or stalling."""

    def __init__(
        self,
        source: str,
        candidates: Sequence[ProductCandidate] = (),
        error: Exception | None = None,
        delay_seconds: float = 0.0,
        requires_image: bool = True,
        configured: bool = True,
    ) -> None:
        self.source = source
        self.candidates = list(candidates)
        self.error = error
        self.delay_seconds = delay_seconds
        self.requires_image = requires_image
        self._configured = configured
        self.calls: List[str] = []

    @property
    def is_configured(self) -> bool:
        return self._configured

    def search(self, item: ExtractedItem) -> List[ProductCandidate]:
        self.calls.append(item.id)
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return list(self.candidates)


__all__ = [
    "BING_REVERSE",
    "BingImagesBackend",
    "CustomSearchImageBackend",
    "CustomSearchTextBackend",
    "ENHANCED_TEXT_SEARCH",
    "GEMINI_WEB_SEARCH",
    "GEMINI_WEB_SEARCH_FALLBACK",
    "GOOGLE_IMAGE_SEARCH",
    "GOOGLE_LENS",
    "GOOGLE_REVERSE",
    "GeminiWebSearchBackend",
    "MockSearchBackend",
    "SearchBackend",
    "SerpApiLensBackend",
    "SerpApiReverseImageBackend",
]
