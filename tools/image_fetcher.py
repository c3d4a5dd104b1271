"""Download of source images referenced by URL."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import requests

from shop_app.errors import FetchError
from tools.observability import instrument_call

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class FetchedImage:
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE


def _validate_url(url: str) -> None:
    try:
        parsed = urlparse(url or "")
    except ValueError as exc:
        raise FetchError(f"Unsupported or invalid image URL: {url}") from exc
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise FetchError(f"Unsupported or invalid image URL: {url}")


class ImageFetcher:
    """Fetches image bytes over HTTP with a per-request timeout."""

    def __init__(self, timeout_seconds: float = 10.0, session: Optional[requests.Session] = None) -> None:
        self.timeout_seconds = timeout_seconds
        self.session = session

    @instrument_call("fetch_image")
    def fetch(self, url: str) -> FetchedImage:
        """Download ``url`` and return its bytes and mime type.

        Raises:
            FetchError: For invalid URLs, network issues, timeouts, non-2xx
                responses or empty bodies.
        """

        _validate_url(url)
        getter = self.session.get if self.session is not None else requests.get
        try:
            response = getter(url, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            logger.error("Network error fetching image", extra={"url": url, "error": str(exc)})
            raise FetchError(f"Network error fetching {url}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            logger.warning(
                "Non-success status when fetching image",
                extra={"url": url, "status_code": response.status_code},
            )
            raise FetchError(f"Failed to fetch {url}: HTTP {response.status_code}")

        data = response.content
        if not data:
            raise FetchError(f"Empty response body for {url}")

        content_type = (response.headers.get("content-type") or "").split(";")[0].strip()
        mime_type = content_type if content_type.startswith("image/") else DEFAULT_MIME_TYPE
        logger.debug("Fetched image", extra={"url": url, "mime_type": mime_type, "length": len(data)})
        return FetchedImage(data=data, mime_type=mime_type)


__all__ = ["DEFAULT_MIME_TYPE", "FetchedImage", "ImageFetcher"]
