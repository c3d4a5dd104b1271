"""Conversion of a worn-outfit photo into a generated flat lay image."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

from logic.prompts import flat_lay_prompt
from shop_app.errors import ParseError, UpstreamUnavailable
from shop_app.logging_config import get_logger, log_event, operation_context
from tools.blob_store import BlobStore
from tools.generative_backend import GenerativeBackend
from tools.image_fetcher import ImageFetcher

logger = get_logger(__name__)


@dataclass
class FlatLayResult:
    original_image_url: str
    flat_lay_image_url: str
    status: str
    processing_time: float
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalImageUrl": self.original_image_url,
            "flatLayImageUrl": self.flat_lay_image_url,
            "status": self.status,
            "processingTime": self.processing_time,
            "createdAt": self.created_at,
        }


class FlatLayConverter:
    """Asks the image model for a top-down flat lay of an outfit photo."""

    def __init__(self, backend: GenerativeBackend | None, fetcher: ImageFetcher, blob_store: BlobStore) -> None:
        self.backend = backend
        self.fetcher = fetcher
        self.blob_store = blob_store

    def convert(self, image_url: str) -> FlatLayResult:
        """Generate and store a flat lay for the outfit photo at ``image_url``.

        Raises:
            UpstreamUnavailable: No configured generative backend.
            UpstreamError: The photo could not be fetched, the model call
                failed or the result could not be stored.
            ParseError: The model reply carried no image.
        """

        if self.backend is None or not self.backend.is_configured:
            raise UpstreamUnavailable("Generative backend is not configured for flat lay conversion")

        with operation_context("agent:flat_lay_converter.convert") as correlation_id:
            start = time.perf_counter()
            photo = self.fetcher.fetch(image_url)
            reply = self.backend.generate(flat_lay_prompt(), image_bytes=photo.data, mime_type=photo.mime_type)
            generated = reply.first_image
            if generated is None:
                raise ParseError("Model reply did not contain a flat lay image")

            stored = self.blob_store.save(generated.data, "flat-lay")
            elapsed = round(time.perf_counter() - start, 3)
            log_event(
                logger,
                logging.INFO,
                "agent_call_completed",
                agent="flat_lay_converter",
                method="convert",
                correlation_id=correlation_id,
                duration_s=elapsed,
            )
            return FlatLayResult(
                original_image_url=image_url,
                flat_lay_image_url=stored.url,
                status="completed",
                processing_time=elapsed,
                created_at=datetime.now(timezone.utc).isoformat(),
            )


__all__ = ["FlatLayConverter", "FlatLayResult"]
