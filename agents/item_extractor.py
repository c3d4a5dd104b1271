"""Item extraction agent turning a flat lay image into individual items."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from logic.item_dedup import remove_duplicate_items
from logic.item_descriptions import enhance_description
from logic.prompts import item_crop_prompt, item_cropping_retry_prompt, item_extraction_prompt
from logic.response_parsing import heuristic_items, parse_extracted_items, placeholder_items
from models.extracted_item import ExtractedItem
from shop_app.errors import ParseError, ShopError, UpstreamError, UpstreamUnavailable
from shop_app.logging_config import get_logger, log_event, operation_context
from tools.blob_store import BlobStore
from tools.generative_backend import GenerativeBackend, InlineImage
from tools.image_fetcher import FetchedImage, ImageFetcher

logger = get_logger(__name__)

STATUS_OK = "ok"
STATUS_HEURISTIC = "heuristic"
STATUS_PLACEHOLDER = "placeholder"
STATUS_FAILED = "failed"


@dataclass
class ExtractionResult:
    """Extracted items plus how they were obtained."""

    items: List[ExtractedItem] = field(default_factory=list)
    status: str = STATUS_OK
    error: Optional[ShopError] = None

    @property
    def degraded(self) -> bool:
        return self.status != STATUS_OK


class ItemExtractor:
    """Detects, deduplicates and optionally isolates items in a flat lay."""

    def __init__(
        self,
        backend: GenerativeBackend | None,
        fetcher: ImageFetcher,
        blob_store: BlobStore,
        allow_placeholder_items: bool = True,
        generate_item_images: bool = True,
    ) -> None:
        self.backend = backend
        self.fetcher = fetcher
        self.blob_store = blob_store
        self.allow_placeholder_items = allow_placeholder_items
        self.generate_item_images = generate_item_images

    def test_connection(self) -> bool:
        if self.backend is None:
            return False
        return self.backend.test_connection()

    def extract(self, flat_lay_image_ref: str) -> ExtractionResult:
        """Extract the distinct items of the flat lay at ``flat_lay_image_ref``.

        Raises:
            UpstreamUnavailable: When no configured generative backend exists.
        """

        if self.backend is None or not self.backend.is_configured:
            raise UpstreamUnavailable("Generative backend is not configured for item extraction")

        with operation_context("agent:item_extractor.extract") as correlation_id:
            try:
                image = self.fetcher.fetch(flat_lay_image_ref)
                reply = self.backend.generate(
                    item_extraction_prompt(), image_bytes=image.data, mime_type=image.mime_type
                )
            except UpstreamError as exc:
                return self._failure_result(flat_lay_image_ref, exc, correlation_id)

            status = STATUS_OK
            try:
                items = parse_extracted_items(reply.text, flat_lay_image_ref)
            except ParseError as exc:
                logger.warning(
                    "Extraction reply was not JSON, using keyword heuristic",
                    extra={"error": str(exc), "correlation_id": correlation_id},
                )
                items = heuristic_items(reply.text, flat_lay_image_ref)
                status = STATUS_HEURISTIC

            unique = remove_duplicate_items(items)
            if self.generate_item_images:
                unique = [self._attach_crop(item, image) for item in unique]
            enhanced = [replace(item, description=enhance_description(item)) for item in unique]

            log_event(
                logger,
                logging.INFO,
                "agent_call_completed",
                agent="item_extractor",
                method="extract",
                correlation_id=correlation_id,
                status=status,
                detected=len(items),
                kept=len(enhanced),
                with_images=sum(1 for item in enhanced if item.has_image),
            )
            return ExtractionResult(items=enhanced, status=status)

    def _failure_result(self, image_ref: str, error: UpstreamError, correlation_id: str) -> ExtractionResult:
        if self.allow_placeholder_items:
            log_event(
                logger,
                logging.WARNING,
                "extraction_degraded",
                correlation_id=correlation_id,
                error_type=type(error).__name__,
                error=str(error),
                fallback=STATUS_PLACEHOLDER,
            )
            return ExtractionResult(items=placeholder_items(image_ref), status=STATUS_PLACEHOLDER, error=error)

        log_event(
            logger,
            logging.ERROR,
            "extraction_failed",
            correlation_id=correlation_id,
            error_type=type(error).__name__,
            error=str(error),
        )
        return ExtractionResult(items=[], status=STATUS_FAILED, error=error)

    def _request_crop(self, item: ExtractedItem, image: FetchedImage) -> Optional[InlineImage]:
        for prompt in (item_crop_prompt(item), item_cropping_retry_prompt(item)):
            reply = self.backend.generate(prompt, image_bytes=image.data, mime_type=image.mime_type)
            if reply.first_image is not None:
                return reply.first_image
            logger.info("No image returned for crop request", extra={"item_id": item.id})
        return None

    def _attach_crop(self, item: ExtractedItem, image: FetchedImage) -> ExtractedItem:
        try:
            crop = self._request_crop(item, image)
            if crop is None:
                return item
            stored = self.blob_store.save(crop.data, f"extracted-{item.id}")
        except ShopError as exc:
            logger.warning(
                "Could not generate item image",
                extra={"item_id": item.id, "error_type": type(exc).__name__, "error": str(exc)},
            )
            return item
        return replace(item, extracted_image_url=stored.url, extracted_image_path=stored.path)


__all__ = [
    "ExtractionResult",
    "ItemExtractor",
    "STATUS_FAILED",
    "STATUS_HEURISTIC",
    "STATUS_OK",
    "STATUS_PLACEHOLDER",
]
