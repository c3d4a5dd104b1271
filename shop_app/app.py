"""Application bootstrap wiring extraction, matching and conversion together."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from agents.flat_lay_converter import FlatLayConverter, FlatLayResult
from agents.item_extractor import ExtractionResult, ItemExtractor
from agents.product_matcher import ProductMatcher
from logic.ranking import ResultFuser
from shop_app.config import ShopConfig
from shop_app.logging_config import configure_logging, get_logger, log_event, operation_context
from tools.blob_store import BlobStore, LocalBlobStore
from tools.generative_backend import GeminiBackend, GenerativeBackend
from tools.image_fetcher import ImageFetcher
from tools.search_backends import (
    BingImagesBackend,
    CustomSearchImageBackend,
    CustomSearchTextBackend,
    GeminiWebSearchBackend,
    SearchBackend,
    SerpApiLensBackend,
    SerpApiReverseImageBackend,
)

LOGGER = get_logger(__name__)


class FlatLayShopApp:
    """Wires the flat lay pipeline from configuration; every collaborator is injectable."""

    def __init__(
        self,
        config: ShopConfig | None = None,
        backend: GenerativeBackend | None = None,
        blob_store: BlobStore | None = None,
        fetcher: ImageFetcher | None = None,
        visual_backends: Sequence[SearchBackend] | None = None,
        text_backends: Sequence[SearchBackend] | None = None,
    ) -> None:
        self.config = config or ShopConfig.from_env()
        configure_logging()

        self.fetcher = fetcher or ImageFetcher(timeout_seconds=self.config.fetch_timeout_seconds)
        self.blob_store = blob_store or LocalBlobStore(self.config.generated_dir, self.config.public_base_url)
        self.image_backend = backend or GeminiBackend(self.config.gemini_api_key, self.config.extraction_model)
        self.search_backend = backend or GeminiBackend(self.config.gemini_api_key, self.config.search_model)

        self.visual_backends = list(visual_backends) if visual_backends is not None else self._default_visual_backends()
        self.text_backends = list(text_backends) if text_backends is not None else self._default_text_backends()

        self.converter = FlatLayConverter(self.image_backend, self.fetcher, self.blob_store)
        self.extractor = ItemExtractor(
            self.image_backend,
            self.fetcher,
            self.blob_store,
            allow_placeholder_items=self.config.allow_placeholder_items,
            generate_item_images=self.config.generate_item_images,
        )
        self.matcher = ProductMatcher(
            self.visual_backends,
            self.text_backends,
            visual_only=self.config.visual_only,
            fuser=ResultFuser(max_results=self.config.max_candidates),
            item_delay_seconds=self.config.item_delay_seconds,
        )

    def _default_visual_backends(self) -> List[SearchBackend]:
        return [
            GeminiWebSearchBackend(self.search_backend, self.fetcher),
            SerpApiLensBackend(self.config.serp_api_key),
            SerpApiReverseImageBackend(self.config.serp_api_key),
            BingImagesBackend(self.config.serp_api_key),
            CustomSearchImageBackend(self.config.custom_search_api_key, self.config.search_engine_id),
        ]

    def _default_text_backends(self) -> List[SearchBackend]:
        return [CustomSearchTextBackend(self.config.custom_search_api_key, self.config.search_engine_id)]

    def convert_to_flat_lay(self, image_url: str) -> FlatLayResult:
        return self.converter.convert(image_url)

    def extract_items(self, flat_lay_image_url: str) -> ExtractionResult:
        return self.extractor.extract(flat_lay_image_url)

    def shop_flat_lay(self, flat_lay_image_url: str) -> Dict[str, Any]:
        """Extract the items of a flat lay and find ranked products for each."""

        with operation_context("app:shop_flat_lay") as correlation_id:
            extraction = self.extractor.extract(flat_lay_image_url)
            shopping = self.matcher.find_products_for_items(extraction.items)
            log_event(
                LOGGER,
                logging.INFO,
                "shop_flat_lay_completed",
                correlation_id=correlation_id,
                extraction_status=extraction.status,
                items=len(extraction.items),
                candidates=sum(len(result.candidates) for result in shopping),
            )
            return {
                "flatLayImageUrl": flat_lay_image_url,
                "extractionStatus": extraction.status,
                "degraded": extraction.degraded,
                "error": str(extraction.error) if extraction.error else None,
                "items": [item.to_dict() for item in extraction.items],
                "shoppingResults": [result.to_dict() for result in shopping],
                "correlationId": correlation_id,
            }

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "service": "flat-lay-shop",
            "environment": self.config.environment or "local",
            "extraction_model": self.config.extraction_model,
            "generative_backend_configured": self.image_backend.is_configured,
            "visual_backends": [backend.source for backend in self.visual_backends if backend.is_configured],
            "text_backends": [backend.source for backend in self.text_backends if backend.is_configured],
            "visual_only": self.config.visual_only,
        }


__all__ = ["FlatLayShopApp"]
