"""Product matching agent: per-item backend fan-out followed by fusion."""

from __future__ import annotations

import contextvars
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from logic.ranking import ResultFuser
from models.extracted_item import ExtractedItem
from models.product import ItemShoppingResult, ProductCandidate
from shop_app.errors import ParseError, UpstreamError
from shop_app.logging_config import get_logger, log_event, operation_context
from tools.search_backends import SearchBackend

logger = get_logger(__name__)

VISUAL_SEARCH = "visual_search"
VISUAL_SEARCH_EMPTY = "visual_search_empty"
TEXT_SEARCH = "text_search"
NO_IMAGE_AVAILABLE = "no_image_available"
SEARCH_FAILED = "search_failed"

# Expected failure modes of a single backend; anything else is logged with a traceback.
BACKEND_ERRORS = (UpstreamError, ParseError, TimeoutError)


@dataclass
class MatchResult:
    candidates: List[ProductCandidate] = field(default_factory=list)
    search_method: str = NO_IMAGE_AVAILABLE
    failed_sources: List[str] = field(default_factory=list)


class ProductMatcher:
    """Queries search backends for each extracted item and ranks the results."""

    def __init__(
        self,
        visual_backends: Sequence[SearchBackend],
        text_backends: Sequence[SearchBackend] = (),
        visual_only: bool = True,
        fuser: ResultFuser | None = None,
        item_delay_seconds: float = 1.5,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: int = 4,
    ) -> None:
        self.visual_backends = list(visual_backends)
        self.text_backends = list(text_backends)
        self.visual_only = visual_only
        self.fuser = fuser or ResultFuser()
        self.item_delay_seconds = item_delay_seconds
        self.sleep = sleep
        self.max_workers = max_workers

    def _run_backend(
        self, backend: SearchBackend, item: ExtractedItem
    ) -> Tuple[List[ProductCandidate], bool]:
        try:
            return backend.search(item), True
        except BACKEND_ERRORS as exc:
            log_event(
                logger,
                logging.WARNING,
                "backend_search_failed",
                backend=backend.source,
                item_id=item.id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return [], False
        except Exception as exc:
            log_event(
                logger,
                logging.ERROR,
                "backend_search_crashed",
                backend=backend.source,
                item_id=item.id,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            return [], False

    def _run_backends(
        self, backends: Sequence[SearchBackend], item: ExtractedItem
    ) -> Tuple[List[ProductCandidate], List[str]]:
        active = [
            backend
            for backend in backends
            if backend.is_configured and (item.has_image or not backend.requires_image)
        ]
        if not active:
            return [], []

        if len(active) == 1 or self.max_workers <= 1:
            outcomes = [self._run_backend(backend, item) for backend in active]
        else:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(active))) as pool:
                futures = [
                    pool.submit(contextvars.copy_context().run, self._run_backend, backend, item)
                    for backend in active
                ]
                outcomes = [future.result() for future in futures]

        candidates: List[ProductCandidate] = []
        failed: List[str] = []
        for backend, (found, ok) in zip(active, outcomes):
            candidates.extend(found)
            if not ok:
                failed.append(backend.source)
        return candidates, failed

    def match(self, item: ExtractedItem) -> MatchResult:
        """Collect raw candidates for one item without ranking them."""

        candidates: List[ProductCandidate] = []
        failed: List[str] = []
        method = NO_IMAGE_AVAILABLE

        if item.has_image:
            candidates, failed = self._run_backends(self.visual_backends, item)
            method = VISUAL_SEARCH if candidates else VISUAL_SEARCH_EMPTY

        if candidates or self.visual_only or not self.text_backends:
            return MatchResult(candidates=candidates, search_method=method, failed_sources=failed)

        text_candidates, text_failed = self._run_backends(self.text_backends, item)
        return MatchResult(
            candidates=text_candidates,
            search_method=TEXT_SEARCH,
            failed_sources=failed + text_failed,
        )

    def find_products(self, item: ExtractedItem) -> ItemShoppingResult:
        match = self.match(item)
        ranked = self.fuser.fuse(match.candidates)
        return ItemShoppingResult(
            item_id=item.id,
            piece_type=item.piece_type,
            candidates=ranked,
            search_method=match.search_method,
            confidence=item.confidence,
            extracted_image_url=item.extracted_image_url,
            failed_sources=match.failed_sources,
        )

    def find_products_for_items(self, items: Sequence[ExtractedItem]) -> List[ItemShoppingResult]:
        """Match items one at a time, pausing between successive items."""

        with operation_context("agent:product_matcher.find_products_for_items") as correlation_id:
            results: List[ItemShoppingResult] = []
            for index, item in enumerate(items):
                if index > 0 and self.item_delay_seconds > 0:
                    self.sleep(self.item_delay_seconds)
                results.append(self._find_products_safely(item, correlation_id))

            log_event(
                logger,
                logging.INFO,
                "agent_call_completed",
                agent="product_matcher",
                method="find_products_for_items",
                correlation_id=correlation_id,
                items=len(results),
                with_candidates=sum(1 for result in results if result.candidates),
            )
            return results

    def _find_products_safely(self, item: ExtractedItem, correlation_id: Optional[str]) -> ItemShoppingResult:
        try:
            return self.find_products(item)
        except Exception as exc:
            logger.error(
                "Product search failed for item",
                extra={"item_id": item.id, "error": str(exc), "correlation_id": correlation_id},
            )
            return ItemShoppingResult(
                item_id=item.id,
                piece_type=item.piece_type,
                candidates=[],
                search_method=SEARCH_FAILED,
                confidence=item.confidence,
                extracted_image_url=item.extracted_image_url,
            )


__all__ = [
    "MatchResult",
    "NO_IMAGE_AVAILABLE",
    "ProductMatcher",
    "SEARCH_FAILED",
    "TEXT_SEARCH",
    "VISUAL_SEARCH",
    "VISUAL_SEARCH_EMPTY",
]
