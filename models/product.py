"""Product candidate and per-item shopping result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.retailers import PRICE_UNAVAILABLE


@dataclass(frozen=True)
class ProductCandidate:
    """A shoppable match proposed by one search backend for one item."""

    title: str
    url: str
    retailer: str
    source: str
    price: str = PRICE_UNAVAILABLE
    image_url: Optional[str] = None
    currency: str = "USD"

    @property
    def is_valid(self) -> bool:
        return bool(self.title and self.title.strip() and self.url and self.url.strip())

    @property
    def has_price(self) -> bool:
        return bool(self.price) and self.price != PRICE_UNAVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "retailer": self.retailer,
            "price": self.price,
            "currency": self.currency,
            "imageUrl": self.image_url,
            "source": self.source,
        }


@dataclass
class ItemShoppingResult:
    """Ranked shopping candidates for one extracted item."""

    item_id: str
    piece_type: str
    candidates: List[ProductCandidate]
    search_method: str
    confidence: float
    extracted_image_url: Optional[str] = None
    failed_sources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "itemId": self.item_id,
            "pieceType": self.piece_type,
            "extractedImageUrl": self.extracted_image_url,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "searchMethod": self.search_method,
            "confidence": self.confidence,
            "totalResults": len(self.candidates),
            "failedSources": list(self.failed_sources),
        }


__all__ = ["ItemShoppingResult", "ProductCandidate"]
