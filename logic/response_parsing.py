"""Parsing of free-text generative model replies into structured data."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from models.extracted_item import BoundingBox, ExtractedItem, from_descriptor, item_id_for
from models.taxonomy import HEURISTIC_CLOTHING_TYPES
from shop_app.errors import ParseError

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\[{][\s\S]*?[\]}])\s*```", re.IGNORECASE)
_URL_PATTERN = re.compile(r"https?://[^\s\"'<>)\]]+")

HEURISTIC_CONFIDENCE = 0.7
HEURISTIC_MAX_ITEMS = 5
PLACEHOLDER_CONFIDENCE = 0.6

_PLACEHOLDERS = (
    ("dress", BoundingBox(0.2, 0.1, 0.6, 0.7)),
    ("shoes", BoundingBox(0.1, 0.8, 0.3, 0.15)),
    ("bag", BoundingBox(0.7, 0.3, 0.25, 0.3)),
)


class ItemDescriptor(BaseModel):
    """One item entry as returned by the extraction prompt."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    piece_type: str = Field(default="unknown", alias="pieceType")
    description: Optional[str] = None
    bounding_box: Optional[Dict[str, Any]] = Field(default=None, alias="boundingBox")
    confidence: Optional[float] = None
    color: Optional[str] = None
    pattern: Optional[str] = None
    style: Optional[str] = None

    @field_validator("piece_type", "description", "color", "pattern", "style", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return ", ".join(str(part) for part in value)
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> Any:
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @field_validator("bounding_box", mode="before")
    @classmethod
    def _coerce_box(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None


class WebSearchProduct(BaseModel):
    """One product entry from the grounded web search prompt."""

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    url: str = ""
    price: Optional[str] = None
    retailer: Optional[str] = None

    @field_validator("title", "url", "price", "retailer", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return value
        return str(value).strip()


def extract_json_text(text: str, opener: str = "[") -> Optional[str]:
    """Return the JSON payload embedded in a model reply, if any.

    Fenced code blocks win over bare payloads; a bare payload is the span from
    the first ``opener`` to the last matching closer.
    """

    if not text:
        return None
    closer = "]" if opener == "[" else "}"
    for match in _FENCED_BLOCK.finditer(text):
        candidate = match.group(1).strip()
        if candidate.startswith(opener):
            return candidate
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def _load_json(text: str, opener: str) -> Any:
    payload = extract_json_text(text, opener=opener)
    if payload is None:
        raise ParseError("No JSON payload found in model response")
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Malformed JSON in model response: {exc}") from exc


def parse_item_descriptors(text: str) -> List[ItemDescriptor]:
    """Parse the extraction reply into validated item descriptors."""

    data = _load_json(text, opener="[")
    if isinstance(data, dict) and isinstance(data.get("items"), list):
        data = data["items"]
    if not isinstance(data, list):
        raise ParseError("Model response is not a JSON array")

    descriptors: List[ItemDescriptor] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            logger.debug("Skipping non-object item entry", extra={"index": index})
            continue
        try:
            descriptors.append(ItemDescriptor.model_validate(entry))
        except ValidationError as exc:
            logger.warning("Skipping invalid item descriptor", extra={"index": index, "error": str(exc)})
    return descriptors


def parse_extracted_items(text: str, image_ref: str) -> List[ExtractedItem]:
    descriptors = parse_item_descriptors(text)
    return [
        from_descriptor(descriptor.model_dump(by_alias=True), image_ref, index)
        for index, descriptor in enumerate(descriptors)
    ]


def _tiled_box(position: int) -> BoundingBox:
    return BoundingBox(
        x=0.1 + (position % 3) * 0.3,
        y=0.1 + (position // 3) * 0.3,
        width=0.25,
        height=0.25,
    )


def heuristic_items(text: str, image_ref: str) -> List[ExtractedItem]:
    """Keyword-scan an unparseable reply for known clothing types."""

    lowered = (text or "").lower()
    items: List[ExtractedItem] = []
    for piece_type in HEURISTIC_CLOTHING_TYPES:
        if piece_type not in lowered:
            continue
        position = len(items)
        items.append(
            ExtractedItem(
                id=item_id_for(image_ref, position, prefix="heuristic"),
                piece_type=piece_type,
                description=f"{piece_type.capitalize()} identified in flat lay",
                bounding_box=_tiled_box(position),
                confidence=HEURISTIC_CONFIDENCE,
                color="various",
                pattern="unknown",
                style="casual",
            )
        )
        if len(items) >= HEURISTIC_MAX_ITEMS:
            break
    return items


def placeholder_items(image_ref: str) -> List[ExtractedItem]:
    """Generic dress/shoes/bag items used when the backend call fails."""

    return [
        ExtractedItem(
            id=item_id_for(image_ref, index, prefix=f"fallback-{piece_type}"),
            piece_type=piece_type,
            description=f"{piece_type.capitalize()} from flat lay outfit",
            bounding_box=box,
            confidence=PLACEHOLDER_CONFIDENCE,
            color="various",
            pattern="unknown",
            style="casual",
        )
        for index, (piece_type, box) in enumerate(_PLACEHOLDERS)
    ]


def parse_web_search_products(text: str) -> List[WebSearchProduct]:
    """Parse the ``{"products": [...]}`` payload of a grounded search reply."""

    data = _load_json(text, opener="{")
    if not isinstance(data, dict) or not isinstance(data.get("products"), list):
        raise ParseError("No products array found in web search response")

    products: List[WebSearchProduct] = []
    for entry in data["products"]:
        if not isinstance(entry, dict):
            continue
        try:
            products.append(WebSearchProduct.model_validate(entry))
        except ValidationError:
            continue
    return products


def extract_urls(text: str) -> List[str]:
    """Return the distinct URLs mentioned in free text, in order of appearance."""

    seen: List[str] = []
    for match in _URL_PATTERN.findall(text or ""):
        url = match.rstrip(".,;:")
        if url not in seen:
            seen.append(url)
    return seen


__all__ = [
    "HEURISTIC_CONFIDENCE",
    "HEURISTIC_MAX_ITEMS",
    "ItemDescriptor",
    "PLACEHOLDER_CONFIDENCE",
    "WebSearchProduct",
    "extract_json_text",
    "extract_urls",
    "heuristic_items",
    "parse_extracted_items",
    "parse_item_descriptors",
    "parse_web_search_products",
    "placeholder_items",
]
