"""Shopping-oriented descriptions and search queries built from item attributes."""

from __future__ import annotations

from typing import List

from models.extracted_item import ExtractedItem
from models.taxonomy import CATEGORY_KEYWORDS, is_determined


def _attribute_parts(item: ExtractedItem) -> List[str]:
    parts: List[str] = []
    if is_determined(item.color):
        parts.append(item.color.strip())
    if is_determined(item.pattern):
        parts.append(item.pattern.strip())
    parts.append(item.piece_type)
    if is_determined(item.style):
        parts.append(item.style.strip())
    return parts


def enhance_description(item: ExtractedItem) -> str:
    """Rebuild the description from structured attributes plus category keywords."""

    parts = _attribute_parts(item)
    parts.extend(CATEGORY_KEYWORDS.get(item.piece_type, []))
    return " ".join(parts)


def build_text_query(item: ExtractedItem) -> str:
    """Query for text search backends; never includes undetermined attributes."""

    return " ".join(_attribute_parts(item) + ["buy online", "shop", "clothing", "fashion"])


def build_image_search_query(item: ExtractedItem) -> str:
    parts = [item.piece_type]
    if is_determined(item.color):
        parts.append(item.color.strip())
    parts.append("buy shop online clothing fashion")
    return " ".join(parts)


__all__ = ["build_image_search_query", "build_text_query", "enhance_description"]
