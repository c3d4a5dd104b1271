"""Deduplication of extracted items, including left/right halves of pairs."""

from __future__ import annotations

import logging
import re
from typing import List, Sequence

from models.extracted_item import ExtractedItem
from models.taxonomy import colors_match, is_paired_type, normalize_piece_type

logger = logging.getLogger(__name__)

DESCRIPTION_SIMILARITY_THRESHOLD = 0.6
SPATIAL_OVERLAP_THRESHOLD = 0.3
_DESCRIPTION_PREFIX = 50
_PAIR_WORDS = re.compile(r"\b(left|right|pair|pairs|both)\b")


def normalize_description(description: str) -> str:
    """Lowercase, drop pair words and keep a short prefix for comparison."""

    text = _PAIR_WORDS.sub("", (description or "").lower())
    return " ".join(text.split())[:_DESCRIPTION_PREFIX].strip()


def item_key(item: ExtractedItem) -> str:
    color = item.color.strip().lower() if item.color else "unknown"
    return f"{normalize_piece_type(item.piece_type)}-{color}-{normalize_description(item.description)}"


def description_similarity(first: str, second: str) -> float:
    """Word-overlap ratio (Jaccard) over words longer than two characters."""

    words_a = {word for word in first.split() if len(word) > 2}
    words_b = {word for word in second.split() if len(word) > 2}
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def is_pair_duplicate(first: ExtractedItem, second: ExtractedItem) -> bool:
    """Return True when two items look like the two halves of one paired object."""

    if not is_paired_type(first.piece_type):
        return False
    if normalize_piece_type(first.piece_type) != normalize_piece_type(second.piece_type):
        return False
    if not colors_match(first.color, second.color):
        return False
    similarity = description_similarity(
        normalize_description(first.description), normalize_description(second.description)
    )
    overlap = first.bounding_box.overlap_ratio(second.bounding_box)
    return similarity > DESCRIPTION_SIMILARITY_THRESHOLD or overlap > SPATIAL_OVERLAP_THRESHOLD


def remove_duplicate_items(items: Sequence[ExtractedItem]) -> List[ExtractedItem]:
    """Keep the first of every duplicate group, preserving order."""

    kept: List[ExtractedItem] = []
    seen_keys = set()
    for item in items:
        key = item_key(item)
        if key in seen_keys:
            logger.info("Removing duplicate item", extra={"item_id": item.id, "piece_type": item.piece_type})
            continue
        if any(is_pair_duplicate(item, existing) for existing in kept):
            logger.info("Removing paired duplicate", extra={"item_id": item.id, "piece_type": item.piece_type})
            continue
        seen_keys.add(key)
        kept.append(item)
    return kept


__all__ = [
    "description_similarity",
    "is_pair_duplicate",
    "item_key",
    "normalize_description",
    "remove_duplicate_items",
]
