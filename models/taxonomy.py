"""Canonical clothing taxonomy used by extraction, dedup and query building.

This module centralises the static lookup tables: piece-type synonyms, the
categories that physically come in pairs, colour groups and the attribute
values that mean "not meaningfully determined". Helper functions keep the
normalisation rules consistent across agents and logic modules.
"""

from typing import Dict, List, Optional


def _normalize_key(value: str) -> str:
    """Normalise a free-form string into a taxonomy key."""

    return " ".join(value.strip().lower().split())


PIECE_TYPE_SYNONYMS: Dict[str, str] = {
    "shoe": "shoes",
    "boot": "shoes",
    "boots": "shoes",
    "sneaker": "shoes",
    "sneakers": "shoes",
    "sandal": "shoes",
    "sandals": "shoes",
    "heel": "shoes",
    "heels": "shoes",
    "footwear": "shoes",
    "earring": "earrings",
    "glove": "gloves",
    "sock": "socks",
    "stocking": "socks",
    "stockings": "socks",
}

PAIRED_TYPES = ("shoes", "earrings", "gloves", "socks")

COLOR_GROUPS: List[List[str]] = [
    ["black", "dark", "charcoal"],
    ["white", "cream", "ivory", "off-white"],
    ["blue", "navy", "denim"],
    ["brown", "tan", "beige", "camel"],
    ["red", "burgundy", "wine"],
    ["pink", "rose", "blush"],
]

# Attribute values that carry no information for search or display.
NOT_DETERMINED_VALUES = {"unknown", "various", "solid"}

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "dress": ["women's", "fashion"],
    "shoes": ["footwear"],
    "bag": ["handbag", "accessory"],
    "sunglasses": ["eyewear", "accessory"],
}

# Keywords scanned in unparseable model replies, in priority order.
HEURISTIC_CLOTHING_TYPES: List[str] = [
    "dress",
    "shirt",
    "pants",
    "shoes",
    "bag",
    "sunglasses",
    "jewelry",
    "jacket",
    "coat",
    "skirt",
    "shorts",
]


def normalize_piece_type(raw: Optional[str]) -> str:
    """Map a model-supplied piece type onto its canonical category."""

    if not raw:
        return "unknown"
    key = _normalize_key(raw)
    return PIECE_TYPE_SYNONYMS.get(key, key)


def is_paired_type(piece_type: str) -> bool:
    return normalize_piece_type(piece_type) in PAIRED_TYPES


def is_determined(value: Optional[str]) -> bool:
    """Return True when an attribute value is worth using in queries or display."""

    return bool(value and value.strip()) and _normalize_key(value) not in NOT_DETERMINED_VALUES


def color_group(color: str) -> Optional[int]:
    """Return the index of the semantic colour bucket a colour belongs to."""

    key = _normalize_key(color)
    for index, group in enumerate(COLOR_GROUPS):
        if key in group:
            return index
    return None


def colors_match(first: Optional[str], second: Optional[str]) -> bool:
    """Return True when two colours are equal or share a colour group.

    An absent colour on either side counts as a match.
    """

    if not first or not second:
        return True
    a, b = _normalize_key(first), _normalize_key(second)
    if a == b:
        return True
    group_a = color_group(a)
    return group_a is not None and group_a == color_group(b)


__all__ = [
    "CATEGORY_KEYWORDS",
    "COLOR_GROUPS",
    "HEURISTIC_CLOTHING_TYPES",
    "NOT_DETERMINED_VALUES",
    "PAIRED_TYPES",
    "PIECE_TYPE_SYNONYMS",
    "color_group",
    "colors_match",
    "is_determined",
    "is_paired_type",
    "normalize_piece_type",
]
