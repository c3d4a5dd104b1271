"""Model package exports."""

from models.taxonomy import *  # noqa: F401,F403
from models.extracted_item import BoundingBox, ExtractedItem, from_descriptor, item_id_for
from models.product import ItemShoppingResult, ProductCandidate

__all__ = [
    "BoundingBox",
    "ExtractedItem",
    "ItemShoppingResult",
    "ProductCandidate",
    "from_descriptor",
    "item_id_for",
]
