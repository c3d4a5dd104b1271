"""Prompt templates shared by the extractor, converter and web search backend."""

from __future__ import annotations

from typing import List

from models.extracted_item import ExtractedItem

PAIRED_ITEM_RULES: List[str] = [
    "For shoes, boots, or any footwear: treat a PAIR as ONE single item with a bounding box that covers both.",
    "For earrings: treat a pair as ONE single item, not two separate items.",
    "For gloves: treat a pair as ONE single item, not two separate items.",
    "For socks or stockings: treat a pair as ONE single item, not two separate items.",
    "Do NOT create separate entries for left and right items that naturally come in pairs.",
]

_EXAMPLE_ITEMS = """[
  {
    "pieceType": "dress",
    "description": "Red long-sleeve midi dress with belt",
    "boundingBox": {"x": 0.2, "y": 0.1, "width": 0.6, "height": 0.7},
    "confidence": 0.95,
    "color": "red",
    "pattern": "solid",
    "style": "casual elegant"
  },
  {
    "pieceType": "shoes",
    "description": "Black leather ankle boots pair",
    "boundingBox": {"x": 0.1, "y": 0.8, "width": 0.4, "height": 0.15},
    "confidence": 0.92,
    "color": "black",
    "pattern": "solid",
    "style": "casual"
  }
]"""


def item_extraction_prompt() -> str:
    """Ask for one JSON descriptor per visible clothing item."""

    rules = "\n".join(f"- {rule}" for rule in PAIRED_ITEM_RULES)
    return (
        "Analyze this flat lay image and identify each individual clothing item and accessory. "
        "For each item you find, provide:\n\n"
        "1. Item type (dress, shirt, pants, shoes, bag, sunglasses, jewelry, etc.)\n"
        "2. Detailed description including color, style, and key features\n"
        "3. Bounding box coordinates (normalized 0-1) showing where the item is located\n"
        "4. Confidence score (0-1) for how certain you are about the identification\n"
        "5. Color description\n"
        "6. Pattern (solid, striped, floral, etc.) if applicable\n"
        "7. Style characteristics (casual, formal, vintage, modern, etc.)\n\n"
        f"IMPORTANT RULES:\n{rules}\n\n"
        f"Please respond with a JSON array in this exact format:\n{_EXAMPLE_ITEMS}\n\n"
        "Only include actual clothing items and accessories visible in the image. Be as detailed "
        "and accurate as possible with descriptions to help with shopping searches."
    )


def _attribute_lines(item: ExtractedItem, label_prefix: str = "") -> str:
    lines = []
    if item.color:
        lines.append(f"{label_prefix}Color: {item.color}")
    if item.pattern:
        lines.append(f"{label_prefix}Pattern: {item.pattern}")
    if item.style:
        lines.append(f"{label_prefix}Style: {item.style}")
    return "\n".join(lines)


def item_crop_prompt(item: ExtractedItem) -> str:
    box = item.bounding_box
    return (
        f"Extract and isolate the {item.description} from this flat lay image. Create a clean image "
        "showing only this specific item on a white background, removing all other clothing items "
        "and accessories from the image.\n\n"
        f"Item to extract: {item.description}\n"
        f"Item type: {item.piece_type}\n"
        f"{_attribute_lines(item)}\n\n"
        f"Focus on this item located at approximately x:{box.x}, y:{box.y} in the image. Create a "
        "clean, isolated image of just this item that can be used for shopping searches."
    )


def item_cropping_retry_prompt(item: ExtractedItem) -> str:
    box = item.bounding_box
    expected = _attribute_lines(item, label_prefix="Expected ")
    return (
        f"Crop and extract only the {item.piece_type} from this flat lay image. The {item.piece_type} "
        f"is located at coordinates x:{box.x}, y:{box.y} with width:{box.width}, height:{box.height}.\n\n"
        f"Create a clean product image of just this {item.piece_type} on a white background, suitable "
        "for e-commerce. Remove all other items from the image and focus only on this specific piece "
        "of clothing.\n\n"
        f"Description: {item.description}\n{expected}"
    )


def web_search_prompt(item: ExtractedItem) -> str:
    return (
        f"Look at this {item.piece_type} image and search the web for current shopping products "
        "that match visually.\n\n"
        "Find current, available products from retailers like Amazon, Target, Zara, H&M, ASOS, "
        "Nordstrom.\n\n"
        "Item details:\n"
        f"- Type: {item.piece_type}\n"
        f"- Color: {item.color or 'similar color'}\n"
        f"- Style: {item.style or 'similar style'}\n\n"
        "Return current product listings in JSON format:\n"
        "{\n"
        '  "products": [\n'
        '    {"title": "Product name", "price": "$XX.XX", "url": "https://direct-product-page-url", '
        '"retailer": "Store Name"}\n'
        "  ]\n"
        "}\n\n"
        f"Search for 3-5 current products that match this {item.piece_type} image."
    )


def flat_lay_prompt() -> str:
    return (
        "Convert this photo of a person wearing an outfit into a flat lay product image. "
        "Lay every visible clothing item and accessory flat, viewed from directly above, neatly "
        "arranged on a clean light background with no person, mannequin or body parts. Keep the "
        "exact colors, patterns and details of each piece. Show pairs such as shoes or earrings "
        "together as one set."
    )


__all__ = [
    "PAIRED_ITEM_RULES",
    "flat_lay_prompt",
    "item_crop_prompt",
    "item_cropping_retry_prompt",
    "item_extraction_prompt",
    "web_search_prompt",
]
