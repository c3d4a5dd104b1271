"""Pure item logic: reply parsing, pair dedup, descriptions and queries."""

import pytest

from logic.item_dedup import (
    description_similarity,
    is_pair_duplicate,
    item_key,
    normalize_description,
    remove_duplicate_items,
)
from logic.item_descriptions import build_image_search_query, build_text_query, enhance_description
from logic.response_parsing import (
    extract_json_text,
    extract_urls,
    parse_item_descriptors,
    parse_web_search_products,
)
from models.extracted_item import BoundingBox, ExtractedItem
from models.taxonomy import colors_match, is_determined, normalize_piece_type
from shop_app.errors import ParseError


def _item(item_id: str, piece_type: str, description: str, color=None, box=(0.1, 0.1, 0.2, 0.2), **kwargs):
    return ExtractedItem(
        id=item_id,
        piece_type=piece_type,
        description=description,
        bounding_box=BoundingBox(*box),
        color=color,
        **kwargs,
    )


def test_piece_type_synonyms_are_canonicalised() -> None:
    assert normalize_piece_type("Boots") == "shoes"
    assert normalize_piece_type(" Earring ") == "earrings"
    assert normalize_piece_type(None) == "unknown"
    assert _item("a", "sneaker", "white sneakers").piece_type == "shoes"


def test_colour_groups_and_unknown_colours_match() -> None:
    assert colors_match("Navy", "denim")
    assert colors_match(None, "red")
    assert not colors_match("red", "blue")
    assert not is_determined("Various")
    assert is_determined("floral")


def test_normalize_description_drops_pair_words() -> None:
    assert normalize_description("Left black ankle boot") == "black ankle boot"
    assert normalize_description("Pair of both earrings") == "of earrings"
    assert len(normalize_description("x" * 80)) == 50


def test_description_similarity_ignores_short_words() -> None:
    assert description_similarity("a black boot", "black boot") == pytest.approx(1.0)
    assert description_similarity("", "") == 0.0


def test_left_right_shoes_collapse_into_one_item() -> None:
    left = _item("1", "shoes", "Black leather boot left", color="black", box=(0.1, 0.8, 0.2, 0.15))
    right = _item("2", "boots", "Black leather boot right", color="charcoal", box=(0.5, 0.8, 0.2, 0.15))

    assert is_pair_duplicate(right, left)
    assert remove_duplicate_items([left, right]) == [left]


def test_overlapping_boxes_mark_pair_duplicates() -> None:
    first = _item("1", "earrings", "Gold hoop", color="gold", box=(0.1, 0.1, 0.2, 0.2))
    second = _item("2", "earrings", "Dangling statement piece", color="gold", box=(0.12, 0.12, 0.2, 0.2))

    assert remove_duplicate_items([first, second]) == [first]


def test_different_colour_groups_are_kept_apart() -> None:
    black = _item("1", "shoes", "Leather ankle boots", color="black")
    red = _item("2", "shoes", "Leather ankle boots", color="red")

    assert remove_duplicate_items([black, red]) == [black, red]


def test_non_paired_types_only_drop_exact_keys() -> None:
    first = _item("1", "dress", "Red midi dress", color="red")
    similar = _item("2", "dress", "Red midi dress with belt", color="red")
    exact = _item("3", "dress", "red midi dress", color="Red")

    assert remove_duplicate_items([first, similar, exact]) == [first, similar]
    assert item_key(first) == item_key(exact)


def test_dedup_is_idempotent_and_never_leaves_paired_duplicates() -> None:
    items = [
        _item("1", "shoes", "White sneaker left", color="white"),
        _item("2", "shoes", "White sneaker right", color="cream", box=(0.6, 0.6, 0.2, 0.2)),
        _item("3", "gloves", "Wool gloves", color=None),
        _item("4", "gloves", "Wool gloves pair", color="grey", box=(0.15, 0.15, 0.2, 0.2)),
        _item("5", "bag", "Tan tote"),
    ]

    once = remove_duplicate_items(items)
    assert remove_duplicate_items(once) == once
    for index, item in enumerate(once):
        for other in once[index + 1 :]:
            assert not is_pair_duplicate(other, item)
    assert [item.id for item in once] == ["1", "3", "5"]


def test_enhanced_description_skips_undetermined_attributes() -> None:
    bag = _item("1", "bag", "old text", color="various", pattern="unknown", style="structured")
    glasses = _item("2", "sunglasses", "old text", color="black", pattern="solid")

    assert enhance_description(bag) == "bag structured handbag accessory"
    assert enhance_description(glasses) == "black sunglasses eyewear accessory"


def test_text_query_never_contains_undetermined_values() -> None:
    item = _item("1", "skirt", "Pleated skirt", color="unknown", pattern="pleated", style="various")

    query = build_text_query(item)

    assert query == "pleated skirt buy online shop clothing fashion"
    assert "unknown" not in query and "various" not in query
    assert build_image_search_query(item) == "skirt buy shop online clothing fashion"


def test_extract_json_text_prefers_fenced_block() -> None:
    text = 'Sure [not json]\n```json\n[{"pieceType": "bag"}]\n```'

    assert extract_json_text(text) == '[{"pieceType": "bag"}]'
    assert extract_json_text("no payload here") is None


def test_item_descriptors_are_coerced_leniently() -> None:
    text = '{"items": [{"pieceType": "hat", "color": ["red", "white"], "confidence": "high"}, 3]}'

    descriptors = parse_item_descriptors(text)

    assert len(descriptors) == 1
    assert descriptors[0].color == "red, white"
    assert descriptors[0].confidence is None


def test_malformed_item_json_raises_parse_error() -> None:
    with pytest.raises(ParseError):
        parse_item_descriptors("[{'pieceType': 'dress',}]")


def test_web_search_products_and_url_scraping() -> None:
    reply = '```json\n{"products": [{"title": "Linen dress", "url": "https://shop.example.com/p/1", "price": 49}]}\n```'

    products = parse_web_search_products(reply)

    assert products[0].price == "49"
    with pytest.raises(ParseError):
        parse_web_search_products('{"results": []}')
    assert extract_urls("See https://a.example.com/x, and https://a.example.com/x.") == ["https://a.example.com/x"]
