"""Fusion and ranking invariants."""

import pytest

from logic.ranking import ResultFuser, fuse_candidates, normalize_title, normalize_url, score_candidate
from models.product import ProductCandidate


def _candidate(title: str, url: str, source: str = "google_lens", retailer: str = "Boutique", **kwargs):
    return ProductCandidate(title=title, url=url, retailer=retailer, source=source, **kwargs)


def test_score_adds_retailer_price_and_image_bonuses() -> None:
    best = _candidate(
        "Black ankle boots",
        "https://www.amazon.com/dp/B01",
        source="gemini_web_search",
        retailer="Amazon",
        price="$59.99",
        image_url="https://img.example.com/1.jpg",
    )
    bare = _candidate("Black ankle boots", "https://shop.example.com/p/1", source="mystery_engine")

    assert score_candidate(best) == 25 + 3 + 2 + 1
    assert score_candidate(bare) == 0


def test_urls_are_normalised_before_dedup() -> None:
    assert normalize_url("HTTPS://Shop.Example.com/p/1/#reviews") == "https://shop.example.com/p/1"
    candidates = [
        _candidate("Boots A", "https://shop.example.com/p/1"),
        _candidate("Boots B", "https://SHOP.example.com/p/1/"),
        _candidate("Boots C", "https://shop.example.com/p/1#details"),
    ]

    assert [c.title for c in fuse_candidates(candidates)] == ["Boots A"]


def test_title_collision_keeps_higher_trust_source() -> None:
    weaker = _candidate("Red Midi Dress!", "https://a.example.com/p/1", source="bing_reverse")
    stronger = _candidate("red midi dress", "https://b.example.com/p/2", source="google_lens")

    fused = fuse_candidates([weaker, stronger])

    assert fused == [stronger]
    assert normalize_title("Red  Midi, Dress!") == "red midi dress"


def test_title_collision_tie_keeps_first_seen() -> None:
    first = _candidate("Tan tote bag", "https://a.example.com/p/1")
    second = _candidate("TAN TOTE BAG", "https://b.example.com/p/2")

    assert fuse_candidates([first, second]) == [first]


def test_output_is_sorted_by_score_and_capped() -> None:
    sources = [
        "gemini_web_search_fallback",
        "enhanced_text_search",
        "bing_reverse",
        "google_image_search",
        "google_reverse",
        "google_lens",
        "gemini_web_search",
        "unknown",
        "google_lens",
        "bing_reverse",
    ]
    candidates = [
        _candidate(f"Item {index}", f"https://shop.example.com/p/{index}", source=source)
        for index, source in enumerate(sources)
    ]

    fused = fuse_candidates(candidates)

    assert len(fused) == 8
    scores = [score_candidate(c) for c in fused]
    assert scores == sorted(scores, reverse=True)
    assert fused[0].source == "gemini_web_search"
    # equal scores keep arrival order
    lens = [c.title for c in fused if c.source == "google_lens"]
    assert lens == ["Item 5", "Item 8"]
    assert all(c.source != "unknown" for c in fused)


def test_fusion_is_idempotent_and_deterministic() -> None:
    candidates = [
        _candidate("Boots", "https://a.example.com/p/1", source="bing_reverse", price="$20"),
        _candidate("boots", "https://b.example.com/p/2", source="google_reverse"),
        _candidate("Sandals", "https://c.example.com/p/3", source="google_lens", image_url="https://img/3"),
        _candidate("Sandals", "https://c.example.com/p/3/", source="gemini_web_search"),
        _candidate("Clogs", "https://d.example.com/p/4", source="enhanced_text_search", retailer="Target"),
    ]

    fused = fuse_candidates(candidates)

    assert fuse_candidates(fused) == fused
    assert fuse_candidates(list(candidates)) == fused
    urls = [normalize_url(c.url) for c in fused]
    titles = [normalize_title(c.title) for c in fused]
    assert len(set(urls)) == len(urls)
    assert len(set(titles)) == len(titles)


def test_higher_trust_never_ranks_lower_with_equal_attributes() -> None:
    lower = _candidate("Wool coat", "https://a.example.com/p/1", source="google_reverse")
    higher = _candidate("Camel coat", "https://b.example.com/p/2", source="google_lens")

    assert fuse_candidates([lower, higher]) == [higher, lower]


def test_invalid_candidates_are_discarded() -> None:
    blank = _candidate("  ", "https://a.example.com/p/1")
    no_url = _candidate("Scarf", "")

    assert fuse_candidates([blank, no_url]) == []


def test_fuser_respects_custom_cap_and_rejects_non_positive() -> None:
    candidates = [_candidate(f"Hat {i}", f"https://a.example.com/p/{i}") for i in range(5)]

    assert len(ResultFuser(max_results=3).fuse(candidates)) == 3
    with pytest.raises(ValueError):
        ResultFuser(max_results=0)


def test_malformed_urls_are_kept_instead_of_failing_fusion() -> None:
    assert normalize_url(" HTTP://[Bad/product/1 ") == "http://[bad/product/1"
    broken = _candidate("Boots", "http://[bad/product/1")
    duplicate = _candidate("Other boots", "HTTP://[bad/product/1")
    good = _candidate("Loafers", "https://shop.example.com/p/2")

    assert fuse_candidates([broken, duplicate, good]) == [broken, good]
