"""Normalisation and filtering of raw search backend entries into candidates."""

from __future__ import annotations

import re
from typing import Optional

from models.product import ProductCandidate
from models.retailers import (
    IRRELEVANT_AUDIENCE_TERMS,
    PRICE_UNAVAILABLE,
    is_product_page,
    is_shopping_domain,
    retailer_for_url,
)

# URL policies a backend can apply to its results.
ALLOW_LIST = "allow_list"
PRODUCT_PAGE = "product_page"
ALLOW_LIST_AND_PRODUCT_PAGE = "allow_list_and_product_page"

_TITLE_RETAILER_SUFFIX = re.compile(
    r"\s*-\s*(Amazon\.com|Target|Walmart|Zara|H&M|ASOS|Nordstrom|Macy's|eBay|Etsy).*$", re.IGNORECASE
)
_TITLE_VERB_PREFIX = re.compile(r"^\s*(Buy|Shop|Find)\s+", re.IGNORECASE)
_TITLE_SHIPPING_SUFFIX = re.compile(r"\s*\|\s*(Free Shipping|Free|Fast Delivery).*$", re.IGNORECASE)
_TITLE_REVIEW_COUNT = re.compile(r"\s*\(\d+\)\s*$")
_PRICE_IN_TEXT = re.compile(r"\$[\d,]+(?:\.\d+)?")
_PRICE_DIGITS = re.compile(r"[\d,]+(?:\.\d+)?")
_MAX_TITLE_LENGTH = 100


def clean_title(title: str) -> str:
    cleaned = _TITLE_RETAILER_SUFFIX.sub("", title or "")
    cleaned = _TITLE_VERB_PREFIX.sub("", cleaned)
    cleaned = _TITLE_SHIPPING_SUFFIX.sub("", cleaned)
    cleaned = _TITLE_REVIEW_COUNT.sub("", cleaned)
    return cleaned[:_MAX_TITLE_LENGTH].strip()


def normalize_price(raw: object) -> str:
    """Turn a backend price value into a ``$``-prefixed string or the sentinel."""

    if raw is None or raw == "":
        return PRICE_UNAVAILABLE
    if isinstance(raw, (int, float)):
        return f"${raw:,.2f}"
    text = str(raw).strip()
    if text == PRICE_UNAVAILABLE:
        return text
    match = _PRICE_IN_TEXT.search(text)
    if match:
        return match.group(0)
    digits = _PRICE_DIGITS.search(text)
    if digits:
        return f"${digits.group(0)}"
    return text or PRICE_UNAVAILABLE


def price_from_snippet(snippet: Optional[str]) -> str:
    match = _PRICE_IN_TEXT.search(snippet or "")
    return match.group(0) if match else PRICE_UNAVAILABLE


def is_relevant_audience(title: str) -> bool:
    """Reject titles aimed at men or children unless they also mention women."""

    lowered = title.lower()
    if "women" in lowered:
        return True
    return not any(term in lowered for term in IRRELEVANT_AUDIENCE_TERMS)


def passes_url_policy(url: str, policy: Optional[str]) -> bool:
    if policy is None:
        return True
    if policy == ALLOW_LIST:
        return is_shopping_domain(url)
    if policy == PRODUCT_PAGE:
        return is_product_page(url)
    if policy == ALLOW_LIST_AND_PRODUCT_PAGE:
        return is_shopping_domain(url) and is_product_page(url)
    raise ValueError(f"Unknown URL policy: {policy}")


def build_candidate(
    *,
    title: Optional[str],
    url: Optional[str],
    source: str,
    url_policy: Optional[str],
    price: object = None,
    image_url: Optional[str] = None,
    retailer: Optional[str] = None,
) -> Optional[ProductCandidate]:
    """Build a candidate from raw fields or return ``None`` when it must be discarded."""

    if not title or not url:
        return None
    url = str(url).strip()
    if not url.lower().startswith(("http://", "https://")):
        return None
    if not passes_url_policy(url, url_policy):
        return None
    cleaned_title = clean_title(str(title))
    if not cleaned_title or not is_relevant_audience(cleaned_title):
        return None
    return ProductCandidate(
        title=cleaned_title,
        url=url,
        retailer=retailer_for_url(url, fallback=retailer),
        source=source,
        price=normalize_price(price),
        image_url=image_url or None,
    )


__all__ = [
    "ALLOW_LIST",
    "ALLOW_LIST_AND_PRODUCT_PAGE",
    "PRODUCT_PAGE",
    "build_candidate",
    "clean_title",
    "is_relevant_audience",
    "normalize_price",
    "passes_url_policy",
    "price_from_snippet",
]
