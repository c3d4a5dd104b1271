"""Retailer lookup tables and URL heuristics for product candidates."""

from __future__ import annotations

from typing import Dict, List, Optional
from urllib.parse import urlparse

PRICE_UNAVAILABLE = "Price not available"

RETAILERS_BY_DOMAIN: Dict[str, str] = {
    "amazon.co.uk": "Amazon UK",
    "amazon.com": "Amazon",
    "target.com": "Target",
    "walmart.com": "Walmart",
    "zara.com": "Zara",
    "hm.com": "H&M",
    "asos.com": "ASOS",
    "nordstrom.com": "Nordstrom",
    "macys.com": "Macy's",
    "gap.com": "Gap",
    "jcrew.com": "J.Crew",
    "anthropologie.com": "Anthropologie",
    "urbanoutfitters.com": "Urban Outfitters",
    "forever21.com": "Forever 21",
    "shein.com": "SHEIN",
    "zappos.com": "Zappos",
    "kohls.com": "Kohl's",
    "ebay.com": "eBay",
    "etsy.com": "Etsy",
}

SHOPPING_DOMAINS: List[str] = [
    "amazon.com",
    "amazon.co.uk",
    "ebay.com",
    "etsy.com",
    "target.com",
    "walmart.com",
    "zara.com",
    "hm.com",
    "asos.com",
    "nordstrom.com",
    "macys.com",
    "gap.com",
    "jcrew.com",
    "bananarepublic.com",
    "anthropologie.com",
    "urbanoutfitters.com",
    "forever21.com",
    "shein.com",
    "zappos.com",
    "saks.com",
    "bloomingdales.com",
    "kohls.com",
    "tjmaxx.com",
    "marshalls.com",
    "oldnavy.com",
    "uniqlo.com",
]

PREFERRED_RETAILERS = {"Amazon", "Target", "Nordstrom", "Zara", "H&M", "ASOS", "Macy's", "Walmart"}

PRODUCT_PATH_PATTERNS = (
    "/product/",
    "/products/",
    "/item/",
    "/p/",
    "/dp/",
    "product-",
    "item-",
    "/buy/",
    "/shop/",
)

IRRELEVANT_AUDIENCE_TERMS = ("men's", "boys", "kids", "children", "baby", "toddler")


def hostname(url: str) -> Optional[str]:
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def retailer_for_url(url: str, fallback: Optional[str] = None) -> str:
    """Resolve a display retailer name from a product URL.

    Known domains map through :data:`RETAILERS_BY_DOMAIN`; otherwise the
    supplied fallback (usually a backend-reported store name) or the bare
    hostname is used.
    """

    host = hostname(url)
    if host:
        for domain, name in RETAILERS_BY_DOMAIN.items():
            if _host_matches(host, domain):
                return name
    if fallback and fallback.strip():
        return fallback.strip()
    if host:
        return host[4:] if host.startswith("www.") else host
    return "Online Store"


def is_shopping_domain(url: str) -> bool:
    host = hostname(url)
    return bool(host) and any(_host_matches(host, domain) for domain in SHOPPING_DOMAINS)


def is_product_page(url: str) -> bool:
    """Return True when the URL path looks like a single product page."""

    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return False
    path = parsed.path.lower()
    if any(pattern in path for pattern in PRODUCT_PATH_PATTERNS):
        return True
    return "?product" in url or "&product" in url


def is_preferred_retailer(retailer: str) -> bool:
    return retailer in PREFERRED_RETAILERS


__all__ = [
    "IRRELEVANT_AUDIENCE_TERMS",
    "PREFERRED_RETAILERS",
    "PRICE_UNAVAILABLE",
    "PRODUCT_PATH_PATTERNS",
    "RETAILERS_BY_DOMAIN",
    "SHOPPING_DOMAINS",
    "hostname",
    "is_preferred_retailer",
    "is_product_page",
    "is_shopping_domain",
    "retailer_for_url",
]
