"""Deterministic fusion and ranking of product candidates from many backends."""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Tuple
from urllib.parse import urlsplit, urlunsplit

from models.product import ProductCandidate
from models.retailers import is_preferred_retailer

logger = logging.getLogger(__name__)

SOURCE_TRUST: Dict[str, int] = {
    "gemini_web_search": 25,
    "google_lens": 20,
    "google_reverse": 15,
    "google_image_search": 12,
    "bing_reverse": 10,
    "enhanced_text_search": 9,
    "gemini_web_search_fallback": 8,
}

WEIGHTS = {
    "preferred_retailer": 3,
    "price": 2,
    "image": 1,
}

DEFAULT_MAX_RESULTS = 8
_TITLE_KEY_LENGTH = 60
_NON_WORD = re.compile(r"[^\w\s]")


def source_trust(source: str) -> int:
    return SOURCE_TRUST.get(source, 0)


def normalize_url(url: str) -> str:
    """Lowercase scheme and host, drop fragments and trailing slashes."""

    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url.strip().lower()
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))


def normalize_title(title: str) -> str:
    text = _NON_WORD.sub("", title.lower())
    return " ".join(text.split())[:_TITLE_KEY_LENGTH]


def score_candidate(candidate: ProductCandidate) -> int:
    score = source_trust(candidate.source)
    if is_preferred_retailer(candidate.retailer):
        score += WEIGHTS["preferred_retailer"]
    if candidate.has_price:
        score += WEIGHTS["price"]
    if candidate.image_url:
        score += WEIGHTS["image"]
    return score


def _deduplicate(candidates: Iterable[ProductCandidate]) -> List[Tuple[int, ProductCandidate]]:
    kept: Dict[str, Tuple[int, ProductCandidate]] = {}
    url_owner: Dict[str, str] = {}

    for arrival, candidate in enumerate(candidates):
        if not candidate.is_valid:
            continue
        url_key = normalize_url(candidate.url)
        if url_key in url_owner:
            continue

        title_key = normalize_title(candidate.title)
        existing = kept.get(title_key)
        if existing is None:
            kept[title_key] = (arrival, candidate)
            url_owner[url_key] = title_key
            continue

        _, current = existing
        if source_trust(candidate.source) > source_trust(current.source):
            logger.debug(
                "Replacing candidate with higher-trust source",
                extra={"replaced_source": current.source, "kept_source": candidate.source},
            )
            del url_owner[normalize_url(current.url)]
            del kept[title_key]
            kept[title_key] = (arrival, candidate)
            url_owner[url_key] = title_key

    return sorted(kept.values(), key=lambda entry: entry[0])


class ResultFuser:
    """Merges per-backend candidates into one ranked, capped list."""

    def __init__(self, max_results: int = DEFAULT_MAX_RESULTS) -> None:
        if max_results <= 0:
            raise ValueError("max_results must be positive")
        self.max_results = max_results

    def fuse(self, candidates: Iterable[ProductCandidate]) -> List[ProductCandidate]:
        unique = _deduplicate(candidates)
        ranked = sorted(unique, key=lambda entry: (-score_candidate(entry[1]), entry[0]))
        return [candidate for _, candidate in ranked[: self.max_results]]


def fuse_candidates(
    candidates: Iterable[ProductCandidate], max_results: int = DEFAULT_MAX_RESULTS
) -> List[ProductCandidate]:
    return ResultFuser(max_results=max_results).fuse(candidates)


__all__ = [
    "DEFAULT_MAX_RESULTS",
    "ResultFuser",
    "SOURCE_TRUST",
    "WEIGHTS",
    "fuse_candidates",
    "normalize_title",
    "normalize_url",
    "score_candidate",
    "source_trust",
]
