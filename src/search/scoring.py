"""
Relevance scoring for catalog search.

Every rule is tested independently and its points added when it holds:
exact > prefix > whole-word > substring matches across the text fields,
per-element tag/material matches, small boosts for featured, in-stock and
imaged rows, and a penalty for very long names. The total is floored at 0.

Two weight sets exist: SEARCH_WEIGHTS for /api/search and
SUGGESTION_WEIGHTS for autocomplete, which scores a slightly different
rule set (no specs/attributes, extended description instead).
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from search.models import ResultType


@dataclass(frozen=True)
class ScoringWeights:
    """
    Point values of the relevance rules. A weight of 0 disables a rule.

    brand_boost applies to product results only unless
    brand_boost_all_types is set.
    """
    # Exact matches
    name_exact: int = 1000
    brand_exact: int = 900
    sku_exact: int = 800
    manufacturer_exact: int = 700

    # Prefix matches
    name_prefix: int = 500
    brand_prefix: int = 450
    sku_prefix: int = 400
    manufacturer_prefix: int = 350

    # Whole-word matches
    name_word: int = 300
    brand_word: int = 250
    description_word: int = 200
    short_description_word: int = 180

    # Substring matches
    name_contains: int = 150
    brand_contains: int = 120
    sku_contains: int = 100
    description_contains: int = 80
    short_description_contains: int = 70
    manufacturer_contains: int = 60
    category_contains: int = 50
    dtc_description_contains: int = 0

    # Per-element array matches
    tag_exact: int = 200
    tag_contains: int = 100
    material_exact: int = 150
    material_contains: int = 75

    # Serialized JSON columns
    specs_contains: int = 40
    attributes_contains: int = 40

    # Boost factors
    featured: int = 100
    in_stock: int = 50
    has_image: int = 25

    brand_boost: int = 150
    brand_boost_min_term_length: int = 3
    brand_boost_all_types: bool = False

    long_name_penalty: int = 20
    long_name_threshold: int = 100


SEARCH_WEIGHTS = ScoringWeights()

SUGGESTION_WEIGHTS = ScoringWeights(
    short_description_word=0,
    dtc_description_contains=40,
    specs_contains=0,
    attributes_contains=0,
    brand_boost_all_types=True,
    long_name_penalty=0,
)


def _text(item: Dict[str, Any], key: str) -> str:
    return (item.get(key) or "").lower()


def _lowered_list(item: Dict[str, Any], key: str) -> List[str]:
    return [v.lower() for v in (item.get(key) or []) if isinstance(v, str)]


def _serialized(value: Any) -> str:
    """Compact JSON text of a specs/attributes column ({} when missing)."""
    return json.dumps(value or {}, separators=(",", ":"), ensure_ascii=False, default=str).lower()


def _word_pattern(term: str) -> "re.Pattern[str]":
    return re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)


def calculate_relevance_score(
    item: Dict[str, Any],
    search_term: str,
    result_type: ResultType = ResultType.PRODUCT,
    weights: Optional[ScoringWeights] = None,
) -> int:
    """
    Score one candidate row against a search term.

    Args:
        item: Raw product/brand/category row.
        search_term: Query text (lower-cased and trimmed here again).
        result_type: Kind of row being scored.
        weights: Rule point values (defaults to SEARCH_WEIGHTS).

    Returns:
        Non-negative integer score.
    """
    w = weights or SEARCH_WEIGHTS
    term = search_term.lower().strip()
    score = 0

    name = _text(item, "name")
    brand = _text(item, "brand_name")
    sku = _text(item, "sku")
    description = _text(item, "description")
    short_description = _text(item, "short_description")
    manufacturer = _text(item, "manufacturer")
    category = _text(item, "zoho_category_name")
    dtc_description = _text(item, "dtc_description")

    # Exact
    if name == term:
        score += w.name_exact
    if brand == term:
        score += w.brand_exact
    if sku == term:
        score += w.sku_exact
    if manufacturer == term:
        score += w.manufacturer_exact

    # Prefix
    if name.startswith(term):
        score += w.name_prefix
    if brand.startswith(term):
        score += w.brand_prefix
    if sku.startswith(term):
        score += w.sku_prefix
    if manufacturer.startswith(term):
        score += w.manufacturer_prefix

    # Whole word
    word = _word_pattern(term)
    if word.search(name):
        score += w.name_word
    if word.search(brand):
        score += w.brand_word
    if word.search(description):
        score += w.description_word
    if word.search(short_description):
        score += w.short_description_word

    # Substring
    if term in name:
        score += w.name_contains
    if term in brand:
        score += w.brand_contains
    if term in sku:
        score += w.sku_contains
    if term in description:
        score += w.description_contains
    if term in short_description:
        score += w.short_description_contains
    if term in manufacturer:
        score += w.manufacturer_contains
    if term in category:
        score += w.category_contains
    if term in dtc_description:
        score += w.dtc_description_contains

    for tag in _lowered_list(item, "tags"):
        if tag == term:
            score += w.tag_exact
        if term in tag:
            score += w.tag_contains

    for material in _lowered_list(item, "materials"):
        if material == term:
            score += w.material_exact
        if term in material:
            score += w.material_contains

    if w.specs_contains and term in _serialized(item.get("specs")):
        score += w.specs_contains
    if w.attributes_contains and term in _serialized(item.get("attributes")):
        score += w.attributes_contains

    # Boosts
    if item.get("featured"):
        score += w.featured
    if (item.get("stock_quantity") or 0) > 0:
        score += w.in_stock
    if item.get("image_url"):
        score += w.has_image

    brand_boost_applies = w.brand_boost_all_types or result_type == ResultType.PRODUCT
    if brand_boost_applies and len(term) >= w.brand_boost_min_term_length and term in brand:
        score += w.brand_boost

    if len(name) > w.long_name_threshold:
        score -= w.long_name_penalty

    return max(0, score)
