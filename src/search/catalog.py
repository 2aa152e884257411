"""
Catalog listing helpers: price range buckets, sorting, brand pages and
per-category / per-brand counts for the browse pages' filter sidebars.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from search.classifiers import DEFAULT_CLASSIFIERS, ROOR_GLASS_RULES, ClassifierConfig, RuleTable


@dataclass(frozen=True)
class PriceRange:
    value: str
    label: str
    min: float
    max: float


PRICE_RANGES = (
    PriceRange("all", "All Prices", 0, 10000),
    PriceRange("0-10", "Under $10", 0, 10),
    PriceRange("10-25", "$10 - $25", 10, 25),
    PriceRange("25-50", "$25 - $50", 25, 50),
    PriceRange("50-100", "$50 - $100", 50, 100),
    PriceRange("100-200", "$100 - $200", 100, 200),
    PriceRange("200+", "$200+", 200, 10000),
)


def _field(product: Any, key: str) -> Any:
    if isinstance(product, dict):
        return product.get(key)
    return getattr(product, key, None)


def _price(product: Any) -> float:
    try:
        return float(_field(product, "price") or 0)
    except (TypeError, ValueError):
        return 0.0


def get_price_range(value: str) -> Optional[PriceRange]:
    for price_range in PRICE_RANGES:
        if price_range.value == value:
            return price_range
    return None


def filter_by_price_range(products: Sequence[Any], value: str) -> List[Any]:
    """Keep products inside a named price bucket (bounds inclusive)."""
    price_range = get_price_range(value)
    if value == "all" or price_range is None:
        return list(products)
    return [p for p in products if price_range.min <= _price(p) <= price_range.max]


def sort_products(products: Sequence[Any], sort_by: str) -> List[Any]:
    """
    Sort a listing page.

    featured: featured items first; price-low / price-high: by price;
    name: case-insensitive by name. Other values keep the input order.
    """
    items = list(products)
    if sort_by == "featured":
        return sorted(items, key=lambda p: not _field(p, "featured"))
    if sort_by == "price-low":
        return sorted(items, key=_price)
    if sort_by == "price-high":
        return sorted(items, key=_price, reverse=True)
    if sort_by == "name":
        return sorted(items, key=lambda p: (_field(p, "name") or "").lower())
    return items


def count_by_rule(products: Sequence[Any], table: RuleTable) -> Dict[str, int]:
    """Count products per value the table assigns to their names."""
    counts: Dict[str, int] = {}
    for product in products:
        value = table.classify(_field(product, "name"))
        counts[value] = counts.get(value, 0) + 1
    return counts


def product_stats(
    products: Sequence[Any],
    classifiers: ClassifierConfig = DEFAULT_CLASSIFIERS,
) -> Dict[str, Dict[str, int]]:
    """Count products per detected category and per detected brand."""
    return {
        "categoryStats": count_by_rule(products, classifiers.category),
        "brandStats": count_by_rule(products, classifiers.brand),
    }


def matches_text(product: Any, term: str) -> bool:
    """Case-insensitive substring match on name and descriptions."""
    term = term.lower()
    return any(
        term in (_field(product, key) or "").lower()
        for key in ("name", "description", "short_description")
    )


# =============================================================================
# Brand pages
# =============================================================================

@dataclass(frozen=True)
class BrandPage:
    """
    A brand landing page: products whose brand name, name or SKU contains
    `keyword`, grouped by the page's own rule table.
    """
    slug: str
    label: str
    keyword: str
    table: RuleTable
    default_sort: str = "price-high"


BRAND_PAGES = {
    "roor": BrandPage(slug="roor", label="ROOR", keyword="ROOR", table=ROOR_GLASS_RULES),
}


def get_brand_page(slug: str) -> Optional[BrandPage]:
    return BRAND_PAGES.get(slug.lower())
