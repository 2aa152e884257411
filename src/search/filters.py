"""
Search filters.

Stock status and the featured flag are pushed down into the Supabase query;
detected category/brand, price range, materials and tags are applied to the
fetched candidates in Python.
"""

from typing import Any, Dict, Iterable, List, Optional

from search.classifiers import DEFAULT_CLASSIFIERS, ClassifierConfig, filter_by_rule
from search.models import SearchFilters, StockStatus

LOW_STOCK_MAX = 5
HIGH_STOCK_MIN = 20


# =============================================================================
# Stock buckets
# =============================================================================

def stock_status_matches(quantity: Optional[int], status: StockStatus) -> bool:
    """In-memory form of the stock buckets (missing quantity counts as 0)."""
    qty = quantity or 0
    if status == StockStatus.IN_STOCK:
        return qty > 0
    if status == StockStatus.OUT_OF_STOCK:
        return qty == 0
    if status == StockStatus.LOW_STOCK:
        return 0 < qty <= LOW_STOCK_MAX
    if status == StockStatus.HIGH_STOCK:
        return qty >= HIGH_STOCK_MIN
    return True


def apply_stock_status(query, status: StockStatus):
    """Add the stock bucket predicate to a postgrest query builder."""
    if status == StockStatus.IN_STOCK:
        return query.gt("stock_quantity", 0)
    if status == StockStatus.OUT_OF_STOCK:
        return query.eq("stock_quantity", 0)
    if status == StockStatus.LOW_STOCK:
        return query.gt("stock_quantity", 0).lte("stock_quantity", LOW_STOCK_MAX)
    if status == StockStatus.HIGH_STOCK:
        return query.gte("stock_quantity", HIGH_STOCK_MIN)
    return query


def apply_featured(query, featured: bool):
    if featured:
        return query.eq("featured", True)
    return query


# =============================================================================
# Candidate filters
# =============================================================================

def _any_contains(values: Optional[Iterable[str]], wanted: List[str]) -> bool:
    """True if any value case-insensitively contains any wanted substring."""
    lowered = [str(v).lower() for v in (values or []) if v]
    return any(w.lower() in v for w in wanted for v in lowered)


def _price_in_range(price: Any, filters: SearchFilters) -> bool:
    value = float(price) if price is not None else 0.0
    if filters.price_min is not None and value < filters.price_min:
        return False
    if filters.price_max is not None and value > filters.price_max:
        return False
    return True


def apply_filters(
    products: List[Dict[str, Any]],
    filters: SearchFilters,
    classifiers: ClassifierConfig = DEFAULT_CLASSIFIERS,
) -> List[Dict[str, Any]]:
    """
    Apply the client-side filters to fetched product rows.

    Order: detected category, detected brand, then price range, materials
    and tags. Input order is preserved.

    Args:
        products: Raw product rows from Supabase.
        filters: Requested constraints.
        classifiers: Rule tables for the detected category/brand filters.

    Returns:
        Rows that satisfy every constraint.
    """
    filtered = filter_by_rule(products, classifiers.category, filters.category)
    filtered = filter_by_rule(filtered, classifiers.brand, filters.brand)

    result = []
    for product in filtered:
        if not _price_in_range(product.get("price"), filters):
            continue
        if filters.materials and not _any_contains(product.get("materials"), filters.materials):
            continue
        if filters.tags and not _any_contains(product.get("tags"), filters.tags):
            continue
        result.append(product)
    return result
