"""
Candidate fetching from Supabase.

One products read per search (substring match across the text columns,
restricted to active, non-nicotine, non-tobacco rows) plus optional brand
and category reads by name.

Upstream PostgREST errors and transport failures (connection errors,
timeouts) are logged and turned into an empty branch, so a broken products
query never hides brand/category matches (and vice versa).
"""

from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from core.logging import get_logger
from search.filters import apply_featured, apply_stock_status
from search.models import SearchFilters, StockStatus

logger = get_logger(__name__)

# Failures that empty a fetch branch instead of failing the request
FETCH_ERRORS = (APIError, httpx.HTTPError)


class CandidateFetchError(Exception):
    """Raised by strict fetches when a candidate query fails upstream."""
    pass


PRODUCT_COLUMNS = (
    "id, name, brand_name, price, image_url, description, short_description, "
    "sku, featured, stock_quantity, tags, materials, zoho_category_name, "
    "manufacturer, specs, attributes, dtc_description, vip_price"
)

SUGGESTION_COLUMNS = (
    "id, name, brand_name, price, image_url, featured, sku, description, "
    "short_description, manufacturer, zoho_category_name, tags, materials, "
    "stock_quantity, dtc_description"
)

BRAND_COLUMNS = "id, name, description, logo_url, slug"
CATEGORY_COLUMNS = "id, name, description, image_url"

# Columns matched against the query (ORed together)
SEARCHABLE_COLUMNS = (
    "name",
    "brand_name",
    "sku",
    "description",
    "short_description",
    "manufacturer",
    "zoho_category_name",
    "dtc_description",
)

# Columns a brand page matches its brand keyword against
BRAND_LISTING_COLUMNS = ("brand_name", "name", "sku")


def _quote(value: str) -> str:
    """Double-quote a value for a PostgREST logic expression."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_search_expression(term: str, columns=SEARCHABLE_COLUMNS) -> str:
    """`col.ilike."%term%"` for every searchable column, comma-joined for or_()."""
    pattern = _quote(f"%{term}%")
    return ",".join(f"{column}.ilike.{pattern}" for column in columns)


class CandidateFetcher:
    """Reads search candidates from the products/brands/categories tables."""

    def __init__(self, supabase: Optional[Client] = None):
        if supabase is None:
            from config.database import get_supabase_client
            supabase = get_supabase_client()
        self._supabase = supabase

    def _active_products(self, columns: str, expression: str):
        return (
            self._supabase.table("products")
            .select(columns)
            .or_(expression)
            .eq("is_active", True)
            .eq("nicotine_product", False)
            .eq("tobacco_product", False)
        )

    def fetch_products(
        self,
        term: str,
        limit: int,
        filters: Optional[SearchFilters] = None,
        columns: str = PRODUCT_COLUMNS,
        strict: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Fetch product rows matching `term` in any searchable column.

        Args:
            term: Normalized query.
            limit: Max rows to read.
            filters: Stock status / featured are applied in the query.
            columns: Projection to select.
            strict: Raise CandidateFetchError instead of returning [] on error.

        Returns:
            Product rows (empty on an upstream error).
        """
        filters = filters or SearchFilters()

        query = self._active_products(columns, build_search_expression(term))
        if filters.stock_status != StockStatus.ALL:
            query = apply_stock_status(query, filters.stock_status)
        query = apply_featured(query, filters.featured)

        try:
            response = query.limit(limit).execute()
        except FETCH_ERRORS as e:
            logger.error(
                "Error fetching products",
                query=term,
                error=str(e),
                error_type=type(e).__name__,
            )
            if strict:
                raise CandidateFetchError(f"Failed to fetch products: {e}") from e
            return []
        return response.data or []

    def fetch_brand_products(self, keyword: str, limit: int) -> List[Dict[str, Any]]:
        """
        Fetch a brand page's products: `keyword` in brand name, name or SKU,
        most expensive first.
        """
        expression = build_search_expression(keyword, BRAND_LISTING_COLUMNS)
        try:
            response = (
                self._active_products(PRODUCT_COLUMNS, expression)
                .order("price", desc=True)
                .limit(limit)
                .execute()
            )
        except FETCH_ERRORS as e:
            logger.error("Error fetching brand products", brand=keyword, error=str(e))
            return []
        return response.data or []

    def fetch_brands(self, term: str, limit: int = 10, columns: str = BRAND_COLUMNS) -> List[Dict[str, Any]]:
        """Fetch brand rows whose name contains `term`."""
        return self._fetch_by_name("brands", term, limit, columns)

    def fetch_categories(self, term: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Fetch category rows whose name contains `term`."""
        return self._fetch_by_name("categories", term, limit, CATEGORY_COLUMNS)

    def _fetch_by_name(self, table: str, term: str, limit: int, columns: str) -> List[Dict[str, Any]]:
        try:
            response = (
                self._supabase.table(table)
                .select(columns)
                .ilike("name", f"%{term}%")
                .limit(limit)
                .execute()
            )
        except FETCH_ERRORS as e:
            logger.warning(
                f"Error fetching {table}",
                query=term,
                error=str(e),
                error_type=type(e).__name__,
            )
            return []
        return response.data or []
