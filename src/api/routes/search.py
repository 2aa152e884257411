"""
Search API Routes.

Provides catalog search, autocomplete suggestions, filter options, brand
pages and search analytics.

NOTE: Routes use `def` (not `async def`) because the Supabase client is
synchronous. FastAPI runs sync route handlers in a thread pool, avoiding
event-loop blocking.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from core.logging import get_logger
from search.analytics import (
    AnalyticsWriteError,
    SearchAnalytics,
    client_ip_from_headers,
    get_search_analytics,
    hash_client_ip,
)
from search.candidates import CandidateFetchError
from search.catalog import PRICE_RANGES
from search.models import (
    BrandListingResponse,
    PopularSearchesResponse,
    SearchAnalyticsEvent,
    SearchErrorResponse,
    SearchFilters,
    SearchRequest,
    SearchResponse,
    StockStatus,
    SuggestionResponse,
)
from search.query import MIN_QUERY_LENGTH, normalize_query, parse_csv_list
from search.service import ProductSearchService, get_search_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/search", tags=["Search"])


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _optional_float(value: Optional[str]) -> Optional[float]:
    """Lenient number parsing: blank or malformed values mean no constraint."""
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _stock_status(value: Optional[str]) -> StockStatus:
    try:
        return StockStatus(value) if value else StockStatus.ALL
    except ValueError:
        return StockStatus.ALL


# =============================================================================
# Catalog Search
# =============================================================================

@router.get(
    "",
    response_model=SearchResponse,
    responses={500: {"model": SearchErrorResponse}},
    summary="Search products, brands and categories",
)
def search_catalog(
    q: str = Query("", description="Search query (at least 2 characters)"),
    limit: Optional[int] = Query(None, ge=1, description="Results per page (SEARCH_DEFAULT_LIMIT when omitted)"),
    offset: int = Query(0, ge=0, description="Results to skip"),
    include_categories: bool = Query(False, alias="includeCategories"),
    include_brands: bool = Query(False, alias="includeBrands"),
    category: Optional[str] = Query(None, description="Detected category filter"),
    brand: Optional[str] = Query(None, description="Detected brand filter"),
    price_min: Optional[str] = Query(None, alias="priceMin"),
    price_max: Optional[str] = Query(None, alias="priceMax"),
    stock_status: Optional[str] = Query(
        None,
        alias="stockStatus",
        description="all, in-stock, out-of-stock, low-stock, high-stock",
    ),
    featured: bool = Query(False),
    materials: Optional[str] = Query(None, description="Comma-separated materials"),
    tags: Optional[str] = Query(None, description="Comma-separated tags"),
    service: ProductSearchService = Depends(get_search_service),
):
    """
    Rank catalog rows matching `q`.

    - Products are matched on name, brand, SKU, descriptions, manufacturer
      and category, then filtered and scored
    - `includeBrands` / `includeCategories` merge brand and category matches
    - Queries shorter than 2 characters return an empty result set
    """
    settings = service.settings
    if limit is None:
        limit = settings.search_default_limit
    elif limit > settings.search_max_limit:
        raise HTTPException(
            status_code=422,
            detail=f"limit must be at most {settings.search_max_limit}",
        )

    search_request = SearchRequest(
        q=q,
        limit=limit,
        offset=offset,
        include_categories=include_categories,
        include_brands=include_brands,
        filters=SearchFilters(
            category=category or None,
            brand=brand or None,
            price_min=_optional_float(price_min),
            price_max=_optional_float(price_max),
            stock_status=_stock_status(stock_status),
            featured=featured,
            materials=parse_csv_list(materials),
            tags=parse_csv_list(tags),
        ),
    )

    try:
        return service.search(search_request)
    except Exception as e:
        logger.error("Search API error", query=q, error=str(e), error_type=type(e).__name__)
        return _error(500, "Internal server error", results=[], total=0)


# =============================================================================
# Suggestions
# =============================================================================

@router.get(
    "/suggestions",
    response_model=SuggestionResponse,
    summary="Autocomplete suggestions (products and brands)",
)
def search_suggestions(
    request: Request,
    q: str = Query("", description="Partial search text"),
    limit: Optional[int] = Query(None, ge=1, le=20, description="Max suggestions"),
    service: ProductSearchService = Depends(get_search_service),
):
    """Suggest products and brands while the shopper types."""
    try:
        return service.suggest(
            q,
            limit=limit,
            user_agent=request.headers.get("user-agent"),
            client_ip=client_ip_from_headers(request.headers),
        )
    except CandidateFetchError as e:
        logger.error("Error fetching product suggestions", query=q, error=str(e))
        return _error(500, "Failed to fetch suggestions")
    except Exception as e:
        logger.error("Search suggestions API error", query=q, error=str(e))
        return _error(500, "Internal server error")


# =============================================================================
# Filter Options
# =============================================================================

@router.get(
    "/filter-options",
    summary="Category, brand and price filter options",
)
def filter_options(
    service: ProductSearchService = Depends(get_search_service),
) -> Dict[str, Any]:
    """Options for the storefront's filter dropdowns."""
    classifiers = service.classifiers
    return {
        "categories": classifiers.category.options(),
        "brands": classifiers.brand.options(),
        "priceRanges": [
            {"value": r.value, "label": r.label, "min": r.min, "max": r.max}
            for r in PRICE_RANGES
        ],
    }


# =============================================================================
# Brand Pages
# =============================================================================

@router.get(
    "/brands/{slug}/products",
    response_model=BrandListingResponse,
    responses={404: {"description": "Unknown brand page"}},
    summary="Products for a brand page",
)
def brand_products(
    slug: str,
    category: str = Query("all", description="Brand page category value"),
    price_range: str = Query("all", alias="priceRange", description="0-10, 10-25, 25-50, 50-100, 100-200, 200+"),
    sort: Optional[str] = Query(None, description="name, price-low, price-high, featured (default price-high)"),
    q: Optional[str] = Query(None, description="Text match on name and descriptions"),
    service: ProductSearchService = Depends(get_search_service),
):
    """
    A brand's catalog with its own category table, price ranges and sort.

    `categoryCounts` covers every product of the brand, whatever the
    current filters.
    """
    try:
        listing = service.brand_listing(
            slug,
            category=category,
            price_range=price_range,
            sort_by=sort,
            q=q,
        )
    except Exception as e:
        logger.error("Brand listing API error", brand=slug, error=str(e), error_type=type(e).__name__)
        return _error(500, "Internal server error")

    if listing is None:
        return _error(404, "Brand not found")
    return listing


# =============================================================================
# Analytics Events
# =============================================================================

@router.post(
    "/analytics",
    summary="Record a search suggestion event",
)
def record_search_event(
    event: SearchAnalyticsEvent,
    request: Request,
    analytics: SearchAnalytics = Depends(get_search_analytics),
):
    """Record a suggestion click. The client IP is stored hashed."""
    if len(normalize_query(event.query)) < MIN_QUERY_LENGTH:
        return _error(400, "Query is required")

    hashed_ip = hash_client_ip(client_ip_from_headers(request.headers))
    try:
        analytics.record_suggestion_event(
            event.query,
            result_count=event.result_count,
            selected_result=event.selected_result,
            user_agent=event.user_agent,
            hashed_ip=hashed_ip,
        )
    except AnalyticsWriteError as e:
        logger.error("Error recording search analytics", error=str(e))
        return _error(500, "Failed to record analytics")

    return {"success": True}


@router.get(
    "/analytics",
    response_model=PopularSearchesResponse,
    summary="Popular searches",
)
def popular_searches(
    limit: int = Query(10, ge=1, le=100),
    days: int = Query(7, ge=1, le=365),
    analytics: SearchAnalytics = Depends(get_search_analytics),
):
    """Most frequent queries over the last `days` days."""
    try:
        rows = analytics.popular_searches(days=days, limit=limit)
    except Exception as e:
        logger.error("Error fetching search analytics", error=str(e))
        return _error(500, "Failed to fetch analytics")

    return PopularSearchesResponse(
        popular_searches=rows,
        period=f"{days} days",
        limit=limit,
    )
