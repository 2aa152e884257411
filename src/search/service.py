"""
Catalog Search Service.

Pipeline:
1. Normalize the query (short queries return a defined empty response)
2. Fetch product candidates from Supabase (limit x multiplier rows)
3. Apply detected category/brand, price, material and tag filters
4. Score candidates; drop products that score 0
5. Optionally merge brand and category matches
6. Rank by score and paginate
7. Log analytics (fire-and-forget)

Also serves autocomplete suggestions with the suggestion weight set.
"""

import threading
import time
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from config.settings import Settings, get_settings
from core.logging import get_logger
from search.analytics import (
    AnalyticsDispatcher,
    SearchAnalytics,
    get_analytics_dispatcher,
    get_search_analytics,
    hash_client_ip,
)
from search.candidates import SUGGESTION_COLUMNS, CandidateFetcher
from search.catalog import (
    count_by_rule,
    filter_by_price_range,
    get_brand_page,
    matches_text,
    product_stats,
    sort_products,
)
from search.classifiers import ClassifierConfig, filter_by_rule, load_classifier_config
from search.filters import apply_filters
from search.models import (
    BrandListingResponse,
    Pagination,
    Product,
    ResultType,
    SearchRequest,
    SearchResponse,
    SearchResult,
    Suggestion,
    SuggestionResponse,
)
from search.query import SHORT_QUERY_MESSAGE, is_searchable, normalize_query
from search.ranking import paginate, rank_results
from search.scoring import SEARCH_WEIGHTS, SUGGESTION_WEIGHTS, calculate_relevance_score

logger = get_logger(__name__)

# Brand suggestions scoring at least this much (and containing the term)
# are listed ahead of products.
BRAND_SUGGESTION_MIN_SCORE = 60
MAX_LEADING_BRAND_SUGGESTIONS = 2


def _empty_fields(**overrides: Any) -> Dict[str, Any]:
    """Product-shaped defaults for brand/category results."""
    fields: Dict[str, Any] = {
        "brand_name": "",
        "price": 0,
        "sku": "",
        "featured": False,
        "stock_quantity": 0,
        "tags": [],
        "materials": [],
        "zoho_category_name": "",
        "manufacturer": "",
    }
    fields.update(overrides)
    return fields


def brand_to_result(brand: Dict[str, Any], score: int) -> SearchResult:
    return SearchResult.model_validate(_empty_fields(
        id=brand["id"],
        name=brand.get("name") or "",
        brand_name=brand.get("name") or "",
        image_url=brand.get("logo_url"),
        description=brand.get("description"),
        short_description=brand.get("description"),
        relevanceScore=score,
        resultType=ResultType.BRAND,
    ))


def category_to_result(category: Dict[str, Any], score: int) -> SearchResult:
    return SearchResult.model_validate(_empty_fields(
        id=category["id"],
        name=category.get("name") or "",
        image_url=category.get("image_url"),
        description=category.get("description"),
        short_description=category.get("description"),
        zoho_category_name=category.get("name") or "",
        relevanceScore=score,
        resultType=ResultType.CATEGORY,
    ))


class ProductSearchService:
    """
    Catalog search over the Supabase products/brands/categories tables.
    """

    def __init__(
        self,
        fetcher: Optional[CandidateFetcher] = None,
        analytics: Optional[SearchAnalytics] = None,
        dispatcher: Optional[AnalyticsDispatcher] = None,
        classifiers: Optional[ClassifierConfig] = None,
        settings: Optional[Settings] = None,
    ):
        self._fetcher = fetcher
        self._analytics = analytics
        self._dispatcher = dispatcher
        self._settings = settings or get_settings()
        self._classifiers = classifiers or load_classifier_config(
            self._settings.classifier_rules_path
        )

    @property
    def fetcher(self) -> CandidateFetcher:
        if self._fetcher is None:
            self._fetcher = CandidateFetcher()
        return self._fetcher

    @property
    def analytics(self) -> SearchAnalytics:
        if self._analytics is None:
            self._analytics = get_search_analytics()
        return self._analytics

    @property
    def dispatcher(self) -> AnalyticsDispatcher:
        # Resolved per call: shutdown_analytics_dispatcher() drops the shared one
        if self._dispatcher is not None:
            return self._dispatcher
        return get_analytics_dispatcher()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def classifiers(self) -> ClassifierConfig:
        return self._classifiers

    # =========================================================================
    # Main Search
    # =========================================================================

    def search(self, request: SearchRequest) -> SearchResponse:
        """
        Execute a catalog search.

        Args:
            request: Query, pagination, merge flags and filters.

        Returns:
            SearchResponse with one page of ranked results.
        """
        t_start = time.time()
        term = normalize_query(request.q)
        filters = request.filters
        filter_summary = filters.summary()

        if not is_searchable(term):
            return SearchResponse(
                results=[],
                total=0,
                query=term,
                filters=filter_summary,
                message=SHORT_QUERY_MESSAGE,
            )

        results: List[SearchResult] = []

        # Step 1-3: candidates + client-side filters
        candidate_limit = request.limit * self._settings.search_candidate_multiplier
        products = self.fetcher.fetch_products(term, candidate_limit, filters)
        filtered = apply_filters(products, filters, self.classifiers)

        # Step 4: score products, zero scores never reach the results
        for row in filtered:
            score = calculate_relevance_score(row, term, ResultType.PRODUCT, SEARCH_WEIGHTS)
            if score <= 0:
                continue
            try:
                results.append(SearchResult.model_validate({
                    **row,
                    "relevanceScore": score,
                    "resultType": ResultType.PRODUCT,
                }))
            except ValidationError as e:
                logger.warning("Skipping malformed product row", product_id=row.get("id"), error=str(e))
        product_count = len(results)

        # Step 5: brands / categories, scored on the fetched row
        if request.include_brands:
            for row in self.fetcher.fetch_brands(term, self._settings.brand_result_limit):
                score = calculate_relevance_score(row, term, ResultType.BRAND, SEARCH_WEIGHTS)
                results.append(brand_to_result(row, score))

        if request.include_categories:
            for row in self.fetcher.fetch_categories(term, self._settings.category_result_limit):
                score = calculate_relevance_score(row, term, ResultType.CATEGORY, SEARCH_WEIGHTS)
                results.append(category_to_result(row, score))

        # Step 6: rank + paginate
        ranked = rank_results(results)
        page, total, has_more = paginate(ranked, request.limit, request.offset)

        logger.info(
            "Search completed",
            query=term,
            candidates=len(products),
            after_filters=len(filtered),
            products=product_count,
            total=total,
            latency_ms=int((time.time() - t_start) * 1000),
        )

        # Step 7: analytics (fire-and-forget)
        try:
            self.dispatcher.submit(
                self.analytics.log_search,
                query=term,
                result_count=total,
                filters=filter_summary,
            )
        except Exception as e:
            logger.warning("Failed to queue search analytics", error=str(e))

        return SearchResponse(
            results=page,
            total=total,
            query=term,
            filters=filter_summary,
            pagination=Pagination(
                limit=request.limit,
                offset=request.offset,
                has_more=has_more,
            ),
        )

    # =========================================================================
    # Suggestions
    # =========================================================================

    def suggest(
        self,
        q: Optional[str],
        limit: Optional[int] = None,
        user_agent: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> SuggestionResponse:
        """
        Autocomplete suggestions: products and brands.

        When a brand name contains the term, up to two brands lead the list
        and products fill the remaining slots; otherwise products and brands
        are merged by score.

        Raises:
            CandidateFetchError: If Supabase rejects the product query.
        """
        limit = limit or self._settings.suggestion_default_limit
        term = normalize_query(q)
        if not is_searchable(term):
            return SuggestionResponse(suggestions=[])

        products = self.fetcher.fetch_products(
            term,
            limit * self._settings.suggestion_candidate_multiplier,
            columns=SUGGESTION_COLUMNS,
            strict=True,
        )
        brands = self.fetcher.fetch_brands(
            term,
            self._settings.suggestion_brand_limit,
            columns="id, name, slug",
        )

        product_suggestions = _sorted_suggestions(
            Suggestion(
                type=ResultType.PRODUCT,
                id=product["id"],
                title=product.get("name") or "",
                subtitle=product.get("brand_name") or "Unknown Brand",
                price=product.get("price"),
                image=product.get("image_url"),
                url=f"/products/{product['id']}",
                relevance_score=calculate_relevance_score(
                    product, term, ResultType.PRODUCT, SUGGESTION_WEIGHTS
                ),
            )
            for product in products
        )[:limit]

        brand_suggestions = _sorted_suggestions(
            Suggestion(
                type=ResultType.BRAND,
                id=brand["id"],
                title=brand.get("name") or "",
                subtitle="Brand",
                url=f"/brands/{brand.get('slug') or brand['id']}",
                relevance_score=calculate_relevance_score(
                    {"name": brand.get("name")}, term, ResultType.BRAND, SUGGESTION_WEIGHTS
                ),
            )
            for brand in brands
        )

        is_brand_search = any(
            term in b.title.lower() and b.relevance_score >= BRAND_SUGGESTION_MIN_SCORE
            for b in brand_suggestions
        )

        if is_brand_search:
            top_brands = brand_suggestions[:MAX_LEADING_BRAND_SUGGESTIONS]
            remaining = max(limit - len(top_brands), 0)
            suggestions = top_brands + product_suggestions[:remaining]
        else:
            suggestions = _sorted_suggestions(product_suggestions + brand_suggestions)[:limit]

        try:
            self.dispatcher.submit(
                self.analytics.log_suggestion_event,
                term,
                len(suggestions),
                user_agent=user_agent,
                hashed_ip=hash_client_ip(client_ip) if client_ip else None,
            )
        except Exception as e:
            logger.warning("Failed to queue suggestion analytics", error=str(e))

        return SuggestionResponse(query=term, suggestions=suggestions)

    # =========================================================================
    # Brand Pages
    # =========================================================================

    def brand_listing(
        self,
        slug: str,
        category: str = "all",
        price_range: str = "all",
        sort_by: Optional[str] = None,
        q: Optional[str] = None,
    ) -> Optional[BrandListingResponse]:
        """
        Products for a brand page, narrowed by the page's category table,
        a named price range and a free-text match, then sorted.

        Category counts and stats cover the whole brand catalog, not the
        narrowed list. Returns None for an unknown brand page.
        """
        page = get_brand_page(slug)
        if page is None:
            return None

        rows = self.fetcher.fetch_brand_products(page.keyword, self._settings.brand_listing_limit)
        products: List[Product] = []
        for row in rows:
            try:
                products.append(Product.model_validate(row))
            except ValidationError as e:
                logger.warning("Skipping malformed product row", product_id=row.get("id"), error=str(e))

        counts = {option["value"]: 0 for option in page.table.options()}
        counts.update(count_by_rule(products, page.table))
        counts["all"] = len(products)

        listed = filter_by_rule(products, page.table, category)
        listed = filter_by_price_range(listed, price_range)
        term = normalize_query(q)
        if term:
            listed = [p for p in listed if matches_text(p, term)]
        listed = sort_products(listed, sort_by or page.default_sort)

        logger.info("Brand listing", brand=page.slug, products=len(products), listed=len(listed))

        return BrandListingResponse(
            brand=page.slug,
            label=page.label,
            products=listed,
            total=len(listed),
            categories=page.table.options(),
            category_counts=counts,
            stats=product_stats(products, self.classifiers),
        )


def _sorted_suggestions(suggestions) -> List[Suggestion]:
    return sorted(suggestions, key=lambda s: (-s.relevance_score, str(s.id)))


# =============================================================================
# Singleton
# =============================================================================

_service: Optional[ProductSearchService] = None
_service_lock = threading.Lock()


def get_search_service() -> ProductSearchService:
    """Get or create the ProductSearchService singleton (thread-safe)."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = ProductSearchService()
    return _service
