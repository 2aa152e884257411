"""
Catalog Search Module.

Provides:
- ProductSearchService: fetch, filter, score, rank and paginate catalog matches
- CandidateFetcher: Supabase reads for products, brands and categories
- calculate_relevance_score: additive rule-table relevance scoring
- RuleTable / ClassifierConfig: ordered keyword rules for detected category/brand
- SearchAnalytics / AnalyticsDispatcher: best-effort query tracking
"""

from search.analytics import AnalyticsDispatcher, SearchAnalytics
from search.candidates import CandidateFetcher, CandidateFetchError
from search.classifiers import ClassifierConfig, RuleTable, load_classifier_config
from search.models import ResultType, SearchFilters, SearchRequest, StockStatus
from search.scoring import ScoringWeights, calculate_relevance_score
from search.service import ProductSearchService, get_search_service

__all__ = [
    "AnalyticsDispatcher",
    "CandidateFetchError",
    "CandidateFetcher",
    "ClassifierConfig",
    "ProductSearchService",
    "ResultType",
    "RuleTable",
    "ScoringWeights",
    "SearchAnalytics",
    "SearchFilters",
    "SearchRequest",
    "StockStatus",
    "calculate_relevance_score",
    "get_search_service",
    "load_classifier_config",
]
