"""
Ranking and pagination of merged search results.
"""

from typing import List, Sequence, Tuple

from search.models import ResultType, SearchResult

# Secondary sort key for equal scores
_TYPE_ORDER = {
    ResultType.PRODUCT: 0,
    ResultType.BRAND: 1,
    ResultType.CATEGORY: 2,
}


def rank_results(results: Sequence[SearchResult]) -> List[SearchResult]:
    """
    Sort results by relevance score, highest first.

    Equal scores are ordered by result type (product, brand, category) and
    then by id, so the same inputs always produce the same page.
    """
    return sorted(
        results,
        key=lambda r: (-r.relevance_score, _TYPE_ORDER[r.result_type], str(r.id)),
    )


def paginate(
    ranked: Sequence[SearchResult],
    limit: int,
    offset: int,
) -> Tuple[List[SearchResult], int, bool]:
    """
    Slice one page out of the ranked list.

    Returns:
        (page, total, has_more) where total is the count before slicing.
    """
    total = len(ranked)
    page = list(ranked[offset : offset + limit])
    return page, total, total > offset + limit
