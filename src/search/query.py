"""
Query normalization for catalog search.
"""

from typing import List, Optional

MIN_QUERY_LENGTH = 2
SHORT_QUERY_MESSAGE = f"Query must be at least {MIN_QUERY_LENGTH} characters"


def normalize_query(raw: Optional[str]) -> str:
    """Trim and lower-case a raw search string. None/empty gives ''."""
    if not raw:
        return ""
    return raw.strip().lower()


def is_searchable(term: str) -> bool:
    """True when a normalized term is long enough to run a search."""
    return len(term) >= MIN_QUERY_LENGTH


def parse_csv_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated query parameter, dropping empty items."""
    if not value:
        return []
    return [item for item in value.split(",") if item]
