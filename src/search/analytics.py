"""
Search Analytics Tracking.

Logs search queries and suggestion clicks to the Supabase search_analytics
table, and aggregates recent queries into a popular-searches list.

Writes issued by the search pipeline go through AnalyticsDispatcher:
at-most-once, never blocking the request, never retried, errors logged and
discarded.
"""

import hashlib
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from supabase import Client

from core.logging import get_logger

logger = get_logger(__name__)

ANALYTICS_TABLE = "search_analytics"


class AnalyticsWriteError(Exception):
    """Raised when an analytics row could not be stored."""
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def hash_client_ip(ip: str) -> str:
    """First 16 hex chars of the SHA-256 of the client IP."""
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()[:16]


def client_ip_from_headers(headers: Mapping[str, str]) -> str:
    """Client IP from X-Forwarded-For (first hop), then X-Real-IP."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return headers.get("x-real-ip") or "unknown"


class SearchAnalytics:
    """
    Track search events for analysis.

    Table search_analytics:
    - one row per search (query, result_count, filters, timestamp)
    - one row per suggestion event (query, result_count, selected_result,
      user_agent, hashed_ip, timestamp)
    """

    def __init__(self, supabase: Optional[Client] = None):
        if supabase is None:
            from config.database import get_supabase_client
            supabase = get_supabase_client()
        self._supabase = supabase

    def _insert(self, row: Dict[str, Any]) -> None:
        self._supabase.table(ANALYTICS_TABLE).insert(row).execute()

    # =========================================================================
    # Search Events
    # =========================================================================

    def log_search(
        self,
        query: str,
        result_count: int,
        filters: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log a search event (best-effort)."""
        try:
            self._insert({
                "query": query,
                "result_count": result_count,
                "filters": filters or {},
                "timestamp": _now_iso(),
            })
        except Exception as e:
            # Don't let analytics failures break search
            logger.warning("Failed to log search analytics", query=query, error=str(e))

    # =========================================================================
    # Suggestion Events
    # =========================================================================

    def record_suggestion_event(
        self,
        query: str,
        result_count: int = 0,
        selected_result: Optional[Any] = None,
        user_agent: Optional[str] = None,
        hashed_ip: Optional[str] = None,
    ) -> None:
        """
        Store a suggestion/click event.

        Raises:
            AnalyticsWriteError: If the insert fails.
        """
        try:
            self._insert({
                "query": query.lower().strip(),
                "result_count": result_count or 0,
                "selected_result": selected_result,
                "user_agent": user_agent,
                "hashed_ip": hashed_ip,
                "timestamp": _now_iso(),
            })
        except Exception as e:
            raise AnalyticsWriteError(str(e)) from e

    def log_suggestion_event(self, query: str, result_count: int, **kwargs: Any) -> None:
        """Best-effort variant of record_suggestion_event."""
        try:
            self.record_suggestion_event(query, result_count, **kwargs)
        except AnalyticsWriteError as e:
            logger.warning("Failed to log suggestion analytics", query=query, error=str(e))

    # =========================================================================
    # Reporting
    # =========================================================================

    def popular_searches(
        self,
        days: int = 7,
        limit: int = 10,
        scan_limit: int = 5000,
    ) -> List[Dict[str, Any]]:
        """
        Most frequent queries of the last `days` days.

        Returns:
            [{"query": ..., "count": ...}] ordered by count (desc), then query.
        """
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        response = (
            self._supabase.table(ANALYTICS_TABLE)
            .select("query, timestamp")
            .gte("timestamp", since)
            .limit(scan_limit)
            .execute()
        )
        counts = Counter(row["query"] for row in (response.data or []) if row.get("query"))
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return [{"query": query, "count": count} for query, count in ranked[:limit]]


class AnalyticsDispatcher:
    """
    Fire-and-forget executor for analytics writes.

    submit() never blocks and never raises: the job runs at most once on a
    background thread, failures are logged and dropped, nothing is retried.
    """

    def __init__(self, max_workers: int = 1, enabled: bool = True):
        self._executor: Optional[ThreadPoolExecutor] = None
        if enabled:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="search-analytics",
            )

    @property
    def enabled(self) -> bool:
        return self._executor is not None

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        """Queue `fn(*args, **kwargs)`. Returns False when the event was dropped."""
        if self._executor is None:
            return False
        try:
            self._executor.submit(self._run, fn, args, kwargs)
        except RuntimeError as e:
            # Executor already shut down
            logger.debug("Analytics event dropped", error=str(e))
            return False
        return True

    @staticmethod
    def _run(fn: Callable[..., Any], args: tuple, kwargs: Dict[str, Any]) -> None:
        try:
            fn(*args, **kwargs)
        except Exception as e:
            logger.warning("Analytics job failed", error=str(e), error_type=type(e).__name__)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting events; with wait=True pending writes finish first."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


# =============================================================================
# Singletons
# =============================================================================

_analytics: Optional[SearchAnalytics] = None
_analytics_lock = threading.Lock()

_dispatcher: Optional[AnalyticsDispatcher] = None
_dispatcher_lock = threading.Lock()


def get_search_analytics() -> SearchAnalytics:
    """Get or create the SearchAnalytics singleton (thread-safe)."""
    global _analytics
    if _analytics is None:
        with _analytics_lock:
            if _analytics is None:
                _analytics = SearchAnalytics()
    return _analytics


def get_analytics_dispatcher() -> AnalyticsDispatcher:
    """Get or create the AnalyticsDispatcher singleton (thread-safe)."""
    global _dispatcher
    if _dispatcher is None:
        with _dispatcher_lock:
            if _dispatcher is None:
                from config.settings import get_settings
                settings = get_settings()
                _dispatcher = AnalyticsDispatcher(
                    max_workers=settings.analytics_workers,
                    enabled=settings.analytics_enabled,
                )
    return _dispatcher


def shutdown_analytics_dispatcher(wait: bool = True) -> None:
    """Drain and drop the dispatcher singleton (app shutdown)."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is not None:
            _dispatcher.shutdown(wait=wait)
            _dispatcher = None
