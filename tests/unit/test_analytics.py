"""
Unit tests for search analytics and the fire-and-forget dispatcher.

Run with: PYTHONPATH=src python -m pytest tests/unit/test_analytics.py -v
"""

import hashlib
import threading
from datetime import datetime, timedelta, timezone

import pytest

from search.analytics import (
    ANALYTICS_TABLE,
    AnalyticsDispatcher,
    AnalyticsWriteError,
    client_ip_from_headers,
    hash_client_ip,
)


def _ago(**delta):
    return (datetime.now(timezone.utc) - timedelta(**delta)).isoformat()


class TestClientIp:

    def test_hash_is_sha256_prefix(self):
        expected = hashlib.sha256(b"203.0.113.7").hexdigest()[:16]
        assert hash_client_ip("203.0.113.7") == expected
        assert len(hash_client_ip("unknown")) == 16

    def test_forwarded_for_first_hop(self):
        headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1", "x-real-ip": "10.0.0.2"}
        assert client_ip_from_headers(headers) == "203.0.113.7"

    def test_real_ip_fallback(self):
        assert client_ip_from_headers({"x-real-ip": "10.0.0.2"}) == "10.0.0.2"

    def test_unknown(self):
        assert client_ip_from_headers({}) == "unknown"


class TestSearchAnalytics:

    def test_log_search_inserts_row(self, analytics, fake_supabase):
        analytics.log_search("roor", result_count=3, filters={"stockStatus": "all"})

        rows = fake_supabase.inserted[ANALYTICS_TABLE]
        assert len(rows) == 1
        assert rows[0]["query"] == "roor"
        assert rows[0]["result_count"] == 3
        assert rows[0]["filters"] == {"stockStatus": "all"}
        assert "timestamp" in rows[0]

    def test_log_search_swallows_errors(self, analytics, fake_supabase):
        fake_supabase.fail(ANALYTICS_TABLE)

        # Should not raise
        analytics.log_search("roor", result_count=3)

    def test_record_suggestion_event(self, analytics, fake_supabase):
        analytics.record_suggestion_event(
            "  ROOR Beaker ",
            result_count=4,
            selected_result={"id": "p-001"},
            user_agent="pytest",
            hashed_ip="abc123",
        )

        row = fake_supabase.inserted[ANALYTICS_TABLE][0]
        assert row["query"] == "roor beaker"
        assert row["selected_result"] == {"id": "p-001"}
        assert row["hashed_ip"] == "abc123"

    def test_record_suggestion_event_raises(self, analytics, fake_supabase):
        fake_supabase.fail(ANALYTICS_TABLE)
        with pytest.raises(AnalyticsWriteError):
            analytics.record_suggestion_event("roor")

    def test_log_suggestion_event_swallows_errors(self, analytics, fake_supabase):
        fake_supabase.fail(ANALYTICS_TABLE)
        analytics.log_suggestion_event("roor", 2, user_agent="pytest")

    def test_popular_searches(self, analytics, fake_supabase):
        fake_supabase.tables[ANALYTICS_TABLE] = [
            {"query": "roor", "timestamp": _ago(hours=1)},
            {"query": "puffco", "timestamp": _ago(hours=2)},
            {"query": "roor", "timestamp": _ago(days=1)},
            {"query": "geek bar", "timestamp": _ago(days=2)},
            {"query": "puffco", "timestamp": _ago(days=3)},
            {"query": "roor", "timestamp": _ago(days=30)},
            {"query": None, "timestamp": _ago(hours=1)},
        ]

        popular = analytics.popular_searches(days=7, limit=2)

        assert popular == [
            {"query": "puffco", "count": 2},
            {"query": "roor", "count": 2},
        ]

    def test_popular_searches_empty(self, analytics):
        assert analytics.popular_searches() == []


class TestAnalyticsDispatcher:

    def test_runs_job_once(self):
        calls = []
        dispatcher = AnalyticsDispatcher()

        assert dispatcher.submit(calls.append, "roor") is True
        dispatcher.shutdown(wait=True)

        assert calls == ["roor"]

    def test_submit_does_not_wait_for_job(self):
        started = threading.Event()
        release = threading.Event()
        dispatcher = AnalyticsDispatcher()

        def slow_write():
            started.set()
            release.wait(timeout=5)

        assert dispatcher.submit(slow_write) is True
        # submit returned while the job is still blocked
        assert started.wait(timeout=5)
        assert not release.is_set()

        release.set()
        dispatcher.shutdown(wait=True)

    def test_job_errors_are_swallowed(self):
        calls = []
        dispatcher = AnalyticsDispatcher()

        def broken():
            calls.append(1)
            raise RuntimeError("insert failed")

        assert dispatcher.submit(broken) is True
        dispatcher.shutdown(wait=True)

        # Attempted exactly once, never retried
        assert calls == [1]

    def test_disabled_drops_events(self):
        calls = []
        dispatcher = AnalyticsDispatcher(enabled=False)

        assert dispatcher.enabled is False
        assert dispatcher.submit(calls.append, "roor") is False
        dispatcher.shutdown()

        assert calls == []

    def test_submit_after_shutdown_drops_event(self):
        calls = []
        dispatcher = AnalyticsDispatcher()
        dispatcher.shutdown(wait=True)

        assert dispatcher.submit(calls.append, "roor") is False
        assert calls == []

    def test_shutdown_drains_pending(self):
        calls = []
        dispatcher = AnalyticsDispatcher(max_workers=1)

        for i in range(20):
            dispatcher.submit(calls.append, i)
        dispatcher.shutdown(wait=True)

        assert sorted(calls) == list(range(20))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
