"""
Pytest configuration and shared fixtures for the catalog search tests.
"""
import os
import re
import sys
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

# get_settings() needs Supabase credentials even when no test talks to Supabase
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-key")

from postgrest.exceptions import APIError


# ============================================================================
# In-memory Supabase
# ============================================================================

_OR_TERM = re.compile(r'(\w+)\.ilike\."((?:[^"\\]|\\.)*)"')


def _unescape(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def _ilike(value: Any, pattern: str) -> bool:
    if value is None:
        return False
    regex = "".join(
        ".*" if ch == "%" else "." if ch == "_" else re.escape(ch)
        for ch in pattern
    )
    return re.fullmatch(regex, str(value), re.IGNORECASE | re.DOTALL) is not None


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    # SQL NULL never satisfies a comparison
    return lambda actual, expected: actual is not None and op(actual, expected)


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]]):
        self.data = data


class FakeQuery:
    """Just enough of the postgrest request builder for the search code."""

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table_name = table
        self.columns: Optional[str] = None
        self.calls: List[tuple] = []
        self._predicates: List[Callable[[Dict[str, Any]], bool]] = []
        self._limit: Optional[int] = None
        self._order: Optional[tuple] = None
        self._insert: Optional[Dict[str, Any]] = None

    def _where(self, name: str, column: str, value: Any, test) -> "FakeQuery":
        self.calls.append((name, column, value))
        self._predicates.append(lambda row: test(row.get(column), value))
        return self

    def select(self, columns: str) -> "FakeQuery":
        self.columns = columns
        return self

    def or_(self, expression: str) -> "FakeQuery":
        self.calls.append(("or", expression))
        terms = [(col, _unescape(pattern)) for col, pattern in _OR_TERM.findall(expression)]
        self._predicates.append(
            lambda row: any(_ilike(row.get(col), pattern) for col, pattern in terms)
        )
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        return self._where("eq", column, value, lambda a, b: a == b)

    def gt(self, column: str, value: Any) -> "FakeQuery":
        return self._where("gt", column, value, _compare(lambda a, b: a > b))

    def gte(self, column: str, value: Any) -> "FakeQuery":
        return self._where("gte", column, value, _compare(lambda a, b: a >= b))

    def lte(self, column: str, value: Any) -> "FakeQuery":
        return self._where("lte", column, value, _compare(lambda a, b: a <= b))

    def ilike(self, column: str, pattern: str) -> "FakeQuery":
        return self._where("ilike", column, pattern, _ilike)

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.calls.append(("order", column, desc))
        self._order = (column, desc)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    def insert(self, row: Dict[str, Any]) -> "FakeQuery":
        self._insert = row
        return self

    def execute(self) -> FakeResponse:
        error = self.client.errors.get(self.table_name)
        if error is not None:
            raise error
        if self._insert is not None:
            self.client.inserted[self.table_name].append(self._insert)
            return FakeResponse([self._insert])
        rows = [
            dict(row) for row in self.client.tables.get(self.table_name, [])
            if all(predicate(row) for predicate in self._predicates)
        ]
        if self._order is not None:
            column, desc = self._order
            # NULLs last in either direction
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            rows = sorted(present, key=lambda r: r[column], reverse=desc) + missing
        if self._limit is not None:
            rows = rows[: self._limit]
        return FakeResponse(rows)


class FakeSupabase:
    """
    In-memory stand-in for supabase.Client.

    tables: rows served per table
    errors: exception raised by execute() per table
    inserted: rows written per table
    queries: every query built, in order
    """

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = tables or {}
        self.errors: Dict[str, Exception] = {}
        self.inserted: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.queries: List[FakeQuery] = []

    def table(self, name: str) -> FakeQuery:
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query

    def fail(self, table: str, message: str = "upstream failure") -> None:
        self.errors[table] = APIError({"message": message, "code": "500"})


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

def make_product(**overrides: Any) -> Dict[str, Any]:
    """Product row as returned by Supabase."""
    product = {
        "id": "p-000",
        "name": "Test Product",
        "brand_name": "",
        "price": 10.0,
        "image_url": None,
        "description": "",
        "short_description": "",
        "sku": "",
        "featured": False,
        "stock_quantity": 0,
        "tags": [],
        "materials": [],
        "zoho_category_name": "",
        "manufacturer": "",
        "specs": None,
        "attributes": None,
        "dtc_description": "",
        "vip_price": None,
        "is_active": True,
        "nicotine_product": False,
        "tobacco_product": False,
    }
    product.update(overrides)
    return product


@pytest.fixture
def catalog_rows() -> Dict[str, List[Dict[str, Any]]]:
    """A small catalog: ROOR glass, a grinder, a disposable and inactive rows."""
    return {
        "products": [
            make_product(
                id="p-001",
                name="ROOR Classic Beaker 14in",
                brand_name="ROOR",
                price=249.99,
                image_url="https://cdn.example.com/roor-beaker.jpg",
                description="Hand blown German glass beaker",
                sku="ROOR-BK-14",
                featured=True,
                stock_quantity=12,
                tags=["glass", "beaker"],
                materials=["borosilicate glass"],
                zoho_category_name="Glass",
                manufacturer="ROOR",
            ),
            make_product(
                id="p-002",
                name="ROOR Straight Tube 18in",
                brand_name="ROOR",
                price=199.0,
                description="Straight tube with ice pinch",
                sku="ROOR-ST-18",
                stock_quantity=0,
                tags=["glass"],
                materials=["borosilicate glass"],
                zoho_category_name="Glass",
                manufacturer="ROOR",
            ),
            make_product(
                id="p-003",
                name="Aluminum Grinder 4pc",
                brand_name="Santa Cruz",
                price=24.5,
                description="Four piece grinder for roor fans",
                stock_quantity=3,
                tags=["grinder"],
                materials=["aluminum"],
                zoho_category_name="Accessories",
            ),
            make_product(
                id="p-004",
                name="Geek Bar Pulse Disposable",
                brand_name="Geek Bar",
                price=19.99,
                stock_quantity=40,
                tags=["disposable"],
                zoho_category_name="Disposables",
            ),
            make_product(
                id="p-005",
                name="ROOR Discontinued Bubbler",
                brand_name="ROOR",
                is_active=False,
                stock_quantity=5,
            ),
            make_product(
                id="p-006",
                name="ROOR Branded Cigar Wrap",
                brand_name="ROOR",
                tobacco_product=True,
                stock_quantity=5,
            ),
        ],
        "brands": [
            {
                "id": "b-001",
                "name": "ROOR",
                "description": "German glass since 1995",
                "logo_url": "https://cdn.example.com/roor-logo.png",
                "slug": "roor",
            },
            {
                "id": "b-002",
                "name": "Geek Bar",
                "description": "Disposable vapes",
                "logo_url": None,
                "slug": "geek-bar",
            },
        ],
        "categories": [
            {"id": "c-001", "name": "Glass", "description": "Glass pipes", "image_url": None},
        ],
        "search_analytics": [],
    }


@pytest.fixture
def fake_supabase(catalog_rows) -> FakeSupabase:
    return FakeSupabase(catalog_rows)


# ============================================================================
# Fixtures: Services
# ============================================================================

@pytest.fixture
def test_settings():
    from config.settings import get_settings_for_testing
    return get_settings_for_testing()


@pytest.fixture
def analytics(fake_supabase):
    from search.analytics import SearchAnalytics
    return SearchAnalytics(supabase=fake_supabase)


@pytest.fixture
def dispatcher():
    """Real dispatcher; tests call shutdown(wait=True) before asserting on writes."""
    from search.analytics import AnalyticsDispatcher
    d = AnalyticsDispatcher(max_workers=1)
    yield d
    d.shutdown(wait=True)


@pytest.fixture
def search_service(fake_supabase, analytics, dispatcher, test_settings):
    from search.candidates import CandidateFetcher
    from search.service import ProductSearchService
    return ProductSearchService(
        fetcher=CandidateFetcher(supabase=fake_supabase),
        analytics=analytics,
        dispatcher=dispatcher,
        settings=test_settings,
    )


# ============================================================================
# Fixtures: FastAPI Test Client
# ============================================================================

@pytest.fixture
def app(search_service, analytics):
    """FastAPI application wired to the in-memory catalog."""
    from api.app import create_app
    from search.analytics import get_search_analytics
    from search.service import get_search_service

    application = create_app()
    application.dependency_overrides[get_search_service] = lambda: search_service
    application.dependency_overrides[get_search_analytics] = lambda: analytics
    return application


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "supabase: marks tests that require Supabase")


# ============================================================================
# Skip conditions
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Auto-skip Supabase tests unless real credentials are configured."""
    skip_supabase = pytest.mark.skip(reason="Supabase tests require credentials")

    supabase_url = os.getenv("SUPABASE_URL", "")

    for item in items:
        if "supabase" in item.keywords and "test.supabase.co" in supabase_url:
            item.add_marker(skip_supabase)
