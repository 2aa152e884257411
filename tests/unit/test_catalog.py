"""
Unit tests for catalog listing helpers.
"""

from types import SimpleNamespace

import pytest

from search.catalog import (
    PRICE_RANGES,
    count_by_rule,
    filter_by_price_range,
    get_brand_page,
    get_price_range,
    matches_text,
    product_stats,
    sort_products,
)
from search.classifiers import ROOR_GLASS_RULES


@pytest.fixture
def listing():
    return [
        {"id": 1, "name": "roor beaker", "price": 250, "featured": False},
        {"id": 2, "name": "Ash Catcher", "price": 45, "featured": True},
        {"id": 3, "name": "Downstem", "price": None, "featured": False},
        {"id": 4, "name": "Bowl", "price": "10", "featured": True},
    ]


def _ids(rows):
    return [row["id"] for row in rows]


class TestPriceRanges:

    def test_ranges(self):
        assert [r.value for r in PRICE_RANGES] == [
            "all", "0-10", "10-25", "25-50", "50-100", "100-200", "200+",
        ]
        assert get_price_range("25-50").label == "$25 - $50"
        assert get_price_range("nope") is None

    def test_filter_bounds_inclusive(self, listing):
        assert _ids(filter_by_price_range(listing, "0-10")) == [3, 4]
        assert _ids(filter_by_price_range(listing, "10-25")) == [4]
        assert _ids(filter_by_price_range(listing, "200+")) == [1]

    def test_all_and_unknown_keep_everything(self, listing):
        assert _ids(filter_by_price_range(listing, "all")) == [1, 2, 3, 4]
        assert _ids(filter_by_price_range(listing, "cheap")) == [1, 2, 3, 4]


class TestSortProducts:

    def test_featured_first_stable(self, listing):
        assert _ids(sort_products(listing, "featured")) == [2, 4, 1, 3]

    def test_price(self, listing):
        assert _ids(sort_products(listing, "price-low")) == [3, 4, 2, 1]
        assert _ids(sort_products(listing, "price-high")) == [1, 2, 4, 3]

    def test_name_case_insensitive(self, listing):
        assert _ids(sort_products(listing, "name")) == [2, 4, 3, 1]

    def test_unknown_keeps_order(self, listing):
        assert _ids(sort_products(listing, "relevance")) == [1, 2, 3, 4]

    def test_objects(self):
        items = [SimpleNamespace(name="b", price=2.0), SimpleNamespace(name="a", price=1.0)]
        assert [i.name for i in sort_products(items, "price-low")] == ["a", "b"]


class TestProductStats:

    def test_counts(self):
        stats = product_stats([
            {"name": "ROOR Glass Pipe"},
            {"name": "Geek Bar Pulse Disposable"},
            {"name": "Elf Bar BC5000 Disposable"},
            {"name": "Lighter"},
        ])

        assert stats["categoryStats"] == {"pipes-bongs": 1, "disposables": 2, "other": 1}
        assert stats["brandStats"] == {"roor": 1, "geek-bar": 1, "elf-bar": 1, "other": 1}

    def test_count_by_rule(self):
        counts = count_by_rule(
            [{"name": "ROOR Beaker"}, {"name": "ROOR Straight"}, {"name": "ROOR Beaker XL"}, {"name": "Screens"}],
            ROOR_GLASS_RULES,
        )
        assert counts == {"beakers": 2, "straight-tubes": 1, "accessories": 1}


class TestBrandPages:

    def test_lookup_case_insensitive(self):
        page = get_brand_page("ROOR")

        assert page.label == "ROOR"
        assert page.table is ROOR_GLASS_RULES
        assert page.default_sort == "price-high"

    def test_unknown(self):
        assert get_brand_page("puffco") is None

    def test_matches_text(self):
        product = {"name": "Straight Tube", "description": None, "short_description": "With ice pinch"}

        assert matches_text(product, "ICE")
        assert matches_text(SimpleNamespace(name="Beaker", description="", short_description=""), "beak")
        assert not matches_text(product, "beaker")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
