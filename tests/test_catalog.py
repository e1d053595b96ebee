"""
Tests for the product filter/pagination query builder
"""

import pydantic
import pytest
from supabase import PostgrestAPIError

from storefront.catalog import (
    AppliedFilter,
    ProductCatalog,
    ProductFilters,
    build_query,
    page_info,
)
from storefront.catalog.pagination import search_expression
from storefront.errors import RetryableError, ValidationError


class TestBuildQuery:
    """Tests for build_query."""

    def test_page_two_with_category_and_price_range(self):
        query = build_query(
            ProductFilters(category="phones", min_price=100, max_price=500),
            page=2,
            page_size=10,
        )

        assert (query.range_start, query.range_end) == (10, 19)
        assert query.applied_filters == (
            AppliedFilter("category", "eq", "phones"),
            AppliedFilter("price", "gte", 100),
            AppliedFilter("price", "lte", 500),
        )
        assert query.order.column == "created_at"
        assert query.order.ascending is False

    def test_first_page_defaults(self):
        query = build_query()

        assert (query.range_start, query.range_end) == (0, 19)
        assert query.applied_filters == ()

    def test_deterministic(self):
        filters = ProductFilters(brand="Acme", condition="used", search="phone")

        assert build_query(filters, 3, 5, "price", "asc") == build_query(filters, 3, 5, "price", "asc")

    def test_unset_filters_do_not_constrain(self):
        query = build_query(ProductFilters(category="", search="   "))

        assert query.applied_filters == ()

    def test_zero_min_price_is_kept(self):
        query = build_query(ProductFilters(min_price=0))

        assert query.applied_filters == (AppliedFilter("price", "gte", 0),)

    def test_search_matches_name_or_description(self):
        query = build_query(ProductFilters(search="iphone"))

        (search,) = query.applied_filters
        assert search.operator == "or"
        assert search.value == "name.ilike.%iphone%,description.ilike.%iphone%"

    def test_search_strips_expression_syntax(self):
        assert search_expression(" a,b(c) ") == "name.ilike.%abc%,description.ilike.%abc%"

    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"page": 0}, "page"),
            ({"page_size": 0}, "page_size"),
            ({"order_dir": "sideways"}, "order_dir"),
        ],
    )
    def test_invalid_paging_rejected(self, kwargs, field):
        with pytest.raises(ValidationError) as exc_info:
            build_query(**kwargs)

        assert exc_info.value.field == field

    def test_filters_reject_unknown_fields_and_negative_prices(self):
        with pytest.raises(pydantic.ValidationError):
            ProductFilters(colour="red")
        with pytest.raises(pydantic.ValidationError):
            ProductFilters(min_price=-1)

    def test_apply_to_builder(self, mock_query):
        query = build_query(ProductFilters(category="phones", search="pro", max_price=900), page=1, page_size=12, order_dir="asc")

        query.apply(mock_query)

        mock_query.eq.assert_called_once_with("category", "phones")
        mock_query.or_.assert_called_once_with("name.ilike.%pro%,description.ilike.%pro%")
        mock_query.lte.assert_called_once_with("price", 900)
        mock_query.gte.assert_not_called()
        mock_query.order.assert_called_once_with("created_at", desc=False)
        mock_query.range.assert_called_once_with(0, 11)


class TestPageInfo:
    def test_page_info(self):
        info = page_info(total=45, page=2, page_size=20)

        assert info.total_pages == 3
        assert info.has_more is True

    def test_last_page(self):
        info = page_info(total=40, page=2, page_size=20)

        assert info.total_pages == 2
        assert info.has_more is False

    def test_empty(self):
        info = page_info(total=0)

        assert info.total_pages == 0
        assert info.has_more is False


class TestProductCatalog:
    """Tests for ProductCatalog against the in-memory Supabase double."""

    @pytest.mark.asyncio
    async def test_paginated_fetch(self, fake_supabase):
        fake_supabase.tables["products"].extend(
            [{"id": f"p{i}", "category": "phones"} for i in range(25)]
            + [{"id": "t1", "category": "tablets"}]
        )
        catalog = ProductCatalog(fake_supabase, base_delay=0)

        response = await catalog.get_all_paginated(ProductFilters(category="phones"), page=2, page_size=10)

        assert [row["id"] for row in response.data] == [f"p{i}" for i in range(10, 20)]
        assert response.total == 25
        assert response.total_pages == 3
        assert response.has_more is True
        assert ("select", ("*",), {"count": "exact"}) in fake_supabase.calls
        assert ("range", (10, 19), {}) in fake_supabase.calls

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, fake_supabase):
        fake_supabase.tables["products"].append({"id": "p1"})
        fake_supabase.failures.append(PostgrestAPIError({"message": "timeout", "code": "57014"}))
        catalog = ProductCatalog(fake_supabase, base_delay=0)

        response = await catalog.get_all_paginated()

        assert response.total == 1
        assert response.data == [{"id": "p1"}]

    @pytest.mark.asyncio
    async def test_invalid_page_fails_before_fetch(self, fake_supabase):
        catalog = ProductCatalog(fake_supabase, base_delay=0)

        with pytest.raises(ValidationError):
            await catalog.get_all_paginated(page=0)

        assert fake_supabase.calls == []


PRODUCTS = [
    {"id": "p1", "name": "Pixel 8", "description": "Android phone", "brand": "Google", "category": "phones", "rating": 4.5, "reviews_count": 10},
    {"id": "p2", "name": "iPhone 15", "description": "Apple phone", "brand": "Apple", "category": "phones", "rating": 4.8, "reviews_count": 3},
    {"id": "p3", "name": "Galaxy Tab", "description": "Tablet", "brand": "Samsung", "category": "tablets", "rating": 4.5, "reviews_count": 40},
    {"id": "p4", "name": "Refurb phone", "description": "Used handset", "brand": "", "category": "phones", "rating": 3.9, "reviews_count": 1},
]


class TestProductReads:
    """Tests for single-product and listing reads."""

    @pytest.fixture
    def catalog(self, fake_supabase):
        fake_supabase.tables["products"].extend(dict(p) for p in PRODUCTS)
        return ProductCatalog(fake_supabase, base_delay=0)

    @pytest.mark.asyncio
    async def test_get_by_id(self, catalog):
        product = await catalog.get_by_id("p2")

        assert product["name"] == "iPhone 15"
        assert await catalog.get_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_get_featured_orders_by_rating_then_reviews(self, catalog, fake_supabase):
        featured = await catalog.get_featured(limit=3)

        assert [p["id"] for p in featured] == ["p2", "p3", "p1"]
        assert ("limit", (3,), {}) in fake_supabase.calls

    @pytest.mark.asyncio
    async def test_get_related_excludes_product(self, catalog):
        related = await catalog.get_related("p1", "phones")

        assert sorted(p["id"] for p in related) == ["p2", "p4"]

    @pytest.mark.asyncio
    async def test_search_matches_name_description_or_brand(self, catalog, fake_supabase):
        assert [p["id"] for p in await catalog.search("samsung")] == ["p3"]
        assert sorted(p["id"] for p in await catalog.search("PHONE")) == ["p1", "p2", "p4"]
        assert (
            "or_",
            ("name.ilike.%samsung%,description.ilike.%samsung%,brand.ilike.%samsung%",),
            {},
        ) in fake_supabase.calls

    @pytest.mark.asyncio
    async def test_blank_search_skips_query(self, catalog, fake_supabase):
        assert await catalog.search("   ") == []
        assert fake_supabase.calls == []

    @pytest.mark.asyncio
    async def test_categories_and_brands_are_distinct(self, catalog):
        assert await catalog.get_categories() == ["phones", "tablets"]
        assert await catalog.get_brands() == ["Apple", "Google", "Samsung"]

    @pytest.mark.asyncio
    async def test_read_errors_normalized_after_retries(self, catalog, fake_supabase):
        fake_supabase.failures.extend(
            [PostgrestAPIError({"message": "relation missing", "code": "42P01"}) for _ in range(3)]
        )

        with pytest.raises(RetryableError) as exc_info:
            await catalog.get_featured()

        assert exc_info.value.code == "42P01"
        assert fake_supabase.failures == []
