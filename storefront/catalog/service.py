"""Product catalog reads through the Supabase client.

Every read goes through with_retry; PostgREST errors are normalized.
"""
from typing import Literal, Optional

from supabase import PostgrestAPIError
from supabase._async.client import AsyncClient

from storefront.errors import normalize_error
from storefront.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging
from storefront.retry import DEFAULT_BASE_DELAY, with_retry

from .pagination import (
    DEFAULT_ORDER_BY,
    DEFAULT_PAGE_SIZE,
    PaginatedResponse,
    ProductFilters,
    build_query,
    page_info,
    search_expression,
)

logger = get_logger(__name__)

PRODUCTS_TABLE = "products"
SEARCH_COLUMNS = ("name", "description", "brand")


def _distinct(rows: list[dict], column: str) -> list[str]:
    """Non-empty values of `column` in first-seen order."""
    seen: dict[str, None] = {}
    for row in rows:
        value = row.get(column)
        if value:
            seen.setdefault(value, None)
    return list(seen)


class ProductCatalog:
    """Read-only access to the `products` table."""

    def __init__(self, client: AsyncClient, base_delay: float = DEFAULT_BASE_DELAY):
        self.client = client
        self.base_delay = base_delay

    async def _run(self, fn):
        async def guarded():
            try:
                return await fn()
            except PostgrestAPIError as e:
                raise normalize_error(e) from e

        return await with_retry(guarded, base_delay=self.base_delay)

    async def get_all_paginated(
        self,
        filters: Optional[ProductFilters] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        order_by: str = DEFAULT_ORDER_BY,
        order_dir: Literal["asc", "desc"] = "desc",
    ) -> PaginatedResponse[dict]:
        """One page of products plus the exact total count."""
        query = build_query(filters, page, page_size, order_by, order_dir)

        async def fetch() -> PaginatedResponse[dict]:
            builder = self.client.table(PRODUCTS_TABLE).select("*", count="exact")
            result = await query.apply(builder).execute()

            data = result.data or []
            info = page_info(result.count or 0, page, page_size)
            logger.debug(f"Fetched {len(data)} products (page {page}/{info.total_pages})")
            return PaginatedResponse.build(data, info)

        return await self._run(fetch)

    async def get_by_id(self, product_id: str) -> Optional[dict]:
        """Single product, or None when it does not exist."""
        async def fetch():
            result = await (
                self.client.table(PRODUCTS_TABLE).select("*").eq("id", product_id).limit(1).execute()
            )
            return result.data[0] if result.data else None

        product = await self._run(fetch)
        if product is None:
            logger.debug(f"Product {sanitize_id_for_logging(product_id)} not found")
        return product

    async def get_featured(self, limit: int = 6) -> list[dict]:
        """Best-rated products, ties broken by review count."""
        async def fetch():
            result = await (
                self.client.table(PRODUCTS_TABLE)
                .select("*")
                .order("rating", desc=True)
                .order("reviews_count", desc=True)
                .limit(limit)
                .execute()
            )
            return result.data or []

        return await self._run(fetch)

    async def get_related(self, product_id: str, category: str, limit: int = 4) -> list[dict]:
        """Other products from the same category."""
        async def fetch():
            result = await (
                self.client.table(PRODUCTS_TABLE)
                .select("*")
                .eq("category", category)
                .neq("id", product_id)
                .limit(limit)
                .execute()
            )
            return result.data or []

        return await self._run(fetch)

    async def search(self, term: str, limit: int = 20) -> list[dict]:
        """Substring match on name, description or brand. Blank terms match nothing."""
        if not (term or "").strip():
            return []

        async def fetch():
            result = await (
                self.client.table(PRODUCTS_TABLE)
                .select("*")
                .or_(search_expression(term, SEARCH_COLUMNS))
                .limit(limit)
                .execute()
            )
            return result.data or []

        products = await self._run(fetch)
        logger.debug(f"Search '{sanitize_string_for_logging(term)}' matched {len(products)} products")
        return products

    async def get_categories(self) -> list[str]:
        async def fetch():
            result = await self.client.table(PRODUCTS_TABLE).select("category").order("category").execute()
            return _distinct(result.data or [], "category")

        return await self._run(fetch)

    async def get_brands(self) -> list[str]:
        async def fetch():
            result = await self.client.table(PRODUCTS_TABLE).select("brand").order("brand").execute()
            return _distinct(result.data or [], "brand")

        return await self._run(fetch)
