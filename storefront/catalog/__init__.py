"""Catalog package: query builder and product reads."""
from .pagination import (
    AppliedFilter,
    OrderSpec,
    PageInfo,
    PaginatedResponse,
    ProductFilters,
    ProductQuery,
    build_query,
    page_info,
)
from .service import ProductCatalog

__all__ = [
    "AppliedFilter",
    "OrderSpec",
    "PageInfo",
    "PaginatedResponse",
    "ProductFilters",
    "ProductQuery",
    "build_query",
    "page_info",
    "ProductCatalog",
]
