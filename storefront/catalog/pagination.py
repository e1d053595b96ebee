"""
Product listing query builder.

Turns filters plus page/page_size into a deterministic query description,
applies it to a PostgREST builder, and derives paging info from a count.
"""

import math
from dataclasses import dataclass
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from storefront.errors import ValidationError

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
DEFAULT_ORDER_BY = "created_at"

# Characters with meaning inside a PostgREST or=(...) expression
_SEARCH_RESERVED = str.maketrans("", "", ",()")


class ProductFilters(BaseModel):
    """Catalog filters; unset fields do not constrain the query."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    category: Optional[str] = None
    brand: Optional[str] = None
    condition: Optional[Literal["new", "used"]] = None
    search: Optional[str] = None
    min_price: Optional[float] = Field(default=None, ge=0)
    max_price: Optional[float] = Field(default=None, ge=0)


@dataclass(frozen=True)
class AppliedFilter:
    """One predicate. operator is eq, gte, lte or or."""
    column: str
    operator: str
    value: Any


@dataclass(frozen=True)
class OrderSpec:
    column: str
    ascending: bool


@dataclass(frozen=True)
class ProductQuery:
    applied_filters: tuple[AppliedFilter, ...]
    range_start: int
    range_end: int
    order: OrderSpec

    def apply(self, query):
        """Apply filters, ordering and range to a PostgREST request builder."""
        for f in self.applied_filters:
            if f.operator == "eq":
                query = query.eq(f.column, f.value)
            elif f.operator == "gte":
                query = query.gte(f.column, f.value)
            elif f.operator == "lte":
                query = query.lte(f.column, f.value)
            elif f.operator == "or":
                query = query.or_(f.value)
        return query.order(self.order.column, desc=not self.order.ascending).range(
            self.range_start, self.range_end
        )


def search_expression(term: str, columns: tuple[str, ...] = ("name", "description")) -> str:
    """Case-insensitive substring match on any of `columns`."""
    safe = term.strip().translate(_SEARCH_RESERVED)
    return ",".join(f"{column}.ilike.%{safe}%" for column in columns)


def build_query(
    filters: Optional[ProductFilters] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    order_by: str = DEFAULT_ORDER_BY,
    order_dir: Literal["asc", "desc"] = "desc",
) -> ProductQuery:
    """
    Build the query description. Pure: equal inputs give equal output.

    Raises:
        ValidationError: page or page_size below 1, or an unknown order_dir
    """
    if page < 1:
        raise ValidationError("page must be >= 1", field="page")
    if page_size < 1:
        raise ValidationError("page_size must be >= 1", field="page_size")
    if order_dir not in ("asc", "desc"):
        raise ValidationError("order_dir must be 'asc' or 'desc'", field="order_dir")

    applied: list[AppliedFilter] = []
    if filters is not None:
        for column in ("category", "brand", "condition"):
            value = getattr(filters, column)
            if value:
                applied.append(AppliedFilter(column, "eq", value))
        if filters.search and filters.search.strip():
            applied.append(AppliedFilter("name,description", "or", search_expression(filters.search)))
        if filters.min_price is not None:
            applied.append(AppliedFilter("price", "gte", filters.min_price))
        if filters.max_price is not None:
            applied.append(AppliedFilter("price", "lte", filters.max_price))

    range_start = (page - 1) * page_size
    return ProductQuery(
        applied_filters=tuple(applied),
        range_start=range_start,
        range_end=range_start + page_size - 1,
        order=OrderSpec(order_by, ascending=order_dir == "asc"),
    )


@dataclass(frozen=True)
class PageInfo:
    page: int
    page_size: int
    total: int
    total_pages: int
    has_more: bool


def page_info(total: int, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> PageInfo:
    total = max(0, total or 0)
    total_pages = math.ceil(total / page_size) if page_size > 0 else 0
    return PageInfo(
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages,
        has_more=page < total_pages,
    )


@dataclass
class PaginatedResponse(Generic[T]):
    data: list[T]
    page: int
    page_size: int
    total: int
    total_pages: int
    has_more: bool

    @classmethod
    def build(cls, data: list[T], info: PageInfo) -> "PaginatedResponse[T]":
        return cls(
            data=data,
            page=info.page,
            page_size=info.page_size,
            total=info.total,
            total_pages=info.total_pages,
            has_more=info.has_more,
        )
