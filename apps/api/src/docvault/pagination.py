from dataclasses import dataclass
import math
from typing import Any, Callable, Generic, Literal, Mapping, TypeVar

from fastapi import Query
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from docvault.errors import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class PageParams:
    page: int = 1
    limit: int = 10
    sort_by: str = "created_at"
    sort_order: str = "DESC"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class Page(Generic[T]):
    data: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    def to_dict(self, serialize: Callable[[T], dict[str, Any]]) -> dict[str, Any]:
        return {
            "data": [serialize(item) for item in self.data],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
        }


def page_params(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str = Query(default="created_at"),
    sort_order: Literal["ASC", "DESC", "asc", "desc"] = Query(default="DESC"),
) -> PageParams:
    return PageParams(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order.upper())


def paginate(
    session: Session,
    stmt: Select,
    params: PageParams,
    *,
    sortable: Mapping[str, Any],
) -> Page:
    sort_column = sortable.get(params.sort_by)
    if sort_column is None:
        allowed = ", ".join(sorted(sortable))
        raise ValidationError(f"sort_by must be one of: {allowed}")

    total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    ordering = sort_column.asc() if params.sort_order == "ASC" else sort_column.desc()
    rows = session.scalars(stmt.order_by(ordering).offset(params.offset).limit(params.limit)).all()
    return Page(data=list(rows), total=int(total), page=params.page, limit=params.limit)
