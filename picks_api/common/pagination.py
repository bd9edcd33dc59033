"""Offset pagination helpers shared by list endpoints."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import Field
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from .schema import BaseSchema

T = TypeVar("T")


class Pagination(BaseSchema):
    """Pagination metadata returned alongside list payloads."""

    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)
    total_pages: int = Field(ge=0)

    @classmethod
    def build(cls, *, page: int, limit: int, total: int) -> Pagination:
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


@dataclass(slots=True)
class PageResult(Generic[T]):
    """A window of ORM rows plus the total count of the filtered query."""

    items: list[T]
    page: int
    limit: int
    total: int

    @property
    def pagination(self) -> Pagination:
        return Pagination.build(page=self.page, limit=self.limit, total=self.total)


async def paginate_sql(
    session: AsyncSession,
    stmt: Select[Any],
    *,
    page: int,
    limit: int,
    order_by: Sequence[ColumnElement[Any]],
) -> PageResult[Any]:
    """Execute ``stmt`` with limit/offset pagination and a total count."""

    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = int((await session.execute(count_stmt)).scalar_one() or 0)

    offset = (page - 1) * limit
    result = await session.execute(stmt.order_by(*order_by).limit(limit).offset(offset))
    rows = list(result.scalars().unique().all())
    return PageResult(items=rows, page=page, limit=limit, total=total)


__all__ = ["PageResult", "Pagination", "paginate_sql"]
