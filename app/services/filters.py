from dataclasses import dataclass
from typing import Annotated, Any, Generic, TypeAlias, TypeVar

from annotated_types import Ge, Le
from fastapi.params import Depends, Query
from sqlalchemy import ColumnElement, Select

from app.schemas.base import BaseSchema
from collections.abc import Sequence

T = TypeVar("T")
RowT = TypeVar("RowT", bound=tuple[Any, ...])

FilterType: TypeAlias = ColumnElement[bool]


class PaginatedSchema(BaseSchema):
    limit: Annotated[int, Ge(ge=1), Le(le=100)] = 50
    offset: Annotated[int, Ge(ge=0)] = 0


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    limit: int
    offset: int


class PaginatedResponseSchema(BaseSchema, Generic[T]):
    items: list[T]
    total: int
    limit: int
    offset: int


def get_pagination(
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    return PaginatedSchema(limit=limit, offset=offset)


Paginated = Annotated[PaginatedSchema, Depends(get_pagination)]


def apply_pagination(
    query: Select[RowT],
    page: PaginatedSchema,
    default_ordering: ColumnElement | Sequence[ColumnElement] | None = None,
) -> Select[RowT]:
    query = query.offset(page.offset).limit(page.limit)
    if default_ordering is not None:
        if not isinstance(default_ordering, Sequence):
            default_ordering = [default_ordering]
        query = query.order_by(*default_ordering)
    return query
