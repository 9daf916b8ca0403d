"""Pagination result shapes returned by the fetch layer."""

import math
from typing import Any, List, Optional

from pydantic import ConfigDict, Field

from fluentql.types.base import FluentBaseModel


class Page(FluentBaseModel):
    """Full pagination result.

    ``last_page`` is ``ceil(total / per_page)``. ``from``/``to`` are the
    1-indexed inclusive positions of the first and last row on this page and
    are both ``None`` when the page holds no rows.

    Attributes:
        data: Rows (or hydrated objects) on this page.
        total: Total number of rows matching the query.
        page: Current page number (1-based).
        per_page: Page size.
        last_page: Number of the last page.
        from_: Position of the first row on this page (serialized as ``from``).
        to: Position of the last row on this page.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    data: List[Any] = Field(default_factory=list)
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    per_page: int = Field(ge=1)
    last_page: int = Field(ge=0)
    from_: Optional[int] = Field(default=None, alias="from")
    to: Optional[int] = None

    @classmethod
    def build(cls, data: List[Any], total: int, page: int, per_page: int) -> "Page":
        first: Optional[int] = None
        last: Optional[int] = None
        if total > 0 and data:
            first = (page - 1) * per_page + 1
            last = first + len(data) - 1
        return cls(
            data=data,
            total=total,
            page=page,
            per_page=per_page,
            last_page=math.ceil(total / per_page),
            from_=first,
            to=last,
        )


class SimplePage(FluentBaseModel):
    """Pagination result that avoids a COUNT query."""

    data: List[Any] = Field(default_factory=list)
    has_more: bool = False
    page: int = Field(ge=1)
    per_page: int = Field(ge=1)
