"""Read operations of the query builder.

Every method here runs on a derived copy of the builder (``_derive``), so
replacing the select list, the limit or the offset for one read never
changes what a later read on the same builder sees.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, Iterator, List, Optional, Type, Union

import pandas as pd
from pydantic import BaseModel

from fluentql.common.exceptions import invalid_argument_error
from fluentql.settings import get_settings
from fluentql.types.results import Page, SimplePage

Row = Dict[str, Any]
RowShape = Optional[Union[Type[BaseModel], Callable[[Row], Any]]]


def shape_row(row: Row, into: RowShape) -> Any:
    """Convert a row dict into ``into``: a pydantic model or any callable."""
    if into is None:
        return row
    if isinstance(into, type) and issubclass(into, BaseModel):
        return into.model_validate(row)
    return into(row)


def _check_positive(name: str, value: int) -> None:
    if value < 1:
        raise invalid_argument_error(f"{name} must be at least 1", argument=name, value=value)


class FetchMixin:
    """Fetching and result shaping."""

    def fetch_all(self, into: RowShape = None) -> List[Any]:
        """Run the SELECT and return every row.

        Args:
            into: Optional pydantic model class (validated with
                ``model_validate``) or callable receiving the row dict.
        """
        rows = self.engine.fetch_all(*self._derive().compile())
        return [shape_row(row, into) for row in rows]

    def first(self, into: RowShape = None) -> Any:
        """First row or ``None``."""
        query = self._derive().limit(1)
        row = self.engine.fetch_one(*query.compile())
        if row is None:
            return None
        return shape_row(row, into)

    def value(self, column: str) -> Any:
        """Value of ``column`` in the first row, or ``None``."""
        query = self._derive()
        query.state.select = column
        query.limit(1)
        return self.engine.fetch_scalar(*query.compile())

    def pluck(self, column: str, key: Optional[str] = None) -> Union[List[Any], Dict[Any, Any]]:
        """Values of one column, or a ``{key: column}`` dict when ``key`` is given."""
        query = self._derive()
        query.state.select = f"{key}, {column}" if key and key != column else column
        rows = self.engine.fetch_all(*query.compile())
        if key:
            # values[-1] is the key itself when both name the same column
            return {values[0]: values[-1] for values in (list(row.values()) for row in rows)}
        return [next(iter(row.values())) for row in rows]

    def fetch_keyed(self, column: str) -> Dict[Any, Row]:
        """Rows keyed by the value of ``column``; later rows win on duplicates."""
        return {row[column]: row for row in self.fetch_all()}

    def fetch_grouped(self, column: str) -> Dict[Any, List[Row]]:
        grouped: Dict[Any, List[Row]] = defaultdict(list)
        for row in self.fetch_all():
            grouped[row[column]].append(row)
        return dict(grouped)

    def fetch_dataframe(self) -> pd.DataFrame:
        return self.engine.fetch_dataframe(*self._derive().compile())

    def chunk(self, size: int, callback: Callable[[List[Row]], Any]) -> bool:
        """Feed the result to ``callback`` one page of ``size`` rows at a time.

        Pages are read with ``LIMIT size OFFSET page * size``. Iteration stops
        when a page is short or empty, or when the callback returns ``False``.

        Returns:
            False if the callback stopped the iteration, True otherwise
        """
        _check_positive("size", size)
        page = 0
        while True:
            query = self._derive().limit(size).offset(page * size)
            rows = self.engine.fetch_all(*query.compile())
            if not rows:
                return True
            if callback(rows) is False:
                return False
            if len(rows) < size:
                return True
            page += 1

    def cursor(self) -> Iterator[Row]:
        """Stream rows one at a time through a server-side cursor.

        The iterator is forward-only and cannot be restarted.
        """
        return self.engine.stream(*self._derive().compile())

    def lazy(self, size: Optional[int] = None) -> Iterator[Row]:
        """Yield rows one by one, reading them in pages of ``size``."""
        size = size or get_settings().query.default_chunk_size
        _check_positive("size", size)
        page = 0
        while True:
            query = self._derive().limit(size).offset(page * size)
            rows = self.engine.fetch_all(*query.compile())
            yield from rows
            if len(rows) < size:
                return
            page += 1

    def paginate(self, page: int = 1, per_page: int = 15, into: RowShape = None) -> Page:
        """Run a count query and one page of data."""
        _check_positive("page", page)
        _check_positive("per_page", per_page)
        total = self.count()
        data: List[Any] = []
        if total:
            query = self._derive().for_page(page, per_page)
            data = [shape_row(row, into) for row in self.engine.fetch_all(*query.compile())]
        return Page.build(data, total, page, per_page)

    def simple_paginate(self, page: int = 1, per_page: int = 15, into: RowShape = None) -> SimplePage:
        """Fetch ``per_page + 1`` rows to learn whether a next page exists."""
        _check_positive("page", page)
        _check_positive("per_page", per_page)
        query = self._derive().limit(per_page + 1).offset((page - 1) * per_page)
        rows = self.engine.fetch_all(*query.compile())
        has_more = len(rows) > per_page
        data = [shape_row(row, into) for row in rows[:per_page]]
        return SimplePage(data=data, has_more=has_more, page=page, per_page=per_page)
