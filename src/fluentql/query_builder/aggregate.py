"""Aggregate helpers.

Each helper computes its result on a temporary statement variant: a derived
copy whose select list is replaced by ``FUNC(column) AS result`` and whose
ORDER BY, LIMIT and OFFSET are cleared. The receiving builder is never
modified.
"""

from typing import Any, Union

from fluentql.constants.sql import FLOAT_AGGREGATES, AggregateFunction
from fluentql.query_builder.state import WILDCARD

_RESULT = "result"


class AggregateMixin:
    """COUNT/SUM/AVG/MIN/MAX/STDDEV/VARIANCE and existence probes."""

    def _aggregate_variant(self):
        query = self._derive()
        query.state.order_by = []
        query.state.limit = None
        query.state.offset = None
        return query

    def aggregate(
        self,
        function: Union[str, AggregateFunction],
        column: str = WILDCARD,
        distinct: bool = False,
    ) -> Any:
        """Run ``function(column)`` over the current FROM/JOIN/WHERE state.

        SUM, AVG, STDDEV and VARIANCE return ``float``; COUNT returns ``int``;
        MIN and MAX return the value as fetched. A NULL result becomes 0.
        """
        func = AggregateFunction(str(getattr(function, "value", function)).upper())
        sql_name = self.dialect.aggregate_function(func)
        argument = f"DISTINCT {column}" if distinct else column

        query = self._aggregate_variant()
        query.state.select = f"{sql_name}({argument}) AS {_RESULT}"
        value = self.engine.fetch_scalar(*query.compile())

        if value is None:
            value = 0
        if func in FLOAT_AGGREGATES:
            return float(value)
        if func == AggregateFunction.COUNT:
            return int(value)
        return value

    def count(self, column: str = WILDCARD) -> int:
        """Number of matching rows.

        Grouped, distinct and union queries are counted through
        ``SELECT COUNT(*) AS cnt FROM (<query>) AS count_subquery`` so the
        result is the number of rows the query would return.
        """
        state = self.state
        if state.group_by or state.distinct or state.unions:
            inner = self._aggregate_variant()
            sql, params = inner.compile()
            value = self.engine.fetch_scalar(
                f"SELECT COUNT(*) AS cnt FROM ({sql}) AS count_subquery", params
            )
            return int(value or 0)
        return self.aggregate(AggregateFunction.COUNT, column)

    def count_distinct(self, column: str) -> int:
        return self.aggregate(AggregateFunction.COUNT, column, distinct=True)

    def sum(self, column: str) -> float:
        return self.aggregate(AggregateFunction.SUM, column)

    def sum_distinct(self, column: str) -> float:
        return self.aggregate(AggregateFunction.SUM, column, distinct=True)

    def avg(self, column: str) -> float:
        return self.aggregate(AggregateFunction.AVG, column)

    def avg_distinct(self, column: str) -> float:
        return self.aggregate(AggregateFunction.AVG, column, distinct=True)

    def min(self, column: str) -> Any:
        return self.aggregate(AggregateFunction.MIN, column)

    def max(self, column: str) -> Any:
        return self.aggregate(AggregateFunction.MAX, column)

    def std_dev(self, column: str) -> float:
        return self.aggregate(AggregateFunction.STDDEV, column)

    def variance(self, column: str) -> float:
        return self.aggregate(AggregateFunction.VARIANCE, column)

    def count_where(self, column: str, operator: Any, value: Any) -> int:
        """Count rows additionally matching ``column operator value``."""
        return self._derive().where(column, operator, value).count()

    def sum_where(self, column: str, where_column: str, operator: Any, value: Any) -> float:
        return self._derive().where(where_column, operator, value).sum(column)

    def exists(self) -> bool:
        """Probe with ``SELECT 1 ... LIMIT 1``."""
        query = self._aggregate_variant()
        query.state.select = "1"
        query.state.limit = 1
        return self.engine.fetch_one(*query.compile()) is not None

    def doesnt_exist(self) -> bool:
        return not self.exists()
