"""Join condition builder used by ``QueryBuilder.join_using``."""

from typing import Any, List, Sequence

from fluentql.common.exceptions import invalid_argument_error, statement_build_error
from fluentql.constants.sql import Connector, JoinType
from fluentql.query_builder.params import ParameterBinder
from fluentql.query_builder.state import WhereClause


class JoinClauseBuilder:
    """Collects the ON conditions of one join.

    Value conditions (``where``/``or_where``/``on_raw`` bindings) are bound
    through the owning builder's binder, so their placeholders share the
    parent statement's numbering.

    Example:
        >>> qb.join_using("posts", "p", lambda j: (
        ...     j.on("p.user_id", "=", "u.id").where("p.published", "=", 1)
        ... ), "LEFT")
    """

    def __init__(self, table: str, alias: str, join_type: str, binder: ParameterBinder):
        self.table = table
        self.alias = alias
        self.join_type = join_type
        self._binder = binder
        self._conditions: List[WhereClause] = []

    def _add(self, connector: str, expression: str) -> "JoinClauseBuilder":
        self._conditions.append(WhereClause(connector if self._conditions else None, expression))
        return self

    def on(self, first: str, operator: str, second: str) -> "JoinClauseBuilder":
        return self._add(Connector.AND.value, f"{first} {operator} {second}")

    def and_on(self, first: str, operator: str, second: str) -> "JoinClauseBuilder":
        return self.on(first, operator, second)

    def or_on(self, first: str, operator: str, second: str) -> "JoinClauseBuilder":
        return self._add(Connector.OR.value, f"{first} {operator} {second}")

    def where(self, column: str, operator: str, value: Any) -> "JoinClauseBuilder":
        return self._add(Connector.AND.value, f"{column} {operator} {self._binder.add(value)}")

    def or_where(self, column: str, operator: str, value: Any) -> "JoinClauseBuilder":
        return self._add(Connector.OR.value, f"{column} {operator} {self._binder.add(value)}")

    def on_raw(self, sql: str, bindings: Sequence[Any] = ()) -> "JoinClauseBuilder":
        return self._add(Connector.AND.value, self._binder.interpolate(sql, bindings))

    @property
    def conditions(self) -> List[WhereClause]:
        return list(self._conditions)

    def to_sql(self) -> str:
        """Render ``TYPE JOIN table AS alias ON ...``.

        Raises:
            FluentQLError: STATEMENT_BUILD_ERROR when no condition was added
        """
        if not self._conditions:
            raise statement_build_error(
                f"Join on '{self.table}' must have at least one condition",
                fragment=f"{self.join_type} JOIN {self.table} AS {self.alias}",
            )
        return (
            f"{self.join_type.upper()} JOIN {self.table} AS {self.alias} "
            f"ON {join_clauses(self._conditions)}"
        )


def join_clauses(clauses: Sequence[WhereClause]) -> str:
    """Join fragments as ``expr1 AND expr2 OR expr3``.

    The first fragment's connector is dropped; every later fragment is
    prefixed by a single space, its connector and a single space.
    """
    parts = []
    for index, clause in enumerate(clauses):
        prefix = f" {clause.connector} " if index and clause.connector else ""
        parts.append(prefix + clause.expression)
    return "".join(parts)


def normalize_join_type(join_type: str) -> str:
    """Upper-case and validate a join type name."""
    try:
        return JoinType(str(getattr(join_type, "value", join_type)).upper()).value
    except ValueError:
        raise invalid_argument_error(
            f"Unsupported join type '{join_type}'",
            argument="type",
            value=join_type,
        ) from None
