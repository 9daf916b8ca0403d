import re
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from fluentql.common.exceptions import invalid_argument_error
from fluentql.constants.sql import COMPARISON_OPERATORS, Connector, JoinType, SortDirection
from fluentql.logging import get_logger
from fluentql.protocols.providers import Extension
from fluentql.query_builder.identifier import configure_table_map
from fluentql.query_builder.join import JoinClauseBuilder, join_clauses, normalize_join_type
from fluentql.query_builder.params import ParameterBinder
from fluentql.query_builder.renderer import SqlRenderer
from fluentql.query_builder.state import WILDCARD, StatementState, UnionBranch
from fluentql.settings import get_settings

if TYPE_CHECKING:
    from fluentql.engine.base import SQLEngine

logger = get_logger(__name__)

# A sub-statement: another builder, a SQL string, or a callback that
# receives a fresh builder sharing this builder's parameters.
SubQuery = Union["BaseQueryBuilder", str, Callable[["BaseQueryBuilder"], Any]]

_MISSING = object()
_NULL_EQUALITY = {"=": "IS NULL", "IS": "IS NULL", "!=": "IS NOT NULL", "<>": "IS NOT NULL", "IS NOT": "IS NOT NULL"}
_AS_ALIAS = re.compile(r"\s+AS\s+[`\"]?(\w+)[`\"]?\s*$", re.IGNORECASE)


class BaseQueryBuilder:
    """Clause accumulator behind the fluent query API.

    A builder is stateful and reentrant: every mutator changes the builder
    in place and returns it, and ``to_sql()`` can be called any number of
    times. Fragments are stored as rendered strings and only bound values go
    through the parameter binder, so the produced SQL never contains a
    literal taken from a caller.

    The identifier resolution pass runs once per builder instance, the first
    time a SELECT is rendered. ``reset()`` arms it again.

    Args:
        engine: Engine providing the dialect, the shared identifier
            resolver and execution.
        extensions: Optional mapping of extension name to callable, merged
            over the engine's extensions.
    """

    def __init__(
        self,
        engine: "SQLEngine",
        extensions: Optional[Mapping[str, Callable[..., Any]]] = None,
        *,
        binder: Optional[ParameterBinder] = None,
    ):
        self.engine = engine
        self.resolver = engine.resolver
        self.dialect = engine.dialect
        self._renderer = SqlRenderer(self.resolver)
        self._state = StatementState()
        self._binder = binder if binder is not None else ParameterBinder()
        self._preflight_done = False
        self._extensions: Dict[str, Callable[..., Any]] = dict(getattr(engine, "extensions", {}) or {})
        if extensions:
            self._extensions.update(extensions)
        for name, extension in self._extensions.items():
            if not isinstance(extension, Extension):
                raise invalid_argument_error(
                    f"Extension '{name}' must be callable",
                    argument="extensions",
                    value=name,
                )

    # Helpers ---------------------------------------------------------------

    def _child(self) -> "BaseQueryBuilder":
        """A builder that shares this builder's parameter binder."""
        return type(self)(self.engine, self._extensions, binder=self._binder)

    def _compile_sub(self, sub: SubQuery, bindings: Sequence[Any] = ()) -> str:
        """Render a sub-statement with its parameters bound into this builder."""
        if isinstance(sub, BaseQueryBuilder):
            if sub._binder is self._binder:
                return sub.to_sql()
            return self._binder.rebind(sub.to_sql(), sub.get_params())
        if isinstance(sub, str):
            return self._binder.interpolate(sub, bindings)
        if callable(sub):
            child = self._child()
            sub(child)
            return child.to_sql()
        raise invalid_argument_error(
            "Sub-query must be a builder, a SQL string or a callable",
            argument="sub",
            value=type(sub).__name__,
        )

    def _operator(self, operator: str) -> str:
        op = " ".join(str(operator).split()).upper()
        if op not in COMPARISON_OPERATORS:
            raise invalid_argument_error(
                f"Unsupported comparison operator '{operator}'",
                argument="operator",
                value=operator,
            )
        return op

    def _comparison(self, column: str, operator: Any, value: Any) -> str:
        if value is _MISSING:
            operator, value = "=", operator
        op = self._operator(operator)
        if value is None and op in _NULL_EQUALITY:
            return f"{column} {_NULL_EQUALITY[op]}"
        if op in ("IN", "NOT IN"):
            return f"{column} {op} ({self._binder.add_many(value)})"
        return f"{column} {op} {self._binder.add(value)}"

    def _append_select(self, *expressions: str) -> "BaseQueryBuilder":
        existing = self._select_list()
        self._state.select = ", ".join(existing + list(expressions))
        return self

    def _select_list(self) -> List[str]:
        if not self._state.has_select_list:
            return []
        return self._state.select.split(", ")

    @staticmethod
    def _flatten(columns: Iterable[Any]) -> List[str]:
        flat: List[str] = []
        for column in columns:
            if isinstance(column, (list, tuple)):
                flat.extend(str(c) for c in column)
            else:
                flat.append(str(column))
        return flat

    # Select ----------------------------------------------------------------

    def select(self, *columns: Union[str, Sequence[str]]) -> "BaseQueryBuilder":
        flat = self._flatten(columns)
        self._state.select = ", ".join(flat) if flat else WILDCARD
        return self

    def add_select(self, *columns: Union[str, Sequence[str]]) -> "BaseQueryBuilder":
        return self._append_select(*self._flatten(columns))

    def select_raw(self, expression: str, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        self._state.select = self._binder.interpolate(expression, bindings)
        return self

    def add_select_raw(self, expression: str, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        return self._append_select(self._binder.interpolate(expression, bindings))

    def select_as(self, column: str, alias: str) -> "BaseQueryBuilder":
        return self._append_select(f"{column} AS {alias}")

    def select_aliases(self, mapping: Mapping[str, str]) -> "BaseQueryBuilder":
        return self._append_select(*(f"{column} AS {alias}" for column, alias in mapping.items()))

    def select_sub(self, sub: SubQuery, alias: str, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        return self._append_select(f"({self._compile_sub(sub, bindings)}) AS {alias}")

    def select_count(self, column: str = "*", alias: str = "count") -> "BaseQueryBuilder":
        return self.select_as(f"COUNT({column})", alias)

    def select_sum(self, column: str, alias: str = "total") -> "BaseQueryBuilder":
        return self.select_as(f"SUM({column})", alias)

    def select_avg(self, column: str, alias: str = "average") -> "BaseQueryBuilder":
        return self.select_as(f"AVG({column})", alias)

    def select_min(self, column: str, alias: str = "minimum") -> "BaseQueryBuilder":
        return self.select_as(f"MIN({column})", alias)

    def select_max(self, column: str, alias: str = "maximum") -> "BaseQueryBuilder":
        return self.select_as(f"MAX({column})", alias)

    def select_concat(
        self, columns: Sequence[str], alias: str, separator: Optional[str] = None
    ) -> "BaseQueryBuilder":
        placeholder = self._binder.add(separator) if separator is not None else None
        return self.select_as(self.dialect.concat(list(columns), placeholder), alias)

    def select_coalesce(self, columns: Sequence[str], alias: str) -> "BaseQueryBuilder":
        return self.select_as(f"COALESCE({', '.join(columns)})", alias)

    def select_case(
        self, conditions: Mapping[str, str], else_: Optional[str] = None, alias: str = "case_result"
    ) -> "BaseQueryBuilder":
        """Add ``CASE WHEN <cond> THEN <result> ... END``; conditions and results are raw SQL."""
        expression = "CASE"
        for condition, result in conditions.items():
            expression += f" WHEN {condition} THEN {result}"
        if else_ is not None:
            expression += f" ELSE {else_}"
        return self.select_as(expression + " END", alias)

    def select_case_when(
        self,
        column: str,
        when_then: Mapping[Any, Any],
        else_: Any = None,
        alias: str = "case_result",
    ) -> "BaseQueryBuilder":
        """Add ``CASE column WHEN :a THEN :b ... END`` with every value bound."""
        expression = f"CASE {column}"
        for when, then in when_then.items():
            expression += f" WHEN {self._binder.add(when)} THEN {self._binder.add(then)}"
        if else_ is not None:
            expression += f" ELSE {self._binder.add(else_)}"
        return self.select_as(expression + " END", alias)

    def select_json(self, column: str, path: str, alias: str, unquote: bool = False) -> "BaseQueryBuilder":
        expression = self.dialect.json_extract(column, self._binder.add(path), unquote)
        return self.select_as(expression, alias)

    def select_group_concat(
        self, column: str, alias: str, separator: str = ",", distinct: bool = False
    ) -> "BaseQueryBuilder":
        expression = self.dialect.group_concat(column, self._binder.add(separator), distinct)
        return self.select_as(expression, alias)

    def distinct(self) -> "BaseQueryBuilder":
        self._state.distinct = True
        return self

    def distinct_on(self, *columns: Union[str, Sequence[str]]) -> "BaseQueryBuilder":
        """``DISTINCT ON (...)`` on PostgreSQL, plain ``DISTINCT`` elsewhere."""
        self._state.distinct = True
        self._state.distinct_on = self._flatten(columns)
        return self

    def remove_distinct(self) -> "BaseQueryBuilder":
        self._state.distinct = False
        self._state.distinct_on = []
        return self

    def clear_select(self) -> "BaseQueryBuilder":
        self._state.select = WILDCARD
        return self

    def has_column(self, column: str) -> bool:
        """Whether ``column`` is selected, directly or as an alias."""
        for part in self._select_list():
            if part.strip() == column:
                return True
            match = _AS_ALIAS.search(part)
            if match and match.group(1) == column:
                return True
        return False

    def get_select(self) -> str:
        return self._state.select

    # From ------------------------------------------------------------------

    def from_(self, table: str, alias: Optional[str] = None) -> "BaseQueryBuilder":
        self._state.from_ = f"{table} AS {alias}" if alias else table
        return self

    def from_raw(self, expression: str, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        self._state.from_ = self._binder.interpolate(expression, bindings)
        return self

    def from_sub(self, sub: SubQuery, alias: str, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        self._state.from_ = f"({self._compile_sub(sub, bindings)}) AS {alias}"
        return self

    def add_from(self, table: str, alias: Optional[str] = None) -> "BaseQueryBuilder":
        expression = f"{table} AS {alias}" if alias else table
        if self._state.from_:
            self._state.from_ = f"{self._state.from_}, {expression}"
        else:
            self._state.from_ = expression
        return self

    # Join ------------------------------------------------------------------

    def join(
        self,
        table: str,
        alias: str,
        first: str,
        operator: str,
        second: str,
        type: Union[str, JoinType] = JoinType.INNER,
    ) -> "BaseQueryBuilder":
        join_type = normalize_join_type(type)
        self._state.joins.append(
            f"{join_type} JOIN {table} AS {alias} ON {first} {self._operator(operator)} {second}"
        )
        return self

    def inner_join(self, table: str, alias: str, first: str, operator: str, second: str) -> "BaseQueryBuilder":
        return self.join(table, alias, first, operator, second, JoinType.INNER)

    def left_join(self, table: str, alias: str, first: str, operator: str, second: str) -> "BaseQueryBuilder":
        return self.join(table, alias, first, operator, second, JoinType.LEFT)

    def right_join(self, table: str, alias: str, first: str, operator: str, second: str) -> "BaseQueryBuilder":
        return self.join(table, alias, first, operator, second, JoinType.RIGHT)

    def cross_join(self, table: str, alias: Optional[str] = None) -> "BaseQueryBuilder":
        self._state.joins.append(f"CROSS JOIN {table}" + (f" AS {alias}" if alias else ""))
        return self

    def join_using(
        self,
        table: str,
        alias: str,
        callback: Callable[[JoinClauseBuilder], Any],
        type: Union[str, JoinType] = JoinType.INNER,
    ) -> "BaseQueryBuilder":
        """Add a join whose conditions are built by ``callback``.

        Raises:
            FluentQLError: STATEMENT_BUILD_ERROR if the callback adds no condition
        """
        clause = JoinClauseBuilder(table, alias, normalize_join_type(type), self._binder)
        callback(clause)
        self._state.joins.append(clause.to_sql())
        return self

    # Where -----------------------------------------------------------------

    def where(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> "BaseQueryBuilder":
        """Add ``column operator value`` joined with AND.

        ``where(column, value)`` means ``=``. A ``None`` value with ``=``,
        ``!=`` or ``<>`` becomes ``IS NULL`` / ``IS NOT NULL``.
        """
        self._state.add_where(self._comparison(column, operator, value), Connector.AND.value)
        return self

    def and_where(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> "BaseQueryBuilder":
        return self.where(column, operator, value)

    def or_where(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> "BaseQueryBuilder":
        self._state.add_where(self._comparison(column, operator, value), Connector.OR.value)
        return self

    def where_raw(self, sql: str, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        self._state.add_where(self._binder.interpolate(sql, bindings), Connector.AND.value)
        return self

    def or_where_raw(self, sql: str, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        self._state.add_where(self._binder.interpolate(sql, bindings), Connector.OR.value)
        return self

    def _in_expression(self, column: str, values: Union[SubQuery, Iterable[Any]], negate: bool) -> Optional[str]:
        keyword = "NOT IN" if negate else "IN"
        if isinstance(values, (BaseQueryBuilder, str)) or callable(values):
            return f"{column} {keyword} ({self._compile_sub(values)})"
        values = list(values)
        if not values:
            return None
        return f"{column} {keyword} ({self._binder.add_many(values)})"

    def where_in(self, column: str, values: Union[SubQuery, Iterable[Any]]) -> "BaseQueryBuilder":
        """Add ``column IN (...)``. An empty list renders ``1=0``."""
        self._state.add_where(self._in_expression(column, values, False) or "1=0", Connector.AND.value)
        return self

    def or_where_in(self, column: str, values: Union[SubQuery, Iterable[Any]]) -> "BaseQueryBuilder":
        self._state.add_where(self._in_expression(column, values, False) or "1=0", Connector.OR.value)
        return self

    def where_not_in(self, column: str, values: Union[SubQuery, Iterable[Any]]) -> "BaseQueryBuilder":
        """Add ``column NOT IN (...)``. An empty list adds nothing."""
        expression = self._in_expression(column, values, True)
        if expression:
            self._state.add_where(expression, Connector.AND.value)
        return self

    def where_between(self, column: str, low: Any, high: Any) -> "BaseQueryBuilder":
        self._state.add_where(
            f"{column} BETWEEN {self._binder.add(low)} AND {self._binder.add(high)}", Connector.AND.value
        )
        return self

    def where_not_between(self, column: str, low: Any, high: Any) -> "BaseQueryBuilder":
        self._state.add_where(
            f"{column} NOT BETWEEN {self._binder.add(low)} AND {self._binder.add(high)}", Connector.AND.value
        )
        return self

    def where_null(self, column: str) -> "BaseQueryBuilder":
        self._state.add_where(f"{column} IS NULL", Connector.AND.value)
        return self

    def where_not_null(self, column: str) -> "BaseQueryBuilder":
        self._state.add_where(f"{column} IS NOT NULL", Connector.AND.value)
        return self

    def or_where_null(self, column: str) -> "BaseQueryBuilder":
        self._state.add_where(f"{column} IS NULL", Connector.OR.value)
        return self

    def or_where_not_null(self, column: str) -> "BaseQueryBuilder":
        self._state.add_where(f"{column} IS NOT NULL", Connector.OR.value)
        return self

    def where_exists(self, sub: SubQuery, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        self._state.add_where(f"EXISTS ({self._compile_sub(sub, bindings)})", Connector.AND.value)
        return self

    def where_not_exists(self, sub: SubQuery, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        self._state.add_where(f"NOT EXISTS ({self._compile_sub(sub, bindings)})", Connector.AND.value)
        return self

    def where_like(self, column: str, pattern: str) -> "BaseQueryBuilder":
        self._state.add_where(f"{column} LIKE {self._binder.add(pattern)}", Connector.AND.value)
        return self

    def or_where_like(self, column: str, pattern: str) -> "BaseQueryBuilder":
        self._state.add_where(f"{column} LIKE {self._binder.add(pattern)}", Connector.OR.value)
        return self

    def where_not_like(self, column: str, pattern: str) -> "BaseQueryBuilder":
        self._state.add_where(f"{column} NOT LIKE {self._binder.add(pattern)}", Connector.AND.value)
        return self

    def where_column(self, first: str, operator: str, second: str) -> "BaseQueryBuilder":
        self._state.add_where(f"{first} {self._operator(operator)} {second}", Connector.AND.value)
        return self

    def _group(self, callback: Callable[["BaseQueryBuilder"], Any], connector: str) -> "BaseQueryBuilder":
        child = self._child()
        callback(child)
        if child._state.where:
            self._state.add_where(f"({join_clauses(child._state.where)})", connector)
        return self

    def where_group(self, callback: Callable[["BaseQueryBuilder"], Any]) -> "BaseQueryBuilder":
        """Add the WHERE clauses built by ``callback`` as one parenthesized group."""
        return self._group(callback, Connector.AND.value)

    def and_where_group(self, callback: Callable[["BaseQueryBuilder"], Any]) -> "BaseQueryBuilder":
        return self._group(callback, Connector.AND.value)

    def or_where_group(self, callback: Callable[["BaseQueryBuilder"], Any]) -> "BaseQueryBuilder":
        return self._group(callback, Connector.OR.value)

    # Group / having / order / limit ----------------------------------------

    def group_by(self, *columns: Union[str, Sequence[str]]) -> "BaseQueryBuilder":
        for column in self._flatten(columns):
            if column not in self._state.group_by:
                self._state.group_by.append(column)
        return self

    def having(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> "BaseQueryBuilder":
        self._state.having.append(self._comparison(column, operator, value))
        return self

    def having_raw(self, sql: str, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        self._state.having.append(self._binder.interpolate(sql, bindings))
        return self

    def order_by(self, column: str, direction: Union[str, SortDirection] = SortDirection.ASC) -> "BaseQueryBuilder":
        try:
            normalized = SortDirection(str(getattr(direction, "value", direction)).upper()).value
        except ValueError:
            raise invalid_argument_error(
                f"Order direction must be ASC or DESC, got '{direction}'",
                argument="direction",
                value=direction,
            ) from None
        self._state.order_by.append(f"{column} {normalized}")
        return self

    def order_by_desc(self, column: str) -> "BaseQueryBuilder":
        return self.order_by(column, SortDirection.DESC)

    def order_by_raw(self, sql: str, bindings: Sequence[Any] = ()) -> "BaseQueryBuilder":
        self._state.order_by.append(self._binder.interpolate(sql, bindings))
        return self

    def limit(self, limit: int) -> "BaseQueryBuilder":
        self._state.limit = max(0, int(limit))
        return self

    def offset(self, offset: int) -> "BaseQueryBuilder":
        self._state.offset = max(0, int(offset))
        return self

    def for_page(self, page: int, per_page: int) -> "BaseQueryBuilder":
        per_page = max(0, int(per_page))
        return self.limit(per_page).offset((max(1, int(page)) - 1) * per_page)

    # Union -----------------------------------------------------------------

    def union(
        self, sub: SubQuery, all: bool = False, params: Optional[Mapping[str, Any]] = None
    ) -> "BaseQueryBuilder":
        """Append a UNION branch.

        ``params`` applies to a SQL string branch that uses its own named
        placeholders; they are re-bound under this builder's names.
        """
        if isinstance(sub, str) and params:
            sql = self._binder.rebind(sub, params)
        else:
            sql = self._compile_sub(sub)
        branch_params = {name: value for name, value in self._binder.params.items() if f":{name}" in sql}
        self._state.unions.append(UnionBranch(sql=sql, params=branch_params, all=all))
        return self

    def union_all(self, sub: SubQuery, params: Optional[Mapping[str, Any]] = None) -> "BaseQueryBuilder":
        return self.union(sub, all=True, params=params)

    # Raw statements --------------------------------------------------------

    def custom(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> "BaseQueryBuilder":
        """Use ``sql`` verbatim instead of the structured clauses.

        Named parameters in ``params`` are re-bound under ``:pN`` names. WHERE
        clauses added afterwards are appended for UPDATE/DELETE statements.
        """
        self._state.custom = self._binder.rebind(sql, params or {})
        return self

    # State -----------------------------------------------------------------

    def to_sql(self) -> str:
        """Render the statement.

        The first SELECT render of a builder runs the identifier resolution
        pass over its clauses; later renders reuse the resolved fragments.
        """
        if self._state.custom:
            sql = self._renderer.render_custom(self._state)
        else:
            if not self._preflight_done:
                self._renderer.preflight(self._state)
                self._preflight_done = True
            sql = self._renderer.render_select(self._state)

        if get_settings().query.debug_sql:
            logger.debug("Rendered SQL", extra={"db.statement": sql, "db.params": self._binder.params})
        return sql

    def get_params(self) -> Dict[str, Any]:
        """Bound values keyed by placeholder name (without the colon)."""
        return self._binder.params

    def compile(self) -> Tuple[str, Dict[str, Any]]:
        sql = self.to_sql()
        return sql, self.get_params()

    def to_debug_sql(self) -> str:
        return self._renderer.debug_sql(self.to_sql(), self.get_params())

    def reset(self) -> "BaseQueryBuilder":
        """Clear every clause and bound value.

        The placeholder counter keeps increasing, so names handed out before
        the reset are never reused.
        """
        self._state = StatementState()
        self._binder.reset()
        self._preflight_done = False
        return self

    def clone(self) -> "BaseQueryBuilder":
        """Independent deep copy of state, parameters and counter."""
        copy = type(self)(self.engine, self._extensions, binder=self._binder.copy())
        copy._state = self._state.copy()
        copy._preflight_done = self._preflight_done
        return copy

    def duplicate(self) -> "BaseQueryBuilder":
        return self.clone()

    def set_table_map(self, mapping: Mapping[str, str]) -> "BaseQueryBuilder":
        """Merge into the process-wide table map."""
        configure_table_map(mapping)
        return self

    @property
    def state(self) -> StatementState:
        return self._state

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} dialect={self.dialect.name.value} params={len(self._binder.params)}>"
