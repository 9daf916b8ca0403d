"""SQL rendering.

The renderer turns a ``StatementState`` into one SQL string. Before the
first render of a builder it runs the resolution pass, which rewrites the
FROM and JOIN tables through the identifier resolver and normalizes column
references in every clause list.
"""

import re
from decimal import Decimal
from typing import Any, Mapping

from fluentql.common.exceptions import statement_build_error
from fluentql.logging import get_logger
from fluentql.query_builder.identifier import AliasScope, IdentifierResolver, describe_scope
from fluentql.query_builder.join import join_clauses
from fluentql.query_builder.state import WILDCARD, StatementState

logger = get_logger(__name__)

_CUSTOM_DML = re.compile(r"^(UPDATE|DELETE)", re.IGNORECASE)
_PLACEHOLDER = re.compile(r"(?<![:\w]):(\w+)")

_REF = r"(?:[`\"]?\w+[`\"]?\.)?[`\"]?\w+[`\"]?"
_FROM = re.compile(rf"^\s*({_REF})\s*(?:AS\s+|\s+)?([`\"]?\w+[`\"]?)?\s*$", re.IGNORECASE)
_JOIN = re.compile(
    rf"\bJOIN\s+({_REF})(?:\s+(?:AS\s+)?([`\"]?\w+[`\"]?))?(\s+(?:ON|USING)\b|\s*$)",
    re.IGNORECASE,
)
_ON = re.compile(r" ON ", re.IGNORECASE)
_USING = re.compile(r" USING ", re.IGNORECASE)


class SqlRenderer:
    """Serializes statement state for one dialect.

    Args:
        resolver: Identifier resolver shared by the engine; its dialect
            decides quoting and the LIMIT/OFFSET spelling.
    """

    def __init__(self, resolver: IdentifierResolver):
        self.resolver = resolver
        self.dialect = resolver.dialect

    # Resolution pass -------------------------------------------------------

    def preflight(self, state: StatementState) -> AliasScope:
        """Rewrite table and column references in ``state`` in place.

        Returns the alias scope used for the pass; callers drop it once the
        statement is rendered.
        """
        scope = self.resolver.scope()

        if state.from_:
            self._resolve_from(state, scope)

        for index, join in enumerate(state.joins):
            state.joins[index] = self._resolve_join(join, scope)

        for clause in state.where:
            clause.expression = scope.normalize_clause(clause.expression)
        state.having = [scope.normalize_clause(h) for h in state.having]

        if state.has_select_list:
            state.select = scope.normalize_clause(state.select, qualify_bare=True)
        state.order_by = [scope.normalize_clause(o, qualify_bare=True) for o in state.order_by]
        state.group_by = [scope.normalize_clause(g, qualify_bare=True) for g in state.group_by]

        logger.debug("Statement references resolved", extra={"aliases": describe_scope(scope)})
        return scope

    def _resolve_from(self, state: StatementState, scope: AliasScope) -> None:
        match = _FROM.match(state.from_ or "")
        if not match:
            return
        ref, alias = match.group(1), match.group(2)
        if alias and alias.upper() == "AS":
            alias = None

        schema, table = self.resolver.parse_qualified_ref(ref)
        resolved = self.resolver.resolve_table(table, schema)
        state.from_ = self.resolver.quote_qualified(schema, resolved) + (f" {alias}" if alias else "")

        if alias:
            scope.register(alias, schema, resolved)
            scope.register(resolved, schema, resolved, implicit=True)
        else:
            scope.register(resolved, schema, resolved)

    def _resolve_join(self, join: str, scope: AliasScope) -> str:
        def _swap(match: "re.Match[str]") -> str:
            ref, alias, keyword = match.group(1), match.group(2), match.group(3)
            schema, table = self.resolver.parse_qualified_ref(ref)
            resolved = self.resolver.resolve_table(table, schema)
            if alias:
                scope.register(alias, schema, resolved)
            else:
                scope.register(resolved, schema, resolved)
            alias_chunk = f" {alias}" if alias else ""
            return f"JOIN {self.resolver.quote_qualified(schema, resolved)}{alias_chunk}{keyword}"

        join = _JOIN.sub(_swap, join, count=1)

        for keyword in (_ON, _USING):
            found = keyword.search(join)
            if found:
                head, tail = join[: found.end()], join[found.end():]
                return head + scope.normalize_clause(tail)
        return join

    # Rendering -------------------------------------------------------------

    def render_custom(self, state: StatementState) -> str:
        sql = state.custom or ""
        if _CUSTOM_DML.match(sql) and state.where:
            sql += " WHERE " + join_clauses(state.where)
        return sql

    def render_select(self, state: StatementState) -> str:
        """Concatenate the clause lists into a SELECT statement.

        Raises:
            FluentQLError: STATEMENT_BUILD_ERROR when no FROM target is set
        """
        if not state.from_:
            raise statement_build_error("Cannot render a SELECT without a FROM target")

        sql = "SELECT "
        if state.distinct:
            sql += self.dialect.distinct_clause(state.distinct_on) + " "
        sql += (state.select or WILDCARD) + " FROM " + state.from_

        if state.joins:
            sql += " " + " ".join(state.joins)
        if state.where:
            sql += " WHERE " + join_clauses(state.where)
        if state.group_by:
            sql += " GROUP BY " + ", ".join(state.group_by)
        if state.having:
            sql += " HAVING " + " AND ".join(state.having)
        if state.order_by:
            sql += " ORDER BY " + ", ".join(state.order_by)

        tail = self.dialect.limit_offset(state.limit, state.offset)
        if tail:
            sql += " " + tail

        for branch in state.unions:
            sql += " UNION ALL " if branch.all else " UNION "
            sql += branch.sql

        return sql

    def debug_sql(self, sql: str, params: Mapping[str, Any]) -> str:
        """Inline bound values for human inspection. Never execute the result."""

        def _inline(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name not in params:
                return match.group(0)
            value = params[name]
            if value is None:
                return "NULL"
            if isinstance(value, bool):
                return str(int(value))
            if isinstance(value, (int, float, Decimal)):
                return str(value)
            return self.dialect.quote_string(str(value))

        return _PLACEHOLDER.sub(_inline, sql)
