"""INSERT / UPDATE / DELETE support for the query builder."""

from typing import Any, Mapping, Optional, Sequence

from fluentql.common.exceptions import invalid_argument_error
from fluentql.query_builder.params import ParameterBinder


class DmlMixin:
    """Data-modifying statements.

    ``insert`` and ``insert_batch`` execute immediately. ``update`` and
    ``delete`` only stage a custom statement; add WHERE clauses and call
    ``execute()``.
    """

    def _target(self, table: str) -> str:
        schema, name = self.resolver.parse_qualified_ref(table)
        return self.resolver.quote_qualified(schema, self.resolver.resolve_table(name, schema))

    def insert(self, table: str, data: Mapping[str, Any], primary_key: str = "id") -> Any:
        """Insert one row and return the generated key.

        Raises:
            FluentQLError: INVALID_ARGUMENT when ``data`` is empty
        """
        if not data:
            raise invalid_argument_error("Cannot insert empty data", argument="data")

        binder = ParameterBinder()
        columns = ", ".join(self.resolver.quote(column) for column in data)
        placeholders = binder.add_many(data.values())
        sql = f"INSERT INTO {self._target(table)} ({columns}) VALUES ({placeholders})"
        sql += self.dialect.returning_clause(primary_key)
        return self.engine.insert(sql, binder.params, primary_key)

    def insert_batch(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert many rows in one statement and return the affected row count.

        Columns are taken from the first row; a key missing from a later row
        is inserted as NULL.
        """
        if not rows:
            return 0

        columns = list(rows[0].keys())
        binder = ParameterBinder()
        values = ", ".join(
            f"({binder.add_many(row.get(column) for column in columns)})" for row in rows
        )
        column_list = ", ".join(self.resolver.quote(column) for column in columns)
        sql = f"INSERT INTO {self._target(table)} ({column_list}) VALUES {values}"
        return self.engine.execute(sql, binder.params)

    def update(self, table: str, data: Mapping[str, Any]) -> "DmlMixin":
        """Stage ``UPDATE table SET col = :set_col, ...``.

        Raises:
            FluentQLError: INVALID_ARGUMENT when ``data`` is empty
        """
        if not data:
            raise invalid_argument_error("Cannot update with empty data", argument="data")

        assignments = []
        for column, value in data.items():
            placeholder = self._binder.set(f"set_{self.dialect.sanitize_name(column)}", value)
            assignments.append(f"{self.resolver.quote(column)} = {placeholder}")
        self.state.custom = f"UPDATE {self._target(table)} SET {', '.join(assignments)}"
        return self

    def delete(self, table: str) -> "DmlMixin":
        self.state.custom = f"DELETE FROM {self._target(table)}"
        return self

    def execute(self) -> int:
        """Run the current statement and return the affected row count.

        The builder is reset after a successful execution.
        """
        count = self.engine.execute(*self.compile())
        self.reset()
        return count

    def execute_raw(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> int:
        return self.engine.execute(sql, dict(params or {}))
