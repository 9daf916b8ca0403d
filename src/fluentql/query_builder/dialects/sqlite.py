"""SQLite dialect strategy."""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from fluentql.common.exceptions import platform_not_supported_error
from fluentql.constants.sql import AggregateFunction, Dialect
from fluentql.query_builder.dialects.base import BaseDialect, Statement

_LOCKED_MESSAGES = ("database is locked", "database table is locked")


class SQLiteDialect(BaseDialect):
    """SQLite spelling.

    SQLite accepts backtick-quoted identifiers, so the quoting matches MySQL.
    It has no CONCAT/CONCAT_WS, no STDDEV/VARIANCE and no advisory locks.
    """

    name = Dialect.SQLITE
    quote_char = "`"
    supports_returning = False
    supports_advisory_locks = False
    # pysqlite only sends BEGIN before DML, which would let a savepoint
    # open (and RELEASE close) the outer transaction.
    begin_statement = "BEGIN"

    def concat(self, parts: Sequence[str], separator: Optional[str] = None) -> str:
        if separator is None:
            return "(" + " || ".join(parts) + ")"
        glue = f" || {separator} || "
        return "(" + glue.join(f"COALESCE({part}, '')" for part in parts) + ")"

    def group_concat(self, column: str, separator: str, distinct: bool = False) -> str:
        # SQLite rejects a custom separator together with DISTINCT
        if distinct:
            return f"GROUP_CONCAT(DISTINCT {column})"
        return f"GROUP_CONCAT({column}, {separator})"

    def json_extract(self, column: str, path: str, unquote: bool = False) -> str:
        return f"json_extract({column}, {path})"

    def aggregate_function(self, function: AggregateFunction) -> str:
        if function in (AggregateFunction.STDDEV, AggregateFunction.VARIANCE):
            raise platform_not_supported_error(self.name.value, feature=function.value)
        return function.value

    def limit_offset(self, limit: Optional[int], offset: Optional[int]) -> str:
        if offset is not None and limit is None:
            return f"LIMIT -1 OFFSET {offset}"
        return super().limit_offset(limit, offset)

    def table_exists_statement(self, table: str, schema: Optional[str] = None) -> Statement:
        master = "sqlite_master"
        if schema:
            master = f"{self.quote_identifier(self.sanitize_name(schema))}.sqlite_master"
        return (
            f"SELECT 1 FROM {master} WHERE type IN ('table', 'view') AND name = :table",
            {"table": table},
        )

    def column_exists_statement(
        self, table: str, column: str, schema: Optional[str] = None
    ) -> Statement:
        prefix = f"{self.quote_identifier(self.sanitize_name(schema))}." if schema else ""
        return f"PRAGMA {prefix}table_info({self.quote_identifier(self.sanitize_name(table))})", {}

    def column_probe_matches(self, rows: List[Dict[str, Any]], column: str) -> bool:
        wanted = column.lower()
        return any(str(row.get("name", "")).lower() == wanted for row in rows)

    def read_only_statements(self) -> Tuple[Optional[str], Optional[str]]:
        return "PRAGMA query_only = ON", "PRAGMA query_only = OFF"

    def is_transient_error(self, error: Exception) -> bool:
        message = self._diagnostics(error)["driver_message"].lower()
        return any(text in message for text in _LOCKED_MESSAGES)
