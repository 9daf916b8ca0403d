"""PostgreSQL dialect strategy."""

from typing import Optional, Sequence

from fluentql.constants.sql import Dialect
from fluentql.query_builder.dialects.base import BaseDialect, Statement

# serialization_failure, deadlock_detected, lock_not_available
_TRANSIENT_STATES = frozenset({"40001", "40P01", "55P03"})


class PostgreSQLDialect(BaseDialect):
    """PostgreSQL spelling.

    Identifiers use double quotes, inserts return the generated key through
    ``RETURNING`` and advisory locks are taken with the non-blocking
    ``pg_try_advisory_lock``, which the transaction manager polls.
    """

    name = Dialect.POSTGRESQL
    quote_char = '"'
    supports_returning = True
    lock_acquire_blocks = False

    def fold_identifier(self, identifier: str) -> str:
        return identifier.lower()

    def group_concat(self, column: str, separator: str, distinct: bool = False) -> str:
        prefix = "DISTINCT " if distinct else ""
        return f"STRING_AGG({prefix}CAST({column} AS TEXT), {separator})"

    def json_extract(self, column: str, path: str, unquote: bool = False) -> str:
        expression = f"jsonb_path_query_first(CAST({column} AS jsonb), CAST({path} AS jsonpath))"
        if unquote:
            return f"({expression} #>> '{{}}')"
        return expression

    def distinct_clause(self, columns: Optional[Sequence[str]] = None) -> str:
        if columns:
            return f"DISTINCT ON ({', '.join(columns)})"
        return "DISTINCT"

    def table_exists_statement(self, table: str, schema: Optional[str] = None) -> Statement:
        return (
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = COALESCE(CAST(:schema AS TEXT), current_schema()) "
            "AND table_name = :table",
            {"schema": schema, "table": table},
        )

    def column_exists_statement(
        self, table: str, column: str, schema: Optional[str] = None
    ) -> Statement:
        return (
            "SELECT 1 FROM information_schema.columns "
            "WHERE table_schema = COALESCE(CAST(:schema AS TEXT), current_schema()) "
            "AND table_name = :table AND column_name = :column",
            {"schema": schema, "table": table, "column": column},
        )

    def acquire_lock_statement(self, name: str, timeout: float) -> Statement:
        return "SELECT pg_try_advisory_lock(hashtext(:name))", {"name": name}

    def release_lock_statement(self, name: str) -> Statement:
        return "SELECT pg_advisory_unlock(hashtext(:name))", {"name": name}

    def is_transient_error(self, error: Exception) -> bool:
        return self._diagnostics(error).get("sqlstate") in _TRANSIENT_STATES
