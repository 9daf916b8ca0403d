import re
from abc import ABC
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fluentql.common.exceptions import driver_diagnostics, platform_not_supported_error
from fluentql.constants.sql import AggregateFunction, Dialect


Statement = Tuple[str, Dict[str, Any]]

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_]")


class BaseDialect(ABC):
    """Base strategy for dialect-specific SQL.

    A dialect never executes anything. It only knows how the target database
    spells identifiers, string functions, metadata probes, savepoints and
    advisory locks, so that the renderer, the identifier resolver and the
    transaction manager can stay backend-agnostic.

    Subclasses override the pieces their backend spells differently; the
    defaults follow the MySQL / ANSI spelling.
    """

    name: Dialect
    quote_char: str = "`"
    supports_returning: bool = False
    supports_advisory_locks: bool = True
    # Whether acquire_lock_statement waits on the server up to the timeout.
    # Non-blocking dialects are polled by the transaction manager.
    lock_acquire_blocks: bool = True
    # Statement that opens the real transaction when the driver does not
    # send BEGIN itself before the first statement.
    begin_statement: Optional[str] = None

    # Identifiers -----------------------------------------------------------

    def quote_identifier(self, identifier: str) -> str:
        """Quote one identifier part, doubling any embedded quote character.

        Args:
            identifier: A bare identifier (no dots)

        Returns:
            The quoted identifier
        """
        q = self.quote_char
        stripped = identifier.strip().strip(q)
        return f"{q}{stripped.replace(q, q + q)}{q}"

    def fold_identifier(self, identifier: str) -> str:
        """Spelling the server gives an unquoted identifier. Unchanged by default."""
        return identifier

    def quote_string(self, value: str) -> str:
        """Quote a string literal. Only used for debug rendering."""
        escaped = value.replace("'", "''")
        return f"'{escaped}'"

    # String functions ------------------------------------------------------

    def concat(self, parts: Sequence[str], separator: Optional[str] = None) -> str:
        """Concatenate already-rendered expressions.

        Args:
            parts: Rendered column expressions
            separator: Placeholder bound to the separator, or None
        """
        joined = ", ".join(parts)
        if separator is None:
            return f"CONCAT({joined})"
        return f"CONCAT_WS({separator}, {joined})"

    def group_concat(self, column: str, separator: str, distinct: bool = False) -> str:
        prefix = "DISTINCT " if distinct else ""
        return f"GROUP_CONCAT({prefix}{column} SEPARATOR {separator})"

    def json_extract(self, column: str, path: str, unquote: bool = False) -> str:
        expression = f"JSON_EXTRACT({column}, {path})"
        if unquote:
            return f"JSON_UNQUOTE({expression})"
        return expression

    def distinct_clause(self, columns: Optional[Sequence[str]] = None) -> str:
        """Keyword emitted after SELECT for a distinct query.

        Only PostgreSQL understands ``DISTINCT ON``; everywhere else the
        column list is ignored and a plain ``DISTINCT`` is rendered.
        """
        return "DISTINCT"

    def aggregate_function(self, function: AggregateFunction) -> str:
        return function.value

    def limit_offset(self, limit: Optional[int], offset: Optional[int]) -> str:
        """Render the LIMIT/OFFSET tail, empty when neither is set."""
        parts = []
        if limit is not None:
            parts.append(f"LIMIT {limit}")
        if offset is not None:
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)

    # Metadata probes -------------------------------------------------------

    def table_exists_statement(self, table: str, schema: Optional[str] = None) -> Statement:
        return (
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = COALESCE(:schema, DATABASE()) AND table_name = :table",
            {"schema": schema, "table": table},
        )

    def column_exists_statement(
        self, table: str, column: str, schema: Optional[str] = None
    ) -> Statement:
        return (
            "SELECT 1 FROM information_schema.columns "
            "WHERE table_schema = COALESCE(:schema, DATABASE()) "
            "AND table_name = :table AND column_name = :column",
            {"schema": schema, "table": table, "column": column},
        )

    def column_probe_matches(self, rows: List[Dict[str, Any]], column: str) -> bool:
        """Interpret the rows returned by ``column_exists_statement``."""
        return len(rows) > 0

    @staticmethod
    def sanitize_name(name: str) -> str:
        """Strip everything but word characters from a name used outside bindings."""
        return _SAFE_NAME.sub("", name)

    # Transactions ----------------------------------------------------------

    def savepoint(self, name: str) -> str:
        return f"SAVEPOINT {name}"

    def release_savepoint(self, name: str) -> str:
        return f"RELEASE SAVEPOINT {name}"

    def rollback_to_savepoint(self, name: str) -> str:
        return f"ROLLBACK TO SAVEPOINT {name}"

    def read_only_statements(self) -> Tuple[Optional[str], Optional[str]]:
        """Statements run after BEGIN and after the transaction ends."""
        return "SET TRANSACTION READ ONLY", None

    def acquire_lock_statement(self, name: str, timeout: float) -> Statement:
        raise platform_not_supported_error(self.name.value, feature="Advisory locks")

    def release_lock_statement(self, name: str) -> Statement:
        raise platform_not_supported_error(self.name.value, feature="Advisory locks")

    # Inserts ---------------------------------------------------------------

    def returning_clause(self, primary_key: str) -> str:
        return f" RETURNING {self.quote_identifier(primary_key)}" if self.supports_returning else ""

    # Errors ----------------------------------------------------------------

    def is_transient_error(self, error: Exception) -> bool:
        """Whether a driver error is a deadlock / lock timeout worth retrying."""
        return False

    def _diagnostics(self, error: Exception) -> Dict[str, Any]:
        return driver_diagnostics(error)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
