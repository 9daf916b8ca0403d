import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Mapping, Optional

import pandas as pd
from opentelemetry.trace import SpanKind
from sqlalchemy import text
from sqlalchemy.engine import Connection, CursorResult
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from fluentql.common.exceptions import query_execution_error
from fluentql.logging import get_logger
from fluentql.query_builder.factory import get_dialect
from fluentql.query_builder.identifier import IdentifierResolver
from fluentql.utils.decorators import traced

if TYPE_CHECKING:
    from fluentql.query_builder.builder import QueryBuilder
    from fluentql.settings.main import _Settings
    from fluentql.transactions.manager import TransactionManager

logger = get_logger(__name__)

Params = Optional[Mapping[str, Any]]


class SQLEngine:
    """Execution layer over one SQLAlchemy ``Connection``.

    The engine runs rendered SQL with bound parameters and shapes results.
    It never opens, pools or closes the connection: callers own its
    lifecycle.

    Outside a transaction managed by ``engine.transactions`` every statement
    is committed as soon as it ran ("commit as you go") and a failing
    statement is rolled back. Inside a managed transaction commit and
    rollback are left to the transaction manager.

    Driver errors are raised as ``FluentQLError`` with
    ``QUERY_EXECUTION_ERROR``, carrying the driver's state, code and
    message; deadlocks and lock timeouts are marked retryable.

    Example:
        >>> from sqlalchemy import create_engine
        >>> with create_engine("sqlite://").connect() as conn:
        ...     engine = SQLEngine(conn)
        ...     engine.query().from_("users").where("active", 1).fetch_all()
    """

    def __init__(
        self,
        connection: Connection,
        settings: Optional["_Settings"] = None,
        extensions: Optional[Mapping[str, Callable[..., Any]]] = None,
    ):
        from fluentql.settings import get_settings
        from fluentql.transactions.manager import TransactionManager

        self.connection = connection
        self.settings = settings or get_settings()
        self.dialect = get_dialect(connection.dialect.name)
        self.extensions: Dict[str, Callable[..., Any]] = dict(extensions or {})
        self.resolver = IdentifierResolver(self)
        self.transactions: "TransactionManager" = TransactionManager(self)

        logger.info(
            "SQL engine initialized",
            extra={"db.system": self.dialect_name, "extensions": sorted(self.extensions)},
        )

    @property
    def dialect_name(self) -> str:
        return self.dialect.name.value

    def query(self) -> "QueryBuilder":
        """Return a new builder bound to this engine."""
        from fluentql.query_builder.builder import QueryBuilder

        return QueryBuilder(self)

    # Internals -------------------------------------------------------------

    def _span_attributes(self, sql: str, *, operation: str) -> Dict[str, Any]:
        statement = (sql or "").strip()
        if len(statement) > 4096:
            statement = f"{statement[:4093]}..."
        return {
            "db.system": self.dialect_name,
            "db.operation": operation,
            "db.statement": statement,
            "db.statement.length": len(statement),
        }

    @property
    def _managed(self) -> bool:
        return self.transactions.in_transaction

    def _settle(self) -> None:
        if not self._managed and self.connection.in_transaction():
            self.connection.commit()

    def _abort(self) -> None:
        if not self._managed and self.connection.in_transaction():
            self.connection.rollback()

    def _run(self, sql: str, params: Params, operation: str, consume: Callable[[CursorResult], Any]) -> Any:
        """Execute one statement, hand the result to ``consume`` and settle.

        ``consume`` runs before the implicit commit so rows and counters are
        read while the cursor is still open.
        """
        start_time = time.time()
        payload: Dict[str, Any] = {"db.system": self.dialect_name, "db.operation": operation}
        if self.settings.query.debug_sql:
            logger.debug("Executing SQL", extra={**payload, "db.statement": sql, "db.params": dict(params or {})})

        try:
            result = self.connection.execute(text(sql), dict(params or {}))
            value = consume(result)
            self._settle()
        except DBAPIError as exc:
            self._abort()
            duration = time.time() - start_time
            logger.error(
                "SQL statement failed",
                extra={**payload, "duration.seconds": f"{duration:.6f}", "error": str(exc)},
                exc_info=True,
            )
            raise query_execution_error(
                sql, exc, is_retryable=self.dialect.is_transient_error(exc)
            ) from exc
        except SQLAlchemyError as exc:
            self._abort()
            duration = time.time() - start_time
            logger.error(
                "SQL statement failed",
                extra={**payload, "duration.seconds": f"{duration:.6f}", "error": str(exc)},
                exc_info=True,
            )
            raise query_execution_error(sql, exc) from exc

        duration = time.time() - start_time
        logger.info("SQL statement executed", extra={**payload, "duration.seconds": f"{duration:.6f}"})
        return value

    # Execution -------------------------------------------------------------

    @traced(
        span_name="fluentql.engine.execute",
        kind=SpanKind.CLIENT,
        attribute_getter=lambda self, sql, params=None: self._span_attributes(sql, operation="execute"),
    )
    def execute(self, sql: str, params: Params = None) -> int:
        """Run a statement and return the number of affected rows."""
        return self._run(sql, params, "execute", lambda result: result.rowcount)

    @traced(
        span_name="fluentql.engine.insert",
        kind=SpanKind.CLIENT,
        attribute_getter=lambda self, sql, params=None, primary_key="id": self._span_attributes(
            sql, operation="insert"
        ),
    )
    def insert(self, sql: str, params: Params = None, primary_key: str = "id") -> Any:
        """Run an INSERT and return the generated key.

        Dialects supporting ``RETURNING`` read the key from the returned row;
        the others use the cursor's ``lastrowid``.
        """
        def _key(result: CursorResult) -> Any:
            if self.dialect.supports_returning:
                row = result.mappings().first()
                return row[primary_key] if row is not None else None
            return result.lastrowid

        return self._run(sql, params, "insert", _key)

    @traced(
        span_name="fluentql.engine.fetch_all",
        kind=SpanKind.CLIENT,
        attribute_getter=lambda self, sql, params=None: self._span_attributes(sql, operation="fetch_all"),
    )
    def fetch_all(self, sql: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute a query and return every row as a dict."""
        return self._run(
            sql, params, "fetch_all", lambda result: [dict(row) for row in result.mappings().all()]
        )

    @traced(
        span_name="fluentql.engine.fetch_one",
        kind=SpanKind.CLIENT,
        attribute_getter=lambda self, sql, params=None: self._span_attributes(sql, operation="fetch_one"),
    )
    def fetch_one(self, sql: str, params: Params = None) -> Optional[Dict[str, Any]]:
        def _first(result: CursorResult) -> Optional[Dict[str, Any]]:
            row = result.mappings().first()
            return dict(row) if row is not None else None

        return self._run(sql, params, "fetch_one", _first)

    @traced(
        span_name="fluentql.engine.fetch_scalar",
        kind=SpanKind.CLIENT,
        attribute_getter=lambda self, sql, params=None: self._span_attributes(sql, operation="fetch_scalar"),
    )
    def fetch_scalar(self, sql: str, params: Params = None) -> Any:
        """Execute a query and return the first column of the first row, or None."""
        return self._run(sql, params, "fetch_scalar", lambda result: result.scalar())

    @traced(
        span_name="fluentql.engine.fetch_dataframe",
        kind=SpanKind.CLIENT,
        attribute_getter=lambda self, sql, params=None: self._span_attributes(sql, operation="fetch_dataframe"),
    )
    def fetch_dataframe(self, sql: str, params: Params = None) -> pd.DataFrame:
        """Execute a query and return the result as a pandas DataFrame."""
        def _frame(result: CursorResult) -> pd.DataFrame:
            return pd.DataFrame(result.fetchall(), columns=list(result.keys()))

        return self._run(sql, params, "fetch_dataframe", _frame)

    def stream(self, sql: str, params: Params = None) -> Iterator[Dict[str, Any]]:
        """Yield rows one at a time through a server-side cursor.

        The statement is executed when iteration starts. Closing the iterator
        early closes the cursor.
        """
        start_time = time.time()
        payload: Dict[str, Any] = {"db.system": self.dialect_name, "db.operation": "stream"}
        statement = text(sql).execution_options(stream_results=True)
        result = None
        try:
            result = self.connection.execute(statement, dict(params or {}))
            for row in result.mappings():
                yield dict(row)
            self._settle()
        except DBAPIError as exc:
            self._abort()
            logger.error("SQL stream failed", extra={**payload, "error": str(exc)}, exc_info=True)
            raise query_execution_error(
                sql, exc, is_retryable=self.dialect.is_transient_error(exc)
            ) from exc
        finally:
            if result is not None:
                result.close()

        duration = time.time() - start_time
        logger.info("SQL stream consumed", extra={**payload, "duration.seconds": f"{duration:.6f}"})

    def probe(self, sql: str, params: Params = None) -> List[Dict[str, Any]]:
        """Run a metadata probe.

        Unlike the fetch methods, driver errors are raised unwrapped so the
        identifier resolver can absorb them.
        """
        try:
            rows = [dict(row) for row in self.connection.execute(text(sql), dict(params or {})).mappings().all()]
        except SQLAlchemyError:
            self._abort()
            raise
        self._settle()
        return rows

    def get_connection_info(self) -> Dict[str, Any]:
        return {
            "platform": self.dialect_name,
            "driver": getattr(self.connection.dialect, "driver", None),
            "in_transaction": self._managed,
            "transaction_level": self.transactions.level,
        }
