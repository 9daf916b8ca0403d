"""Transaction manager: savepoint stack, callbacks, retry and advisory locks."""

import time
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterator, List, Optional, Set, TypeVar

from opentelemetry.trace import SpanKind
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from fluentql.common.exceptions import (
    FluentQLError,
    invalid_argument_error,
    lock_timeout_error,
    query_execution_error,
    transaction_error,
)
from fluentql.constants.sql import SAVEPOINT_PREFIX, IsolationLevel
from fluentql.logging import get_logger
from fluentql.utils.decorators import retry_with_backoff, traced

if TYPE_CHECKING:
    from fluentql.engine.base import SQLEngine

logger = get_logger(__name__)

T = TypeVar("T")


class TransactionState(str, Enum):
    """Lifecycle of the outermost transaction on a connection."""
    IDLE = "idle"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class TransactionManager:
    """Nested transactions for one ``SQLEngine``.

    Only the outermost ``begin``/``commit``/``rollback`` touch the real
    transaction. Deeper levels are a stack of named savepoints
    (``fluentql_sp_<level>``): a nested commit releases the top savepoint, a
    nested rollback rolls back to it and releases it.

    Callbacks queued with ``after_commit`` / ``after_rollback`` run in
    registration order once the outermost transaction has actually ended.
    Savepoint-level commits and rollbacks never trigger them.

    Example:
        >>> tm = engine.transactions
        >>> with tm.atomic():
        ...     engine.query().insert("accounts", {"name": "a"})
        ...     tm.after_commit(lambda: print("committed"))
    """

    def __init__(self, engine: "SQLEngine"):
        self.engine = engine
        self._level = 0
        self._savepoints: List[str] = []
        self._state = TransactionState.IDLE
        self._commit_callbacks: List[Callable[[], Any]] = []
        self._rollback_callbacks: List[Callable[[], Any]] = []
        self._isolation_level: Optional[IsolationLevel] = None
        self._read_only = False
        self._active_read_only = False
        self._isolation_applied = False
        self._held_locks: Set[str] = set()

    # Inspection ------------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return self._level > 0

    @property
    def level(self) -> int:
        return self._level

    @property
    def savepoints(self) -> List[str]:
        return list(self._savepoints)

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def held_locks(self) -> Set[str]:
        return set(self._held_locks)

    # Next-transaction options ----------------------------------------------

    def set_isolation_level(self, level: IsolationLevel) -> "TransactionManager":
        """Isolation level for the next outermost transaction only."""
        self._isolation_level = IsolationLevel(level)
        return self

    def set_read_only(self, read_only: bool = True) -> "TransactionManager":
        """Read-only mode for the next outermost transaction only."""
        self._read_only = read_only
        return self

    # Begin / commit / rollback ---------------------------------------------

    def _exec(self, sql: Optional[str]) -> None:
        if not sql:
            return
        try:
            self.engine.connection.execute(text(sql))
        except DBAPIError as exc:
            raise query_execution_error(
                sql, exc, is_retryable=self.engine.dialect.is_transient_error(exc)
            ) from exc

    def begin(self) -> "TransactionManager":
        """Start a transaction, or a savepoint when one is already active."""
        if self._level == 0:
            self._begin_outermost()
        else:
            name = f"{SAVEPOINT_PREFIX}{self._level}"
            self._exec(self.engine.dialect.savepoint(name))
            self._savepoints.append(name)

        self._level += 1
        self._state = TransactionState.ACTIVE
        logger.debug(
            "Transaction started",
            extra={"transaction.level": self._level, "db.system": self.engine.dialect_name},
        )
        return self

    def _begin_outermost(self) -> None:
        connection = self.engine.connection
        dialect = self.engine.dialect

        # Statements run outside a managed transaction leave SQLAlchemy's
        # autobegun transaction open until the next commit.
        if connection.in_transaction():
            connection.commit()

        try:
            if self._isolation_level is not None:
                connection.execution_options(isolation_level=self._isolation_level.value)
                self._isolation_applied = True
            connection.begin()
        except SQLAlchemyError as exc:
            self._restore_connection_options()
            raise transaction_error(
                f"Could not begin transaction: {exc}", operation="begin", cause=exc
            ) from exc

        try:
            self._exec(dialect.begin_statement)
            if self._read_only:
                self._exec(dialect.read_only_statements()[0])
                self._active_read_only = True
        except FluentQLError:
            connection.rollback()
            self._restore_connection_options()
            raise

    def commit(self) -> "TransactionManager":
        """Commit the current level.

        Raises:
            FluentQLError: TRANSACTION_ERROR when no transaction is active
        """
        if self._level == 0:
            raise transaction_error("No active transaction to commit", operation="commit")

        if self._level > 1:
            name = self._savepoints.pop()
            self._exec(self.engine.dialect.release_savepoint(name))
            self._level -= 1
            return self

        try:
            self.engine.connection.commit()
        except SQLAlchemyError as exc:
            self._end(TransactionState.ROLLED_BACK)
            raise transaction_error(
                f"Commit failed: {exc}",
                operation="commit",
                cause=exc,
                is_retryable=self.engine.dialect.is_transient_error(exc),
            ) from exc

        self._end(TransactionState.COMMITTED)
        return self

    def rollback(self) -> "TransactionManager":
        """Roll back the current level.

        Raises:
            FluentQLError: TRANSACTION_ERROR when no transaction is active
        """
        if self._level == 0:
            raise transaction_error("No active transaction to roll back", operation="rollback")

        if self._level > 1:
            name = self._savepoints.pop()
            self._level -= 1
            self._exec(self.engine.dialect.rollback_to_savepoint(name))
            self._exec(self.engine.dialect.release_savepoint(name))
            return self

        try:
            self.engine.connection.rollback()
        finally:
            self._end(TransactionState.ROLLED_BACK)
        return self

    def _restore_connection_options(self) -> None:
        connection = self.engine.connection
        if self._active_read_only:
            _, end_statement = self.engine.dialect.read_only_statements()
            if end_statement:
                connection.execute(text(end_statement))
                connection.commit()
        if self._isolation_applied:
            connection.execution_options(isolation_level=connection.default_isolation_level)
        self._isolation_applied = False
        self._active_read_only = False
        self._isolation_level = None
        self._read_only = False

    def _end(self, outcome: TransactionState) -> None:
        self._level = 0
        self._savepoints.clear()
        self._state = outcome

        callbacks = (
            self._commit_callbacks if outcome == TransactionState.COMMITTED else self._rollback_callbacks
        )
        callbacks = list(callbacks)
        self._commit_callbacks.clear()
        self._rollback_callbacks.clear()
        self._restore_connection_options()

        logger.debug(
            "Transaction finished",
            extra={"transaction.state": outcome.value, "transaction.callbacks": len(callbacks)},
        )
        for callback in callbacks:
            callback()

    # Callbacks -------------------------------------------------------------

    def after_commit(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` after the outermost commit; at once when idle."""
        if not self.in_transaction:
            callback()
            return
        self._commit_callbacks.append(callback)

    def after_rollback(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` after the outermost rollback; dropped when idle."""
        if not self.in_transaction:
            logger.debug("after_rollback callback dropped outside a transaction")
            return
        self._rollback_callbacks.append(callback)

    # Scoped transactions ---------------------------------------------------

    @traced(
        span_name="fluentql.transaction",
        attribute_getter=lambda self, fn, *args, **kwargs: {
            "db.system": self.engine.dialect_name,
            "fluentql.transaction.level": self._level + 1,
        },
    )
    def transaction(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn(*args, **kwargs)`` in a transaction and return its result.

        Any exception rolls the level back and is re-raised.
        """
        self.begin()
        depth = self._level
        try:
            result = fn(*args, **kwargs)
        except Exception:
            if self._level >= depth:
                self.rollback()
            raise
        if self._level >= depth:
            self.commit()
        return result

    @contextmanager
    def atomic(self) -> Iterator["TransactionManager"]:
        """Context-manager form of ``transaction``."""
        self.begin()
        depth = self._level
        try:
            yield self
        except Exception:
            if self._level >= depth:
                self.rollback()
            raise
        if self._level >= depth:
            self.commit()

    def transaction_with_retry(
        self,
        fn: Callable[..., T],
        *args: Any,
        attempts: Optional[int] = None,
        sleep_ms: Optional[int] = None,
        **kwargs: Any,
    ) -> T:
        """Run ``fn`` in a transaction, retrying deadlocks and lock timeouts.

        Only ``FluentQLError`` with ``is_retryable`` set is retried, after a
        constant pause of ``sleep_ms``. Inside an active transaction the
        callback runs once, because a deadlock already aborted the
        enclosing transaction.

        Raises:
            FluentQLError: the last error once every attempt failed
        """
        settings = self.engine.settings.transaction
        attempts = settings.retry_attempts if attempts is None else attempts
        sleep_ms = settings.retry_sleep_ms if sleep_ms is None else sleep_ms
        if attempts < 1:
            raise invalid_argument_error("attempts must be at least 1", argument="attempts", value=attempts)
        if sleep_ms < 0:
            raise invalid_argument_error("sleep_ms cannot be negative", argument="sleep_ms", value=sleep_ms)

        if self.in_transaction:
            logger.debug(
                "Nested transaction_with_retry runs without retry",
                extra={"transaction.level": self._level},
            )
            return self.transaction(fn, *args, **kwargs)

        delay = sleep_ms / 1000
        runner = retry_with_backoff(
            max_retries=attempts - 1,
            initial_delay=delay,
            max_delay=max(delay, 60.0),
            exponential_base=1.0,
            retry_on=(FluentQLError,),
            retry_condition=lambda exc: exc.is_retryable,
            sleep=lambda seconds: time.sleep(seconds),
        )(self.transaction)
        return runner(fn, *args, **kwargs)

    # Advisory locks --------------------------------------------------------

    def get_lock(self, name: str, timeout: Optional[float] = None) -> bool:
        """Acquire a named advisory lock, waiting up to ``timeout`` seconds.

        Raises:
            FluentQLError: PLATFORM_NOT_SUPPORTED on dialects without locks
        """
        settings = self.engine.settings.transaction
        timeout = settings.lock_timeout_seconds if timeout is None else timeout
        dialect = self.engine.dialect
        sql, params = dialect.acquire_lock_statement(name, timeout)

        if dialect.lock_acquire_blocks:
            acquired = bool(self.engine.fetch_scalar(sql, params))
        else:
            deadline = time.monotonic() + timeout
            while True:
                acquired = bool(self.engine.fetch_scalar(sql, params))
                if acquired or time.monotonic() >= deadline:
                    break
                time.sleep(settings.lock_poll_interval_seconds)

        if acquired:
            self._held_locks.add(name)
        logger.info(
            "Advisory lock requested",
            extra={"lock.name": name, "lock.acquired": acquired, "lock.timeout": timeout},
        )
        return acquired

    def release_lock(self, name: str) -> bool:
        """Release a named advisory lock; False when it was not held."""
        sql, params = self.engine.dialect.release_lock_statement(name)
        released = bool(self.engine.fetch_scalar(sql, params))
        self._held_locks.discard(name)
        return released

    @contextmanager
    def with_lock(self, name: str, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold ``name`` for the duration of the block.

        Raises:
            FluentQLError: LOCK_TIMEOUT when the lock cannot be acquired
        """
        if timeout is None:
            timeout = self.engine.settings.transaction.lock_timeout_seconds
        if not self.get_lock(name, timeout):
            raise lock_timeout_error(name, timeout)
        try:
            yield
        finally:
            self.release_lock(name)
