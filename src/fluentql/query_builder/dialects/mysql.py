"""MySQL / MariaDB dialect strategy."""

from typing import Optional, Tuple

from fluentql.constants.sql import Dialect
from fluentql.query_builder.dialects.base import BaseDialect, Statement

# ER_LOCK_DEADLOCK, ER_LOCK_WAIT_TIMEOUT
_TRANSIENT_CODES = frozenset({1213, 1205})

# MySQL needs a LIMIT whenever OFFSET is present; this is the documented maximum.
_NO_LIMIT = 18446744073709551615


class MySQLDialect(BaseDialect):

    name = Dialect.MYSQL
    quote_char = "`"
    supports_returning = False
    lock_acquire_blocks = True

    def limit_offset(self, limit: Optional[int], offset: Optional[int]) -> str:
        if offset is not None and limit is None:
            return f"LIMIT {_NO_LIMIT} OFFSET {offset}"
        return super().limit_offset(limit, offset)

    def read_only_statements(self) -> Tuple[Optional[str], Optional[str]]:
        # SET TRANSACTION is rejected once a transaction is open; the driver
        # has not sent anything yet when this runs, so start it read-only.
        return "START TRANSACTION READ ONLY", None

    def acquire_lock_statement(self, name: str, timeout: float) -> Statement:
        return "SELECT GET_LOCK(:name, :timeout)", {"name": name, "timeout": int(round(timeout))}

    def release_lock_statement(self, name: str) -> Statement:
        return "SELECT RELEASE_LOCK(:name)", {"name": name}

    def is_transient_error(self, error: Exception) -> bool:
        return self._diagnostics(error).get("driver_code") in _TRANSIENT_CODES


class MariaDBDialect(MySQLDialect):
    name = Dialect.MARIADB
