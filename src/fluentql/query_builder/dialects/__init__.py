"""Dialect strategies.

Each strategy knows how one backend spells identifiers, string functions,
metadata probes, savepoints and advisory locks.
"""

from fluentql.query_builder.dialects.base import BaseDialect
from fluentql.query_builder.dialects.mysql import MariaDBDialect, MySQLDialect
from fluentql.query_builder.dialects.postgresql import PostgreSQLDialect
from fluentql.query_builder.dialects.sqlite import SQLiteDialect

__all__ = [
    "BaseDialect",
    "MariaDBDialect",
    "MySQLDialect",
    "PostgreSQLDialect",
    "SQLiteDialect",
]
