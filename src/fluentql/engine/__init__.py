"""Execution engine for fluentql.

``SQLEngine`` wraps a SQLAlchemy connection supplied by the caller and is
the single place where statements reach the database.
"""

from fluentql.engine.base import SQLEngine

__all__ = [
    "SQLEngine",
]
