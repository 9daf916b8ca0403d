"""SQL and query-related constants.

This module contains the enums and operator tables shared by the query
builder, the dialect strategies, the execution engine and the transaction
manager. It has no dependencies on other fluentql modules.
"""

from enum import Enum
from typing import FrozenSet


class Dialect(str, Enum):
    """Database dialects with a dedicated strategy.

    Values match ``sqlalchemy.engine.Dialect.name`` so the driver-reported
    name can be looked up directly.
    """
    SQLITE = "sqlite"
    MYSQL = "mysql"
    MARIADB = "mariadb"
    POSTGRESQL = "postgresql"


class JoinType(str, Enum):
    """Join kinds accepted by ``QueryBuilder.join``."""
    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    CROSS = "CROSS"


class Connector(str, Enum):
    """Boolean connector stored with each WHERE / ON fragment."""
    AND = "AND"
    OR = "OR"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class AggregateFunction(str, Enum):
    """Aggregate functions available to the aggregate helpers.

    ``STDDEV`` and ``VARIANCE`` are mapped per dialect and return floats,
    like ``SUM`` and ``AVG``.
    """
    COUNT = "COUNT"
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    STDDEV = "STDDEV"
    VARIANCE = "VARIANCE"


FLOAT_AGGREGATES: FrozenSet[AggregateFunction] = frozenset({
    AggregateFunction.SUM,
    AggregateFunction.AVG,
    AggregateFunction.STDDEV,
    AggregateFunction.VARIANCE,
})


class IsolationLevel(str, Enum):
    """Transaction isolation levels, spelled the way SQLAlchemy expects them."""
    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


COMPARISON_OPERATORS: FrozenSet[str] = frozenset({
    "=", "!=", "<>", "<", ">", "<=", ">=", "<=>",
    "LIKE", "NOT LIKE", "ILIKE", "NOT ILIKE",
    "IN", "NOT IN", "IS", "IS NOT",
    "REGEXP", "NOT REGEXP",
})

# Placeholders are generated as ":p<N>" by the parameter binder.
PLACEHOLDER_PREFIX = ":p"

SAVEPOINT_PREFIX = "fluentql_sp_"
