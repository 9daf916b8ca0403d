"""Constants module for fluentql.

This module contains all constant values and enumerations used throughout
the package. It has no dependencies on other fluentql modules.

Organization:
    - sql: dialects, join kinds, connectors, operators, isolation levels
    - relations: relation cardinalities for entity metadata
"""

from fluentql.constants.sql import (
    COMPARISON_OPERATORS,
    FLOAT_AGGREGATES,
    PLACEHOLDER_PREFIX,
    SAVEPOINT_PREFIX,
    AggregateFunction,
    Connector,
    Dialect,
    IsolationLevel,
    JoinType,
    SortDirection,
)
from fluentql.constants.relations import RelationKind

__all__ = [
    "AggregateFunction",
    "COMPARISON_OPERATORS",
    "Connector",
    "Dialect",
    "FLOAT_AGGREGATES",
    "IsolationLevel",
    "JoinType",
    "PLACEHOLDER_PREFIX",
    "RelationKind",
    "SAVEPOINT_PREFIX",
    "SortDirection",
]
