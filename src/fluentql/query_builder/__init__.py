"""Query building for fluentql.

This package turns fluent method calls into dialect-appropriate SQL with
bound parameters:

- ``identifier``: quoting, table-map lookups and schema-aware rewriting
- ``state`` / ``params``: clause accumulator and placeholder binder
- ``renderer``: resolution pass and SQL serialization
- ``builder``: the public ``QueryBuilder`` (select/where/join API, fetch,
  aggregate and DML helpers)
- ``dialects`` / ``factory``: per-backend SQL strategies
"""

from fluentql.query_builder.builder import QueryBuilder
from fluentql.query_builder.factory import DialectFactory, get_dialect
from fluentql.query_builder.identifier import (
    AliasScope,
    IdentifierResolver,
    clear_table_map,
    configure_table_map,
    get_table_map,
)
from fluentql.query_builder.join import JoinClauseBuilder
from fluentql.query_builder.params import ParameterBinder
from fluentql.query_builder.renderer import SqlRenderer
from fluentql.query_builder.state import StatementState, UnionBranch, WhereClause

__all__ = [
    "AliasScope",
    "DialectFactory",
    "IdentifierResolver",
    "JoinClauseBuilder",
    "ParameterBinder",
    "QueryBuilder",
    "SqlRenderer",
    "StatementState",
    "UnionBranch",
    "WhereClause",
    "clear_table_map",
    "configure_table_map",
    "get_dialect",
    "get_table_map",
]
