from fluentql.__version__ import __version__

from fluentql.engine import SQLEngine
from fluentql.query_builder import QueryBuilder, configure_table_map, clear_table_map
from fluentql.transactions import TransactionManager, TransactionState
from fluentql.repository import (
    EntityRepository,
    MetadataRegistry,
    RepositoryFactory,
    get_metadata_registry,
    mark_dirty,
)
from fluentql.types import (
    EntityMetadata,
    FieldDescriptor,
    JoinTableDescriptor,
    RelationDescriptor,
    Page,
    SimplePage,
)
from fluentql.constants import IsolationLevel, RelationKind

from fluentql.common.exceptions import FluentQLError, ErrorCode

from fluentql.settings import get_settings


__all__ = [
    "__version__",

    "SQLEngine",
    "QueryBuilder",
    "configure_table_map",
    "clear_table_map",

    "TransactionManager",
    "TransactionState",
    "IsolationLevel",

    "EntityRepository",
    "MetadataRegistry",
    "RepositoryFactory",
    "get_metadata_registry",
    "mark_dirty",

    "EntityMetadata",
    "FieldDescriptor",
    "JoinTableDescriptor",
    "RelationDescriptor",
    "RelationKind",

    "Page",
    "SimplePage",

    # Exceptions (public API)
    "FluentQLError",
    "ErrorCode",

    "get_settings",
]
