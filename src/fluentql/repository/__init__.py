"""Entity repository layer.

Entities are plain classes described by ``EntityMetadata`` registered in a
``MetadataRegistry``. ``RepositoryFactory`` hands out an ``EntityRepository``
per class; the repository hydrates rows, loads relations through
``RelationLoader`` and persists changes with the query builder.
"""

from fluentql.repository.entity import EntityRepository
from fluentql.repository.factory import RepositoryFactory
from fluentql.repository.hydration import HydrationContext, hydrate, mark_dirty
from fluentql.repository.metadata import MetadataRegistry, get_metadata_registry
from fluentql.repository.relations import RelationLoader

__all__ = [
    "EntityRepository",
    "HydrationContext",
    "MetadataRegistry",
    "RelationLoader",
    "RepositoryFactory",
    "get_metadata_registry",
    "hydrate",
    "mark_dirty",
]
