"""Row to entity hydration, identity map and change tracking."""

from typing import Any, Dict, Iterable, Mapping, Optional, Set, Tuple, Type

from fluentql.settings import get_settings
from fluentql.types.metadata import EntityMetadata

# Row an entity was hydrated from (or last saved as), keyed by column.
SNAPSHOT_ATTR = "__fluentql_original__"
DIRTY_ATTR = "__fluentql_dirty__"
LOADED_ATTR = "__fluentql_loaded__"

IdentityKey = Tuple[Type[Any], Any]


class HydrationContext:
    """Identity map and depth limit for one repository call.

    Every entity materialized during the call is registered under
    ``(entity class, primary key)``, so a row reached twice (for example a
    back reference to the parent) resolves to the same object and relation
    loading cannot recurse forever.
    """

    def __init__(self, max_depth: Optional[int] = None):
        if max_depth is None:
            max_depth = get_settings().repository.max_relation_depth
        self.max_depth = max_depth
        self._instances: Dict[IdentityKey, Any] = {}

    def get(self, entity_class: Type[Any], pk: Any) -> Optional[Any]:
        return self._instances.get((entity_class, pk))

    def has(self, entity_class: Type[Any], pk: Any) -> bool:
        return (entity_class, pk) in self._instances

    def register(self, entity_class: Type[Any], pk: Any, entity: Any) -> None:
        self._instances[(entity_class, pk)] = entity

    def can_descend(self, depth: int) -> bool:
        return depth < self.max_depth

    def __len__(self) -> int:
        return len(self._instances)


def hydrate(metadata: EntityMetadata, row: Mapping[str, Any], context: Optional[HydrationContext] = None) -> Any:
    """Build (or reuse from ``context``) the entity for one row.

    Scalar fields are set by attribute name. Relations are left untouched;
    the raw row is kept as the snapshot so foreign keys and original values
    stay available.
    """
    pk = row.get(metadata.primary_key_column)
    if context is not None and pk is not None:
        existing = context.get(metadata.entity_class, pk)
        if existing is not None:
            return existing

    entity = metadata.entity_class()
    for name, column in metadata.scalar_columns().items():
        if column in row:
            setattr(entity, name, row[column])
    setattr(entity, SNAPSHOT_ATTR, dict(row))
    setattr(entity, DIRTY_ATTR, set())
    setattr(entity, LOADED_ATTR, set())

    if context is not None and pk is not None:
        context.register(metadata.entity_class, pk, entity)
    return entity


def snapshot_of(entity: Any) -> Dict[str, Any]:
    return getattr(entity, SNAPSHOT_ATTR, None) or {}


def has_snapshot(entity: Any) -> bool:
    return getattr(entity, SNAPSHOT_ATTR, None) is not None


def update_snapshot(entity: Any, values: Mapping[str, Any]) -> None:
    snapshot = dict(snapshot_of(entity))
    snapshot.update(values)
    setattr(entity, SNAPSHOT_ATTR, snapshot)


def mark_dirty(entity: Any, *fields: str) -> None:
    """Flag fields for the next ``save(entity, partial=True)``."""
    dirty = set(getattr(entity, DIRTY_ATTR, None) or ())
    dirty.update(fields)
    setattr(entity, DIRTY_ATTR, dirty)


def dirty_fields(entity: Any) -> Set[str]:
    return set(getattr(entity, DIRTY_ATTR, None) or ())


def clear_dirty(entity: Any) -> None:
    setattr(entity, DIRTY_ATTR, set())


def mark_loaded(entity: Any, relations: Iterable[str]) -> None:
    loaded = set(getattr(entity, LOADED_ATTR, None) or ())
    loaded.update(relations)
    setattr(entity, LOADED_ATTR, loaded)


def is_loaded(entity: Any, relation: str) -> bool:
    return relation in (getattr(entity, LOADED_ATTR, None) or ())
