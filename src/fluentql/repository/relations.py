"""Relation loading for hydrated entities."""

from typing import TYPE_CHECKING, Any, List, Mapping, Optional

from fluentql.constants.relations import RelationKind
from fluentql.logging import get_logger
from fluentql.repository.hydration import HydrationContext, hydrate, mark_loaded, snapshot_of
from fluentql.repository.metadata import MetadataRegistry
from fluentql.types.metadata import EntityMetadata, RelationDescriptor

if TYPE_CHECKING:
    from fluentql.engine.base import SQLEngine

logger = get_logger(__name__)


class RelationLoader:
    """Populates the relations declared on an entity.

    To-one relations become a single object or ``None``; one-to-many and
    many-to-many relations always become a list. Each relation costs one
    query. Related entities are loaded recursively while the context's depth
    limit allows.
    """

    def __init__(self, engine: "SQLEngine", registry: MetadataRegistry):
        self.engine = engine
        self.registry = registry

    def load(self, entity: Any, metadata: EntityMetadata, context: HydrationContext, depth: int = 0) -> Any:
        if not context.can_descend(depth):
            return entity

        pk = getattr(entity, metadata.primary_key, None)
        if pk is None:
            return entity

        for relation in metadata.relations:
            value = self.load_relation(entity, metadata, relation, context, depth)
            setattr(entity, relation.name, value)
        mark_loaded(entity, (relation.name for relation in metadata.relations))
        return entity

    def load_relation(
        self,
        entity: Any,
        metadata: EntityMetadata,
        relation: RelationDescriptor,
        context: HydrationContext,
        depth: int = 0,
    ) -> Any:
        """Query and hydrate one relation of ``entity`` without assigning it."""
        pk = getattr(entity, metadata.primary_key)
        target = self.registry.get(relation.target)

        if relation.kind == RelationKind.MANY_TO_MANY:
            table, own_column, inverse_column = self.registry.join_table_for(metadata, relation.name)
            rows = (
                self.engine.query()
                .select("t.*")
                .from_(target.table, "t")
                .join(table, "j", f"j.{inverse_column}", "=", f"t.{target.primary_key_column}")
                .where(f"j.{own_column}", pk)
                .fetch_all()
            )
            return self._materialize(target, rows, context, depth)

        if relation.kind == RelationKind.ONE_TO_MANY:
            foreign_key = self.registry.inverse_foreign_key(relation)
            rows = self.engine.query().from_(target.table).where(foreign_key, pk).fetch_all()
            return self._materialize(target, rows, context, depth)

        if relation.is_owning:
            foreign_id = self._foreign_id(entity, metadata, relation)
            if foreign_id is None:
                return None
            cached = context.get(target.entity_class, foreign_id)
            if cached is not None:
                return cached
            row = self.engine.query().from_(target.table).where(target.primary_key_column, foreign_id).first()
        else:
            foreign_key = self.registry.inverse_foreign_key(relation)
            row = self.engine.query().from_(target.table).where(foreign_key, pk).first()

        if row is None:
            return None
        return self._materialize(target, [row], context, depth)[0]

    def _foreign_id(self, entity: Any, metadata: EntityMetadata, relation: RelationDescriptor) -> Optional[Any]:
        snapshot = snapshot_of(entity)
        if relation.foreign_key in snapshot:
            return snapshot[relation.foreign_key]

        logger.debug(
            "Foreign key missing from snapshot, probing",
            extra={"entity": metadata.entity_name, "relation": relation.name},
        )
        return (
            self.engine.query()
            .from_(metadata.table)
            .where(metadata.primary_key_column, getattr(entity, metadata.primary_key))
            .value(relation.foreign_key)
        )

    def _materialize(
        self,
        metadata: EntityMetadata,
        rows: List[Mapping[str, Any]],
        context: HydrationContext,
        depth: int,
    ) -> List[Any]:
        entities = []
        for row in rows:
            pk = row.get(metadata.primary_key_column)
            known = pk is not None and context.has(metadata.entity_class, pk)
            entity = hydrate(metadata, row, context)
            if not known:
                self.load(entity, metadata, context, depth + 1)
            entities.append(entity)
        return entities

