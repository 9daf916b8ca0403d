"""Generic entity repository."""

import json
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from fluentql.common.exceptions import entity_not_found_error, invalid_argument_error
from fluentql.constants.relations import RelationKind
from fluentql.logging import get_logger
from fluentql.repository.hydration import (
    HydrationContext,
    clear_dirty,
    dirty_fields,
    has_snapshot,
    hydrate,
    is_loaded,
    snapshot_of,
    update_snapshot,
)
from fluentql.repository.metadata import MetadataRegistry, get_metadata_registry
from fluentql.repository.relations import RelationLoader
from fluentql.types.metadata import EntityMetadata, RelationDescriptor

if TYPE_CHECKING:
    from fluentql.engine.base import SQLEngine
    from fluentql.query_builder.builder import QueryBuilder

logger = get_logger(__name__)

Criteria = Mapping[str, Any]


class EntityRepository:
    """Finders, persistence and relation helpers for one entity type.

    The repository is bound to one table and one primary key, both taken
    from the entity's ``EntityMetadata``. Rows are hydrated into instances
    of ``metadata.entity_class``; relations are loaded through a
    ``RelationLoader`` when ``load_relations`` is on.

    Example:
        >>> users = EntityRepository(engine, user_metadata)
        >>> user = users.find(1)
        >>> user.name = "Ada"
        >>> users.save(user)
        >>> users.find_by({"active": True}, order_by={"name": "ASC"}, limit=10)
    """

    def __init__(
        self,
        engine: "SQLEngine",
        metadata: EntityMetadata,
        registry: Optional[MetadataRegistry] = None,
    ):
        self.engine = engine
        self.metadata = metadata
        self.registry = registry or get_metadata_registry()
        if not self.registry.has(metadata.entity_class):
            self.registry.register(metadata)
        self.loader = RelationLoader(engine, self.registry)
        self._settings = engine.settings.repository

    @property
    def entity_class(self) -> type:
        return self.metadata.entity_class

    @property
    def table(self) -> str:
        return self.metadata.table

    # Helpers ---------------------------------------------------------------

    def _query(self) -> "QueryBuilder":
        return self.engine.query().from_(self.table)

    def _load_flag(self, load_relations: Optional[bool]) -> bool:
        return self._settings.load_relations_by_default if load_relations is None else load_relations

    def _materialize(self, rows: Sequence[Mapping[str, Any]], load_relations: Optional[bool]) -> List[Any]:
        context = HydrationContext(self._settings.max_relation_depth)
        entities = []
        for row in rows:
            entity = hydrate(self.metadata, row, context)
            if self._load_flag(load_relations):
                self.loader.load(entity, self.metadata, context)
            entities.append(entity)
        return entities

    def _id_of(self, id_or_entity: Any) -> Any:
        if isinstance(id_or_entity, self.entity_class):
            return getattr(id_or_entity, self.metadata.primary_key, None)
        return id_or_entity

    def _related_id(self, value: Any) -> Any:
        """Primary key of a related entity object; other values pass through."""
        if value is not None and self.registry.has(type(value)):
            return getattr(value, self.registry.get(type(value)).primary_key, None)
        return value

    def _column(self, key: str) -> str:
        return self.metadata.column_for(key) or key

    def _normalize(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.strftime(self._settings.datetime_format)
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        return value

    def _apply_criteria(self, query: "QueryBuilder", criteria: Optional[Criteria]) -> "QueryBuilder":
        for key, value in (criteria or {}).items():
            column = self._column(key)
            value = self._related_id(value)
            if value is None:
                query.where_null(column)
            elif isinstance(value, (list, tuple, set)):
                query.where_in(column, [self._normalize(self._related_id(v)) for v in value])
            else:
                query.where(column, self._normalize(value))
        return query

    def _require_id(self, entity: Any) -> Any:
        pk = getattr(entity, self.metadata.primary_key, None)
        if pk is None:
            raise invalid_argument_error(
                f"{self.metadata.entity_name} must have a primary key before relations can change",
                argument="entity",
            )
        return pk

    # Finders ---------------------------------------------------------------

    def find(self, id_or_entity: Any, load_relations: Optional[bool] = None) -> Optional[Any]:
        """Entity with the given primary key, or ``None``."""
        pk = self._id_of(id_or_entity)
        if pk is None:
            return None
        row = self._query().where(self.metadata.primary_key_column, pk).first()
        if row is None:
            return None
        return self._materialize([row], load_relations)[0]

    def find_or_fail(self, id_or_entity: Any, load_relations: Optional[bool] = None) -> Any:
        """Like ``find`` but raises ``ENTITY_NOT_FOUND`` instead of returning ``None``."""
        entity = self.find(id_or_entity, load_relations)
        if entity is None:
            raise entity_not_found_error(self.metadata.entity_name, self._id_of(id_or_entity))
        return entity

    def find_all(self, criteria: Optional[Criteria] = None, load_relations: Optional[bool] = None) -> List[Any]:
        return self.find_by(criteria or {}, load_relations=load_relations)

    def find_by(
        self,
        criteria: Criteria,
        order_by: Optional[Mapping[str, str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        load_relations: Optional[bool] = None,
    ) -> List[Any]:
        """Entities matching every ``criteria`` entry.

        Keys may be field names, relation names or columns. ``None`` values
        match NULL, lists match with IN and entity values match their
        primary key. ``order_by`` maps field to direction and is applied in
        insertion order.
        """
        query = self._apply_criteria(self._query(), criteria)
        for field, direction in (order_by or {}).items():
            query.order_by(self._column(field), direction)
        if limit is not None:
            query.limit(limit)
        if offset is not None:
            query.offset(offset)
        return self._materialize(query.fetch_all(), load_relations)

    def find_one_by(self, criteria: Criteria, load_relations: Optional[bool] = None) -> Optional[Any]:
        found = self.find_by(criteria, limit=1, load_relations=load_relations)
        return found[0] if found else None

    def count(self, criteria: Optional[Criteria] = None) -> int:
        return self._apply_criteria(self._query(), criteria).count()

    def find_by_relation(
        self,
        relation_name: str,
        related_id: Any,
        load_relations: Optional[bool] = None,
    ) -> List[Any]:
        """Entities linked to ``related_id`` through ``relation_name``.

        Many-to-many relations go through the join table; owning to-one
        relations filter on the foreign key.
        """
        relation = self.metadata.relation(relation_name)
        related_id = self._related_id(related_id)

        if relation.kind == RelationKind.MANY_TO_MANY:
            table, own_column, inverse_column = self.registry.join_table_for(self.metadata, relation_name)
            query = (
                self.engine.query()
                .select("e.*")
                .from_(self.table, "e")
                .join(table, "j", f"j.{own_column}", "=", f"e.{self.metadata.primary_key_column}")
                .where(f"j.{inverse_column}", related_id)
            )
        elif relation.is_owning and not relation.is_collection:
            query = self._query().where(relation.foreign_key, related_id)
        else:
            raise invalid_argument_error(
                f"{relation_name} cannot be queried from {self.metadata.entity_name}; "
                "use the owning side",
                argument="relation",
                value=relation_name,
            )
        return self._materialize(query.fetch_all(), load_relations)

    def load_relations(self, entity: Any) -> Any:
        """Load every declared relation of an already hydrated entity."""
        self._require_id(entity)
        context = HydrationContext(self._settings.max_relation_depth)
        context.register(self.entity_class, getattr(entity, self.metadata.primary_key), entity)
        return self.loader.load(entity, self.metadata, context)

    # Persistence -----------------------------------------------------------

    def _persistable(self, entity: Any) -> Dict[str, Any]:
        """Column to bindable value for scalar fields and owning to-one keys."""
        data: Dict[str, Any] = {}
        for field in self.metadata.persisted_fields:
            data[field.column_name] = self._normalize(getattr(entity, field.name, None))

        snapshot = snapshot_of(entity)
        for relation in self.metadata.relations:
            if relation.is_collection or not relation.is_owning:
                continue
            related = getattr(entity, relation.name, None)
            if related is None and relation.foreign_key in snapshot and not is_loaded(entity, relation.name):
                # Relation was never loaded: keep the stored key.
                data[relation.foreign_key] = snapshot[relation.foreign_key]
            else:
                data[relation.foreign_key] = self._related_id(related)
        return data

    def _changed(self, entity: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        if not has_snapshot(entity):
            return data

        snapshot = snapshot_of(entity)
        marked = {self._column(name) for name in dirty_fields(entity)}
        return {
            column: value
            for column, value in data.items()
            if column in marked or column not in snapshot or snapshot[column] != value
        }

    def save(self, entity: Any, partial: bool = False) -> Any:
        """Insert or update ``entity`` and return its primary key.

        A ``None`` primary key means insert; the generated key is written
        back onto the entity. With ``partial`` only fields marked through
        ``mark_dirty`` or differing from the hydrated values are written,
        and nothing is sent when nothing changed. Many-to-many lists are
        synced with the join table. Everything runs in one transaction.
        """
        if not isinstance(entity, self.entity_class):
            raise invalid_argument_error(
                f"Expected {self.metadata.entity_name}, got {type(entity).__name__}",
                argument="entity",
            )
        return self.engine.transactions.transaction(self._persist, entity, partial)

    def _persist(self, entity: Any, partial: bool) -> Any:
        meta = self.metadata
        data = self._persistable(entity)
        pk = getattr(entity, meta.primary_key, None)

        if pk is None:
            pk = self.engine.query().insert(meta.table, data, primary_key=meta.primary_key_column)
            setattr(entity, meta.primary_key, pk)
            logger.debug("Entity inserted", extra={"entity": meta.entity_name, "entity.id": str(pk)})
        else:
            changes = self._changed(entity, data) if partial else data
            if changes:
                (
                    self.engine.query()
                    .update(meta.table, changes)
                    .where(meta.primary_key_column, pk)
                    .execute()
                )
            else:
                logger.debug("Nothing to update", extra={"entity": meta.entity_name, "entity.id": str(pk)})

        for relation in meta.relations:
            if relation.kind == RelationKind.MANY_TO_MANY:
                self._sync_collection(entity, pk, relation)

        update_snapshot(entity, {**data, meta.primary_key_column: pk})
        clear_dirty(entity)
        return pk

    def _sync_collection(self, entity: Any, pk: Any, relation: RelationDescriptor) -> None:
        items = getattr(entity, relation.name, None)
        if items is None:
            return

        wanted: List[Any] = []
        for item in items:
            related_id = self._related_id(item)
            if related_id is None:
                raise invalid_argument_error(
                    f"Related {relation.target.__name__} in '{relation.name}' must be saved first",
                    argument=relation.name,
                )
            if related_id not in wanted:
                wanted.append(related_id)

        table, own_column, inverse_column = self.registry.join_table_for(self.metadata, relation.name)
        current = self.engine.query().from_(table).where(own_column, pk).pluck(inverse_column)

        for related_id in wanted:
            if related_id not in current:
                self.attach_relation(entity, relation.name, related_id)
        for related_id in current:
            if related_id not in wanted:
                self.detach_relation(entity, relation.name, related_id)

    def delete(self, id_or_entity: Any) -> int:
        """Delete one row and return the affected row count (0 if absent).

        Join-table rows of every many-to-many relation are removed and
        foreign keys pointing here from one-to-many children and inverse
        one-to-one rows are set to NULL first, in the same transaction.

        Raises:
            FluentQLError: INVALID_ARGUMENT when no primary key is given
        """
        pk = self._id_of(id_or_entity)
        if pk is None:
            raise invalid_argument_error(
                f"Cannot delete {self.metadata.entity_name} without a primary key",
                argument="id_or_entity",
            )
        if not self._query().where(self.metadata.primary_key_column, pk).exists():
            return 0

        def _delete() -> int:
            self._cascade(pk)
            return self.engine.query().delete(self.table).where(self.metadata.primary_key_column, pk).execute()

        return self.engine.transactions.transaction(_delete)

    def _cascade(self, pk: Any) -> None:
        for relation in self.metadata.relations:
            if relation.kind == RelationKind.MANY_TO_MANY:
                table, own_column, inverse_column = self.registry.join_table_for(self.metadata, relation.name)
                query = self.engine.query().delete(table).where(own_column, pk)
                if relation.target is self.entity_class:
                    query.or_where(inverse_column, pk)
                query.execute()
            elif relation.kind == RelationKind.ONE_TO_MANY or (
                relation.kind == RelationKind.ONE_TO_ONE and not relation.is_owning
            ):
                foreign_key = self.registry.inverse_foreign_key(relation)
                target = self.registry.get(relation.target)
                self.engine.query().update(target.table, {foreign_key: None}).where(foreign_key, pk).execute()

    # Join table rows -------------------------------------------------------

    def attach_relation(self, entity: Any, relation_name: str, related_id: Any) -> int:
        """Insert one join-table row linking ``entity`` and ``related_id``."""
        pk = self._require_id(entity)
        table, own_column, inverse_column = self.registry.join_table_for(self.metadata, relation_name)
        return self.engine.query().insert_batch(
            table, [{own_column: pk, inverse_column: self._related_id(related_id)}]
        )

    def detach_relation(self, entity: Any, relation_name: str, related_id: Any) -> int:
        """Delete the join-table row linking ``entity`` and ``related_id``."""
        pk = self._require_id(entity)
        table, own_column, inverse_column = self.registry.join_table_for(self.metadata, relation_name)
        return (
            self.engine.query()
            .delete(table)
            .where(own_column, pk)
            .where(inverse_column, self._related_id(related_id))
            .execute()
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.metadata.entity_name}, table={self.table!r})"
