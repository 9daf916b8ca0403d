"""Process-wide registry of entity descriptors."""

from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

from fluentql.common.exceptions import ErrorCode, invalid_argument_error, resource_not_found_error
from fluentql.constants.relations import RelationKind
from fluentql.logging import get_logger
from fluentql.types.metadata import EntityMetadata, RelationDescriptor
from fluentql.utils.naming import foreign_key_for

logger = get_logger(__name__)

JoinTable = Tuple[str, str, str]


class MetadataRegistry:
    """In-memory ``MetadataProvider``.

    Descriptors are registered once at startup and kept for the process
    lifetime. Besides plain lookups the registry answers the questions that
    need both sides of a relation: which join table and columns a
    many-to-many relation uses from either side, and which foreign key an
    inverse relation points through.
    """

    def __init__(self, entries: Optional[Iterable[EntityMetadata]] = None):
        self._entries: Dict[Type[Any], EntityMetadata] = {}
        for metadata in entries or ():
            self.register(metadata)

    def register(self, metadata: EntityMetadata) -> EntityMetadata:
        self._entries[metadata.entity_class] = metadata
        logger.debug(
            "Entity metadata registered",
            extra={"entity": metadata.entity_name, "db.sql.table": metadata.table},
        )
        return metadata

    def get(self, entity_class: Type[Any]) -> EntityMetadata:
        """Return the descriptor of ``entity_class``.

        Raises:
            FluentQLError: METADATA_NOT_FOUND when nothing is registered
        """
        metadata = self._entries.get(entity_class)
        if metadata is None:
            raise resource_not_found_error(
                f"No metadata registered for {getattr(entity_class, '__name__', entity_class)}",
                resource_type="metadata",
                resource_name=getattr(entity_class, "__name__", str(entity_class)),
                error_code=ErrorCode.METADATA_NOT_FOUND,
            )
        return metadata

    def has(self, entity_class: Type[Any]) -> bool:
        return entity_class in self._entries

    def entities(self) -> List[Type[Any]]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def join_table_for(self, metadata: EntityMetadata, relation_name: str) -> JoinTable:
        """``(join table, column for this entity, column for the target)``.

        The inverse side has no join table of its own: it is read from the
        owning relation on the target, with the two columns swapped.

        Raises:
            FluentQLError: INVALID_ARGUMENT when the relation is not a
                many-to-many or neither side declares a join table
        """
        relation = metadata.relation(relation_name)
        if relation.kind != RelationKind.MANY_TO_MANY:
            raise invalid_argument_error(
                f"{relation_name} is not a many-to-many relation on {metadata.entity_name}",
                argument="relation",
                value=relation_name,
            )

        if relation.join_table is not None:
            jt = relation.join_table
            return jt.name, jt.join_column, jt.inverse_column

        other_name = relation.mapped_by or relation.inversed_by
        target = self.get(relation.target)
        other = target.find_relation(other_name) if other_name else None
        if other is None or other.kind != RelationKind.MANY_TO_MANY:
            raise invalid_argument_error(
                f"{other_name} is not a many-to-many relation on {target.entity_name}",
                argument="relation",
                value=relation_name,
            )
        if other.join_table is None:
            raise invalid_argument_error(
                f"Neither {relation_name} nor {other_name} declares a join table",
                argument="relation",
                value=relation_name,
            )

        jt = other.join_table
        return jt.name, jt.inverse_column, jt.join_column

    def inverse_foreign_key(self, relation: RelationDescriptor) -> str:
        """Foreign key column on the target table for an inverse relation."""
        target = self.get(relation.target)
        owner = target.find_relation(relation.mapped_by)
        if owner is not None:
            return owner.foreign_key
        return target.column_for(relation.mapped_by) or foreign_key_for(relation.mapped_by)


_registry: Optional[MetadataRegistry] = None


def get_metadata_registry() -> MetadataRegistry:
    """Default registry shared by repositories created without one."""
    global _registry
    if _registry is None:
        _registry = MetadataRegistry()
    return _registry
