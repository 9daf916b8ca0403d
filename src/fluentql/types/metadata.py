"""Entity and relation descriptors.

Descriptors are declared explicitly, once per entity type, and handed to
the repository layer through a ``MetadataProvider``. Nothing here is
discovered by introspection: the table name, the primary key, the scalar
fields and every relation are spelled out by the application.

Example:
    >>> @dataclass
    ... class Post:
    ...     id: Optional[int] = None
    ...     title: str = ""
    ...     author: Optional["User"] = None
    ...     tags: Optional[List["Tag"]] = None
    ...
    >>> EntityMetadata(
    ...     entity_class=Post,
    ...     table="posts",
    ...     fields=[FieldDescriptor(name="title", nullable=False)],
    ...     relations=[
    ...         RelationDescriptor(name="author", kind=RelationKind.MANY_TO_ONE, target=User),
    ...         RelationDescriptor(
    ...             name="tags",
    ...             kind=RelationKind.MANY_TO_MANY,
    ...             target=Tag,
    ...             join_table=JoinTableDescriptor(
    ...                 name="post_tag", join_column="post_id", inverse_column="tag_id"
    ...             ),
    ...         ),
    ...     ],
    ... )
"""

from typing import Any, Dict, List, Optional, Type

from pydantic import ConfigDict, Field, model_validator

from fluentql.common.exceptions import invalid_argument_error
from fluentql.constants.relations import RelationKind
from fluentql.types.base import FluentBaseModel
from fluentql.utils.naming import foreign_key_for


class _Descriptor(FluentBaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)


class FieldDescriptor(_Descriptor):
    """A scalar attribute persisted to one column.

    Attributes:
        name: Attribute name on the entity object.
        column: Physical column; defaults to ``name``.
        nullable: Whether the column accepts NULL.
    """
    name: str
    column: Optional[str] = None
    nullable: bool = True

    @property
    def column_name(self) -> str:
        return self.column or self.name


class JoinTableDescriptor(_Descriptor):
    """Join table of a many-to-many relation, seen from the owning side.

    Attributes:
        name: Join table name.
        join_column: Column referencing the owning entity.
        inverse_column: Column referencing the target entity.
    """
    name: str
    join_column: str
    inverse_column: str


class RelationDescriptor(_Descriptor):
    """A relation declared on an entity.

    Attributes:
        name: Attribute name holding the related object(s).
        kind: Relation cardinality.
        target: Related entity class.
        join_column: Foreign key column on this table for owning to-one
            relations. Defaults to the snake-cased relation name plus ``_id``.
        mapped_by: Attribute on the target that owns the relation (inverse side).
        inversed_by: Attribute on the target pointing back (owning side).
        join_table: Join table for an owning many-to-many relation.
    """
    name: str
    kind: RelationKind
    target: Type[Any]
    join_column: Optional[str] = None
    mapped_by: Optional[str] = None
    inversed_by: Optional[str] = None
    join_table: Optional[JoinTableDescriptor] = None

    @model_validator(mode="after")
    def check_relation_shape(self) -> "RelationDescriptor":
        if self.kind == RelationKind.ONE_TO_MANY and not self.mapped_by:
            raise ValueError(
                f"one-to-many relation '{self.name}' needs mapped_by to name the owning attribute on the target"
            )
        if self.kind == RelationKind.MANY_TO_MANY and self.join_table is None and not (
            self.mapped_by or self.inversed_by
        ):
            raise ValueError(
                f"many-to-many relation '{self.name}' needs a join_table or mapped_by/inversed_by"
            )
        if self.kind == RelationKind.MANY_TO_ONE and self.mapped_by:
            raise ValueError(f"many-to-one relation '{self.name}' is always the owning side")
        return self

    @property
    def is_owning(self) -> bool:
        if self.kind == RelationKind.MANY_TO_ONE:
            return True
        if self.kind == RelationKind.ONE_TO_ONE:
            return self.mapped_by is None
        if self.kind == RelationKind.MANY_TO_MANY:
            return self.join_table is not None
        return False

    @property
    def foreign_key(self) -> str:
        """Foreign key column on this entity's table (owning to-one relations)."""
        return self.join_column or foreign_key_for(self.name)

    @property
    def is_collection(self) -> bool:
        return self.kind.is_collection


class EntityMetadata(_Descriptor):
    """Everything the repository needs to know about one entity type.

    Attributes:
        entity_class: The Python class instances are hydrated into. It must be
            constructible without arguments.
        table: Physical table name.
        primary_key: Attribute (and column) holding the primary key.
        fields: Scalar fields, excluding relations. The primary key may be
            listed or left implicit.
        relations: Declared relations.
    """
    entity_class: Type[Any]
    table: str
    primary_key: str = "id"
    fields: List[FieldDescriptor] = Field(default_factory=list)
    relations: List[RelationDescriptor] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_names(self) -> "EntityMetadata":
        names = [f.name for f in self.fields] + [r.name for r in self.relations]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(
                f"{self.entity_class.__name__} declares {sorted(duplicates)} more than once"
            )
        return self

    @property
    def entity_name(self) -> str:
        return self.entity_class.__name__

    @property
    def primary_key_column(self) -> str:
        for f in self.fields:
            if f.name == self.primary_key:
                return f.column_name
        return self.primary_key

    @property
    def persisted_fields(self) -> List[FieldDescriptor]:
        """Scalar fields other than the primary key."""
        return [f for f in self.fields if f.name != self.primary_key]

    def scalar_columns(self) -> Dict[str, str]:
        """Map of attribute name to column for the key and every scalar field."""
        columns = {self.primary_key: self.primary_key_column}
        columns.update({f.name: f.column_name for f in self.persisted_fields})
        return columns

    def column_for(self, name: str) -> Optional[str]:
        """Column for a field or owning to-one relation name, if known."""
        columns = self.scalar_columns()
        if name in columns:
            return columns[name]
        for relation in self.relations:
            if relation.name == name and relation.is_owning and not relation.is_collection:
                return relation.foreign_key
        return None

    def find_relation(self, name: str) -> Optional[RelationDescriptor]:
        for relation in self.relations:
            if relation.name == name:
                return relation
        return None

    def relation(self, name: str) -> RelationDescriptor:
        """Return a declared relation or raise ``INVALID_ARGUMENT``."""
        found = self.find_relation(name)
        if found is None:
            raise invalid_argument_error(
                f"No relation '{name}' on {self.entity_name}",
                argument="relation",
                value=name,
            )
        return found
