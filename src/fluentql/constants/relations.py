"""Relation kinds for entity metadata descriptors."""

from enum import Enum


class RelationKind(str, Enum):
    """Relationship cardinalities supported by the repository.

    Owning side is the side whose table holds the foreign key (or, for
    many-to-many, the side that declares the join table).
    """
    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_ONE = "many_to_one"
    MANY_TO_MANY = "many_to_many"

    @property
    def is_collection(self) -> bool:
        """Collections always hydrate as lists, never as ``None``."""
        return self in (RelationKind.ONE_TO_MANY, RelationKind.MANY_TO_MANY)
