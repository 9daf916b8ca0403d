"""Provider protocol definitions.

This module defines the capabilities fluentql consumes but does not
implement: the source of entity descriptors and the shape of a builder
extension. Both are structural, so any object with the right methods
qualifies without inheriting from anything here.
"""

from typing import Any, Protocol, Type, runtime_checkable

from fluentql.types.metadata import EntityMetadata


@runtime_checkable
class MetadataProvider(Protocol):
    """Protocol for components that supply entity descriptors.

    The repository layer asks the provider for the descriptor of an entity
    class every time it needs to translate between rows and objects, so
    implementations are expected to cache descriptors for the process
    lifetime.
    """

    def get(self, entity_class: Type[Any]) -> EntityMetadata:
        """Return the descriptor declared for ``entity_class``.

        Args:
            entity_class: The entity type to look up

        Returns:
            The EntityMetadata registered for the class

        Raises:
            FluentQLError: With METADATA_NOT_FOUND when nothing is declared
        """
        ...

    def has(self, entity_class: Type[Any]) -> bool:
        """Check whether a descriptor is declared for ``entity_class``."""
        ...


@runtime_checkable
class Extension(Protocol):
    """Protocol for query builder extensions.

    Extensions are injected into ``QueryBuilder`` at construction time and
    invoked through ``builder.apply(name, ...)``. They receive the builder
    as the first argument and usually return it so calls keep chaining.
    """

    def __call__(self, builder: Any, *args: Any, **kwargs: Any) -> Any:
        ...
