"""Repository construction and caching."""

from typing import TYPE_CHECKING, Any, Dict, Optional, Type

from fluentql.common.exceptions import invalid_argument_error
from fluentql.protocols.providers import MetadataProvider
from fluentql.repository.entity import EntityRepository
from fluentql.repository.metadata import MetadataRegistry, get_metadata_registry

if TYPE_CHECKING:
    from fluentql.engine.base import SQLEngine


class RepositoryFactory:
    """Hands out one repository per entity class for an engine.

    Example:
        >>> factory = RepositoryFactory(engine, registry)
        >>> posts = factory.get(Post)
        >>> assert factory.get(Post) is posts
    """

    def __init__(self, engine: "SQLEngine", registry: Optional[MetadataRegistry] = None):
        self.engine = engine
        self.registry = registry or get_metadata_registry()
        if not isinstance(self.registry, MetadataProvider):
            raise invalid_argument_error(
                f"{type(self.registry).__name__} does not provide entity metadata",
                argument="registry",
            )
        self._repositories: Dict[Type[Any], EntityRepository] = {}

    def get(self, entity_class: Type[Any]) -> EntityRepository:
        """Cached generic repository for ``entity_class``.

        Raises:
            FluentQLError: METADATA_NOT_FOUND when the class is not registered
        """
        repository = self._repositories.get(entity_class)
        if repository is None:
            repository = EntityRepository(self.engine, self.registry.get(entity_class), self.registry)
            self._repositories[entity_class] = repository
        return repository

    def create(self, repository_class: Type[EntityRepository], entity_class: Type[Any]) -> EntityRepository:
        """Build a custom repository subclass for ``entity_class``.

        Custom repositories are not cached; keep the instance if it is reused.

        Raises:
            FluentQLError: INVALID_ARGUMENT when ``repository_class`` does not
                extend ``EntityRepository``
        """
        if not (isinstance(repository_class, type) and issubclass(repository_class, EntityRepository)):
            raise invalid_argument_error(
                f"{getattr(repository_class, '__name__', repository_class)} must extend EntityRepository",
                argument="repository_class",
            )
        return repository_class(self.engine, self.registry.get(entity_class), self.registry)

    def clear(self) -> None:
        self._repositories.clear()
