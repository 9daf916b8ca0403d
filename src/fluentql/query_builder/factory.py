"""Dialect factory.

This module picks the dialect strategy matching the driver name reported by
the connection, so the rest of the package never branches on driver names.
"""

from typing import Dict, Type, Union

from fluentql.common.exceptions import platform_not_supported_error
from fluentql.constants.sql import Dialect
from fluentql.query_builder.dialects import (
    BaseDialect,
    MariaDBDialect,
    MySQLDialect,
    PostgreSQLDialect,
    SQLiteDialect,
)


class DialectFactory:
    """Factory for creating dialect strategies.

    Strategies are stateless, so one instance per dialect is created and
    reused.

    Example:
        >>> DialectFactory.create("sqlite")
        SQLiteDialect()
        >>> DialectFactory.create(connection.dialect.name)
    """

    _registry: Dict[Dialect, Type[BaseDialect]] = {
        Dialect.SQLITE: SQLiteDialect,
        Dialect.MYSQL: MySQLDialect,
        Dialect.MARIADB: MariaDBDialect,
        Dialect.POSTGRESQL: PostgreSQLDialect,
    }
    _instances: Dict[Dialect, BaseDialect] = {}

    @classmethod
    def create(cls, name: Union[str, Dialect]) -> BaseDialect:
        """Return the strategy for a driver-reported dialect name.

        Args:
            name: Dialect name, e.g. ``connection.dialect.name``

        Returns:
            The dialect strategy

        Raises:
            FluentQLError: With PLATFORM_NOT_SUPPORTED for unknown names
        """
        try:
            dialect = Dialect(str(getattr(name, "value", name)).lower())
        except ValueError:
            raise platform_not_supported_error(
                str(name),
                details={"supported": [d.value for d in Dialect]},
            ) from None

        if dialect not in cls._instances:
            cls._instances[dialect] = cls._registry[dialect]()
        return cls._instances[dialect]

    @classmethod
    def supported(cls) -> list:
        return [d.value for d in cls._registry]


def get_dialect(name: Union[str, Dialect]) -> BaseDialect:
    """Get the dialect strategy for a driver name."""
    return DialectFactory.create(name)
