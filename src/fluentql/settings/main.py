from typing import Optional

from pydantic import Field

from .base import FluentQLBaseSettings
from .query import QuerySettings
from .repository import RepositorySettings
from .transaction import TransactionSettings


class _Settings(FluentQLBaseSettings):

    query: QuerySettings = Field(
        default_factory=QuerySettings,
        description="Query builder and identifier resolution configuration"
    )
    transaction: TransactionSettings = Field(
        default_factory=TransactionSettings,
        description="Transaction retry and advisory lock configuration"
    )
    repository: RepositorySettings = Field(
        default_factory=RepositorySettings,
        description="Entity repository and relation loading configuration"
    )


_settings: Optional[_Settings] = None


def get_settings(force_reload: bool = False) -> _Settings:
    """Get the singleton settings instance for the application.

    Settings are loaded from ``FLUENTQL_``-prefixed environment variables
    (and an optional ``.env`` file) on first access and then reused, so every
    engine, builder and repository sees the same configuration.

    Args:
        force_reload: If True, creates a new Settings instance even if
                     one already exists. Useful for testing or when
                     environment variables have changed.

    Returns:
        Settings: The singleton Settings instance

    Example:
        ```python
        settings = get_settings()
        settings.transaction.retry_attempts  # FLUENTQL_TRANSACTION__RETRY_ATTEMPTS

        # Force reload to pick up environment changes
        new_settings = get_settings(force_reload=True)
        assert new_settings is not settings
        ```

    Note:
        This function is thread-safe for reading but not for the initial
        creation. In practice, settings are loaded once at startup.
    """
    global _settings

    if _settings is None or force_reload:
        _settings = _Settings()

    return _settings


def _reload_settings() -> _Settings:
    """Force reload of settings.

    This is primarily for testing purposes where you need to reset
    the singleton instance.

    Returns:
        A fresh _Settings instance
    """
    global _settings
    _settings = None
    return get_settings(force_reload=True)
