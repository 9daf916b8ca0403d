"""Settings module providing configuration management for fluentql.

Configuration is built on Pydantic Settings and split by domain:

    1. Base Layer (base.py):
       - FluentQLBaseSettings: env prefix, .env support, app_env, log_level

    2. Domain Settings:
       - query.py: table map, metadata probe caching, SQL debug logging
       - transaction.py: retry attempts/sleep, advisory lock timeouts
       - repository.py: relation depth, default relation loading

    3. Main Aggregator (main.py):
       - _Settings: aggregates all domain settings
       - get_settings(): singleton factory function
       - _reload_settings(): force reload from environment (tests)

Environment Variable Naming:
    - Prefix: FLUENTQL_
    - Nested: double underscore, e.g. FLUENTQL_TRANSACTION__RETRY_ATTEMPTS=5
    - Mappings as JSON, e.g. FLUENTQL_QUERY__TABLE_MAP='{"user": "users"}'
"""

from .main import _Settings, get_settings, _reload_settings
from .base import FluentQLBaseSettings
from .query import QuerySettings
from .repository import RepositorySettings
from .transaction import TransactionSettings

__all__ = [
    "get_settings",
    "_reload_settings",
    "_Settings",
    "FluentQLBaseSettings",
    "QuerySettings",
    "RepositorySettings",
    "TransactionSettings",
]
