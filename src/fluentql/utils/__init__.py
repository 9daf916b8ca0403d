"""Utility functions and helpers for fluentql."""

from fluentql.utils.decorators import retry_with_backoff, traced
from fluentql.utils.naming import (
    camel_to_snake_id,
    foreign_key_for,
    snake_to_camel_id,
    to_snake,
)

__all__ = [
    # Decorators
    "retry_with_backoff",
    "traced",
    # Naming
    "camel_to_snake_id",
    "foreign_key_for",
    "snake_to_camel_id",
    "to_snake",
]
