"""Common exceptions for fluentql.

The exception system uses error codes for categorization rather than
numerous specific exception classes. Every error raised by the package is a
``FluentQLError`` carrying an ``ErrorCode``, structured ``details`` and, for
driver failures, the original exception as ``cause``.

Propagation:
    - Statement build errors and execution errors propagate to the caller.
    - Metadata probe failures are absorbed by the identifier resolver and
      never surface as exceptions.
    - Only errors marked ``is_retryable`` are retried, and only inside
      ``transaction_with_retry``.
"""

from fluentql.common.exceptions import (
    FluentQLError,
    ErrorCode,
    # Helper functions
    configuration_error,
    validation_error,
    invalid_argument_error,
    statement_build_error,
    query_execution_error,
    transaction_error,
    lock_timeout_error,
    platform_not_supported_error,
    retryable_error,
    resource_not_found_error,
    entity_not_found_error,
    driver_diagnostics,
)

__all__ = [
    # Base Exception and Error Codes
    "FluentQLError",
    "ErrorCode",
    # Helper functions
    "configuration_error",
    "validation_error",
    "invalid_argument_error",
    "statement_build_error",
    "query_execution_error",
    "transaction_error",
    "lock_timeout_error",
    "platform_not_supported_error",
    "retryable_error",
    "resource_not_found_error",
    "entity_not_found_error",
    "driver_diagnostics",
]
