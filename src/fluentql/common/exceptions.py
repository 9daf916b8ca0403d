from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Standard error codes for fluentql operations.

    Errors are categorized by code instead of by a deep exception hierarchy.
    Each category has its own prefix so callers can branch on the family of
    an error without importing many classes.

    Attributes:
        CONFIG_*: Configuration-related errors
        VALIDATION_*: Argument and input validation errors
        BUILD_*: Statement construction errors raised at render time
        EXECUTION_*: Errors reported by the database driver
        TRANSACTION_*: Transaction state and lock errors
        RESOURCE_*: Missing rows, entities and metadata
        PLATFORM_*: Dialect capability errors
        RETRY_*: Transient/retryable errors
    """
    # Configuration errors
    CONFIG_ERROR = "CONFIG_001"
    CONFIG_INVALID = "CONFIG_002"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_001"
    INVALID_ARGUMENT = "VALIDATION_002"
    INVALID_IDENTIFIER = "VALIDATION_003"

    # Statement build errors
    STATEMENT_BUILD_ERROR = "BUILD_001"

    # Execution errors
    EXECUTION_ERROR = "EXECUTION_001"
    QUERY_EXECUTION_ERROR = "EXECUTION_002"

    # Transaction errors
    TRANSACTION_ERROR = "TRANSACTION_001"
    LOCK_TIMEOUT = "TRANSACTION_002"

    # Resource errors
    RESOURCE_NOT_FOUND = "RESOURCE_001"
    ENTITY_NOT_FOUND = "RESOURCE_002"
    METADATA_NOT_FOUND = "RESOURCE_003"

    # Platform errors
    PLATFORM_NOT_SUPPORTED = "PLATFORM_001"

    # Retry/Transient errors
    RETRYABLE_ERROR = "RETRY_001"
    DEADLOCK_ERROR = "RETRY_002"


class FluentQLError(Exception):
    """Base exception for all fluentql errors.

    Attributes:
        message: Error message
        error_code: Error code from ErrorCode enum
        details: Additional error details
        cause: Optional underlying exception
        is_retryable: Whether the error is transient and can be retried
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.EXECUTION_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        is_retryable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause
        self.is_retryable = is_retryable

        # Lazy import to avoid circular dependency
        from fluentql.logging import get_logger
        logger = get_logger(__name__)
        logger.error(
            message,
            extra={
                "error_code": error_code.value,
                "details": self.details,
                "is_retryable": is_retryable,
            },
            exc_info=cause is not None
        )

    def __str__(self) -> str:
        msg = f"[{self.error_code.value}] {self.message}"
        if self.cause:
            msg = f"{msg} (caused by: {type(self.cause).__name__}: {str(self.cause)})"
        return msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
            "is_retryable": self.is_retryable
        }

    @classmethod
    def from_error_code(
        cls,
        error_code: ErrorCode,
        message: str,
        **kwargs
    ) -> "FluentQLError":
        """Create exception from error code.

        Transient codes are marked retryable unless the caller says otherwise.

        Args:
            error_code: Error code
            message: Error message
            **kwargs: Additional arguments for FluentQLError

        Returns:
            FluentQLError instance
        """
        if error_code in [
            ErrorCode.RETRYABLE_ERROR,
            ErrorCode.DEADLOCK_ERROR,
            ErrorCode.LOCK_TIMEOUT,
        ]:
            kwargs.setdefault('is_retryable', True)

        return cls(message=message, error_code=error_code, **kwargs)


def _truncate(query: str) -> str:
    return query[:500] + "..." if len(query) > 500 else query


def configuration_error(
    message: str,
    config_key: Optional[str] = None,
    **kwargs
) -> FluentQLError:
    """Create a configuration error.

    Args:
        message: Error message
        config_key: Configuration key that caused the error
        **kwargs: Additional error details

    Returns:
        FluentQLError with CONFIG_ERROR code
    """
    details = kwargs.get('details', {})
    if config_key:
        details["config_key"] = config_key

    return FluentQLError(
        message=message,
        error_code=ErrorCode.CONFIG_ERROR,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def validation_error(
    message: str,
    field: Optional[str] = None,
    value: Any = None,
    **kwargs
) -> FluentQLError:
    """Create a validation error.

    Args:
        message: Error message
        field: Field that failed validation
        value: Invalid value
        **kwargs: Additional error details

    Returns:
        FluentQLError with VALIDATION_ERROR code
    """
    details = kwargs.get('details', {})
    if field:
        details["field"] = field
    if value is not None:
        details["value"] = str(value)

    return FluentQLError(
        message=message,
        error_code=ErrorCode.VALIDATION_ERROR,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def invalid_argument_error(
    message: str,
    argument: Optional[str] = None,
    value: Any = None,
    **kwargs
) -> FluentQLError:
    """Create an invalid argument error for a rejected call parameter."""
    details = kwargs.get('details', {})
    if argument:
        details["argument"] = argument
    if value is not None:
        details["value"] = str(value)

    return FluentQLError(
        message=message,
        error_code=ErrorCode.INVALID_ARGUMENT,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def statement_build_error(
    message: str,
    fragment: Optional[str] = None,
    **kwargs
) -> FluentQLError:
    """Create a statement build error.

    Raised while rendering when the accumulated clauses cannot produce
    valid SQL (for example a join without any condition).

    Args:
        message: Error message
        fragment: Clause fragment being rendered, if any
        **kwargs: Additional error details

    Returns:
        FluentQLError with STATEMENT_BUILD_ERROR code
    """
    details = kwargs.get('details', {})
    if fragment:
        details["fragment"] = _truncate(fragment)

    return FluentQLError(
        message=message,
        error_code=ErrorCode.STATEMENT_BUILD_ERROR,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def driver_diagnostics(original_error: Exception) -> Dict[str, Any]:
    """Pull SQLSTATE, vendor code and message out of a driver exception.

    SQLAlchemy wraps DBAPI exceptions and keeps the driver's own exception
    on ``orig``; each driver names its diagnostic attributes differently.
    """
    orig = getattr(original_error, "orig", None) or original_error
    state = (
        getattr(orig, "sqlstate", None)
        or getattr(orig, "pgcode", None)
        or getattr(orig, "sqlite_errorname", None)
    )
    code = getattr(orig, "sqlite_errorcode", None)
    args = getattr(orig, "args", ())
    if code is None and args and isinstance(args[0], int):
        code = args[0]
    if len(args) > 1 and isinstance(args[0], int):
        message = str(args[1])
    else:
        message = str(orig)

    diagnostics: Dict[str, Any] = {"driver_message": message}
    if state is not None:
        diagnostics["sqlstate"] = str(state)
    if code is not None:
        diagnostics["driver_code"] = code
    return diagnostics


def query_execution_error(
    query: str,
    original_error: Exception,
    **kwargs
) -> FluentQLError:
    """Create a query execution error.

    The driver's state, code and message are copied into ``details`` and
    embedded in the message so they survive serialization.

    Args:
        query: SQL query that failed
        original_error: The underlying exception
        **kwargs: Additional error details (``is_retryable`` is honoured)

    Returns:
        FluentQLError with QUERY_EXECUTION_ERROR code
    """
    details = kwargs.get('details', {})
    details["query"] = _truncate(query)
    diagnostics = driver_diagnostics(original_error)
    details.update(diagnostics)

    state = diagnostics.get("sqlstate", "-")
    code = diagnostics.get("driver_code", "-")
    return FluentQLError(
        message=f"Query failed: {state}/{code} - {diagnostics['driver_message']}",
        error_code=ErrorCode.QUERY_EXECUTION_ERROR,
        details=details,
        cause=original_error,
        **{k: v for k, v in kwargs.items() if k not in ['details', 'cause']}
    )


def transaction_error(
    message: str,
    operation: Optional[str] = None,
    **kwargs
) -> FluentQLError:
    """Create a transaction state error."""
    details = kwargs.get('details', {})
    if operation:
        details["operation"] = operation

    return FluentQLError(
        message=message,
        error_code=ErrorCode.TRANSACTION_ERROR,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def lock_timeout_error(
    lock_name: str,
    timeout: float,
    **kwargs
) -> FluentQLError:
    """Create an advisory lock timeout error.

    Args:
        lock_name: Name of the lock that could not be acquired
        timeout: Seconds waited before giving up
        **kwargs: Additional error details

    Returns:
        FluentQLError with LOCK_TIMEOUT code and is_retryable=True
    """
    details = kwargs.get('details', {})
    details["lock_name"] = lock_name
    details["timeout_seconds"] = timeout

    return FluentQLError(
        message=f"Could not acquire lock '{lock_name}' within {timeout} seconds",
        error_code=ErrorCode.LOCK_TIMEOUT,
        details=details,
        is_retryable=True,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def platform_not_supported_error(
    platform: str,
    feature: Optional[str] = None,
    **kwargs
) -> FluentQLError:
    """Create a platform not supported error.

    Args:
        platform: Dialect that is not supported
        feature: Feature the dialect cannot provide, if the dialect itself is known
        **kwargs: Additional error details

    Returns:
        FluentQLError with PLATFORM_NOT_SUPPORTED code
    """
    details = kwargs.get('details', {})
    details["platform"] = platform
    if feature:
        details["feature"] = feature
        message = f"{feature} is not supported on '{platform}'"
    else:
        message = f"Platform '{platform}' is not supported"

    return FluentQLError(
        message=message,
        error_code=ErrorCode.PLATFORM_NOT_SUPPORTED,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def retryable_error(
    message: str,
    attempt: Optional[int] = None,
    **kwargs
) -> FluentQLError:
    """Create a retryable error.

    Args:
        message: Error message
        attempt: Current attempt number
        **kwargs: Additional error details

    Returns:
        FluentQLError with RETRYABLE_ERROR code and is_retryable=True
    """
    details = kwargs.get('details', {})
    if attempt:
        details["attempt"] = attempt

    return FluentQLError(
        message=message,
        error_code=ErrorCode.RETRYABLE_ERROR,
        details=details,
        is_retryable=True,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def resource_not_found_error(
    message: str,
    resource_type: Optional[str] = None,
    resource_name: Optional[str] = None,
    **kwargs
) -> FluentQLError:
    """Create a resource not found error.

    Args:
        message: Error message
        resource_type: Type of resource (table, metadata, etc.)
        resource_name: Name of the missing resource
        **kwargs: Additional error details

    Returns:
        FluentQLError with RESOURCE_NOT_FOUND code
    """
    details = kwargs.get('details', {})
    if resource_type:
        details["resource_type"] = resource_type
    if resource_name:
        details["resource_name"] = resource_name

    return FluentQLError(
        message=message,
        error_code=kwargs.pop('error_code', ErrorCode.RESOURCE_NOT_FOUND),
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def entity_not_found_error(entity_name: str, identifier: Any) -> FluentQLError:
    """Create the error raised by ``find_or_fail`` style lookups."""
    return resource_not_found_error(
        f"{entity_name} with id {identifier!r} not found",
        resource_type="entity",
        resource_name=entity_name,
        error_code=ErrorCode.ENTITY_NOT_FOUND,
        details={"id": str(identifier)},
    )
