"""
Structured error types for vigil.

Every failure raised inside the alerting pipeline is a ``VigilError`` carrying
a category, a retry hint, structured context and the chained cause. The
evaluation engine and the notification dispatcher use these attributes to
decide whether a failure is a transient backend problem (degrade and log) or
a caller misconfiguration (surface distinctly).

Architecture:
    ::

        VigilError  (category, retryable, context, cause)
        │
        ├── ConfigError                  CONFIG, never retryable
        │     ├── InvalidConfigError
        │     ├── UnsupportedBackendError   unknown data source kind
        │     └── NotConnectedError         operation before connect()
        │
        ├── TransientError               retryable by default
        │     ├── DataSourceConnectionError NETWORK
        │     ├── OperationTimeoutError     TIMEOUT
        │     └── DeliveryError             DELIVERY
        │
        └── QueryError                   SOURCE, malformed statement or
                                         backend-side execution failure

Guardrails:
    ❌ DON'T: raise bare ``Exception`` from an adapter
    ✅ DO: wrap driver errors with ``cause=`` so the root cause survives

    ❌ DON'T: put passwords or API keys into ``ErrorContext``
    ✅ DO: record ids, kinds, URLs and timings

Usage:
    from vigil.core.errors import QueryError

    try:
        rows = await conn.fetch(sql)
    except asyncpg.PostgresError as e:
        raise QueryError(f"Query failed: {e}", cause=e).with_context(kind="POSTGRESQL")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    # Infrastructure errors (usually transient)
    NETWORK = "NETWORK"  # Connection refused, DNS, auth handshake
    DATABASE = "DATABASE"  # Pool exhaustion, driver failures
    TIMEOUT = "TIMEOUT"  # Deadline exceeded

    # Data errors
    SOURCE = "SOURCE"  # Backend rejected or failed a query

    # Caller errors (never retryable)
    CONFIG = "CONFIG"  # Unknown kind, missing connect, bad definition

    # Notification errors
    DELIVERY = "DELIVERY"  # Transport failure or non-success response

    # Internal errors
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are serialized by ``to_dict()``; anything that has
    no dedicated field goes into ``metadata``.
    """

    # Data source context
    source_id: str | None = None
    kind: str | None = None
    url: str | None = None
    elapsed_ms: int | None = None

    # Alerting context
    rule_id: str | None = None
    channel_id: str | None = None
    http_status: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["source_id", "kind", "url", "elapsed_ms", "rule_id", "channel_id", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class VigilError(Exception):
    """
    Base exception for all vigil errors.

    Subclasses set ``default_category`` and ``default_retryable``; both can be
    overridden per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> VigilError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryError("Failed").with_context(kind="MYSQL", elapsed_ms=12)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(VigilError):
    """
    Configuration error: the caller asked for something that cannot work.

    Never retryable - the definition or the call site must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """A configuration value is present but unusable."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        super().__init__(message or f"Invalid value for {key}: {value!r}")
        self.key = key
        self.value = value


class UnsupportedBackendError(ConfigError):
    """No adapter is registered for the requested data source kind."""

    def __init__(self, kind: str, message: str | None = None):
        super().__init__(message or f"Unsupported data source type: {kind}")
        self.kind = kind
        self.context.kind = kind


class NotConnectedError(ConfigError):
    """An operation was attempted before a successful connect()."""


# =============================================================================
# TRANSIENT ERRORS (Usually Retryable)
# =============================================================================


class TransientError(VigilError):
    """Temporary error that may succeed if the same operation is tried again."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class DataSourceConnectionError(TransientError):
    """Network or authentication failure while connecting or probing."""

    default_category = ErrorCategory.NETWORK


class OperationTimeoutError(TransientError):
    """Operation exceeded its deadline."""

    default_category = ErrorCategory.TIMEOUT


class DeliveryError(TransientError):
    """Notification transport error or non-success response."""

    default_category = ErrorCategory.DELIVERY


# =============================================================================
# QUERY ERRORS
# =============================================================================


class QueryError(VigilError):
    """Malformed statement or backend-side execution failure."""

    default_category = ErrorCategory.SOURCE
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, VigilError):
        return error.retryable
    retryable_types = (
        ConnectionError,
        TimeoutError,
        OSError,
    )
    return isinstance(error, retryable_types)


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, VigilError):
        return error.category
    if isinstance(error, TimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (KeyError, ValueError)):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


def is_configuration_error(error: Exception) -> bool:
    """True for errors that indicate misconfiguration rather than backend trouble."""
    return isinstance(error, ConfigError)


__all__ = [
    # Category enum
    "ErrorCategory",
    # Context
    "ErrorContext",
    # Base
    "VigilError",
    # Config
    "ConfigError",
    "InvalidConfigError",
    "UnsupportedBackendError",
    "NotConnectedError",
    # Transient
    "TransientError",
    "DataSourceConnectionError",
    "OperationTimeoutError",
    "DeliveryError",
    # Query
    "QueryError",
    # Utilities
    "is_retryable",
    "categorize_error",
    "is_configuration_error",
]
