"""
Vigil core primitives: errors, logging, settings and timestamps.
"""

from vigil.core.errors import (
    ConfigError,
    DataSourceConnectionError,
    DeliveryError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    NotConnectedError,
    OperationTimeoutError,
    QueryError,
    TransientError,
    UnsupportedBackendError,
    VigilError,
)
from vigil.core.locks import KeyedLocks
from vigil.core.logging import LogContext, bind_context, configure_logging, get_logger
from vigil.core.settings import VigilSettings, clear_settings_cache, get_settings
from vigil.core.timestamps import utc_now

__all__ = [
    # Errors
    "ErrorCategory",
    "ErrorContext",
    "VigilError",
    "ConfigError",
    "InvalidConfigError",
    "UnsupportedBackendError",
    "NotConnectedError",
    "TransientError",
    "DataSourceConnectionError",
    "OperationTimeoutError",
    "DeliveryError",
    "QueryError",
    # Locks
    "KeyedLocks",
    # Logging
    "configure_logging",
    "get_logger",
    "bind_context",
    "LogContext",
    # Settings
    "VigilSettings",
    "get_settings",
    "clear_settings_cache",
    # Time
    "utc_now",
]
