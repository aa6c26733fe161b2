"""Core module - Foundation components with no internal dependencies.

This module provides the basic building blocks used throughout the package:
- Version information
- Custom exceptions
- Configuration dataclasses
- Constants and defaults
"""

from cloud_mutex.core.version import __version__

from cloud_mutex.core.exceptions import (
    MutexError,
    ConfigurationError,
    StoreConnectionError,
    LockTimeoutError,
    LockNotFoundError,
    LockConflictError,
    StoreError,
    ObjectExistsError,
    ObjectNotFoundError,
    PreconditionFailedError,
    StoreTransportError,
    StoreClosedError,
)

from cloud_mutex.core.config import (
    MutexConfig,
    LogConfig,
)

from cloud_mutex.core.constants import (
    DEFAULT_MUTEX,
    DEFAULT_LOG,
    DEFAULT_BUCKET,
    DEFAULT_ACQUIRE_TIMEOUT,
    INITIAL_RETRY_DELAY,
    BACKOFF_MULTIPLIER,
    LOCK_MARKER,
    STORE_BACKENDS,
    DEFAULT_STORE_BACKEND,
)

__all__ = [
    # Version
    '__version__',
    # Exceptions
    'MutexError',
    'ConfigurationError',
    'StoreConnectionError',
    'LockTimeoutError',
    'LockNotFoundError',
    'LockConflictError',
    'StoreError',
    'ObjectExistsError',
    'ObjectNotFoundError',
    'PreconditionFailedError',
    'StoreTransportError',
    'StoreClosedError',
    # Config dataclasses
    'MutexConfig',
    'LogConfig',
    # Constants
    'DEFAULT_MUTEX',
    'DEFAULT_LOG',
    'DEFAULT_BUCKET',
    'DEFAULT_ACQUIRE_TIMEOUT',
    'INITIAL_RETRY_DELAY',
    'BACKOFF_MULTIPLIER',
    'LOCK_MARKER',
    'STORE_BACKENDS',
    'DEFAULT_STORE_BACKEND',
]
