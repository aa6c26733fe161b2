"""
cloud-mutex - Distributed mutex on top of a versioned object store

Serializes work across independent processes anywhere on the network by
racing to create a named lock object in Google Cloud Storage, Amazon S3 or
a shared filesystem.
"""

from __future__ import annotations

from cloud_mutex.core.config import MutexConfig
from cloud_mutex.core.exceptions import (
    ConfigurationError,
    LockConflictError,
    LockNotFoundError,
    LockTimeoutError,
    MutexError,
    StoreConnectionError,
)
from cloud_mutex.core.version import __version__
from cloud_mutex.mutex import DistributedMutex
from cloud_mutex.sinks import CollectingSink, DiagnosticSink, LoggerSink, NullSink, StreamSink

Mutex = DistributedMutex


def new_mutex(key: str, bucket: str | None = None, **kwargs) -> DistributedMutex:
    """Create a mutex for ``key`` in ``bucket`` (default: ``MUTEX_BUCKET``, else "mutex") with ambient credentials."""
    return DistributedMutex(key, bucket, **kwargs)


__all__ = [
    "__version__",
    "CollectingSink",
    "ConfigurationError",
    "DiagnosticSink",
    "DistributedMutex",
    "LockConflictError",
    "LockNotFoundError",
    "LockTimeoutError",
    "LoggerSink",
    "Mutex",
    "MutexConfig",
    "MutexError",
    "NullSink",
    "StoreConnectionError",
    "StreamSink",
    "new_mutex",
]
