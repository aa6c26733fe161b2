"""Constants and default values for cloud-mutex.

This module centralizes the protocol constants and default configuration
instances used throughout the package.
"""

from cloud_mutex.core.config import LogConfig, MutexConfig

# ==================== DEFAULT CONFIG INSTANCES ====================

DEFAULT_MUTEX = MutexConfig()
DEFAULT_LOG = LogConfig()

# ==================== LOCK PROTOCOL ====================

DEFAULT_BUCKET: str = DEFAULT_MUTEX.bucket
DEFAULT_ACQUIRE_TIMEOUT: float = DEFAULT_MUTEX.acquire_timeout
INITIAL_RETRY_DELAY: float = DEFAULT_MUTEX.initial_retry_delay
BACKOFF_MULTIPLIER: int = 2

# Content of every lock object. Only its existence and generation matter.
LOCK_MARKER: bytes = b"locked"
LOCK_CONTENT_TYPE: str = "text/plain"

# ==================== STORE BACKENDS ====================

STORE_BACKENDS: tuple[str, ...] = ("gcs", "s3", "file")
DEFAULT_STORE_BACKEND: str = DEFAULT_MUTEX.backend

# ==================== LOGGING ====================

VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
