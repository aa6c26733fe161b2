"""Configuration dataclasses for cloud-mutex.

These dataclasses centralize mutex and store settings for type safety and
easy testing. They can be created directly in code or from environment
variables (including a ``.env`` file) with ``MutexConfig.from_env()``.
"""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from dotenv import find_dotenv, load_dotenv

from cloud_mutex.core.exceptions import ConfigurationError

ENV_BUCKET = "MUTEX_BUCKET"
ENV_ACQUIRE_TIMEOUT = "MUTEX_ACQUIRE_TIMEOUT"
ENV_RETRY_DELAY = "MUTEX_RETRY_DELAY"
ENV_STORE_BACKEND = "MUTEX_STORE_BACKEND"
ENV_GCS_PROJECT = "MUTEX_GCS_PROJECT"
ENV_S3_REGION = "MUTEX_S3_REGION"
ENV_S3_ENDPOINT_URL = "MUTEX_S3_ENDPOINT_URL"
ENV_FILE_ROOT = "MUTEX_FILE_ROOT"
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_FORMAT = "LOG_FORMAT"


def _parse_env_numeric(value: str | None, cast: Callable[[str], Any]) -> Any | None:
    """Parse an environment value, returning None when invalid."""
    if value is None:
        return None
    try:
        parsed = cast(value)
    except (TypeError, ValueError):
        return None
    if isinstance(parsed, float) and not math.isfinite(parsed):
        return None
    return parsed


def _env_str(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class MutexConfig:
    """Configuration for a distributed mutex and its object store.

    Attributes:
        bucket: Bucket holding lock objects (default: "mutex")
        acquire_timeout: Seconds a single lock() call may keep retrying (default: 10.0)
        initial_retry_delay: First backoff delay in seconds, doubled after every
            failed attempt with no upper cap (default: 0.001)
        backend: Store backend name: "gcs", "s3" or "file" (default: "gcs")
        create_timeout: Per-request deadline for creating the lock object (default: 50.0)
        delete_timeout: Per-request deadline for reading and deleting it (default: 10.0)
        gcs_project: Google Cloud project; None uses the ambient default
        s3_region: AWS region; None uses the ambient default
        s3_endpoint_url: Custom S3-compatible endpoint (MinIO, R2, ...)
        file_root: Root directory of the filesystem store
    """

    bucket: str = "mutex"
    acquire_timeout: float = 10.0
    initial_retry_delay: float = 0.001
    backend: str = "gcs"
    create_timeout: float = 50.0
    delete_timeout: float = 10.0
    gcs_project: str | None = None
    s3_region: str | None = None
    s3_endpoint_url: str | None = None
    file_root: str = ".mutex"

    def validate(self) -> MutexConfig:
        """Raise ConfigurationError if any setting is out of range."""
        if not self.bucket or not self.bucket.strip():
            raise ConfigurationError("Bucket name must not be empty", field="bucket")
        for name in ("acquire_timeout", "create_timeout", "delete_timeout"):
            value = getattr(self, name)
            if value < 0 or not math.isfinite(value):
                raise ConfigurationError(f"{name} must be a non-negative number", field=name, details=str(value))
        if self.initial_retry_delay <= 0 or not math.isfinite(self.initial_retry_delay):
            raise ConfigurationError(
                "initial_retry_delay must be a positive number",
                field="initial_retry_delay",
                details=str(self.initial_retry_delay),
            )
        return self

    def with_bucket(self, bucket: str | None) -> MutexConfig:
        """Return a copy using ``bucket`` when given."""
        if bucket is None:
            return self
        return replace(self, bucket=bucket)

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucket": self.bucket,
            "acquire_timeout": self.acquire_timeout,
            "initial_retry_delay": self.initial_retry_delay,
            "backend": self.backend,
            "create_timeout": self.create_timeout,
            "delete_timeout": self.delete_timeout,
            "gcs_project": self.gcs_project,
            "s3_region": self.s3_region,
            "s3_endpoint_url": self.s3_endpoint_url,
            "file_root": self.file_root,
        }

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        load_dotenv_file: bool = True,
        logger: logging.Logger | None = None,
    ) -> MutexConfig:
        """Create configuration from ``MUTEX_*`` environment variables.

        A ``.env`` file in the working directory is loaded first unless
        ``load_dotenv_file`` is False; variables already set in the
        environment take precedence over it. Invalid numeric values are
        ignored with a warning and the default is kept.
        """
        log = logger or logging.getLogger(__name__)
        if env is None:
            if load_dotenv_file and load_dotenv(find_dotenv(usecwd=True), override=False):
                log.debug("Loaded .env file")
            env = os.environ

        config = cls()

        bucket = _env_str(env, ENV_BUCKET)
        if bucket is not None:
            config.bucket = bucket

        parsed_timeout = _parse_env_numeric(env.get(ENV_ACQUIRE_TIMEOUT), float)
        if parsed_timeout is not None and parsed_timeout >= 0:
            config.acquire_timeout = parsed_timeout
        elif ENV_ACQUIRE_TIMEOUT in env:
            log.warning(
                "Ignoring invalid %s=%r; using default %s",
                ENV_ACQUIRE_TIMEOUT,
                env.get(ENV_ACQUIRE_TIMEOUT),
                config.acquire_timeout,
            )

        parsed_delay = _parse_env_numeric(env.get(ENV_RETRY_DELAY), float)
        if parsed_delay is not None and parsed_delay > 0:
            config.initial_retry_delay = parsed_delay
        elif ENV_RETRY_DELAY in env:
            log.warning(
                "Ignoring invalid %s=%r; using default %s",
                ENV_RETRY_DELAY,
                env.get(ENV_RETRY_DELAY),
                config.initial_retry_delay,
            )

        backend = _env_str(env, ENV_STORE_BACKEND)
        if backend is not None:
            config.backend = backend.lower()

        config.gcs_project = _env_str(env, ENV_GCS_PROJECT)
        config.s3_region = _env_str(env, ENV_S3_REGION)
        config.s3_endpoint_url = _env_str(env, ENV_S3_ENDPOINT_URL)

        file_root = _env_str(env, ENV_FILE_ROOT)
        if file_root is not None:
            config.file_root = file_root

        return config


@dataclass
class LogConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level string (default: "INFO")
        log_format: "text" or "json" (default: "text")
        file_max_bytes: Maximum size per log file (default: 10MB)
        file_backup_count: Number of backup log files (default: 5)
    """

    level: str = "INFO"
    log_format: str = "text"
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> LogConfig:
        """Create logging configuration from ``LOG_LEVEL`` and ``LOG_FORMAT``."""
        env = os.environ if env is None else env
        config = cls()
        level = _env_str(env, ENV_LOG_LEVEL)
        if level is not None:
            config.level = level.upper()
        log_format = _env_str(env, ENV_LOG_FORMAT)
        if log_format is not None:
            config.log_format = log_format.lower()
        return config
