"""Distributed mutex backed by a versioned object store.

Lock state lives in the store, not in process memory: the lock object
``<bucket>/<key>`` exists while the mutex is held. Any number of processes,
anywhere on the network, contend for the same lock by racing to create that
object under a create-if-absent precondition.

Typical use::

    mutex = DistributedMutex("billing/nightly-export")
    try:
        mutex.lock()
        try:
            ...  # critical section
        finally:
            mutex.unlock()
    finally:
        mutex.close()

Acquisition polls with exponential backoff (1 ms, 2 ms, 4 ms, ... with no
cap) until the acquire timeout elapses. There is no wake-up on release, no
lease expiry and no holder identity: a holder that crashes leaves the lock
object in place until it is removed by hand.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from cloud_mutex.core.config import MutexConfig
from cloud_mutex.core.constants import BACKOFF_MULTIPLIER, LOCK_MARKER
from cloud_mutex.core.exceptions import (
    LockConflictError,
    LockNotFoundError,
    LockTimeoutError,
    ObjectNotFoundError,
    PreconditionFailedError,
    StoreConnectionError,
    StoreError,
)
from cloud_mutex.core.logging import with_log_context
from cloud_mutex.sinks import DiagnosticSink, as_sink
from cloud_mutex.store.base import Generation, ObjectAttrs, ObjectStore
from cloud_mutex.store.factory import create_object_store


def _to_seconds(value: float | timedelta) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class DistributedMutex:
    """A named lock whose state is held in a remote object store.

    The instance owns its store handle: it is opened at construction (unless
    one is injected) and released by ``close()``. Using the mutex after
    ``close()`` is a programming error.

    One instance supports a single in-flight ``lock()`` or ``unlock()`` at a
    time. Calls are not serialized internally; threads that need to share a
    lock should each create their own instance, and the instances will
    contend through the store.

    Args:
        key: Name of the lock object; identifies the guarded resource.
        bucket: Bucket holding lock objects (default: ``config.bucket``).
        store: Object store handle. When omitted one is created from ``config``
            with ambient credentials.
        config: Mutex settings (default: ``MutexConfig.from_env()``, so
            ``MUTEX_*`` variables and a ``.env`` file apply).
        sink: Diagnostic sink, text stream or logger (default: discard).
        clock: Monotonic clock in seconds.
        sleep: Function used to wait between attempts.
        logger: Logger for lifecycle events.

    Raises:
        ValueError: If ``key`` is empty.
        ConfigurationError: If ``config`` is invalid.
        StoreConnectionError: If the store connection cannot be established.
    """

    def __init__(
        self,
        key: str,
        bucket: str | None = None,
        *,
        store: ObjectStore | None = None,
        config: MutexConfig | None = None,
        sink: DiagnosticSink | Any = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ):
        if not key:
            raise ValueError("lock object name must not be empty")

        self.config = (config or MutexConfig.from_env()).with_bucket(bucket).validate()
        self.key = key
        self.bucket = self.config.bucket
        self.logger = with_log_context(logger or logging.getLogger(__name__), bucket=self.bucket, key=key)

        self._acquire_timeout = self.config.acquire_timeout
        self._sink = as_sink(sink)
        self._clock = clock
        self._sleep = sleep
        self._closed = False

        if store is None:
            store = create_object_store(self.config, logger=logging.getLogger(__name__))
        self._store = store
        self.logger.debug("Mutex %s/%s created on %s store", self.bucket, key, getattr(self._store, "name", "custom"))

    # --- Configuration ---

    @property
    def acquire_timeout(self) -> float:
        """Seconds a ``lock()`` call keeps retrying before giving up."""
        return self._acquire_timeout

    def set_lock_timeout(self, timeout: float | timedelta) -> None:
        """Set the acquire timeout used by subsequent ``lock()`` calls.

        The default is 10 seconds. A ``lock()`` call already in progress keeps
        the timeout it started with.
        """
        seconds = _to_seconds(timeout)
        if seconds < 0:
            raise ValueError(f"lock timeout must not be negative, got {seconds}")
        self._acquire_timeout = seconds

    def set_diagnostic_sink(self, sink: DiagnosticSink | Any) -> None:
        """Set where progress lines are written. ``None`` discards them."""
        self._sink = as_sink(sink)

    @property
    def store(self) -> ObjectStore:
        return self._store

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the store connection."""
        if self._closed:
            return
        self._closed = True
        self._store.close()
        self.logger.debug("Mutex %s/%s closed", self.bucket, self.key)

    # --- Lock protocol ---

    def lock(self) -> None:
        """Block until the lock object is created or the acquire timeout elapses.

        Every failed attempt, whether the object already exists or the store
        could not be reached, is written to the diagnostic sink and retried.
        Only the timeout is reported to the caller.

        Raises:
            LockTimeoutError: If the lock was not acquired within the timeout.
        """
        timeout = self._acquire_timeout
        delay = self.config.initial_retry_delay
        start = self._clock()
        attempts = 0

        while True:
            attempts += 1
            try:
                generation = self._upload_lock_object()
            except StoreError as e:
                self._emit(str(e))
            else:
                self.logger.debug("Lock acquired (generation %s, attempt %d)", generation, attempts)
                return

            remaining = timeout - (self._clock() - start)
            if remaining <= delay:
                if remaining > 0:
                    self._sleep(remaining)
                self.logger.info(
                    "Lock %s/%s not acquired within %.3fs (%d attempts)", self.bucket, self.key, timeout, attempts
                )
                raise LockTimeoutError(self.key, timeout, attempts)

            self._sleep(delay)
            delay *= BACKOFF_MULTIPLIER

    def unlock(self) -> None:
        """Delete the lock object, provided it is still the incarnation just read.

        Makes exactly one attempt.

        Raises:
            LockNotFoundError: If there is no lock object (already unlocked).
            LockConflictError: If the lock object was deleted or replaced
                between reading its generation and deleting it.
            StoreConnectionError: If the store could not be reached.
        """
        self._emit(f"Deleting object {self.key} started...")

        attrs = self._read_lock_attributes()
        try:
            self._store.delete_if_generation_matches(
                self.bucket, self.key, attrs.generation, timeout=self.config.delete_timeout
            )
        except (PreconditionFailedError, ObjectNotFoundError) as e:
            self._emit(str(e))
            raise LockConflictError(self.key, attrs.generation, details=str(e)) from e
        except StoreError as e:
            self._emit(str(e))
            raise StoreConnectionError(
                f"object({self.key!r}).Delete", operation="delete lock object", original_error=e
            ) from e

        self._emit(f"Blob {self.key} deleted.")
        self.logger.debug("Lock released (generation %s)", attrs.generation)

    def _upload_lock_object(self) -> Generation:
        self._emit(f"Uploading object {self.key} started...")
        generation = self._store.create_if_absent(
            self.bucket, self.key, LOCK_MARKER, timeout=self.config.create_timeout
        )
        self._emit(f"Blob {self.key} uploaded.")
        return generation

    def _read_lock_attributes(self) -> ObjectAttrs:
        try:
            return self._store.read_attributes(self.bucket, self.key, timeout=self.config.delete_timeout)
        except ObjectNotFoundError as e:
            self._emit(str(e))
            raise LockNotFoundError(self.key, details=str(e)) from e
        except StoreError as e:
            self._emit(str(e))
            raise StoreConnectionError("object.Attrs", operation="read lock attributes", original_error=e) from e

    def _emit(self, text: str) -> None:
        try:
            self._sink.write_line(text)
        except Exception:
            # Diagnostics are best effort; the lock outcome stands.
            self.logger.debug("Diagnostic sink failed", exc_info=True)

    # --- Context manager (lock on enter, unlock on exit) ---

    def __enter__(self) -> DistributedMutex:
        self.lock()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unlock()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"DistributedMutex(bucket={self.bucket!r}, key={self.key!r}, timeout={self._acquire_timeout}, {state})"
