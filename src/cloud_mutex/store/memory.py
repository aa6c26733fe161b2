"""In-process object store.

``InMemoryStorage`` plays the role of the remote service: every store handle
created over the same storage sees the same objects, and all operations are
serialized by one lock, which makes them linearizable across threads.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from datetime import UTC, datetime

from cloud_mutex.core.exceptions import (
    ObjectExistsError,
    ObjectNotFoundError,
    PreconditionFailedError,
    StoreClosedError,
)
from cloud_mutex.store.base import Generation, ObjectAttrs


@dataclass
class _StoredObject:
    data: bytes
    generation: int
    created_at: datetime


class InMemoryStorage:
    """Shared object namespace with monotonically increasing generations."""

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], _StoredObject] = {}
        self._lock = threading.Lock()
        self._generations = itertools.count(1)

    def create_if_absent(self, bucket: str, name: str, data: bytes) -> int:
        with self._lock:
            if (bucket, name) in self._objects:
                raise ObjectExistsError(f"object {bucket}/{name} already exists", bucket, name)
            stored = _StoredObject(data=bytes(data), generation=next(self._generations), created_at=datetime.now(UTC))
            self._objects[(bucket, name)] = stored
            return stored.generation

    def read_attributes(self, bucket: str, name: str) -> ObjectAttrs:
        with self._lock:
            stored = self._objects.get((bucket, name))
            if stored is None:
                raise ObjectNotFoundError(f"object {bucket}/{name} doesn't exist", bucket, name)
            return ObjectAttrs(
                bucket=bucket,
                name=name,
                generation=stored.generation,
                size=len(stored.data),
                created_at=stored.created_at,
            )

    def delete_if_generation_matches(self, bucket: str, name: str, generation: Generation) -> None:
        with self._lock:
            stored = self._objects.get((bucket, name))
            if stored is None:
                raise ObjectNotFoundError(f"object {bucket}/{name} doesn't exist", bucket, name)
            if stored.generation != generation:
                raise PreconditionFailedError(
                    f"generation mismatch for {bucket}/{name}",
                    bucket,
                    name,
                    details=f"expected {generation}, found {stored.generation}",
                )
            del self._objects[(bucket, name)]

    def read_bytes(self, bucket: str, name: str) -> bytes:
        with self._lock:
            stored = self._objects.get((bucket, name))
            if stored is None:
                raise ObjectNotFoundError(f"object {bucket}/{name} doesn't exist", bucket, name)
            return stored.data

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


class InMemoryObjectStore:
    """Store handle over an ``InMemoryStorage``.

    Each handle is owned by one mutex and closes independently; the storage
    outlives its handles.
    """

    name = "memory"

    def __init__(self, storage: InMemoryStorage | None = None) -> None:
        self.storage = storage if storage is not None else InMemoryStorage()
        self.closed = False

    def _check_open(self, bucket: str, name: str) -> None:
        if self.closed:
            raise StoreClosedError(bucket, name)

    def create_if_absent(
        self, bucket: str, name: str, data: bytes, *, timeout: float | None = None
    ) -> Generation:
        del timeout  # Local calls complete immediately.
        self._check_open(bucket, name)
        return self.storage.create_if_absent(bucket, name, data)

    def read_attributes(self, bucket: str, name: str, *, timeout: float | None = None) -> ObjectAttrs:
        del timeout
        self._check_open(bucket, name)
        return self.storage.read_attributes(bucket, name)

    def delete_if_generation_matches(
        self, bucket: str, name: str, generation: Generation, *, timeout: float | None = None
    ) -> None:
        del timeout
        self._check_open(bucket, name)
        self.storage.delete_if_generation_matches(bucket, name, generation)

    def close(self) -> None:
        self.closed = True
