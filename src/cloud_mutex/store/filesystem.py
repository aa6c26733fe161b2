"""POSIX filesystem object store.

Buckets are directories under a root; objects are files. Every operation on
a bucket runs under an exclusive ``fcntl.flock`` on the bucket's guard file,
so create-if-absent and the read/compare/delete sequence are atomic for all
processes sharing the root on one host (or on a filesystem with working
``flock`` semantics).

Layout::

    <root>/<bucket>/.guard
    <root>/<bucket>/objects/<encoded name>
    <root>/<bucket>/meta/<encoded name>.json

The namespace is flat, as in a cloud bucket: every object name maps to a
single percent-encoded file name, so ``jobs`` and ``jobs/nightly`` are
unrelated objects. Names whose encoding would exceed the file name limit
are stored under a SHA-256 digest instead.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import os
import random
import time
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import quote

from cloud_mutex.core.exceptions import (
    ObjectExistsError,
    ObjectNotFoundError,
    PreconditionFailedError,
    StoreClosedError,
    StoreConnectionError,
    StoreTransportError,
)
from cloud_mutex.store.base import Generation, ObjectAttrs

try:
    import fcntl
except ImportError:  # pragma: no cover - exercised on non-POSIX only
    fcntl = None

_GUARD_FILE = ".guard"
_OBJECTS_DIR = "objects"
_META_DIR = "meta"
# Leaves room for the ".json.tmp" suffix under the usual 255-byte limit.
_MAX_ENCODED_NAME = 240


def _write_all(fd: int, payload: bytes) -> None:
    """Write complete payload to fd, handling short writes."""
    total_written = 0
    while total_written < len(payload):
        written = os.write(fd, payload[total_written:])
        if written <= 0:
            raise OSError("short write while persisting object data")
        total_written += written


def _encode_name(name: str) -> str:
    """Map an object or bucket name to one file name.

    ``quote`` never emits "%s", so digest names cannot collide with encoded ones.
    """
    if not name:
        raise ValueError("object and bucket names must not be empty")
    encoded = quote(name, safe="")
    if encoded in (".", ".."):
        encoded = encoded.replace(".", "%2E")
    if len(encoded) > _MAX_ENCODED_NAME:
        encoded = f"%sha256-{hashlib.sha256(name.encode('utf-8')).hexdigest()}"
    return encoded


def _new_generation() -> int:
    return time.time_ns() * 1000 + random.randrange(1000)


def _safe_unlink(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return True
    except OSError:
        return False


class FilesystemObjectStore:
    """Object store backed by a local (or shared POSIX) directory tree."""

    name = "file"

    def __init__(self, root: str | os.PathLike[str]) -> None:
        if not self.is_supported():
            raise StoreConnectionError("filesystem store requires fcntl", operation="open filesystem store")
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreConnectionError(
                f"cannot create store root '{self.root}'", operation="open filesystem store", original_error=e
            ) from e
        self.closed = False

    @staticmethod
    def is_supported() -> bool:
        return fcntl is not None

    # --- Path helpers ---

    def _bucket_dir(self, bucket: str) -> Path:
        return self.root / _encode_name(bucket)

    def _object_path(self, bucket: str, name: str) -> Path:
        return self._bucket_dir(bucket) / _OBJECTS_DIR / _encode_name(name)

    def _meta_path(self, bucket: str, name: str) -> Path:
        return self._bucket_dir(bucket) / _META_DIR / f"{_encode_name(name)}.json"

    @contextlib.contextmanager
    def _guard(self, bucket: str, name: str) -> Iterator[None]:
        if self.closed:
            raise StoreClosedError(bucket, name)
        bucket_dir = self._bucket_dir(bucket)
        try:
            bucket_dir.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(bucket_dir / _GUARD_FILE), os.O_CREAT | os.O_RDWR, 0o600)
        except OSError as e:
            raise StoreTransportError("cannot open bucket guard", bucket, name, original_error=e) from e
        try:
            assert fcntl is not None  # For type checkers.
            try:
                fcntl.flock(fd, fcntl.LOCK_EX)
            except OSError as e:
                raise StoreTransportError("cannot lock bucket guard", bucket, name, original_error=e) from e
            try:
                yield
            finally:
                with contextlib.suppress(OSError):
                    fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            with contextlib.suppress(OSError):
                os.close(fd)

    def _read_meta(self, bucket: str, name: str) -> dict:
        meta_path = self._meta_path(bucket, name)
        try:
            with open(meta_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreTransportError("unreadable object metadata", bucket, name, original_error=e) from e
        if not isinstance(data, dict) or "generation" not in data:
            raise StoreTransportError("malformed object metadata", bucket, name, details=str(meta_path))
        return data

    # --- ObjectStore operations ---

    def create_if_absent(
        self, bucket: str, name: str, data: bytes, *, timeout: float | None = None
    ) -> Generation:
        del timeout  # Guard acquisition is local and blocking.
        object_path = self._object_path(bucket, name)
        meta_path = self._meta_path(bucket, name)
        with self._guard(bucket, name):
            try:
                object_path.parent.mkdir(parents=True, exist_ok=True)
                fd = os.open(str(object_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
            except FileExistsError as e:
                raise ObjectExistsError(f"object {bucket}/{name} already exists", bucket, name) from e
            except OSError as e:
                raise StoreTransportError("cannot create object", bucket, name, original_error=e) from e

            generation = _new_generation()
            meta = {
                "generation": generation,
                "size": len(data),
                "created_at": datetime.now(UTC).isoformat(),
            }
            try:
                try:
                    _write_all(fd, data)
                    os.fsync(fd)
                finally:
                    os.close(fd)
                meta_path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = meta_path.with_name(f"{meta_path.name}.tmp")
                tmp_path.write_text(json.dumps(meta, sort_keys=True) + "\n", encoding="utf-8")
                os.replace(tmp_path, meta_path)
            except OSError as e:
                _safe_unlink(object_path)
                _safe_unlink(meta_path)
                raise StoreTransportError("cannot write object", bucket, name, original_error=e) from e
            return generation

    def read_attributes(self, bucket: str, name: str, *, timeout: float | None = None) -> ObjectAttrs:
        del timeout
        object_path = self._object_path(bucket, name)
        with self._guard(bucket, name):
            if not object_path.exists():
                raise ObjectNotFoundError(f"object {bucket}/{name} doesn't exist", bucket, name)
            meta = self._read_meta(bucket, name)
            created_at = None
            with contextlib.suppress(TypeError, ValueError):
                created_at = datetime.fromisoformat(meta.get("created_at"))
            return ObjectAttrs(
                bucket=bucket,
                name=name,
                generation=int(meta["generation"]),
                size=int(meta.get("size", 0)),
                created_at=created_at,
            )

    def delete_if_generation_matches(
        self, bucket: str, name: str, generation: Generation, *, timeout: float | None = None
    ) -> None:
        del timeout
        object_path = self._object_path(bucket, name)
        meta_path = self._meta_path(bucket, name)
        with self._guard(bucket, name):
            if not object_path.exists():
                raise ObjectNotFoundError(f"object {bucket}/{name} doesn't exist", bucket, name)
            current = int(self._read_meta(bucket, name)["generation"])
            if str(current) != str(generation):
                raise PreconditionFailedError(
                    f"generation mismatch for {bucket}/{name}",
                    bucket,
                    name,
                    details=f"expected {generation}, found {current}",
                )
            try:
                object_path.unlink()
            except OSError as e:
                raise StoreTransportError("cannot delete object", bucket, name, original_error=e) from e
            _safe_unlink(meta_path)

    def close(self) -> None:
        self.closed = True
