"""Object store backends for the distributed mutex.

The in-memory and filesystem stores are imported eagerly; the cloud stores
are resolved on first access so that ``google-cloud-storage`` and ``boto3``
are only imported when used.
"""

from cloud_mutex.core.lazy import make_getattr
from cloud_mutex.store.base import Generation, ObjectAttrs, ObjectStore
from cloud_mutex.store.factory import create_object_store, resolve_backend_name
from cloud_mutex.store.filesystem import FilesystemObjectStore
from cloud_mutex.store.memory import InMemoryObjectStore, InMemoryStorage

__all__ = [
    "FilesystemObjectStore",
    "GCSObjectStore",
    "Generation",
    "InMemoryObjectStore",
    "InMemoryStorage",
    "ObjectAttrs",
    "ObjectStore",
    "S3ObjectStore",
    "create_object_store",
    "resolve_backend_name",
]

__getattr__ = make_getattr(
    __name__,
    {
        "GCSObjectStore": "cloud_mutex.store.gcs",
        "S3ObjectStore": "cloud_mutex.store.s3",
    },
)
