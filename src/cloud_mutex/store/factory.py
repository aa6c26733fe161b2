"""Object store selection and construction."""

from __future__ import annotations

import logging
import os

from cloud_mutex.core.config import ENV_STORE_BACKEND, MutexConfig
from cloud_mutex.core.constants import DEFAULT_STORE_BACKEND, STORE_BACKENDS
from cloud_mutex.core.exceptions import MutexError, StoreConnectionError
from cloud_mutex.store.base import ObjectStore


def resolve_backend_name(
    backend_name: str | None = None,
    *,
    logger: logging.Logger | None = None,
) -> str:
    """Resolve the backend from an explicit value or the environment override."""
    log = logger or logging.getLogger(__name__)
    requested = (backend_name or os.environ.get(ENV_STORE_BACKEND, DEFAULT_STORE_BACKEND)).strip().lower()
    if requested in STORE_BACKENDS:
        return requested
    log.warning("Unknown store backend '%s'; falling back to '%s'", requested, DEFAULT_STORE_BACKEND)
    return DEFAULT_STORE_BACKEND


def create_object_store(
    config: MutexConfig | None = None,
    backend_name: str | None = None,
    *,
    logger: logging.Logger | None = None,
) -> ObjectStore:
    """Create an object store handle using ambient credentials.

    ``backend_name`` wins over ``MUTEX_STORE_BACKEND``, which wins over
    ``config.backend``. Any failure is raised as StoreConnectionError.
    """
    log = logger or logging.getLogger(__name__)
    config = config or MutexConfig()
    backend = resolve_backend_name(backend_name or os.environ.get(ENV_STORE_BACKEND) or config.backend, logger=log)

    try:
        if backend == "gcs":
            from cloud_mutex.store.gcs import GCSObjectStore

            store: ObjectStore = GCSObjectStore(project=config.gcs_project)
        elif backend == "s3":
            from cloud_mutex.store.s3 import S3ObjectStore

            store = S3ObjectStore(
                region=config.s3_region,
                endpoint_url=config.s3_endpoint_url,
                request_timeout=config.create_timeout,
            )
        else:
            from cloud_mutex.store.filesystem import FilesystemObjectStore

            store = FilesystemObjectStore(config.file_root)
    except StoreConnectionError:
        raise
    except (MutexError, OSError, ValueError, ImportError) as e:
        raise StoreConnectionError(
            "creates storage client error", operation=f"open {backend} store", original_error=e
        ) from e

    log.debug("Opened %s object store", store.name)
    return store
