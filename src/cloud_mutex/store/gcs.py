"""Google Cloud Storage object store.

GCS assigns every object incarnation a generation number, which maps
directly onto the store contract:

- create-if-absent is an upload with ``if_generation_match=0``
- attributes come from ``Bucket.get_blob``
- conditional delete passes ``if_generation_match=<generation>``

Credentials are resolved the usual way (``GOOGLE_APPLICATION_CREDENTIALS``,
gcloud user credentials, or the metadata server).
"""

from __future__ import annotations

import logging

from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from cloud_mutex.core.constants import LOCK_CONTENT_TYPE
from cloud_mutex.core.exceptions import (
    ObjectExistsError,
    ObjectNotFoundError,
    PreconditionFailedError,
    StoreClosedError,
    StoreConnectionError,
    StoreTransportError,
)
from cloud_mutex.store.base import Generation, ObjectAttrs

logger = logging.getLogger(__name__)


class GCSObjectStore:
    """Object store over a ``google.cloud.storage.Client``."""

    name = "gcs"

    def __init__(self, client: storage.Client | None = None, *, project: str | None = None) -> None:
        if client is None:
            try:
                client = storage.Client(project=project)
            except (auth_exceptions.GoogleAuthError, gcs_exceptions.GoogleAPIError, OSError, ValueError) as e:
                raise StoreConnectionError(
                    "creates storage client error", operation="storage.Client", original_error=e
                ) from e
        self.client = client
        self.closed = False
        logger.debug("GCS store ready (project=%s)", getattr(client, "project", None))

    def _blob(self, bucket: str, name: str):
        if self.closed:
            raise StoreClosedError(bucket, name)
        return self.client.bucket(bucket).blob(name)

    def create_if_absent(
        self, bucket: str, name: str, data: bytes, *, timeout: float | None = None
    ) -> Generation:
        blob = self._blob(bucket, name)
        kwargs = {"timeout": timeout} if timeout is not None else {}
        try:
            blob.upload_from_string(data, content_type=LOCK_CONTENT_TYPE, if_generation_match=0, **kwargs)
        except gcs_exceptions.PreconditionFailed as e:
            raise ObjectExistsError(f"object {bucket}/{name} already exists", bucket, name, details=str(e)) from e
        except (gcs_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, OSError) as e:
            raise StoreTransportError("writer.Close", bucket, name, original_error=e) from e
        return blob.generation

    def read_attributes(self, bucket: str, name: str, *, timeout: float | None = None) -> ObjectAttrs:
        if self.closed:
            raise StoreClosedError(bucket, name)
        kwargs = {"timeout": timeout} if timeout is not None else {}
        try:
            blob = self.client.bucket(bucket).get_blob(name, **kwargs)
        except gcs_exceptions.NotFound as e:
            raise ObjectNotFoundError(f"object {bucket}/{name} doesn't exist", bucket, name) from e
        except (gcs_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, OSError) as e:
            raise StoreTransportError("object.Attrs", bucket, name, original_error=e) from e
        if blob is None:
            raise ObjectNotFoundError(f"object {bucket}/{name} doesn't exist", bucket, name)
        return ObjectAttrs(
            bucket=bucket,
            name=name,
            generation=blob.generation,
            size=blob.size or 0,
            created_at=blob.time_created,
        )

    def delete_if_generation_matches(
        self, bucket: str, name: str, generation: Generation, *, timeout: float | None = None
    ) -> None:
        blob = self._blob(bucket, name)
        kwargs = {"timeout": timeout} if timeout is not None else {}
        try:
            blob.delete(if_generation_match=int(generation), **kwargs)
        except gcs_exceptions.PreconditionFailed as e:
            raise PreconditionFailedError(
                f"generation mismatch for {bucket}/{name}", bucket, name, details=str(e)
            ) from e
        except gcs_exceptions.NotFound as e:
            raise ObjectNotFoundError(f"object {bucket}/{name} doesn't exist", bucket, name) from e
        except (gcs_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, OSError) as e:
            raise StoreTransportError(f"object({name!r}).Delete", bucket, name, original_error=e) from e

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        close = getattr(self.client, "close", None)
        if close is not None:
            close()
