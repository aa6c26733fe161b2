"""Amazon S3 (and S3-compatible) object store.

S3 conditional writes supply the two atomic primitives:

- create-if-absent is ``put_object(IfNoneMatch="*")``
- conditional delete is ``delete_object(IfMatch=<etag>)``

The generation is the object's ETag. For single-part uploads the ETag is
derived from the content, so two incarnations of a lock object with the same
body share an ETag. Fencing on S3 therefore distinguishes "present/absent"
reliably but cannot tell two incarnations with identical content apart.
"""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

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

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
_PRECONDITION_CODES = {"PreconditionFailed", "412"}
_CONFLICT_CODES = {"ConditionalRequestConflict", "409"}


def _error_code(err: Exception) -> str:
    if isinstance(err, ClientError):
        return str(err.response.get("Error", {}).get("Code", ""))
    return ""


class S3ObjectStore:
    """Object store over a boto3 S3 client."""

    name = "s3"

    def __init__(
        self,
        client: Any | None = None,
        *,
        region: str | None = None,
        endpoint_url: str | None = None,
        request_timeout: float = 50.0,
    ) -> None:
        if client is None:
            try:
                session = boto3.Session(region_name=region)
                client = session.client(
                    "s3",
                    region_name=region,
                    endpoint_url=endpoint_url,
                    config=BotoConfig(
                        connect_timeout=request_timeout,
                        read_timeout=request_timeout,
                        retries={"max_attempts": 3, "mode": "standard"},
                    ),
                )
            except (BotoCoreError, ClientError, ValueError) as e:
                raise StoreConnectionError(
                    "creates storage client error", operation="boto3.client('s3')", original_error=e
                ) from e
        self.client = client
        self.closed = False
        logger.debug("S3 store ready (region=%s, endpoint=%s)", region, endpoint_url)

    def _check_open(self, bucket: str, name: str) -> None:
        if self.closed:
            raise StoreClosedError(bucket, name)

    def create_if_absent(
        self, bucket: str, name: str, data: bytes, *, timeout: float | None = None
    ) -> Generation:
        del timeout  # Request deadlines are fixed on the client config.
        self._check_open(bucket, name)
        try:
            resp = self.client.put_object(
                Bucket=bucket,
                Key=name,
                Body=data,
                ContentType=LOCK_CONTENT_TYPE,
                IfNoneMatch="*",
            )
        except ClientError as e:
            code = _error_code(e)
            if code in _PRECONDITION_CODES or code in _CONFLICT_CODES:
                raise ObjectExistsError(
                    f"object {bucket}/{name} already exists", bucket, name, details=code
                ) from e
            raise StoreTransportError("put_object", bucket, name, original_error=e) from e
        except BotoCoreError as e:
            raise StoreTransportError("put_object", bucket, name, original_error=e) from e
        etag = resp.get("ETag")
        return etag if isinstance(etag, str) else ""

    def read_attributes(self, bucket: str, name: str, *, timeout: float | None = None) -> ObjectAttrs:
        del timeout
        self._check_open(bucket, name)
        try:
            resp = self.client.head_object(Bucket=bucket, Key=name)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(f"object {bucket}/{name} doesn't exist", bucket, name) from e
            raise StoreTransportError("head_object", bucket, name, original_error=e) from e
        except BotoCoreError as e:
            raise StoreTransportError("head_object", bucket, name, original_error=e) from e
        return ObjectAttrs(
            bucket=bucket,
            name=name,
            generation=resp.get("ETag", ""),
            size=int(resp.get("ContentLength", 0) or 0),
            created_at=resp.get("LastModified"),
        )

    def delete_if_generation_matches(
        self, bucket: str, name: str, generation: Generation, *, timeout: float | None = None
    ) -> None:
        del timeout
        self._check_open(bucket, name)
        try:
            self.client.delete_object(Bucket=bucket, Key=name, IfMatch=str(generation))
        except ClientError as e:
            code = _error_code(e)
            if code in _PRECONDITION_CODES or code in _CONFLICT_CODES:
                raise PreconditionFailedError(
                    f"generation mismatch for {bucket}/{name}", bucket, name, details=code
                ) from e
            if code in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(f"object {bucket}/{name} doesn't exist", bucket, name) from e
            raise StoreTransportError("delete_object", bucket, name, original_error=e) from e
        except BotoCoreError as e:
            raise StoreTransportError("delete_object", bucket, name, original_error=e) from e

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        close = getattr(self.client, "close", None)
        if close is not None:
            close()
