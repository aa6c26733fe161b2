"""Object store contract used by the distributed mutex.

Design principles:
- Lock truth lives in the store: an object exists or it does not.
- ``create_if_absent`` and ``delete_if_generation_matches`` must be atomic
  and linearizable across every client of the same store.
- A generation identifies one incarnation of an object name. Recreating a
  deleted object yields a different generation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

Generation = int | str


@dataclass(frozen=True)
class ObjectAttrs:
    """Attributes of a stored object, as returned by ``read_attributes``."""

    bucket: str
    name: str
    generation: Generation
    size: int = 0
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@runtime_checkable
class ObjectStore(Protocol):
    """Backend abstraction over a versioned object store."""

    name: str

    def create_if_absent(
        self, bucket: str, name: str, data: bytes, *, timeout: float | None = None
    ) -> Generation:
        """Create ``bucket/name`` only if it does not exist. Returns the new generation.

        Raises ObjectExistsError when the object exists and StoreTransportError
        for any other failure.
        """

    def read_attributes(self, bucket: str, name: str, *, timeout: float | None = None) -> ObjectAttrs:
        """Return current attributes. Raises ObjectNotFoundError when absent."""

    def delete_if_generation_matches(
        self, bucket: str, name: str, generation: Generation, *, timeout: float | None = None
    ) -> None:
        """Delete ``bucket/name`` if its generation equals ``generation``.

        Raises PreconditionFailedError when the generation differs and
        ObjectNotFoundError when the object no longer exists.
        """

    def close(self) -> None:
        """Release the connection. Further calls are a caller error."""
