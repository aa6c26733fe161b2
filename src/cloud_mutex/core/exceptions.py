"""Custom exceptions for cloud-mutex.

Two layers live here. Store-level errors (``StoreError`` and its subclasses)
are raised by ``ObjectStore`` implementations and describe what the backing
service reported. Mutex-level errors are what ``DistributedMutex`` surfaces
to its callers after classifying store errors.
"""


class MutexError(Exception):
    """Base exception for all cloud-mutex errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(MutexError):
    """Exception raised for invalid mutex or store settings.

    Examples:
        - Negative acquire timeout
        - Empty bucket name
        - Filesystem store requested on a platform without ``fcntl``
    """

    def __init__(self, message: str, field: str | None = None, details: str | None = None):
        self.field = field
        super().__init__(message, details)


class StoreConnectionError(MutexError):
    """Exception raised when the object store cannot be reached.

    Raised at construction when the storage client cannot be created, and
    by ``unlock()`` when a transport failure interrupts the release.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: str | None = None,
        original_error: Exception | None = None,
    ):
        self.operation = operation
        self.original_error = original_error
        if details is None and original_error is not None:
            details = str(original_error)
        super().__init__(message, details)

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"during {self.operation}")
        if self.details:
            parts.append(self.details)
        return " - ".join(parts)


class LockTimeoutError(MutexError):
    """Exception raised when ``lock()`` exhausts its acquire timeout.

    Attributes:
        key: Name of the lock object
        timeout: Acquire timeout in seconds that elapsed
        attempts: Number of create attempts made before giving up
    """

    def __init__(self, key: str, timeout: float, attempts: int = 0):
        self.key = key
        self.timeout = timeout
        self.attempts = attempts
        super().__init__("lock timeout")


class LockNotFoundError(MutexError):
    """Exception raised when ``unlock()`` finds no lock object to delete."""

    def __init__(self, key: str, details: str | None = None):
        self.key = key
        super().__init__("object attrs error", details)


class LockConflictError(MutexError):
    """Exception raised when the conditional delete in ``unlock()`` loses a race.

    The lock object was deleted or replaced by another generation between
    reading its attributes and deleting it.
    """

    def __init__(self, key: str, generation: int | str | None = None, details: str | None = None):
        self.key = key
        self.generation = generation
        super().__init__(f"object({key!r}).Delete: precondition failed", details)


# ==================== STORE ERRORS ====================


class StoreError(MutexError):
    """Base exception for failures reported by an object store.

    Attributes:
        bucket: Bucket the operation targeted
        name: Object name the operation targeted
    """

    def __init__(self, message: str, bucket: str | None = None, name: str | None = None, details: str | None = None):
        self.bucket = bucket
        self.name = name
        super().__init__(message, details)


class ObjectExistsError(StoreError):
    """Raised by ``create_if_absent`` when the object already exists."""

    pass


class ObjectNotFoundError(StoreError):
    """Raised when the addressed object does not exist."""

    pass


class PreconditionFailedError(StoreError):
    """Raised when a generation precondition no longer holds."""

    pass


class StoreTransportError(StoreError):
    """Raised for network, authentication and other service failures."""

    def __init__(
        self,
        message: str,
        bucket: str | None = None,
        name: str | None = None,
        details: str | None = None,
        original_error: Exception | None = None,
    ):
        self.original_error = original_error
        if details is None and original_error is not None:
            details = str(original_error)
        super().__init__(message, bucket, name, details)


class StoreClosedError(StoreTransportError):
    """Raised when an operation is attempted on a closed store handle."""

    def __init__(self, bucket: str | None = None, name: str | None = None):
        super().__init__("object store handle is closed", bucket, name)
