"""Fuse exceptions.

Callers can distinguish between:
  - A call being skipped because the fuse is open (``FastFailure``).
  - A guarded call exceeding its time bound (``FuseTimeoutError``).
  - A fuse that could not be built from its inputs (``FuseConstructionError``).
"""


class FuseError(Exception):
    """Base exception for the fusebox package."""


class FastFailure(FuseError):
    """Raised when a call is rejected because the fuse is open.

    The guarded operation was not invoked and the rejection is not counted as
    a failure.
    """


class FuseTimeoutError(FuseError, TimeoutError):
    """Raised when a guarded call runs longer than the configured timeout.

    Attributes:
        fuse_name: Name of the fuse that bounded the call.
        timeout: Bound, in seconds, that was exceeded.
    """

    def __init__(self, fuse_name: str, timeout: float) -> None:
        """Initialize a fuse timeout payload.

        Args:
            fuse_name: Fuse guarding the call.
            timeout: Seconds the call was allowed to run.
        """
        self.fuse_name = fuse_name
        self.timeout = timeout
        super().__init__(f"fuse_timeout: {fuse_name} timeout={timeout:g}s")


class FuseConstructionError(FuseError, ValueError):
    """Base exception for invalid ``Fuse`` construction inputs."""


class MissingNameError(FuseConstructionError):
    """Raised when a fuse is built without a usable name."""

    def __init__(self) -> None:
        super().__init__("Name must be specified")


class MissingStorageError(FuseConstructionError):
    """Raised when a fuse is built without a storage backend."""

    def __init__(self) -> None:
        super().__init__("Storage must be specified")


class InvalidStorageError(FuseConstructionError, TypeError):
    """Raised when the storage does not implement the ``FuseStorage`` contract."""

    def __init__(self, storage: object) -> None:
        self.storage_type = type(storage).__name__
        super().__init__(
            f"Storage must be of FuseStorage kind, got {self.storage_type}"
        )


class MissingConfigError(FuseConstructionError):
    """Raised when a fuse is built without a config."""

    def __init__(self) -> None:
        super().__init__("Config must be specified")
