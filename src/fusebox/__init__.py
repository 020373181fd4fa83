"""Shared-state circuit breaker ("fuse") for asyncio services.

This package implements a two-state circuit breaker keyed by resource name.

Key behavior notes:
  - Storage persists ``state``, ``failures`` and ``last_failure_at`` per fuse
    name. Any number of ``Fuse`` instances, in any number of processes, share
    one failure history when they share a storage backend.
  - An open fuse closes lazily: the first call made more than
    ``cool_off_period`` seconds after the last real failure closes it and runs
    the guarded operation.
  - Fast-failed calls are never counted and never move the cool-off clock.
  - Break handlers are isolated: their errors and timeouts are logged and
    dropped, never surfaced to the caller.
"""

from fusebox.exceptions import (
    FastFailure,
    FuseConstructionError,
    FuseError,
    FuseTimeoutError,
    InvalidStorageError,
    MissingConfigError,
    MissingNameError,
    MissingStorageError,
)
from fusebox.fuse import DEFAULT_BREAK_HANDLER_TIMEOUT, Fuse, FuseConfig
from fusebox.handlers import (
    STANDARD_HANDLERS,
    BreakDispatcher,
    CustomHandler,
    NamedHandler,
)
from fusebox.metrics import FuseListener
from fusebox.state import FuseField, FuseSnapshot, FuseState
from fusebox.storage import FuseStorage, InMemoryFuseStorage

__all__ = [
    "DEFAULT_BREAK_HANDLER_TIMEOUT",
    "STANDARD_HANDLERS",
    "BreakDispatcher",
    "CustomHandler",
    "FastFailure",
    "Fuse",
    "FuseConfig",
    "FuseConstructionError",
    "FuseError",
    "FuseField",
    "FuseListener",
    "FuseSnapshot",
    "FuseState",
    "FuseStorage",
    "FuseTimeoutError",
    "InMemoryFuseStorage",
    "InvalidStorageError",
    "MissingConfigError",
    "MissingNameError",
    "MissingStorageError",
    "NamedHandler",
]
