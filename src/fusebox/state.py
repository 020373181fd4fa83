"""Fuse state primitives."""

from dataclasses import dataclass
from enum import StrEnum


class FuseState(StrEnum):
    """Persisted fuse state values. A missing value reads as ``CLOSED``."""

    CLOSED = "closed"
    OPEN = "open"


class FuseField(StrEnum):
    """Names of the per-fuse fields held by storage backends."""

    STATE = "state"
    FAILURES = "failures"
    LAST_FAILURE_AT = "last_failure_at"


@dataclass(frozen=True)
class FuseSnapshot:
    """Point-in-time view of persisted fuse fields useful for metrics/logging.

    Attributes:
        name: Fuse name.
        state: Persisted fuse state.
        failures: Consecutive real failures counted so far.
        last_failure_at: POSIX timestamp of the last real failure, if any.
    """

    name: str
    state: FuseState
    failures: int
    last_failure_at: float | None
