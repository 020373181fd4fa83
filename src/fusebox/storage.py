"""State storage for fuses.

Storage is decoupled from fuse logic. Every backend keeps a handful of
fields per fuse name (see ``FuseField``) and exposes three coroutines:
``get``, ``put`` and ``inc``. Shared backends (for example Redis, see
``fusebox.integrations.redis``) let fuses in different processes share one
failure history.

Important: ``inc`` must be atomic. Concurrent ``get``/``put`` races are
tolerated by the fuse, lost increments are not.
"""

import threading

StorageValue = str | int | float | None


class FuseStorage:
    """Base storage contract.

    This class is not backed by any storage: every operation raises
    ``NotImplementedError``. Concrete backends subclass it and override all
    three operations.
    """

    async def get(self, name: str, field: str) -> StorageValue:
        """Return the stored value of ``field`` for fuse ``name``, or ``None``."""
        raise NotImplementedError(f"{type(self).__name__}.get")

    async def put(self, name: str, field: str, value: StorageValue) -> StorageValue:
        """Write ``value`` unconditionally and return it.

        Writing ``None`` clears the field.
        """
        raise NotImplementedError(f"{type(self).__name__}.put")

    async def inc(self, name: str, field: str) -> int:
        """Atomically increment an integer field and return the new value.

        A missing field counts as ``0`` before the increment.
        """
        raise NotImplementedError(f"{type(self).__name__}.inc")


class InMemoryFuseStorage(FuseStorage):
    """Process-local storage guarded by a thread lock.

    No operation awaits while holding the lock, so one lock serves tasks on
    one loop as well as threads running their own loops.
    """

    def __init__(self) -> None:
        """Initialize an empty value registry."""
        self._values: dict[tuple[str, str], StorageValue] = {}
        self._lock = threading.Lock()

    async def get(self, name: str, field: str) -> StorageValue:
        """Return the current value, ``None`` when the field was never set."""
        with self._lock:
            return self._values.get((name, field))

    async def put(self, name: str, field: str, value: StorageValue) -> StorageValue:
        """Store ``value`` and return it. ``None`` removes the field."""
        with self._lock:
            if value is None:
                self._values.pop((name, field), None)
            else:
                self._values[(name, field)] = value
            return value

    async def inc(self, name: str, field: str) -> int:
        """Increment a counter under the lock and return the new value."""
        with self._lock:
            current = self._values.get((name, field))
            updated = (0 if current is None else int(current)) + 1
            self._values[(name, field)] = updated
            return updated

    def clear(self) -> None:
        """Drop all stored values. Intended for deterministic tests."""
        with self._lock:
            self._values.clear()
