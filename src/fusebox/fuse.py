"""Core fuse implementation."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ParamSpec, TypeVar

from fusebox.exceptions import (
    FastFailure,
    FuseTimeoutError,
    InvalidStorageError,
    MissingConfigError,
    MissingNameError,
    MissingStorageError,
)
from fusebox.handlers import BreakDispatcher, OnBreak, is_handler_spec, iter_specs
from fusebox.logging import FuseLogger, get_logger, log_info, log_warning
from fusebox.metrics import FuseListener
from fusebox.state import FuseField, FuseSnapshot, FuseState
from fusebox.storage import FuseStorage, StorageValue

T = TypeVar("T")
P = ParamSpec("P")

DEFAULT_BREAK_HANDLER_TIMEOUT = 5.0


def _now() -> float:
    return time.time()


@dataclass(frozen=True, slots=True)
class FuseConfig:
    """Fuse configuration values.

    Attributes:
        allowed_failures: Consecutive failures that trip the fuse.
        cool_off_period: Seconds after the last real failure before an open
            fuse may close again.
        timeout: Optional bound, in seconds, on each guarded call. ``None`` or
            a non-positive value leaves calls unbounded.
        on_break: Handler spec, or ordered sequence of specs, notified when
            the fuse trips.
    """

    allowed_failures: int
    cool_off_period: float
    timeout: float | None = None
    on_break: OnBreak | None = None

    def __post_init__(self) -> None:
        if self.allowed_failures < 1:
            raise ValueError("allowed_failures must be >= 1")
        if self.cool_off_period <= 0:
            raise ValueError("cool_off_period must be > 0")
        for spec in iter_specs(self.on_break):
            if not is_handler_spec(spec):
                raise ValueError(f"on_break entry is not a handler: {spec!r}")

    @property
    def bounded_timeout(self) -> float | None:
        """Return the effective call bound, ``None`` when unbounded."""
        if self.timeout is None or self.timeout <= 0:
            return None
        return float(self.timeout)


def _as_int(value: StorageValue) -> int:
    return 0 if value is None else int(value)


def _as_timestamp(value: StorageValue) -> float | None:
    return None if value is None else float(value)


def _as_state(value: StorageValue) -> FuseState:
    if value is not None and str(value) == FuseState.OPEN:
        return FuseState.OPEN
    return FuseState.CLOSED


class Fuse:
    """Named circuit breaker whose state lives in a shared storage backend.

    The fuse object holds no breaker state of its own. Every operation reads
    from storage, mutates, and writes back, so many instances (in one process
    or several) can guard the same resource name.
    """

    def __init__(
        self,
        name: str,
        storage: FuseStorage,
        config: FuseConfig | Mapping[str, Any],
        *,
        logger: FuseLogger | None = None,
        listeners: Sequence[FuseListener] | None = None,
        dispatcher: BreakDispatcher | None = None,
    ) -> None:
        """Build a fuse and validate its inputs.

        Args:
            name: Resource name used as the storage key.
            storage: State storage backend.
            config: ``FuseConfig`` or a mapping of its field names.
            logger: Structured logger. Defaults to the ``fusebox`` structlog
                logger.
            listeners: Optional telemetry listeners for fuse events.
            dispatcher: Break notification dispatcher. Defaults to one backed
                by ``STANDARD_HANDLERS``.

        Raises:
            MissingNameError: ``name`` is missing or blank.
            MissingStorageError: ``storage`` is ``None``.
            InvalidStorageError: ``storage`` is not a ``FuseStorage``.
            MissingConfigError: ``config`` is ``None``.
        """
        if not isinstance(name, str) or not name.strip():
            raise MissingNameError()
        if storage is None:
            raise MissingStorageError()
        if not isinstance(storage, FuseStorage):
            raise InvalidStorageError(storage)
        if config is None:
            raise MissingConfigError()

        self.name = name
        self.config = config if isinstance(config, FuseConfig) else FuseConfig(**config)
        self.logger: FuseLogger = get_logger() if logger is None else logger
        self.break_handler_timeout = DEFAULT_BREAK_HANDLER_TIMEOUT
        self._storage = storage
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._dispatcher = BreakDispatcher() if dispatcher is None else dispatcher

    def __repr__(self) -> str:
        return f"Fuse(name={self.name!r})"

    async def _get(self, field: FuseField) -> StorageValue:
        return await self._storage.get(self.name, field)

    async def _put(self, field: FuseField, value: StorageValue) -> StorageValue:
        return await self._storage.put(self.name, field, value)

    async def _inc(self, field: FuseField) -> int:
        return await self._storage.inc(self.name, field)

    async def _notify(self, event: str, *args: object) -> None:
        for listener in self._listeners:
            try:
                await getattr(listener, event)(self.name, *args)
            except Exception as exc:
                log_warning(
                    self.logger,
                    "fuse.listener_failed",
                    fuse=self.name,
                    listener_event=event,
                    error=f"{exc.__class__.__name__}: {exc}",
                )

    async def is_open(self) -> bool:
        """Return whether the stored state is open. No cool-off check is made."""
        return _as_state(await self._get(FuseField.STATE)) == FuseState.OPEN

    async def failures(self) -> int:
        """Return the stored failure count, ``0`` when absent."""
        return _as_int(await self._get(FuseField.FAILURES))

    async def snapshot(self) -> FuseSnapshot:
        """Return all persisted fields in one view."""
        return FuseSnapshot(
            name=self.name,
            state=_as_state(await self._get(FuseField.STATE)),
            failures=_as_int(await self._get(FuseField.FAILURES)),
            last_failure_at=_as_timestamp(await self._get(FuseField.LAST_FAILURE_AT)),
        )

    async def reset(self) -> None:
        """Close the fuse and forget its failure history."""
        await self._put(FuseField.STATE, FuseState.CLOSED)
        await self._put(FuseField.FAILURES, 0)
        await self._put(FuseField.LAST_FAILURE_AT, None)

    async def _close_if_cooled_off(self) -> bool:
        last_failure_at = _as_timestamp(await self._get(FuseField.LAST_FAILURE_AT))
        elapsed = _now() - (0.0 if last_failure_at is None else last_failure_at)
        if not elapsed > self.config.cool_off_period:
            return False

        await self._put(FuseField.STATE, FuseState.CLOSED)
        await self._put(FuseField.FAILURES, 0)
        log_info(self.logger, "fuse.closed", fuse=self.name, elapsed=elapsed)
        await self._notify("on_state_change", FuseState.OPEN, FuseState.CLOSED)
        return True

    async def _open(self, failures: int) -> None:
        await self._put(FuseField.STATE, FuseState.OPEN)
        log_warning(
            self.logger,
            "fuse.opened",
            fuse=self.name,
            failures=failures,
            allowed_failures=self.config.allowed_failures,
        )
        await self._notify("on_state_change", FuseState.CLOSED, FuseState.OPEN)
        if self.config.on_break is None:
            return
        await self._dispatcher.dispatch(
            self,
            self.config.on_break,
            timeout=self.break_handler_timeout,
        )

    async def _record_failure(self, exc: Exception, elapsed: float) -> None:
        await self._put(FuseField.LAST_FAILURE_AT, _now())
        failures = await self._inc(FuseField.FAILURES)
        await self._notify("on_call_failed", exc, elapsed)
        if failures >= self.config.allowed_failures:
            await self._open(failures)

    async def _execute(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        timeout = self.config.bounded_timeout
        if timeout is None:
            return await func(*args, **kwargs)

        bound = asyncio.timeout(timeout)
        try:
            async with bound:
                return await func(*args, **kwargs)
        except TimeoutError as exc:
            if bound.expired():
                raise FuseTimeoutError(self.name, timeout) from exc
            raise

    async def wrap(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Invoke an async callable under fuse protection.

        Args:
            func: Guarded async callable.
            *args: Positional arguments forwarded to ``func``.
            **kwargs: Keyword arguments forwarded to ``func``.

        Returns:
            The result of ``func`` when the fuse is closed and the call
            succeeds.

        Raises:
            FastFailure: The fuse is open and still cooling off. ``func`` was
                not invoked.
            FuseTimeoutError: ``func`` exceeded ``config.timeout``. Counted as
                a failure.
            Exception: The original exception raised by ``func``.
        """
        if await self.is_open() and not await self._close_if_cooled_off():
            await self._notify("on_call_rejected")
            raise FastFailure()

        start = time.monotonic()
        try:
            result = await self._execute(func, *args, **kwargs)
        except Exception as exc:
            await self._record_failure(exc, max(time.monotonic() - start, 0.0))
            raise

        await self._put(FuseField.FAILURES, 0)
        await self._notify("on_call_succeeded", max(time.monotonic() - start, 0.0))
        return result
