"""Break notification handlers and their dispatcher.

A fuse's ``on_break`` option holds one handler spec or an ordered sequence of
them. Each spec is either the name of a standard handler (see
``STANDARD_HANDLERS``) or a callable taking the tripped ``Fuse``. Callables
may be coroutine functions or plain functions; plain functions run in a
daemon thread so their time bound can be enforced.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, TypeAlias, cast

from fusebox.logging import log_error, log_warning

if TYPE_CHECKING:
    from fusebox.fuse import Fuse

BreakHandler: TypeAlias = "Callable[[Fuse], object]"


@dataclass(frozen=True, slots=True)
class NamedHandler:
    """Reference to a standard handler by registry name."""

    identifier: str


@dataclass(frozen=True, slots=True)
class CustomHandler:
    """Directly supplied handler callable."""

    callback: BreakHandler


HandlerSpec: TypeAlias = "str | NamedHandler | CustomHandler | BreakHandler"
OnBreak: TypeAlias = "HandlerSpec | Sequence[HandlerSpec]"


async def _log_break(fuse: Fuse) -> None:
    log_error(
        fuse.logger,
        "fuse.broken",
        fuse=fuse.name,
        message=f"Fuse '{fuse.name}' has broken",
    )


STANDARD_HANDLERS: Mapping[str, BreakHandler] = MappingProxyType(
    {
        "log": _log_break,
    }
)


def is_handler_spec(value: object) -> bool:
    """Return whether ``value`` can be resolved to a handler variant."""
    return isinstance(value, (str, NamedHandler, CustomHandler)) or callable(value)


def to_variant(spec: HandlerSpec) -> NamedHandler | CustomHandler:
    """Normalize one handler spec into its tagged variant."""
    if isinstance(spec, (NamedHandler, CustomHandler)):
        return spec
    if isinstance(spec, str):
        return NamedHandler(spec)
    if callable(spec):
        return CustomHandler(spec)
    raise ValueError(f"on_break entry is not a handler: {spec!r}")


def iter_specs(on_break: OnBreak | None) -> tuple[HandlerSpec, ...]:
    """Flatten ``on_break`` into an ordered tuple of specs."""
    if on_break is None:
        return ()
    if isinstance(on_break, Sequence) and not isinstance(on_break, str):
        return tuple(cast(Sequence[HandlerSpec], on_break))
    return (cast(HandlerSpec, on_break),)


def _is_coroutine_callable(handler: BreakHandler) -> bool:
    if inspect.iscoroutinefunction(handler):
        return True
    return inspect.iscoroutinefunction(getattr(handler, "__call__", None))


async def _run_in_daemon_thread_and_wait(
    func: Callable[..., object],
    /,
    *args: object,
) -> object:
    """Run a blocking callable in a daemon thread and await completion.

    Cancelling the awaiting task abandons the thread instead of joining it.
    """
    done = threading.Event()
    error: Exception | None = None
    result: object | None = None

    def _run() -> None:
        nonlocal error, result
        try:
            result = func(*args)
        except Exception as exc:
            error = exc
        finally:
            done.set()

    thread = threading.Thread(target=_run, name="fuse-break-handler", daemon=True)
    thread.start()
    while not done.is_set():
        await asyncio.sleep(0.005)
    if error is not None:
        raise error
    return result


async def _invoke(handler: BreakHandler, fuse: Fuse) -> None:
    if _is_coroutine_callable(handler):
        await cast(Awaitable[object], handler(fuse))
        return
    result = await _run_in_daemon_thread_and_wait(handler, fuse)
    if inspect.isawaitable(result):
        await result


def _handler_label(handler: BreakHandler) -> str:
    label = getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None)
    return str(label) if label is not None else handler.__class__.__qualname__


def _log_handler_failure(fuse: Fuse, handler: BreakHandler, exc: BaseException) -> None:
    log_warning(
        fuse.logger,
        "fuse.break_handler_failed",
        fuse=fuse.name,
        handler=_handler_label(handler),
        error=f"{exc.__class__.__name__}: {exc}",
    )


class BreakDispatcher:
    """Sequential, isolated fan-out of break notifications.

    Handler errors and timeouts are logged and the next handler still runs.
    A ``CancelledError`` raised by a handler counts as an error. Only
    cancellation of the dispatching task itself propagates.

    Limitation: the timeout abandons a handler, it does not stop it.
    Coroutine handlers are cancelled at their next await. Plain callables
    keep running in their daemon thread after the dispatcher moves on, so
    side effects they perform after the timeout still happen.
    """

    def __init__(self, *, registry: Mapping[str, BreakHandler] | None = None) -> None:
        """Create a dispatcher.

        Args:
            registry: Named handler lookup. Defaults to ``STANDARD_HANDLERS``.
        """
        self._registry = STANDARD_HANDLERS if registry is None else registry

    def resolve(self, on_break: OnBreak | None) -> tuple[BreakHandler, ...]:
        """Resolve specs to callables, dropping unknown handler names."""
        handlers: list[BreakHandler] = []
        for spec in iter_specs(on_break):
            variant = to_variant(spec)
            if isinstance(variant, CustomHandler):
                handlers.append(variant.callback)
                continue
            handler = self._registry.get(variant.identifier)
            if handler is not None:
                handlers.append(handler)
        return tuple(handlers)

    async def dispatch(
        self,
        fuse: Fuse,
        on_break: OnBreak | None,
        *,
        timeout: float,
    ) -> int:
        """Run every resolved handler in order and return how many completed.

        Args:
            fuse: Fuse that just tripped, passed to each handler.
            on_break: Handler spec(s) from the fuse config.
            timeout: Seconds each handler may run before it is abandoned.
        """
        completed = 0
        for handler in self.resolve(on_break):
            bound = asyncio.timeout(timeout)
            try:
                async with bound:
                    await _invoke(handler, fuse)
            except TimeoutError as exc:
                if not bound.expired():
                    _log_handler_failure(fuse, handler, exc)
                    continue
                log_warning(
                    fuse.logger,
                    "fuse.break_handler_timed_out",
                    fuse=fuse.name,
                    handler=_handler_label(handler),
                    timeout=timeout,
                )
                continue
            except asyncio.CancelledError as exc:
                task = asyncio.current_task()
                if task is not None and task.cancelling():
                    raise
                _log_handler_failure(fuse, handler, exc)
                continue
            except Exception as exc:
                _log_handler_failure(fuse, handler, exc)
                continue
            completed += 1
        return completed
