from __future__ import annotations

from dataclasses import dataclass, field

from fusebox.state import FuseState


class FakeLogger:
    """Capture structured logger events for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, object]]] = []

    def _record(self, level: str, event: str, **kwargs: object) -> None:
        self.calls.append((level, event, kwargs))

    def info(self, event: str, **kwargs: object) -> None:
        self._record("info", event, **kwargs)

    def warning(self, event: str, **kwargs: object) -> None:
        self._record("warning", event, **kwargs)

    def error(self, event: str, **kwargs: object) -> None:
        self._record("error", event, **kwargs)

    def events(self, level: str | None = None) -> list[str]:
        return [event for lvl, event, _ in self.calls if level in (None, lvl)]


class FakeClock:
    """Settable wall clock standing in for ``fusebox.fuse._now``."""

    def __init__(self, start: float = 1_577_836_800.0) -> None:
        self._now = start

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


@dataclass(slots=True)
class RecordingListener:
    events: list[tuple[str, object]] = field(default_factory=list)

    async def on_state_change(self, name: str, old: FuseState, new: FuseState):
        self.events.append(("state", (name, old, new)))

    async def on_call_rejected(self, name: str):
        self.events.append(("rejected", name))

    async def on_call_succeeded(self, name: str, elapsed: float):
        self.events.append(("succeeded", name))

    async def on_call_failed(self, name: str, exc: Exception, elapsed: float):
        self.events.append(("failed", (name, exc.__class__.__name__)))


@dataclass(slots=True)
class ExplodingListener:
    async def on_state_change(self, name: str, old: FuseState, new: FuseState):
        raise RuntimeError("boom")

    async def on_call_rejected(self, name: str):
        raise RuntimeError("boom")

    async def on_call_succeeded(self, name: str, elapsed: float):
        raise RuntimeError("boom")

    async def on_call_failed(self, name: str, exc: Exception, elapsed: float):
        raise RuntimeError("boom")


class FakeRedis:
    """In-process stand-in for the ``redis.asyncio.Redis`` hash commands.

    Values are stored the way Redis returns them: as strings, or as bytes
    when ``decode_responses`` is off.
    """

    def __init__(self, *, decode_responses: bool = True) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.decode_responses = decode_responses
        self.closed = False

    def _encode(self, value: str) -> bytes | str:
        return value if self.decode_responses else value.encode("utf-8")

    async def hget(self, name: str, key: str) -> bytes | str | None:
        value = self.hashes.get(name, {}).get(key)
        return None if value is None else self._encode(value)

    async def hset(self, name: str, key: str, value: str | int | float) -> int:
        bucket = self.hashes.setdefault(name, {})
        created = 0 if key in bucket else 1
        bucket[key] = str(value) if isinstance(value, str) else repr(value)
        return created

    async def hdel(self, name: str, *keys: str) -> int:
        bucket = self.hashes.get(name, {})
        removed = 0
        for key in keys:
            if bucket.pop(key, None) is not None:
                removed += 1
        return removed

    async def hincrby(self, name: str, key: str, amount: int = 1) -> int:
        bucket = self.hashes.setdefault(name, {})
        updated = int(bucket.get(key, "0")) + amount
        bucket[key] = str(updated)
        return updated

    async def aclose(self) -> None:
        self.closed = True
