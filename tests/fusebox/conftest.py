from __future__ import annotations

import pytest

import fusebox.fuse as fuse_mod
from fusebox.storage import InMemoryFuseStorage
from tests.fusebox.support.fakes import FakeClock, FakeLogger


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def storage() -> InMemoryFuseStorage:
    """Provide empty in-memory fuse storage per test."""
    return InMemoryFuseStorage()


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Freeze the fuse wall clock and let tests move it explicitly."""
    fake_clock = FakeClock()
    monkeypatch.setattr(fuse_mod, "_now", fake_clock.now)
    return fake_clock
