"""Observability hooks for fuses."""

from typing import Protocol

from fusebox.state import FuseState


class FuseListener(Protocol):
    """Listener protocol for fuse events.

    Notes:
        ``on_state_change(CLOSED -> OPEN)`` fires once per trip from the
        instance that tripped the fuse. ``OPEN -> CLOSED`` fires from the
        instance whose call found the cool-off period elapsed.
    """

    async def on_state_change(self, name: str, old: FuseState, new: FuseState) -> None:
        """Handle fuse state transitions."""

    async def on_call_rejected(self, name: str) -> None:
        """Handle a fast-failed call while the fuse is open."""

    async def on_call_succeeded(self, name: str, elapsed: float) -> None:
        """Handle successful guarded call completion."""

    async def on_call_failed(self, name: str, exc: Exception, elapsed: float) -> None:
        """Handle failed guarded call completion."""
