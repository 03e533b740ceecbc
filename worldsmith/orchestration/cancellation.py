"""Cooperative cancellation for running turns."""

import asyncio

from worldsmith.orchestration.errors import TurnCancelledError


class CancellationToken:
    """Flag checked at every suspension point of a turn."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Turn cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TurnCancelledError(self.reason or "Turn cancelled")

    async def wait(self) -> None:
        await self._event.wait()
