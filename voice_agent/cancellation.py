"""
Per-turn cancellation token.

A token is bound to the task running one agent turn. Cancelling the token
cancels that task (which closes its HTTP response) and marks the turn so
nothing it produced is dispatched afterwards.

Once a turn starts dispatching its tool calls it is committed: cancel() no
longer interrupts it, so a batch is never left half applied.
"""

from __future__ import annotations

import asyncio
from typing import Optional


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False
        self._committed = False
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def committed(self) -> bool:
        return self._committed

    def bind(self, task: asyncio.Task) -> None:
        self._task = task
        if self._cancelled:
            task.cancel()

    def cancel(self) -> bool:
        """Cancel the turn. Returns False if it was already committed or cancelled."""
        if self._cancelled or self._committed:
            return False
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    def commit(self) -> None:
        """Mark the turn as dispatching. Raises CancelledError if it was cancelled first."""
        self.raise_if_cancelled()
        self._committed = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError()
