"""Write-once completion slot shared by every way a handler can finish."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    error: Any = None
    result: Any = None
    timed_out: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None


class SettleCell:
    """
    Holds the outcome of one invocation; only the first write counts.

    Writers may be the event loop itself (coroutine handlers, the deadline
    timer) or any other thread (sync handlers, callbacks invoked from worker
    threads). Later writes are ignored.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._loop_thread = threading.get_ident()
        self._lock = threading.Lock()
        self._outcome: Optional[Outcome] = None
        self._closed = False
        self._future: asyncio.Future = loop.create_future()

    def settle(self, error: Any = None, result: Any = None) -> bool:
        """Record the handler's completion. Returns False if it was not the first."""
        return self._write(Outcome(error=error, result=result))

    def expire(self) -> bool:
        """Record that the flush deadline passed before the handler completed."""
        return self._write(Outcome(timed_out=True))

    def close(self) -> None:
        """Refuse all further writes."""
        with self._lock:
            self._closed = True

    async def wait(self) -> Outcome:
        return await self._future

    # Internal
    def _write(self, outcome: Outcome) -> bool:
        with self._lock:
            if self._outcome is not None or self._closed:
                logger.debug("Ignoring completion %r: invocation already settled", outcome)
                return False
            self._outcome = outcome

        if threading.get_ident() == self._loop_thread:
            self._resolve(outcome)
        else:
            try:
                self._loop.call_soon_threadsafe(self._resolve, outcome)
            except RuntimeError:
                logger.debug("Event loop closed before completion %r was delivered", outcome)
        return True

    def _resolve(self, outcome: Outcome) -> None:
        if not self._future.done():
            self._future.set_result(outcome)
