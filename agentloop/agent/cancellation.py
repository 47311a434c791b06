"""Cooperative cancellation for ReAct turns.

A CancellationToken is threaded through every suspension point of a turn
(LLM calls, tool batches, persistence). ``run()`` races the awaited work
against the cancel signal: when the token fires first the work is cancelled
and AgentCancelledError is raised.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from ..errors import AgentCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Idempotent, single-shot cancel signal for one turn."""

    def __init__(self) -> None:
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _signal(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    def cancel(self) -> None:
        """Fire the token. Repeated calls are no-ops."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._event is not None:
            self._event.set()
        logger.debug("Cancellation requested")

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise AgentCancelledError()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the token fires first.

        Raises:
            AgentCancelledError: the token fired before the work finished;
                the work has been cancelled.
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise AgentCancelledError()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._signal().wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        raise AgentCancelledError()
