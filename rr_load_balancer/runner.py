"""RealTimeRunner — paces a Dispatcher against the wall clock with asyncio.

The dispatcher itself is purely virtual-time; the runner sleeps one tick
interval (scaled by ``time_scale``) and then advances the dispatcher by the
same amount of virtual time. Cancelling the background task halts dispatch
immediately.
"""

import asyncio
import contextlib
import logging
from typing import Optional

from rr_load_balancer.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class RealTimeRunner:
    def __init__(self, dispatcher: Dispatcher, *, time_scale: float = 1.0):
        if time_scale <= 0:
            raise ValueError(f"time_scale must be positive, got {time_scale}")
        self.dispatcher = dispatcher
        self.time_scale = time_scale
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start dispatching. Must be called from inside a running event loop."""
        self.dispatcher.start()
        if not self.running:
            self._task = asyncio.create_task(self._run_loop())

    async def pause(self) -> None:
        self.dispatcher.pause()
        await self._cancel()

    async def stop(self) -> None:
        await self._cancel()
        self.dispatcher.stop()

    async def _cancel(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run_loop(self) -> None:
        """Background loop: sleep one interval, then advance virtual time."""
        try:
            while self.dispatcher.running:
                step_ms = self.dispatcher.interval_ms
                await asyncio.sleep(step_ms / 1000 / self.time_scale)
                self.dispatcher.advance(step_ms)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Runner loop crashed: {e}", exc_info=True)
            raise
