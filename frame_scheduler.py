# frame_scheduler.py – host animation callbacks for the layout engine
"""
The layout engine never loops on its own.  After each tick it asks the host
for *one* more frame through a scheduler and then yields; the host decides
when that frame runs (a GUI timer, an asyncio loop, or a test calling
`run_pending()` by hand).

Every scheduler exposes the same two calls:

    handle = scheduler.request(callback)   # run callback() once, later
    scheduler.cancel(handle)               # drop it if it has not run yet
"""
from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Optional, Set, Tuple
import asyncio
import itertools

Callback = Callable[[], None]

FRAME_INTERVAL = 1 / 60.


class ManualFrameScheduler:
    """Frames run only when the owner says so; deterministic for tests."""

    def __init__(self):
        self._queue: Deque[Tuple[int, Callback]] = deque()
        self._ids = itertools.count(1)
        self._cancelled: Set[int] = set()
        self.frames_run = 0

    def request(self, callback: Callback) -> int:
        handle = next(self._ids)
        self._queue.append((handle, callback))
        return handle

    def cancel(self, handle: int) -> None:
        self._cancelled.add(handle)  # may already sit in the running batch
        self._queue = deque(item for item in self._queue if item[0] != handle)

    @property
    def pending(self) -> int:
        return len(self._queue)

    def run_pending(self) -> int:
        """Run the frames queued right now; frames they request wait for the next call."""
        batch, self._queue = self._queue, deque()
        ran = 0
        for handle, callback in batch:
            if handle in self._cancelled:
                continue
            callback()
            self.frames_run += 1
            ran += 1
        self._cancelled.clear()
        return ran

    def run_until_idle(self, limit: int = 10_000) -> int:
        ran = 0
        while self._queue and ran < limit:
            ran += self.run_pending()
        return ran


class AsyncioFrameScheduler:
    """Frames on an asyncio event loop, one `call_later` per request."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None,
                 frame_interval: float = FRAME_INTERVAL):
        self.loop = loop
        self.frame_interval = frame_interval

    def request(self, callback: Callback) -> asyncio.TimerHandle:
        loop = self.loop or asyncio.get_running_loop()
        return loop.call_later(self.frame_interval, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()
