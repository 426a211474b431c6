# radar/page/debounce.py
# Purpose: Bounded-buffer trailing debounce. Events queue up; one flush runs once they stop arriving.
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Optional


class Debouncer:
    def __init__(self, flush: Callable[[List[Any]], Awaitable[Any]], window: float,
                 maxlen: int = 1000, on_overflow: Optional[Callable[[], Awaitable[Any]]] = None):
        self.flush = flush
        self.window = window
        self.maxlen = maxlen
        self.on_overflow = on_overflow
        self.buffer: List[Any] = []
        self.overflowed = False
        self.deadline = 0.0
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def push(self, events: List[Any]):
        if not self.overflowed:
            if len(self.buffer) + len(events) > self.maxlen:
                # too much churn to track piecemeal
                self.overflowed = True
                self.buffer.clear()
            else:
                self.buffer.extend(events)
        # every push moves the deadline back
        self.deadline = asyncio.get_running_loop().time() + self.window
        if not self.pending:
            self._task = asyncio.create_task(self._run())

    async def _run(self):
        loop = asyncio.get_running_loop()
        while True:
            remaining = self.deadline - loop.time()
            while remaining > 0:
                await asyncio.sleep(remaining)
                remaining = self.deadline - loop.time()
            events, self.buffer = self.buffer, []
            overflowed, self.overflowed = self.overflowed, False
            try:
                if overflowed and self.on_overflow is not None:
                    await self.on_overflow()
                else:
                    await self.flush(events)
            except Exception as e:
                print(f"[PAGE] debounce flush FAIL -> {e!r}")
            # pushed while flushing: go around again instead of stranding them
            if not self.buffer and not self.overflowed:
                return

    async def wait(self):
        while self.pending:
            await self._task

    def cancel(self):
        if self.pending:
            self._task.cancel()
        self.buffer.clear()
        self.overflowed = False
