"""Per-key trailing-edge debounce for durable writes.

    debouncer.schedule("unit-1", lambda: api.save_chapter(...))

Each `schedule` for a key restarts that key's quiet window and replaces
its pending write; when the window passes without another call, only
the latest write runs.  A failed write stays pending, so the next
`schedule` or `flush` retries with whatever value is newest by then.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 0.5

WriteFactory = Callable[[], Awaitable[object]]


class Debouncer:
    def __init__(self, delay: float = DEFAULT_DELAY_SECONDS) -> None:
        self.delay = delay
        self._pending: dict[str, WriteFactory] = {}
        self._timers: dict[str, asyncio.Task] = {}

    def schedule(self, key: str, write: WriteFactory) -> None:
        self._pending[key] = write
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        self._timers[key] = asyncio.get_running_loop().create_task(self._wait_then_fire(key))

    def has_pending(self, key: str | None = None) -> bool:
        return bool(self._pending) if key is None else key in self._pending

    async def _wait_then_fire(self, key: str) -> None:
        await asyncio.sleep(self.delay)
        # from here on schedule() starts a fresh timer rather than cancelling this one
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]
        await self._fire(key)

    async def _fire(self, key: str) -> bool:
        write = self._pending.get(key)
        if write is None:
            return True
        try:
            await write()
        except Exception:
            logger.warning("Debounced write failed, keeping it pending key=%s", key, exc_info=True)
            return False
        if self._pending.get(key) is write:
            del self._pending[key]
        return True

    async def flush(self, key: str | None = None) -> bool:
        """Run pending writes now. True when every one of them succeeded."""
        keys = [key] if key is not None else list(self._pending)
        ok = True
        for k in keys:
            timer = self._timers.pop(k, None)
            if timer is not None:
                timer.cancel()
            ok = await self._fire(k) and ok
        return ok

    def cancel(self, key: str | None = None) -> None:
        """Drop timers and pending writes without running them."""
        keys = [key] if key is not None else list(set(self._timers) | set(self._pending))
        for k in keys:
            timer = self._timers.pop(k, None)
            if timer is not None:
                timer.cancel()
            self._pending.pop(k, None)
