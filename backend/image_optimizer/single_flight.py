"""
Single-flight coalescing

Concurrent callers asking for the same key share one in-flight task
instead of each repeating the work. Off by default; enabled with
`coalesce_requests`.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class SingleFlight:
    def __init__(self):
        self._inflight: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run `fn` once per key at a time and return its result to every
        caller that arrives while it is running.

        A caller being cancelled does not cancel the shared task.
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._forget(key, t))
        else:
            logger.debug(f"[SingleFlight] Joining in-flight work for {key}")

        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved when every waiter went away
        if not task.cancelled():
            task.exception()
