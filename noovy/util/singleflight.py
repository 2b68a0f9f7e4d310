import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

from noovy.util.log import logger

T = TypeVar("T")


class Singleflight(Generic[T]):
    """Collapses concurrent fetches for the same key into one upstream call.

    The first caller for a key starts the producer in its own task; callers
    arriving while it runs await that task instead of starting another one.
    The registry entry is dropped when the task finishes, whatever the outcome,
    so a failure is delivered to every waiter and the next call starts afresh.
    """

    _inflight: dict[str, asyncio.Task[T]]

    def __init__(self):
        self._inflight = {}

    async def run(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(producer())
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._release(key, done))
        else:
            logger.debug("Joining in-flight fetch", cache_key=key)
        # A cancelled caller must not cancel the fetch other callers are awaiting
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task[T]):
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark the exception retrieved; waiters that are still around re-raise it
            task.exception()

    def is_inflight(self, key: str) -> bool:
        return key in self._inflight

    def inflight_count(self) -> int:
        return len(self._inflight)
