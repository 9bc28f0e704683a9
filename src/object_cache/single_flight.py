"""Per-key coalescing of concurrent in-flight work."""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Runs at most one call per key at a time; concurrent callers share its outcome.

    The first caller for a key becomes the leader and runs the work; callers
    arriving while it is in flight await the leader's future and receive the
    same result or exception. Nothing is retained once the leader finishes.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._in_flight)

    async def run(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        """Run work for a key, or join the call already in flight.

        Args:
            key: Coalescing key
            work: Zero-argument coroutine function performing the work

        Returns:
            Result of the leader's work
        """
        existing = self._in_flight.get(key)
        if existing is not None:
            logger.debug(f"Joining in-flight work for '{key}'")
            # shield: a cancelled follower must not cancel the leader's future
            return await asyncio.shield(existing)

        future = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            result = await work()
        except Exception as e:
            future.set_exception(e)
            # Followers retrieve the exception; mark it retrieved when there are none
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            if not future.done():
                # Leader was cancelled
                future.cancel()
            del self._in_flight[key]
