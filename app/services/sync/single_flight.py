"""Advisory per-key single-flight guard.

Concurrent callers asking for the same key share one in-flight call instead
of each hitting the provider. The first caller runs the coroutine; the others
await its result (or its exception). Nothing is cached after completion.

    flight = SingleFlight()
    data = await flight.do(f"match:{match_id}", lambda: client.fetch_market(match_id=match_id))
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict

from app.core.logging import get_logger

logger = get_logger(__name__)


class SingleFlight:
    def __init__(self) -> None:
        self._inflight: Dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        existing = self._inflight.get(key)
        if existing is not None:
            logger.debug("Joining in-flight call", extra={"flight_key": key})
            return await asyncio.shield(existing)

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await fn()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unjoined failure does not warn on GC
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)


class NoFlight:
    """Pass-through used when single-flight is disabled."""

    def __len__(self) -> int:
        return 0

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        return await fn()
