import asyncio
from collections.abc import Awaitable, Iterable
from typing import Any, TypeVar

T = TypeVar("T")


async def gather_in_order(awaitables: Iterable[Awaitable[T]]) -> list[T]:
    """Run awaitables concurrently and return results in input order.

    Results are placed by index, never in completion order. The first failure
    cancels every sibling still in flight and is re-raised.
    """
    tasks: list[asyncio.Future[Any]] = [asyncio.ensure_future(a) for a in awaitables]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        # Let cancelled siblings unwind before propagating.
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
