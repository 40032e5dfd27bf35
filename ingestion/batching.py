"""
Count-or-time batching for async streams.

Both the transformer and the loader group their input with chunks_timeout so
remote calls are amortized, while a slow trickle of items still moves on
after at most ``max_wait`` seconds.
"""

import asyncio
import contextlib
import logging
from typing import AsyncIterable, AsyncIterator, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_END = object()


class _Failure:
    __slots__ = ("exc",)

    def __init__(self, exc: BaseException):
        self.exc = exc


async def chunks_timeout(
    source: AsyncIterable[T],
    max_count: int,
    max_wait: float
) -> AsyncIterator[List[T]]:
    """
    Group items from ``source`` into lists.

    A chunk is yielded as soon as it holds ``max_count`` items, or once
    ``max_wait`` seconds have passed since its first item arrived, whichever
    comes first. When the consumer falls behind, items that queued up while
    it was busy are taken into the chunk before a time flush, so a slow
    consumer still gets full chunks. Chunks are never empty. Remaining items
    are flushed when the source ends. An exception raised by the source is
    re-raised here after the items that preceded it have been flushed.

    Args:
        source: Upstream async iterable
        max_count: Maximum number of items per chunk
        max_wait: Maximum seconds between a chunk's first item and its flush

    Raises:
        ValueError: If max_count < 1 or max_wait <= 0
    """
    if max_count < 1:
        raise ValueError(f"max_count must be at least 1, got {max_count}")
    if max_wait <= 0:
        raise ValueError(f"max_wait must be positive, got {max_wait}")

    loop = asyncio.get_running_loop()
    # Bounded so upstream can run at most one chunk ahead of us
    queue: asyncio.Queue = asyncio.Queue(maxsize=max_count)

    async def pump():
        try:
            async for item in source:
                await queue.put((loop.time(), item))
        except Exception as e:
            await queue.put((loop.time(), _Failure(e)))
        else:
            await queue.put((loop.time(), _END))
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()

    pump_task = asyncio.create_task(pump())
    chunk: List[T] = []
    deadline = None

    try:
        while True:
            if deadline is None:
                arrived, item = await queue.get()
            else:
                remaining = deadline - loop.time()
                try:
                    if remaining <= 0:
                        # Past the deadline, items already waiting still join this chunk
                        arrived, item = queue.get_nowait()
                    else:
                        arrived, item = await asyncio.wait_for(queue.get(), remaining)
                except (asyncio.QueueEmpty, asyncio.TimeoutError):
                    yield chunk
                    chunk, deadline = [], None
                    continue

            if item is _END:
                if chunk:
                    yield chunk
                return

            if isinstance(item, _Failure):
                if chunk:
                    yield chunk
                raise item.exc

            if not chunk:
                deadline = arrived + max_wait
            chunk.append(item)

            if len(chunk) >= max_count:
                yield chunk
                chunk, deadline = [], None
    finally:
        pump_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pump_task
