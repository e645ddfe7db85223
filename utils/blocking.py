import asyncio
from typing import Any, Callable, Optional, TypeVar

T = TypeVar("T")


async def call_blocking(func: Callable[..., T], *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> T:
    """
    Run a blocking SDK call in a worker thread, bounded by a timeout

    Raises asyncio.TimeoutError when the call does not finish in time. The
    worker thread itself cannot be interrupted and finishes in the background.
    """
    return await asyncio.wait_for(asyncio.to_thread(func, *args, **kwargs), timeout=timeout)
