import asyncio
from typing import Any, Callable, TypeVar

from starlette.concurrency import run_in_threadpool

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args: Any) -> T:
    """
    Run a blocking call in the threadpool and wait for it to return.

    Cancelling the caller does not abandon the worker thread: the
    CancelledError is re-raised only once the call has finished. Destinations
    call this while holding their lock, so the lock stays held for as long as
    the thread uses the shared client.
    """
    call = asyncio.ensure_future(run_in_threadpool(func, *args))
    try:
        return await asyncio.shield(call)
    except asyncio.CancelledError:
        await asyncio.wait({call})
        if not call.cancelled():
            # Mark the outcome as retrieved, the caller only sees the cancellation
            call.exception()
        raise
