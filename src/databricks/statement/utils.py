import asyncio
import contextlib
import inspect
import logging
from typing import Any, Awaitable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_cancellable(
    awaitable: Awaitable[T], cancel: Optional[asyncio.Event] = None
) -> T:
    """
    Await ``awaitable`` unless ``cancel`` gets set first.

    When the event fires the pending work is cancelled and asyncio.CancelledError
    is raised, the same outcome a caller gets from cancelling the task itself.
    """

    if cancel is None:
        return await awaitable

    if cancel.is_set():
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise asyncio.CancelledError("Operation canceled before it started")

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait(
            {work, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        work.cancel()
        waiter.cancel()
        raise

    if work in done:
        waiter.cancel()
        return work.result()

    work.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await work
    raise asyncio.CancelledError("Operation canceled")


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, so callbacks may be sync or async."""
    if inspect.isawaitable(value):
        return await value
    return value
