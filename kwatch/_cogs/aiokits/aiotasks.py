"""
Helpers for orchestrating asyncio tasks.

The watching sessions block on two kinds of awaitables only: the API calls
and the next event of a stream. Both must be abandoned as soon as the session
is stopped, even if the underlying transport does not notice the stop-signal
by itself. For this, the awaitables are raced against the stopper future.
"""
import asyncio
import contextlib
from typing import TYPE_CHECKING, Any, Coroutine, Optional, TypeVar

_T = TypeVar('_T')

# A workaround for a difference in tasks at runtime and type-checking time.
# Otherwise, at runtime: TypeError: 'type' object is not subscriptable.
if TYPE_CHECKING:
    Future = asyncio.Future[Any]
    Task = asyncio.Task[Any]
else:
    Future = asyncio.Future
    Task = asyncio.Task


class Interrupted(Exception):
    """ Raised when the stopper is done before the awaited coroutine. """


async def cancel_coro(
        coro: Coroutine[Any, Any, Any],
        *,
        name: Optional[str] = None,
) -> None:
    """
    Cancel the coroutine which was never awaited.

    All coroutines must be awaited to prevent RuntimeWarnings/ResourceWarnings.
    To save memory, we first try to close the coroutine with no dummy task.
    As a fallback, the coroutine is cancelled gracefully via a dummy task.
    """
    try:
        # A dirty (undocumented) way to close a coro, but it saves memory.
        coro.close()
    except AttributeError:
        # The official way is to create an extra task object, thus to waste some memory.
        corotask = asyncio.create_task(coro, name=name)
        corotask.cancel()
        try:
            await corotask
        except asyncio.CancelledError:
            pass  # cancellations are expected at this point


async def interruptible(
        coro: Coroutine[Any, Any, _T],
        *,
        stopper: Optional[Future],
        name: Optional[str] = None,
) -> _T:
    """
    Await the coroutine, but give up once the stopper is done.

    If the stopper wins, the coroutine's task is cancelled and awaited,
    and `Interrupted` is raised. If both are done at the same time,
    the coroutine's result wins: it is already there, so it is not lost.

    If the current task itself is cancelled, the cancellation is propagated
    into the coroutine's task, which is then awaited before re-raising.
    """
    if stopper is None:
        return await coro
    if stopper.done():
        await cancel_coro(coro, name=name)
        raise Interrupted

    task: Task = asyncio.ensure_future(coro)
    try:
        await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await _cancel_and_wait(task)
        raise

    if task.done():
        return task.result()

    await _cancel_and_wait(task)
    raise Interrupted


async def _cancel_and_wait(task: Task) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


async def sleep_or_stop(
        delay: Optional[float],
        *,
        stopper: Optional[Future],
) -> bool:
    """
    Sleep for the delay, but wake up early if the stopper is done.

    Returns ``True`` if the sleep was interrupted by the stopper.
    """
    if stopper is not None and stopper.done():
        return True
    if delay is None or delay <= 0:
        await asyncio.sleep(0)  # give the other tasks a chance even with no delay.
        return stopper is not None and stopper.done()
    if stopper is None:
        await asyncio.sleep(delay)
        return False
    done, _ = await asyncio.wait({stopper}, timeout=delay)
    return bool(done)

