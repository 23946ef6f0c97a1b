"""
Invoking the callbacks and predicates supplied by the callers.

Both sync & async functions are supported, so as their partials.
Also, decorated wrappers and lambdas are recognized.
The sync functions are called in the event loop's thread directly:
they are expected to be fast and non-blocking, since the session's loop
does not proceed to the next event until the callback is finished.
"""
import functools
import inspect
from typing import Any, Callable, Coroutine, Optional, TypeVar, Union

# An internal typing hack shows that the callback can be sync fn with the result,
# or an async fn which returns a coroutine which, in turn, returns the result.
_R = TypeVar('_R')
SyncOrAsync = Union[_R, Coroutine[None, None, _R]]

# A generic sync-or-async callable with no args/kwargs checks.
Invokable = Callable[..., SyncOrAsync[Optional[object]]]


async def invoke(
        fn: Invokable,
        *args: Any,
) -> Any:
    """
    Invoke the callback, sync or async, and return its result.

    A sync function that returns an awaitable (e.g. a lambda calling
    an async function) is also supported: the awaitable is awaited.
    """
    if is_async_fn(fn):
        result = await fn(*args)
    else:
        result = fn(*args)
        if inspect.isawaitable(result):
            result = await result
    return result


def is_async_fn(
        fn: Optional[Invokable],
) -> bool:
    if fn is None:
        return False
    elif isinstance(fn, functools.partial):
        return is_async_fn(fn.func)
    elif hasattr(fn, '__wrapped__'):  # @functools.wraps()
        return is_async_fn(fn.__wrapped__)
    else:
        return inspect.iscoroutinefunction(fn)
