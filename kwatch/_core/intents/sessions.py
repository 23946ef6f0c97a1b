"""
Watching sessions and their stop-signals.

A session is one logical watch or wait call. It owns nothing but its stopper:
the existence state and the reconnection state live in the coroutine itself.

The session can be cancelled from another task, or even from another thread
(e.g. from a synchronous signal handler or a UI callback). The cancellation
is idempotent. A session cancelled before it is started ends immediately.
"""
import asyncio
import threading
from typing import Optional

from kwatch._cogs.aiokits import aiotasks


class WatchSession:

    def __init__(self, *, name: Optional[str] = None) -> None:
        super().__init__()
        self._name = name
        self._cancelled = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stopper: Optional[aiotasks.Future] = None

    def __repr__(self) -> str:
        clsname = self.__class__.__name__
        state = 'cancelled' if self.cancelled else 'active' if self.active else 'idle'
        if self._name is None:
            return f'<{clsname}: {state}>'
        else:
            return f'<{clsname}: {self._name}: {state}>'

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def active(self) -> bool:
        return self._stopper is not None

    @property
    def stopper(self) -> Optional[aiotasks.Future]:
        """ A future which is done once the session is cancelled (only when active). """
        return self._stopper

    def start(self) -> aiotasks.Future:
        """
        Bind the session to the running event loop; return the stop-future.

        Used by the engine at the beginning of a watch/wait call.
        A session can serve only one call at a time.
        """
        if self._stopper is not None:
            raise RuntimeError(f"{self!r} is already in use by another watch.")
        loop = asyncio.get_running_loop()
        stopper: aiotasks.Future = loop.create_future()
        self._loop = loop
        self._stopper = stopper
        if self._cancelled.is_set():
            stopper.set_result(None)
        return stopper

    def finish(self) -> None:
        """ Unbind the session from the event loop once the call is over. """
        self._loop = None
        self._stopper = None

    def cancel(self) -> None:
        """
        Stop the session at its next suspension point. Idempotent.
        """
        self._cancelled.set()
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running_loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None
        if running_loop is loop:
            self._raise_stopper()
        else:
            loop.call_soon_threadsafe(self._raise_stopper)

    def _raise_stopper(self) -> None:
        stopper = self._stopper
        if stopper is not None and not stopper.done():
            stopper.set_result(None)
