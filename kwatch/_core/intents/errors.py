"""
Errors surfaced by the watching engine to its callers.

The transient faults of the transport (disconnects, idle timeouts, server
restarts) never reach the callers: they are retried by the reconnector.
Everything else is raised to the immediate caller, never swallowed.

There is no "timeout" error here: the engine has no internal timeouts.
The callers impose them via `asyncio.wait_for` or by cancelling the session.
"""


class WatchError(Exception):
    """ A base class for all errors of the watching engine. """


class WatchConnectionError(WatchError, ConnectionError):
    """
    The initial listing or subscription has failed; not retried.

    This is usually a caller's configuration error: e.g. a wrong selector,
    a wrong namespace, or missing permissions. The transport's error is chained.
    """


class NotFoundError(WatchError, LookupError):
    """ The target was required to pre-exist, but it did not. """


class DeletedError(WatchError):
    """ The target was deleted while the readiness wait was outstanding. """


class StoppedError(WatchError):
    """ The session was cancelled before the awaited condition was met. """
