"""
Dispatching the watched events to the caller's callbacks.

The routing is simple: the additions go to ``on_add`` unless they are
the historical replay of already existing objects; the modifications go to
``on_modify``; the deletions go to ``on_delete``. The bookmarks carry no state
and are only logged; the server-reported errors are logged as warnings.

The callbacks are called one at a time, in the order of the events.
The next event is not pulled from the stream until the callback is finished.
"""
import dataclasses
import logging
from typing import Optional

from kwatch._cogs.clients import capabilities
from kwatch._cogs.configs import configuration
from kwatch._cogs.helpers import typedefs
from kwatch._cogs.structs import events, references
from kwatch._core.actions import invocation, loggers
from kwatch._core.intents import sessions
from kwatch._core.reactor import existence, reconnection

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Handlers:
    on_add: Optional[invocation.Invokable] = None
    on_modify: Optional[invocation.Invokable] = None
    on_delete: Optional[invocation.Invokable] = None


async def dispatch(
        event: events.ChangeEvent,
        verdict: existence.Verdict,
        handlers: Handlers,
        *,
        logger: typedefs.Logger = logger,
) -> None:
    fn: Optional[invocation.Invokable]
    if event.type is events.EventType.ADDED:
        if verdict is existence.Verdict.SUPPRESS:
            logger.debug(f"Skipping the replayed addition of {event.snapshot!r}.")
            return
        fn = handlers.on_add
    elif event.type is events.EventType.MODIFIED:
        fn = handlers.on_modify
    elif event.type is events.EventType.DELETED:
        fn = handlers.on_delete
    elif event.type is events.EventType.BOOKMARK:
        logger.debug("Received a bookmark; nothing to do.")
        return
    elif event.type is events.EventType.ERROR:
        logger.warning(f"Received an error from the watch-stream: {event.error!r}")
        return
    else:
        raise TypeError(f"Unsupported event type: {event.type!r}")

    if fn is not None:
        await invocation.invoke(fn, event.snapshot)


async def watch(
        api: capabilities.ResourceAPI,
        target: references.WatchTarget,
        *,
        on_add: Optional[invocation.Invokable] = None,
        on_modify: Optional[invocation.Invokable] = None,
        on_delete: Optional[invocation.Invokable] = None,
        settings: Optional[configuration.WatcherSettings] = None,
        session: Optional[sessions.WatchSession] = None,
        logger: Optional[typedefs.Logger] = None,
) -> None:
    """
    Watch the target and call the callbacks until the session is cancelled.

    The objects that exist when the watch starts are not reported
    as additions, neither initially nor after any reconnect.

    Raises `WatchConnectionError` if the very first connection fails.
    Any exception of a callback is propagated and stops the watch.
    Without a session, the watch runs until the task is cancelled.
    """
    settings = settings if settings is not None else configuration.WatcherSettings()
    session = session if session is not None else sessions.WatchSession()
    logger = logger if logger is not None else loggers.TargetLogger(target=target)
    handlers = Handlers(on_add=on_add, on_modify=on_modify, on_delete=on_delete)

    stopper = session.start()
    try:
        signals = reconnection.resync_stream(
            api=api,
            target=target,
            settings=settings,
            stopper=stopper,
            logger=logger,
        )
        try:
            async for signal in signals:
                if isinstance(signal, reconnection.Resync):
                    logger.debug(f"Resynced with {len(signal.objs)} existing object(s).")
                else:
                    await dispatch(signal.event, signal.verdict, handlers, logger=logger)
        finally:
            await signals.aclose()
    finally:
        session.finish()
