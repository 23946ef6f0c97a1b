"""
Waiting for the targets to become ready, or to disappear.

The wait starts with one list of the target. If the listed state already
satisfies the condition, the wait is over without opening any watch-stream:
this is the most common case of already ready objects. Otherwise, the target
is watched (with reconnects) until the condition is met.

The readiness predicate is evaluated against the listed objects (initially
and after every reconnect), and against all additions and modifications,
including the additions replayed on subscribing. The deletions are never
evaluated: a deleted object can never become ready, so the wait fails
immediately with `DeletedError`.

There is no timeout on this level. The callers can wrap the wait into
`asyncio.wait_for`, or cancel the wait's session from anywhere.
"""
import logging
from typing import Callable, Collection, Optional

from kwatch._cogs.aiokits import aiotasks
from kwatch._cogs.clients import capabilities, errors
from kwatch._cogs.configs import configuration
from kwatch._cogs.helpers import typedefs
from kwatch._cogs.structs import bodies, events, references
from kwatch._core.actions import invocation, loggers
from kwatch._core.intents import errors as watch_errors
from kwatch._core.intents import sessions
from kwatch._core.reactor import reconnection

logger = logging.getLogger(__name__)

Predicate = Callable[[bodies.Body], invocation.SyncOrAsync[bool]]


async def wait_until(
        api: capabilities.ResourceAPI,
        target: references.WatchTarget,
        predicate: Predicate,
        *,
        require_existing: bool = False,
        settings: Optional[configuration.WatcherSettings] = None,
        session: Optional[sessions.WatchSession] = None,
        logger: Optional[typedefs.Logger] = None,
) -> bodies.Body:
    """
    Wait until an object of the target satisfies the predicate; return it.

    For the label-selected targets, any one matching object is sufficient.

    Raises:
        NotFoundError: if ``require_existing`` and nothing exists initially.
        DeletedError: if the object is deleted before the predicate is true.
        WatchConnectionError: if the initial list or watch fails.
        StoppedError: if the session is cancelled.
    """
    settings = settings if settings is not None else configuration.WatcherSettings()
    session = session if session is not None else sessions.WatchSession()
    logger = logger if logger is not None else loggers.TargetLogger(target=target)

    stopper = session.start()
    try:
        objs = await _initial_list(api=api, target=target, stopper=stopper)
        if require_existing and not objs:
            raise watch_errors.NotFoundError(f"{target} does not exist.")

        # The short-circuit: no need to watch for something that is already ready.
        body = await _find_satisfying(objs, predicate)
        if body is not None:
            logger.debug("The target is already ready; not watching.")
            return body

        seen = bool(objs)
        signals = reconnection.resync_stream(
            api=api,
            target=target,
            settings=settings,
            stopper=stopper,
            initial=objs,
            logger=logger,
        )
        try:
            async for signal in signals:
                if isinstance(signal, reconnection.Resync):
                    if signal.initial:
                        continue  # already evaluated above.
                    if seen and not signal.objs:
                        raise watch_errors.DeletedError(f"{target} was deleted while disconnected.")
                    seen = seen or bool(signal.objs)
                    body = await _find_satisfying(signal.objs, predicate)
                    if body is not None:
                        return body
                    continue

                event = signal.event
                if event.type is events.EventType.DELETED:
                    raise watch_errors.DeletedError(f"{target} was deleted while waiting.")
                elif event.type is events.EventType.ERROR:
                    logger.warning(f"Received an error from the watch-stream: {event.error!r}")
                elif event.snapshot is None:
                    pass  # bookmarks
                else:
                    # The replayed additions are evaluated too: they carry the state as of
                    # the subscription, which can be newer than the listed one.
                    seen = True
                    if await invocation.invoke(predicate, event.snapshot):
                        return event.snapshot
        finally:
            await signals.aclose()
    finally:
        session.finish()

    raise watch_errors.StoppedError(f"Stopped waiting for {target}.")


async def wait_until_absent(
        api: capabilities.ResourceAPI,
        target: references.WatchTarget,
        *,
        settings: Optional[configuration.WatcherSettings] = None,
        session: Optional[sessions.WatchSession] = None,
        logger: Optional[typedefs.Logger] = None,
) -> None:
    """
    Wait until no object of the target exists anymore.

    Returns immediately if nothing exists initially. The deletions that happen
    while disconnected are noticed on the next reconnect.

    Raises:
        WatchConnectionError: if the initial list or watch fails.
        StoppedError: if the session is cancelled.
    """
    settings = settings if settings is not None else configuration.WatcherSettings()
    session = session if session is not None else sessions.WatchSession()
    logger = logger if logger is not None else loggers.TargetLogger(target=target)

    stopper = session.start()
    try:
        objs = await _initial_list(api=api, target=target, stopper=stopper)
        if not objs:
            return

        signals = reconnection.resync_stream(
            api=api,
            target=target,
            settings=settings,
            stopper=stopper,
            initial=objs,
            logger=logger,
        )
        try:
            async for signal in signals:
                if not signal.state.exists:
                    logger.debug("The target is absent.")
                    return
        finally:
            await signals.aclose()
    finally:
        session.finish()

    raise watch_errors.StoppedError(f"Stopped waiting for {target} to disappear.")


async def _initial_list(
        *,
        api: capabilities.ResourceAPI,
        target: references.WatchTarget,
        stopper: aiotasks.Future,
) -> Collection[bodies.Body]:
    try:
        return await aiotasks.interruptible(
            reconnection.relist(api=api, target=target), stopper=stopper)
    except aiotasks.Interrupted:
        raise watch_errors.StoppedError(f"Stopped listing {target}.") from None
    except errors.TransportError as e:
        raise watch_errors.WatchConnectionError(f"Failed to list {target}: {e}") from e


async def _find_satisfying(
        objs: Collection[bodies.Body],
        predicate: Predicate,
) -> Optional[bodies.Body]:
    for obj in objs:
        if await invocation.invoke(predicate, obj):
            return obj
    return None
