"""
The reconnecting loop over the watch-streams of one target.

A single watch-stream lives only as long as the server's or the client's
idle timeout permits, which is usually much shorter than a wait for readiness.
So the streams are re-opened again and again, indefinitely, until the session
is stopped. The loop has two phases:

* ``CONNECTING``: list the target to (re)seed the existence state,
  then open a new watch-stream.
* ``STREAMING``: pull the events one by one and judge them against
  the existence state; go back to ``CONNECTING`` once the stream ends.

The consumers receive a `Resync` marker after every (re)list, and pairs of
the judged changes while streaming. Both the events and the verdicts
are in the server's order; nothing is buffered or coalesced.

Only the very first connection can fail the loop: a rejected initial list or
watch means a wrong target or missing permissions, and retrying it is futile.
All later failures are considered transient and are retried with a fixed pause
(``settings.watching.reconnect_backoff``), or with the server-requested pause
for "429 Too Many Requests". There is no ceiling on the number of attempts.
"""
import enum
import logging
from typing import AsyncGenerator, AsyncIterator, Collection, NamedTuple, Optional, Union

from kwatch._cogs.aiokits import aiotasks
from kwatch._cogs.clients import capabilities, errors
from kwatch._cogs.configs import configuration
from kwatch._cogs.helpers import typedefs
from kwatch._cogs.structs import bodies, events, references
from kwatch._core.intents import errors as watch_errors
from kwatch._core.reactor import existence

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    CONNECTING = enum.auto()
    STREAMING = enum.auto()


class Resync(NamedTuple):
    """ The fresh state of the target after a (re)list. """
    objs: Collection[bodies.Body]
    state: existence.ExistenceState
    initial: bool


class Change(NamedTuple):
    """ An event as it arrived, judged against the existence state. """
    event: events.ChangeEvent
    verdict: existence.Verdict
    state: existence.ExistenceState


Signal = Union[Resync, Change]


async def resync_stream(
        *,
        api: capabilities.ResourceAPI,
        target: references.WatchTarget,
        settings: configuration.WatcherSettings,
        stopper: Optional[aiotasks.Future] = None,
        initial: Optional[Collection[bodies.Body]] = None,
        logger: typedefs.Logger = logger,
) -> AsyncGenerator[Signal, None]:
    """
    Watch the target across any number of disconnects until stopped.

    If the initial objects are given (i.e. already listed by the caller),
    the first list is skipped and the existence state is seeded from them.
    The generator ends silently once the stopper is done.
    """
    phase = Phase.CONNECTING
    state = existence.ExistenceState()
    stream: Optional[AsyncIterator[events.ChangeEvent]] = None
    connected_once = False
    try:
        while stopper is None or not stopper.done():

            if phase is Phase.CONNECTING:
                try:
                    if initial is not None and not connected_once:
                        objs = initial
                    else:
                        objs = await aiotasks.interruptible(
                            relist(api=api, target=target), stopper=stopper)
                    state = existence.initialize(objs)

                    # On reconnects, the fresh state goes out before the new subscription.
                    if connected_once:
                        yield Resync(objs=objs, state=state, initial=False)

                    stream = await aiotasks.interruptible(
                        api.subscribe(target, stopper=stopper), stopper=stopper)
                except aiotasks.Interrupted:
                    break
                except errors.TransportError as e:
                    if not connected_once:
                        raise watch_errors.WatchConnectionError(
                            f"Failed to start watching {target}: {e}") from e
                    delay = _get_delay(e, settings=settings)
                    logger.warning(f"Failed to reconnect; will retry in {delay}s: {e!r}")
                    if await aiotasks.sleep_or_stop(delay, stopper=stopper):
                        break
                    continue

                phase = Phase.STREAMING
                if not connected_once:
                    connected_once = True
                    yield Resync(objs=objs, state=state, initial=True)

            else:
                try:
                    event = await aiotasks.interruptible(_pull(stream), stopper=stopper)
                except aiotasks.Interrupted:
                    break
                except errors.TransportError as e:
                    logger.debug(f"The watch-stream is broken: {e!r}")
                    event = None

                if event is None:
                    await _close(stream)
                    stream = None
                    phase = Phase.CONNECTING
                    logger.debug(f"Restarting the watch-stream for {target}.")
                    if await aiotasks.sleep_or_stop(settings.watching.reconnect_backoff,
                                                    stopper=stopper):
                        break
                    continue

                state, verdict = existence.apply(event, state)
                yield Change(event=event, verdict=verdict, state=state)
    finally:
        await _close(stream)


async def relist(
        *,
        api: capabilities.ResourceAPI,
        target: references.WatchTarget,
) -> Collection[bodies.Body]:
    """ Fetch the current objects of the target; an absent named object is no object. """
    if target.name is not None:
        try:
            raw_body = await api.get(target)
        except errors.APINotFoundError:
            return []
        return [bodies.Body(raw_body)]
    else:
        raw_bodies = await api.list(target)
        return [bodies.Body(raw_body) for raw_body in raw_bodies]


async def _pull(stream: Optional[AsyncIterator[events.ChangeEvent]]) -> Optional[events.ChangeEvent]:
    if stream is None:
        return None
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None


async def _close(stream: Optional[AsyncIterator[events.ChangeEvent]]) -> None:
    aclose = getattr(stream, 'aclose', None)
    if aclose is not None:
        await aclose()


def _get_delay(
        exc: errors.TransportError,
        *,
        settings: configuration.WatcherSettings,
) -> Optional[float]:
    if isinstance(exc, errors.APITooManyRequestsError) and exc.retry_after is not None:
        return exc.retry_after
    return settings.watching.reconnect_backoff
