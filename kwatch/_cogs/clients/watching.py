"""
Watching and streaming the watch-events.

One watch-stream is one HTTP request with ``?watch=true``, which is kept open
by the API server, and which emits the JSON-encoded events line by line.
The stream is a cooperative server-push sequence: the next line is not read
until the previous event is consumed. No events are buffered here.

The stream ends without errors when the server-side or client-side timeouts
elapse (that is expected and happens regularly). A broken connection is reported
as `errors.TransientDisconnect`, which is recovered by reconnecting.
So is a garbled or truncated line, after which the stream cannot be trusted.
It is the consumer's duty to reconnect (see the engine's reconnector).

The initial request fails with `errors.APIError` if it is rejected by the API
server: e.g. for a wrong selector or for missing permissions.
"""
import asyncio
import logging
from typing import AsyncIterator, Dict, Optional, cast

import aiohttp

from kwatch._cogs.aiokits import aiotasks
from kwatch._cogs.clients import api, context as contexts
from kwatch._cogs.clients import errors
from kwatch._cogs.configs import configuration
from kwatch._cogs.structs import bodies, events, references

logger = logging.getLogger(__name__)

HTTP_GONE_CODE = 410


async def open_stream(
        *,
        context: contexts.APIContext,
        settings: configuration.WatcherSettings,
        target: references.WatchTarget,
        stopper: Optional[aiotasks.Future] = None,
) -> AsyncIterator[events.ChangeEvent]:
    """
    Open one watch-stream for the target and return its events' iterator.

    Without a resource version, the API server starts by sending the synthetic "ADDED"
    events for all objects that exist at the moment. These events are
    the history, not the news; the engine filters them out.
    """
    params: Dict[str, str] = {}
    params['watch'] = 'true'
    params.update(target.selector_params())
    if settings.watching.allow_bookmarks:
        params['allowWatchBookmarks'] = 'true'
    if settings.watching.server_timeout is not None:
        params['timeoutSeconds'] = str(settings.watching.server_timeout)

    connect_timeout = (
        settings.watching.connect_timeout if settings.watching.connect_timeout is not None else
        settings.networking.connect_timeout if settings.networking.connect_timeout is not None else
        settings.networking.request_timeout
    )

    response = await api.stream(
        url=target.get_url(params=params),
        context=context,
        settings=settings,
        logger=logger,
        timeout=aiohttp.ClientTimeout(
            total=settings.watching.client_timeout,
            sock_connect=connect_timeout,
        ),
    )
    return iter_events(response, target=target, stopper=stopper)


async def iter_events(
        response: aiohttp.ClientResponse,
        *,
        target: references.WatchTarget,
        stopper: Optional[aiotasks.Future] = None,
) -> AsyncIterator[events.ChangeEvent]:

    # Stream the parsed events from the response until it is closed server-side,
    # or until it is closed client-side by the stopper's callbacks.
    try:
        async for line in api.iter_json(response, stopper=stopper):
            raw_input = cast(bodies.RawInput, line)
            raw_type = raw_input.get('type')
            raw_object = raw_input.get('object') or {}

            # "410 Gone" is for the "resource version too old" error, we must restart watching.
            # The error occurs when there is nothing happening for a few minutes. This is normal.
            if raw_type == 'ERROR' and raw_object.get('code') == HTTP_GONE_CODE:
                logger.debug(f"Restarting the watch-stream for {target}.")
                return

            # Ensure that the event is something we understand and can handle.
            try:
                event = events.ChangeEvent.from_raw(raw_input)
            except (ValueError, KeyError):
                logger.warning(f"Ignoring an unsupported event type: {raw_input!r}")
                continue

            yield event

    except asyncio.TimeoutError:
        logger.debug(f"The watch-stream for {target} has timed out.")
    except (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError) as e:
        raise errors.TransientDisconnect(f"The watch-stream for {target} is disconnected: {e!r}") from e
    except ValueError as e:  # incl. JSONDecodeError & UnicodeDecodeError of a truncated line
        raise errors.TransientDisconnect(f"The watch-stream for {target} is garbled: {e!r}") from e
