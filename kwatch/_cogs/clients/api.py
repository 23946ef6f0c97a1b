import asyncio
import collections.abc
import itertools
import json
from typing import Any, AsyncIterator, Mapping, Optional

import aiohttp

from kwatch._cogs.aiokits import aiotasks
from kwatch._cogs.clients import context as contexts
from kwatch._cogs.clients import errors
from kwatch._cogs.configs import configuration
from kwatch._cogs.helpers import typedefs


async def request(
        method: str,
        url: str,  # relative to the server/api root.
        *,
        context: contexts.APIContext,
        settings: configuration.WatcherSettings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> aiohttp.ClientResponse:
    if '://' not in url:
        url = context.server.rstrip('/') + '/' + url.lstrip('/')

    if timeout is None:
        timeout = aiohttp.ClientTimeout(
            total=settings.networking.request_timeout,
            sock_connect=settings.networking.connect_timeout,
        )

    backoffs = settings.networking.error_backoffs
    backoffs = backoffs if isinstance(backoffs, collections.abc.Iterable) else [backoffs]
    count = len(backoffs) + 1 if isinstance(backoffs, collections.abc.Sized) else None
    backoff: Optional[float]
    for retry, backoff in enumerate(itertools.chain(backoffs, [None]), start=1):
        idx = f"#{retry}/{count}" if count is not None else f"#{retry}"
        what = f"{method.upper()} {url}"
        try:
            if retry > 1:
                logger.debug(f"Request attempt {idx}: {what}")

            response = await context.session.request(
                method=method,
                url=url,
                json=payload,
                headers=headers,
                timeout=timeout,
            )
            await errors.check_response(response)  # but do not parse it!

        except (aiohttp.ClientConnectionError, errors.APIServerError, asyncio.TimeoutError) as e:
            if backoff is None:  # i.e. the last or the only attempt.
                logger.error(f"Request attempt {idx} failed; escalating: {what} -> {e!r}")
                raise
            else:
                logger.error(f"Request attempt {idx} failed; will retry: {what} -> {e!r}")
                await asyncio.sleep(backoff)  # non-awakable! but still cancellable.
        else:
            if retry > 1:
                logger.debug(f"Request attempt {idx} succeeded: {what}")
            context.add_response(response)
            return response

    raise RuntimeError("Broken retryable routine.")  # impossible, but needed for type-checking.


async def get(
        url: str,  # relative to the server/api root.
        *,
        context: contexts.APIContext,
        settings: configuration.WatcherSettings,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(
        method='get',
        url=url,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    async with response:
        return await response.json()


async def stream(
        url: str,  # relative to the server/api root.
        *,
        context: contexts.APIContext,
        settings: configuration.WatcherSettings,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> aiohttp.ClientResponse:
    """
    Open a streaming request, but do not read it yet.

    The request is made eagerly, so that the rejections of the stream
    are raised to the caller here, not on the first iteration of the stream.
    The response is then consumed with `iter_json`.
    """
    return await request(
        method='get',
        url=url,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )


async def iter_json(
        response: aiohttp.ClientResponse,
        *,
        stopper: Optional[aiotasks.Future] = None,
) -> AsyncIterator[Any]:
    """
    Yield the JSON-decoded lines of an opened streaming response.

    A stop-future is a client-specific way of terminating the streaming HTTPS
    connections when the consumer is not interested in the stream anymore:
    the response's ``close()`` is attached to the future's "done" callback.
    """
    response_close_callback = lambda _: response.close()  # to remove the positional arg.
    if stopper is not None:
        stopper.add_done_callback(response_close_callback)
    try:
        async with response:
            async for line in iter_jsonlines(response.content):
                yield json.loads(line.decode('utf-8'))
    except aiohttp.ClientConnectionError:
        if stopper is not None and stopper.done():
            pass
        else:
            raise
    finally:
        if stopper is not None:
            stopper.remove_done_callback(response_close_callback)


async def iter_jsonlines(
        content: aiohttp.StreamReader,
        chunk_size: int = 1024 * 1024,
) -> AsyncIterator[bytes]:
    """
    Split the watch-stream's raw content into non-empty lines.

    The aiohttp's own line iteration (``async for line in response.content``)
    fails on lines above its buffer limit of 128 KB, while one watch-event
    carries the whole object: e.g. a secret or a config-map of a few MBs.
    So the content is read in big chunks and split here.
    """
    # The unfinished tail of a chunk waits in the buffer for the next chunks.
    buffer = b''
    async for chunk in content.iter_chunked(chunk_size):
        *lines, buffer = (buffer + chunk).split(b'\n')
        for line in lines:
            if line:
                yield line

    if buffer:
        yield buffer
