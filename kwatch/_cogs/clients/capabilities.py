"""
The capabilities of the API clients as needed by the watching engine.

The engine does not talk to the API directly. It only needs three operations:
to list the objects of a target, to get one object by its name, and to
subscribe to the changes of a target. Any client that can do this (including
the fakes in tests) can be used with the engine; `KubeResourceAPI` is the one
built on top of ``aiohttp`` and the K8s API conventions.

One client instance serves all resource kinds and all sessions concurrently:
the target carries everything needed to address the objects.
"""
import asyncio
import logging
from typing import AsyncIterator, Collection, Optional

import aiohttp
from typing_extensions import Protocol

from kwatch._cogs.aiokits import aiotasks
from kwatch._cogs.clients import context as contexts
from kwatch._cogs.clients import errors, fetching, watching
from kwatch._cogs.configs import configuration
from kwatch._cogs.structs import bodies, events, references

logger = logging.getLogger(__name__)

# The low-level errors that are converted to the transport errors at the boundary.
NETWORK_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


class ResourceAPI(Protocol):

    async def list(
            self,
            target: references.WatchTarget,
    ) -> Collection[bodies.RawBody]:
        """ List the matching objects; fails with `errors.TransportError`. """
        ...

    async def get(
            self,
            target: references.WatchTarget,
    ) -> bodies.RawBody:
        """ Get the named object; fails with `errors.APINotFoundError` if absent. """
        ...

    async def subscribe(
            self,
            target: references.WatchTarget,
            *,
            stopper: Optional[aiotasks.Future] = None,
    ) -> AsyncIterator[events.ChangeEvent]:
        """
        Open the change-stream; fails with `errors.TransportError` if rejected.

        The returned stream ends without errors on the idle timeout.
        """
        ...


class KubeResourceAPI:
    """
    The K8s API client for the watching engine, based on ``aiohttp``.
    """

    def __init__(
            self,
            context: contexts.APIContext,
            *,
            settings: Optional[configuration.WatcherSettings] = None,
    ) -> None:
        super().__init__()
        self.context = context
        self.settings = settings if settings is not None else configuration.WatcherSettings()

    async def list(
            self,
            target: references.WatchTarget,
    ) -> Collection[bodies.RawBody]:
        try:
            objs, _ = await fetching.list_objs(
                context=self.context,
                settings=self.settings,
                target=target,
                logger=logger,
            )
        except NETWORK_ERRORS as e:
            raise errors.TransportError(f"Failed to list {target}: {e!r}") from e
        return objs

    async def get(
            self,
            target: references.WatchTarget,
    ) -> bodies.RawBody:
        try:
            return await fetching.read_obj(
                context=self.context,
                settings=self.settings,
                target=target,
                logger=logger,
            )
        except NETWORK_ERRORS as e:
            raise errors.TransportError(f"Failed to get {target}: {e!r}") from e

    async def subscribe(
            self,
            target: references.WatchTarget,
            *,
            stopper: Optional[aiotasks.Future] = None,
    ) -> AsyncIterator[events.ChangeEvent]:
        try:
            return await watching.open_stream(
                context=self.context,
                settings=self.settings,
                target=target,
                stopper=stopper,
            )
        except NETWORK_ERRORS as e:
            raise errors.TransportError(f"Failed to watch {target}: {e!r}") from e
