from typing import Dict, List, Mapping, Optional

import aiohttp

from kwatch._cogs.helpers import versions


class APIContext:
    """
    A container for an aiohttp session and the info for URL building.

    The context is the only resource that is legitimately shared between
    the independent watching sessions: they all use the same connection pool.
    ``aiohttp`` sessions are safe for concurrent use within one event loop.

    The credentials are not handled here. Either point the context to
    an already authenticated endpoint (e.g. ``kubectl proxy``), or pass
    a pre-configured session (with the auth headers, certificates, etc).
    A pre-configured session is borrowed: it is not closed by the context.
    """

    # The main contained object used by the API methods.
    session: aiohttp.ClientSession

    # Contextual information for URL building.
    server: str

    # List of open responses.
    responses: List[aiohttp.ClientResponse]

    def __init__(
            self,
            server: str,
            *,
            session: Optional[aiohttp.ClientSession] = None,
            headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__()
        self._owned = session is None
        self.session = session if session is not None else self.make_aiohttp_session(headers)

        # It is a good practice to self-identify a bit, even with a user-provided session.
        if self.session.headers.get('User-Agent') is None:
            self.session.headers['User-Agent'] = f'kwatch/{versions.version or "unknown"}'

        self.server = server
        self.responses = []

    async def __aenter__(self) -> "APIContext":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    def make_aiohttp_session(
            self,
            headers: Optional[Mapping[str, str]] = None,
    ) -> aiohttp.ClientSession:
        all_headers: Dict[str, str] = dict(headers or {})
        return aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=0),
            headers=all_headers,
        )

    def flush_closed_responses(self) -> None:
        # There's no point keeping references to already closed responses.
        self.responses[:] = [_response for _response in self.responses if not _response.closed]

    def add_response(self, response: aiohttp.ClientResponse) -> None:
        # Keep track of responses so they can be closed later when the session is closed.
        self.flush_closed_responses()
        if not response.closed:
            self.responses.append(response)

    def close_open_responses(self) -> None:
        # Close all responses that are still open and are using this session.
        for response in self.responses:
            if not response.closed:
                response.close()
        self.responses.clear()

    async def close(self) -> None:
        # Close all open responses that use this session before closing the session itself.
        self.close_open_responses()
        if self._owned:
            await self.session.close()
