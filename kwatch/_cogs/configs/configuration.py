"""
All configuration flags, options, settings to fine-tune the watchers.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

Unlike with long-running shared handlers, the settings are immutable values:
they are passed explicitly into every operation. Per-call adjustments are made
by deriving a new object, never by modifying the shared one::

    settings = kwatch.WatcherSettings()
    fast = dataclasses.replace(settings, watching=dataclasses.replace(
        settings.watching, reconnect_backoff=0))

All of the settings have reasonable defaults.
"""
import dataclasses
from typing import Iterable, Optional, Union


@dataclasses.dataclass(frozen=True)
class NetworkingSettings:

    request_timeout: Optional[float] = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for the API requests (except watching).
    """

    connect_timeout: Optional[float] = None
    """
    A timeout for the connection establishment in the API requests.
    """

    error_backoffs: Union[float, Iterable[float]] = (1, 2, 4, 8)
    """
    Backoff intervals between the attempts of a single API request.

    This is the transport's own retrying of the failed requests (e.g. 5xx
    or the connection issues); the number of attempts is the number of
    backoffs plus one. Set to ``()`` for only one attempt with no retries.

    The watch-stream reconnection is not affected by this setting;
    see `WatchingSettings.reconnect_backoff` for that.
    """


@dataclasses.dataclass(frozen=True)
class WatchingSettings:

    server_timeout: Optional[float] = None
    """
    The maximum duration of one streaming request. Patched in some tests.
    If ``None``, then obey the server-side timeouts (they seem to be random).
    """

    client_timeout: Optional[float] = None
    """
    An HTTP/HTTPS session timeout to use in watch requests.
    """

    connect_timeout: Optional[float] = None
    """
    An HTTP/HTTPS connection timeout to use in watch requests.
    """

    reconnect_backoff: float = 0.1
    """
    How long should a pause be between watch reconnections (to prevent API flooding).

    This is the whole reconnection policy: the pause is fixed, it does not grow,
    and the number of reconnections is not limited. The watch-streams are cheap
    to re-establish, and the real downtimes of the API servers are short.
    Set to ``0`` to reconnect as fast as the API server allows.
    """

    allow_bookmarks: bool = True
    """
    Should the API server send the periodic bookmark events in the streams.
    Bookmarks carry no changes; they are only logged and otherwise ignored.
    """


@dataclasses.dataclass(frozen=True)
class WatcherSettings:
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    watching: WatchingSettings = dataclasses.field(default_factory=WatchingSettings)
