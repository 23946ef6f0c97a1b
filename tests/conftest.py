import asyncio
import io
import json
import logging
import re
import sys
from typing import Any, Collection, List, Mapping, Optional, Union
from unittest.mock import AsyncMock, MagicMock

import pytest

from kwatch._cogs.clients.context import APIContext
from kwatch._cogs.clients.errors import APINotFoundError
from kwatch._cogs.configs.configuration import NetworkingSettings, WatcherSettings, \
                                               WatchingSettings
from kwatch._cogs.structs.events import ChangeEvent
from kwatch._cogs.structs.references import NamespaceName, Resource, WatchTarget
from kwatch._core.actions.loggers import TargetPrefixingTextFormatter, configure


def pytest_configure(config):
    # Warnings from the testing tools out of our control should not fail the tests.
    config.addinivalue_line('filterwarnings', 'ignore::DeprecationWarning:aresponses')


@pytest.fixture(params=[True, False], ids=['namespaced', 'cluster'])
def resource(request):
    """ The resource used in the tests. Usually mocked, so it does not matter. """
    return Resource('kwatch.dev', 'v1', 'kwatchexamples', 'KwatchExample', 'kwatchexample',
                    namespaced=request.param)


@pytest.fixture()
def namespaced_resource():
    return Resource('kwatch.dev', 'v1', 'kwatchexamples', namespaced=True)


@pytest.fixture()
def cluster_resource():
    return Resource('kwatch.dev', 'v1', 'kwatchexamples', namespaced=False)


@pytest.fixture()
def namespace(resource):
    return NamespaceName('ns') if resource.namespaced else None


@pytest.fixture()
def target(resource, namespace):
    return WatchTarget(resource=resource, namespace=namespace, name='name1')


@pytest.fixture()
def settings():
    """ Settings with no pauses: the tests must be fast. """
    return WatcherSettings(
        networking=NetworkingSettings(error_backoffs=()),
        watching=WatchingSettings(reconnect_backoff=0),
    )


@pytest.fixture()
def logger():
    return logging.getLogger('kwatch.tests')


#
# Mocks for Kubernetes API clients (any of them). Reasons:
# 1. We do not test the clients, we test the layers on top of them,
#    so everything low-level should be mocked and assumed to be functional.
# 2. No external calls must be made under any circumstances.
#    The unit-tests must be fully isolated from the environment.
#

@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-host'


@pytest.fixture()
async def context(hostname):
    async with APIContext(f'http://{hostname}') as context:
        yield context


@pytest.fixture()
def resp_mocker(context, aresponses):
    """
    A factory of server-side callbacks for `aresponses` with mocking/spying.

    The value of the fixture is a function, which return a coroutine mock.
    That coroutine mock should be passed to `aresponses.add` as a response
    callback function. When called, it calls the mock defined by the function's
    arguments (specifically, return_value or side_effects).

    The difference from passing the responses directly to `aresponses.add`
    is that it is possible to assert on whether the response was handled
    by that callback at all (i.e. HTTP URL & method matched), especially
    if there are multiple responses registered.

    Sample usage::

        def test_me(resp_mocker):
            response = aiohttp.web.json_response({'a': 'b'})
            callback = resp_mocker(return_value=response)
            aresponses.add(hostname, '/path/', 'get', callback)
            do_something()
            assert callback.called
            assert callback.call_count == 1
    """
    def resp_maker(*args, **kwargs):
        actual_response = MagicMock(*args, **kwargs)
        async def resp_mock_effect(request):
            nonlocal actual_response

            # The request's content can be read inside of the handler only. We preserve
            # the data into a conventional field, so that they could be asserted later.
            try:
                request.data = await request.json()
            except json.JSONDecodeError:
                request.data = await request.text()

            # Get a response/error as it was intended (via return_value/side_effect).
            response = actual_response()
            return response

        return AsyncMock(side_effect=resp_mock_effect)
    return resp_maker


#
# The scripted collaborator for the engine's tests.
#

RawEvent = Mapping[str, Any]
Script = Union[BaseException, List[Union[RawEvent, BaseException]]]


class FakeResourceAPI:
    """
    A scripted API: every (re)list returns the next state, every subscribe -- the next stream.

    The last state is repeated once the states are over. Once the streams are over,
    the subscriptions block forever (until the session is stopped), and
    the ``exhausted`` event is set, so that the tests know when to stop.
    """

    def __init__(self) -> None:
        super().__init__()
        self.states: List[Union[BaseException, Collection[Mapping[str, Any]]]] = []
        self.streams: List[Script] = []
        self.list_calls = 0
        self.get_calls = 0
        self.subscribe_calls = 0
        self.exhausted = asyncio.Event()

    @property
    def relist_calls(self) -> int:
        return self.list_calls + self.get_calls

    def feed_state(self, *states: Union[BaseException, Collection[Mapping[str, Any]]]) -> None:
        self.states.extend(states)

    def feed_stream(self, *streams: Script) -> None:
        self.streams.extend(streams)

    def _next_state(self) -> Collection[Mapping[str, Any]]:
        if not self.states:
            return []
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        if isinstance(state, BaseException):
            raise state
        return state

    async def list(self, target: WatchTarget) -> Collection[Mapping[str, Any]]:
        self.list_calls += 1
        await asyncio.sleep(0)
        return list(self._next_state())

    async def get(self, target: WatchTarget) -> Mapping[str, Any]:
        self.get_calls += 1
        await asyncio.sleep(0)
        for obj in self._next_state():
            if obj.get('metadata', {}).get('name') == target.name:
                return obj
        raise APINotFoundError(None, status=404)

    async def subscribe(self, target: WatchTarget, *, stopper: Optional[asyncio.Future] = None):
        self.subscribe_calls += 1
        await asyncio.sleep(0)
        if not self.streams:
            self.exhausted.set()
            return self._iter_forever()
        script = self.streams.pop(0)
        if isinstance(script, BaseException):
            raise script
        return self._iter_script(script)

    async def _iter_script(self, script):
        for item in script:
            if isinstance(item, BaseException):
                raise item
            yield item if isinstance(item, ChangeEvent) else ChangeEvent.from_raw(item)
            await asyncio.sleep(0)

    async def _iter_forever(self):
        await asyncio.get_running_loop().create_future()  # never set, only cancelled.
        yield  # to make it a generator.


@pytest.fixture()
async def fake_api():
    return FakeResourceAPI()


#
# Helpers for the logging checks.
#

@pytest.fixture()
def logstream(caplog):
    """ Prefixing is done at the final output. We have to intercept it. """

    logger = logging.getLogger()
    handlers = list(logger.handlers)

    # Setup all log levels of sub-libraries. A side-effect: the handlers are also added.
    configure(verbose=True)

    # Remove any stream handlers added in the step above. But keep the caplog's handlers.
    for handler in list(logger.handlers):
        if isinstance(handler, logging.StreamHandler) and handler.stream is sys.stderr:
            logger.removeHandler(handler)

    # Inject our stream-intercepting handler.
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    formatter = TargetPrefixingTextFormatter('prefix %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    try:
        with caplog.at_level(logging.DEBUG):
            yield stream
    finally:
        logger.removeHandler(handler)
        logger.handlers[:] = handlers  # undo `configure()`


@pytest.fixture()
def assert_logs(caplog):
    """
    A function to assert the logs are present (by pattern).

    The listed message patterns MUST be present, in the order specified.
    Some other log messages can also be present, but they are ignored.
    """
    def assert_logs_fn(patterns, prohibited=[], strict=False):
        __traceback_hide__ = True
        remaining_patterns = list(patterns)
        for message in caplog.messages:
            # The expected pattern is at position 0.
            # Looking-ahead: if one of the following patterns matches, while the
            # 0th does not, then the log message is missing, and we fail the test.
            for idx, pattern in enumerate(remaining_patterns):
                m = re.search(pattern, message)
                if m:
                    if idx == 0:
                        remaining_patterns[:1] = []
                        break  # out of `remaining_patterns` cycle
                    else:
                        skipped_patterns = remaining_patterns[:idx]
                        raise AssertionError(f"Few patterns were skipped: {skipped_patterns!r}")
                elif strict:
                    raise AssertionError(f"Unexpected log message: {message!r}")

            # Check that the prohibited patterns do not appear in any message.
            for pattern in prohibited:
                m = re.search(pattern, message)
                if m:
                    raise AssertionError(f"Prohibited log pattern found: {message!r} ~ {pattern!r}")

        # If all patterns have been matched in order, we are done.
        # if some are left, but the messages are over, then we fail.
        if remaining_patterns:
            raise AssertionError(f"Few patterns were missed: {remaining_patterns!r}")

    return assert_logs_fn
