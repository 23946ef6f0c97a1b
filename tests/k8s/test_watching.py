import dataclasses
import json

import aiohttp.web
import pytest

from kwatch._cogs.clients.errors import APIForbiddenError, TransientDisconnect
from kwatch._cogs.clients.watching import open_stream
from kwatch._cogs.structs.events import EventType
from kwatch._cogs.structs.references import WatchTarget

STREAM_WITH_NORMAL_EVENTS = [
    {'type': 'ADDED', 'object': {'spec': 'a'}},
    {'type': 'MODIFIED', 'object': {'spec': 'b'}},
]
STREAM_WITH_UNKNOWN_EVENT = [
    {'type': 'ADDED', 'object': {'spec': 'a'}},
    {'type': 'UNKNOWN', 'object': {}},
    {'type': 'DELETED', 'object': {'spec': 'b'}},
]
STREAM_WITH_ERROR_410GONE = [
    {'type': 'ADDED', 'object': {'spec': 'a'}},
    {'type': 'ERROR', 'object': {'code': 410}},
    {'type': 'ADDED', 'object': {'spec': 'b'}},
]
STREAM_WITH_ERROR_CODE = [
    {'type': 'ADDED', 'object': {'spec': 'a'}},
    {'type': 'ERROR', 'object': {'code': 666}},
    {'type': 'ADDED', 'object': {'spec': 'b'}},
]
STREAM_WITH_BOOKMARKS = [
    {'type': 'BOOKMARK', 'object': {'metadata': {'resourceVersion': '100'}}},
    {'type': 'ADDED', 'object': {'spec': 'a'}},
]


@pytest.fixture()
def stream(resp_mocker, aresponses, hostname, resource, namespace):
    """ A mock for the watch-stream: pre-rendered, no actual streaming. """
    def feed(raw_events):
        stream_text = '\n'.join(json.dumps(raw_event) for raw_event in raw_events)
        stream_mock = resp_mocker(return_value=aresponses.Response(text=stream_text))
        aresponses.add(hostname, resource.get_url(namespace=namespace), 'get', stream_mock)
        return stream_mock
    return feed


async def collect(*, context, settings, target):
    events = []
    stream = await open_stream(context=context, settings=settings, target=target)
    async for event in stream:
        events.append(event)
    return events


async def test_empty_stream_yields_nothing(
        settings, context, stream, resource, namespace):
    stream([])
    target = WatchTarget(resource=resource, namespace=namespace)
    events = await collect(context=context, settings=settings, target=target)
    assert len(events) == 0


async def test_event_stream_yields_everything(
        settings, context, stream, resource, namespace):
    stream(STREAM_WITH_NORMAL_EVENTS)
    target = WatchTarget(resource=resource, namespace=namespace)
    events = await collect(context=context, settings=settings, target=target)

    assert len(events) == 2
    assert events[0].type is EventType.ADDED
    assert events[0].snapshot['spec'] == 'a'
    assert events[1].type is EventType.MODIFIED
    assert events[1].snapshot['spec'] == 'b'


async def test_unknown_event_type_is_ignored(
        settings, context, stream, resource, namespace, assert_logs):
    stream(STREAM_WITH_UNKNOWN_EVENT)
    target = WatchTarget(resource=resource, namespace=namespace)
    events = await collect(context=context, settings=settings, target=target)

    assert len(events) == 2
    assert events[0].snapshot['spec'] == 'a'
    assert events[1].type is EventType.DELETED
    assert events[1].snapshot['spec'] == 'b'
    assert_logs([r"Ignoring an unsupported event type: .*UNKNOWN"])


async def test_error_410gone_ends_the_stream(
        settings, context, stream, resource, namespace, assert_logs, caplog):
    caplog.set_level(0)
    stream(STREAM_WITH_ERROR_410GONE)
    target = WatchTarget(resource=resource, namespace=namespace)
    events = await collect(context=context, settings=settings, target=target)

    assert len(events) == 1
    assert events[0].snapshot['spec'] == 'a'
    assert_logs([r"Restarting the watch-stream for "])


async def test_other_errors_are_yielded_as_error_events(
        settings, context, stream, resource, namespace):
    stream(STREAM_WITH_ERROR_CODE)
    target = WatchTarget(resource=resource, namespace=namespace)
    events = await collect(context=context, settings=settings, target=target)

    assert len(events) == 3
    assert events[1].type is EventType.ERROR
    assert events[1].snapshot is None
    assert events[1].error == {'code': 666}
    assert events[2].snapshot['spec'] == 'b'


async def test_bookmarks_carry_no_snapshots(
        settings, context, stream, resource, namespace):
    stream(STREAM_WITH_BOOKMARKS)
    target = WatchTarget(resource=resource, namespace=namespace)
    events = await collect(context=context, settings=settings, target=target)

    assert len(events) == 2
    assert events[0].type is EventType.BOOKMARK
    assert events[0].snapshot is None


@pytest.mark.parametrize('tail', [
    pytest.param(b'{"type": "MODIF', id='truncated'),
    pytest.param(b'{"type": "MODIFIED", "object": {"spec": "\xff"}}', id='non-utf8'),
])
async def test_garbled_lines_break_the_stream(
        settings, context, resp_mocker, aresponses, hostname, resource, namespace, tail):
    body = json.dumps(STREAM_WITH_NORMAL_EVENTS[0]).encode() + b'\n' + tail
    aresponses.add(hostname, resource.get_url(namespace=namespace), 'get',
                   resp_mocker(return_value=aresponses.Response(body=body)))
    target = WatchTarget(resource=resource, namespace=namespace)

    events = []
    stream = await open_stream(context=context, settings=settings, target=target)
    with pytest.raises(TransientDisconnect) as err:
        async for event in stream:
            events.append(event)

    assert len(events) == 1
    assert events[0].snapshot['spec'] == 'a'
    assert isinstance(err.value.__cause__, ValueError)


async def test_request_params_for_named_targets(
        settings, context, stream, resource, namespace):
    stream_mock = stream([])
    settings = dataclasses.replace(settings, watching=dataclasses.replace(
        settings.watching, server_timeout=123))
    target = WatchTarget(resource=resource, namespace=namespace, name='name1')
    await collect(context=context, settings=settings, target=target)

    assert stream_mock.call_count == 1
    query = stream_mock.call_args[0][0].query
    assert query['watch'] == 'true'
    assert query['fieldSelector'] == 'metadata.name=name1'
    assert query['allowWatchBookmarks'] == 'true'
    assert query['timeoutSeconds'] == '123'
    assert 'resourceVersion' not in query


async def test_request_params_for_labelled_targets_without_bookmarks(
        settings, context, stream, resource, namespace):
    stream_mock = stream([])
    settings = dataclasses.replace(settings, watching=dataclasses.replace(
        settings.watching, allow_bookmarks=False))
    target = WatchTarget(resource=resource, namespace=namespace, labels='app=web')
    await collect(context=context, settings=settings, target=target)

    query = stream_mock.call_args[0][0].query
    assert query['labelSelector'] == 'app=web'
    assert 'fieldSelector' not in query
    assert 'allowWatchBookmarks' not in query
    assert 'timeoutSeconds' not in query


async def test_rejected_stream_fails_on_opening(
        settings, context, resp_mocker, aresponses, hostname, resource, namespace):
    stream_mock = resp_mocker(return_value=aiohttp.web.json_response(
        {'kind': 'Status', 'code': 403, 'message': 'forbidden'}, status=403))
    aresponses.add(hostname, resource.get_url(namespace=namespace), 'get', stream_mock)
    target = WatchTarget(resource=resource, namespace=namespace)

    with pytest.raises(APIForbiddenError) as err:
        await open_stream(context=context, settings=settings, target=target)
    assert err.value.message == 'forbidden'
