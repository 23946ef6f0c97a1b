import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest

from kwatch._cogs.clients.errors import APIForbiddenError
from kwatch._cogs.structs.bodies import Body
from kwatch._cogs.structs.events import ChangeEvent, EventType
from kwatch._core.intents.errors import WatchConnectionError
from kwatch._core.intents.sessions import WatchSession
from kwatch._core.reactor.dispatching import Handlers, dispatch, watch
from kwatch._core.reactor.existence import Verdict


def obj(name='name1', **status):
    return {'metadata': {'name': name, 'namespace': 'ns'}, 'status': status}


@pytest.fixture()
def handlers():
    return Handlers(on_add=Mock(), on_modify=Mock(), on_delete=Mock())


async def run_watch(api, target, settings, **callbacks):
    session = WatchSession()
    task = asyncio.create_task(watch(api, target, settings=settings, session=session, **callbacks))
    await asyncio.wait_for(api.exhausted.wait(), timeout=1)
    session.cancel()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.parametrize('type, verdict, expected', [
    ('ADDED', Verdict.DELIVER, 'on_add'),
    ('ADDED', Verdict.SUPPRESS, None),
    ('MODIFIED', Verdict.DELIVER, 'on_modify'),
    ('DELETED', Verdict.DELIVER, 'on_delete'),
])
async def test_routing_of_snapshot_events(handlers, type, verdict, expected):
    body = Body(obj())
    await dispatch(ChangeEvent(type=EventType(type), snapshot=body), verdict, handlers)
    for name in ['on_add', 'on_modify', 'on_delete']:
        fn = getattr(handlers, name)
        if name == expected:
            assert fn.call_count == 1
            assert fn.call_args[0][0] is body
        else:
            assert not fn.called


async def test_bookmarks_are_noops(handlers, caplog):
    caplog.set_level(logging.DEBUG)
    await dispatch(ChangeEvent(type=EventType.BOOKMARK), Verdict.DELIVER, handlers)
    assert not handlers.on_add.called
    assert not handlers.on_modify.called
    assert not handlers.on_delete.called


async def test_errors_are_reported_only(handlers, assert_logs):
    event = ChangeEvent(type=EventType.ERROR, error={'code': 500, 'message': 'oops'})
    await dispatch(event, Verdict.DELIVER, handlers)
    assert not handlers.on_add.called
    assert not handlers.on_modify.called
    assert not handlers.on_delete.called
    assert_logs([r"Received an error from the watch-stream: .*oops"])


async def test_missing_handlers_are_skipped():
    event = ChangeEvent(type=EventType.MODIFIED, snapshot=Body(obj()))
    await dispatch(event, Verdict.DELIVER, Handlers())


async def test_async_handlers_are_awaited():
    on_modify = AsyncMock()
    event = ChangeEvent(type=EventType.MODIFIED, snapshot=Body(obj()))
    await dispatch(event, Verdict.DELIVER, Handlers(on_modify=on_modify))
    assert on_modify.await_count == 1


async def test_preexisting_objects_are_never_reported_as_added(
        fake_api, settings, target, handlers):
    fake_api.feed_state([obj()])
    fake_api.feed_stream([{'type': 'ADDED', 'object': obj()}])

    await run_watch(fake_api, target, settings, on_add=handlers.on_add,
                    on_modify=handlers.on_modify, on_delete=handlers.on_delete)

    assert not handlers.on_add.called
    assert not handlers.on_modify.called
    assert not handlers.on_delete.called


async def test_new_objects_are_reported_as_added(
        fake_api, settings, target, handlers):
    fake_api.feed_state([])
    fake_api.feed_stream([{'type': 'ADDED', 'object': obj()}])

    await run_watch(fake_api, target, settings, on_add=handlers.on_add)

    assert handlers.on_add.call_count == 1
    assert handlers.on_add.call_args[0][0].name == 'name1'


async def test_reconnects_cause_no_extra_callbacks(
        fake_api, settings, target, handlers):
    # 5 idle timeouts with the replayed additions, and no actual changes.
    fake_api.feed_state([obj()])
    fake_api.feed_stream(*[[{'type': 'ADDED', 'object': obj()}] for _ in range(5)])
    fake_api.feed_stream([
        {'type': 'ADDED', 'object': obj()},
        {'type': 'MODIFIED', 'object': obj(x=1)},
    ])

    await run_watch(fake_api, target, settings, on_add=handlers.on_add,
                    on_modify=handlers.on_modify, on_delete=handlers.on_delete)

    assert fake_api.subscribe_calls == 7  # 6 scripted + 1 blocking.
    assert fake_api.relist_calls == 7
    assert handlers.on_add.call_count == 0
    assert handlers.on_modify.call_count == 1
    assert handlers.on_delete.call_count == 0


async def test_recreated_objects_are_reported_as_deleted_and_added(
        fake_api, settings, target, handlers):
    calls = []
    fake_api.feed_state([obj()])
    fake_api.feed_stream([
        {'type': 'DELETED', 'object': obj()},
        {'type': 'ADDED', 'object': obj()},
    ])

    await run_watch(fake_api, target, settings,
                    on_add=lambda body: calls.append('add'),
                    on_delete=lambda body: calls.append('delete'))

    assert calls == ['delete', 'add']


async def test_events_are_delivered_in_order(fake_api, settings, target):
    seen = []
    fake_api.feed_state([obj()])
    fake_api.feed_stream([{'type': 'MODIFIED', 'object': obj(x=i)} for i in range(10)])

    await run_watch(fake_api, target, settings, on_modify=lambda body: seen.append(body.status['x']))

    assert seen == list(range(10))


async def test_callback_errors_are_propagated(fake_api, settings, target):
    fake_api.feed_state([])
    fake_api.feed_stream([{'type': 'ADDED', 'object': obj()}])

    with pytest.raises(ZeroDivisionError):
        await watch(fake_api, target, settings=settings, on_add=lambda body: 1 / 0)


async def test_initial_failure_is_propagated(fake_api, settings, target):
    fake_api.feed_state(APIForbiddenError(None, status=403))

    with pytest.raises(WatchConnectionError):
        await watch(fake_api, target, settings=settings)


async def test_cancelled_session_ends_the_watch_normally(fake_api, settings, target):
    session = WatchSession()
    session.cancel()
    await asyncio.wait_for(watch(fake_api, target, settings=settings, session=session), timeout=1)
    assert fake_api.subscribe_calls == 0
    assert not session.active


async def test_session_is_released_after_the_watch(fake_api, settings, target):
    session = WatchSession()
    task = asyncio.create_task(watch(fake_api, target, settings=settings, session=session))
    await asyncio.wait_for(fake_api.exhausted.wait(), timeout=1)
    assert session.active
    session.cancel()
    await asyncio.wait_for(task, timeout=1)
    assert not session.active
