# =============================================================================
# File: tests/test_event_dispatcher.py
# Description: Subscription lifecycle, routing and failure isolation
# =============================================================================

import asyncio

import pytest

from novel_sync.common.exceptions.exceptions import SubscriptionError
from novel_sync.infra.event_dispatch import dispatcher as dispatcher_module
from novel_sync.infra.event_dispatch.dispatcher import LedgerEventDispatcher
from novel_sync.infra.event_dispatch.handler_registry import ProjectionHandlerRegistry, projection_handler
from tests.fakes.async_utils import wait_until


class RecordingProjector:
    """Captures handled events; can be told to fail or block."""

    def __init__(self):
        self.seen = []
        self.fail_on = set()
        self.gate = None

    @projection_handler("CreateNovel")
    async def on_create_novel(self, event):
        if self.gate is not None:
            await self.gate.wait()
        if event.payload.story_outline in self.fail_on:
            raise RuntimeError(f"boom on {event.payload.story_outline}")
        self.seen.append(("CreateNovel", event.payload.story_outline))

    @projection_handler("UpdateUserCredit")
    async def on_update_user_credit(self, event):
        self.seen.append(("UpdateUserCredit", event.payload.user_id))


@pytest.fixture
def projector():
    return RecordingProjector()


@pytest.fixture
def registry(projector):
    registry = ProjectionHandlerRegistry()
    registry.register_projector(projector)
    return registry


async def _stop(dispatcher):
    dispatcher.stop()
    await dispatcher.wait_stopped(timeout=2)


@pytest.mark.asyncio
async def test_events_routed_in_order(fake_ledger, registry, projector):
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()

    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "first"})
    fake_ledger.emit_raw("UpdateUserCredit", {"userId": "u1", "credit": 5})
    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "second"})

    await wait_until(lambda: len(projector.seen) == 3)
    assert projector.seen == [
        ("CreateNovel", "first"),
        ("UpdateUserCredit", "u1"),
        ("CreateNovel", "second"),
    ]
    assert dispatcher.last_block == 3
    await _stop(dispatcher)


@pytest.mark.asyncio
async def test_unknown_event_does_not_stop_stream(fake_ledger, registry, projector):
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()

    fake_ledger.emit_raw("TransferAsset", {"id": "a1"})
    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "after-unknown"})

    await wait_until(lambda: projector.seen == [("CreateNovel", "after-unknown")])
    assert not dispatcher.stopped
    assert dispatcher.events_received == 2
    await _stop(dispatcher)


@pytest.mark.asyncio
async def test_handler_failure_is_swallowed(fake_ledger, registry, projector):
    projector.fail_on.add("bad")
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()

    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "bad"})
    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "good"})

    await wait_until(lambda: projector.seen == [("CreateNovel", "good")])
    assert dispatcher.events_failed == 1
    assert dispatcher.events_handled == 1
    assert dispatcher.last_error is None
    await _stop(dispatcher)


@pytest.mark.asyncio
async def test_malformed_payload_is_skipped(fake_ledger, registry, projector):
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()

    fake_ledger.emit_raw("CreateNovel", b"\x00not-json")
    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "valid"})

    await wait_until(lambda: projector.seen == [("CreateNovel", "valid")])
    assert dispatcher.events_failed == 1
    await _stop(dispatcher)


@pytest.mark.asyncio
async def test_overflowing_number_does_not_stop_stream(fake_ledger, registry, projector):
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()

    fake_ledger.emit_raw("UpdateUserCredit", b'{"userId": "u1", "credit": 1e999}')
    fake_ledger.emit_raw("UpdateUserCredit", {"userId": "u2", "credit": 3})

    await wait_until(lambda: ("UpdateUserCredit", "u2") in projector.seen)
    assert projector.seen[0] == ("UpdateUserCredit", "u1")
    assert not dispatcher.stopped
    await _stop(dispatcher)


@pytest.mark.asyncio
async def test_unexpected_decode_error_does_not_stop_stream(fake_ledger, registry, projector, monkeypatch):
    real_decode = dispatcher_module.decode_ledger_event

    def decode(event):
        if event.block_number == 1:
            raise OverflowError("cannot convert float infinity to integer")
        return real_decode(event)

    monkeypatch.setattr(dispatcher_module, "decode_ledger_event", decode)
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()

    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "broken"})
    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "valid"})

    await wait_until(lambda: projector.seen == [("CreateNovel", "valid")])
    assert dispatcher.events_failed == 1
    assert dispatcher.last_error is None
    assert not dispatcher.stopped
    await _stop(dispatcher)


@pytest.mark.asyncio
async def test_subscription_open_failure_raises(fake_ledger, registry):
    fake_ledger.configure_subscribe_failure(ConnectionError("peer unreachable"))
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)

    with pytest.raises(SubscriptionError):
        await dispatcher.start()

    assert fake_ledger.subscribe_calls == [None]
    assert dispatcher.stopped


@pytest.mark.asyncio
async def test_stop_is_observed_between_deliveries(fake_ledger, registry, projector):
    projector.gate = asyncio.Event()
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()

    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "in-flight"})
    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "queued"})
    await wait_until(lambda: dispatcher.events_received == 1)

    # Stop while the first handler is blocked: it must still complete
    dispatcher.stop()
    await asyncio.sleep(0.01)
    assert not dispatcher.stopped

    projector.gate.set()
    await dispatcher.wait_stopped(timeout=2)

    assert projector.seen == [("CreateNovel", "in-flight")]
    assert dispatcher.events_received == 1


@pytest.mark.asyncio
async def test_stop_while_idle(fake_ledger, registry):
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()
    assert not dispatcher.stopped

    await _stop(dispatcher)
    assert dispatcher.stopped
    assert dispatcher.last_error is None


@pytest.mark.asyncio
async def test_feed_failure_recorded_as_last_error(fake_ledger, registry):
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()

    fake_ledger.break_feed(ConnectionResetError("stream reset"))
    await dispatcher.wait_stopped(timeout=2)

    assert isinstance(dispatcher.last_error, SubscriptionError)


@pytest.mark.asyncio
async def test_feed_end_stops_dispatcher(fake_ledger, registry):
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()

    fake_ledger.end_feed()
    await dispatcher.wait_stopped(timeout=2)
    assert dispatcher.last_error is None


@pytest.mark.asyncio
async def test_replay_from_start_block_with_filter(fake_ledger, registry, projector):
    fake_ledger.emit_raw("CreateNovel", {"storyOutline": "old"})
    fake_ledger.emit_raw("UpdateUserCredit", {"userId": "u-old"})

    dispatcher = LedgerEventDispatcher(fake_ledger, registry, start_block=0, event_names=["UpdateUserCredit"])
    await dispatcher.start()

    await wait_until(lambda: dispatcher.events_received == 2)
    assert fake_ledger.subscribe_calls == [0]
    assert projector.seen == [("UpdateUserCredit", "u-old")]
    await _stop(dispatcher)


@pytest.mark.asyncio
async def test_start_twice_is_noop(fake_ledger, registry):
    dispatcher = LedgerEventDispatcher(fake_ledger, registry)
    await dispatcher.start()
    await dispatcher.start()

    assert len(fake_ledger.subscribe_calls) == 1
    await _stop(dispatcher)
