"""Unit tests for LiveSync."""

import asyncio

import pytest

from conftest import HANG, WATCHED, build_payment, build_transaction, wait_for
from ledger_sync.application.live_sync import LiveState, LiveSync
from ledger_sync.domain.events import EventType
from ledger_sync.domain.events.event_types import ErrorPhase
from ledger_sync.domain.exceptions import FetchError, StreamError
from ledger_sync.infrastructure.stores import InMemoryCursorStore
from ledger_sync.utils.backoff import BackoffPolicy

NO_DELAY = BackoffPolicy(initial=0.0, max_delay=0.0, jitter=0.0)


def make_live(fake_client, event_bus, **kwargs) -> LiveSync:
    kwargs.setdefault("backoff", NO_DELAY)
    return LiveSync(fake_client, event_bus, WATCHED, **kwargs)


def with_payment(fake_client, n: int):
    tx = build_transaction(n)
    fake_client.operations[tx.hash] = [build_payment(tx, amount=str(n))]
    return tx


class TestStreaming:
    """Happy-path streaming."""

    @pytest.mark.asyncio
    async def test_publishes_payments_in_stream_order(self, fake_client, event_bus, recorded_events):
        """Each streamed payment is published once, in arrival order."""
        tx1, tx2 = with_payment(fake_client, 1), with_payment(fake_client, 2)
        fake_client.stream_scripts = [[tx1, tx2, HANG]]
        live = make_live(fake_client, event_bus)

        await live.start()
        received = recorded_events["transaction_received"]
        await wait_for(lambda: len(received) == 2)

        assert [e.record.hash for e in received] == [tx1.hash, tx2.hash]
        assert all(e.account == WATCHED for e in received)
        assert live.state is LiveState.STREAMING
        assert live.cursor == tx2.cursor
        await live.stop()

    @pytest.mark.asyncio
    async def test_starts_from_now(self, fake_client, event_bus):
        """Without a cursor the stream starts at "now"."""
        live = make_live(fake_client, event_bus)

        await live.start()
        await wait_for(lambda: live.state is LiveState.STREAMING)

        assert fake_client.stream_cursors == ["now"]
        await live.stop()

    @pytest.mark.asyncio
    async def test_state_transitions_published(self, fake_client, event_bus, recorded_events):
        """LIVE_STATE_CHANGED follows connecting → streaming → disconnected."""
        live = make_live(fake_client, event_bus)

        await live.start()
        await wait_for(lambda: live.state is LiveState.STREAMING)
        await live.stop()

        states = [e.state for e in recorded_events["live_state_changed"]]
        assert states == ["connecting", "streaming", "disconnected"]

    @pytest.mark.asyncio
    async def test_start_twice_keeps_single_stream(self, fake_client, event_bus):
        """A second start() while running is ignored."""
        live = make_live(fake_client, event_bus)

        await live.start()
        await live.start()
        await wait_for(lambda: live.state is LiveState.STREAMING)

        assert len(fake_client.stream_cursors) == 1
        await live.stop()


class TestReconnect:
    """Reconnect and resume behaviour."""

    @pytest.mark.asyncio
    async def test_resumes_from_last_delivered_cursor(self, fake_client, event_bus, recorded_events):
        """After a drop the stream reopens at the last processed transaction."""
        tx1, tx2 = with_payment(fake_client, 1), with_payment(fake_client, 2)
        fake_client.stream_scripts = [
            [tx1, StreamError("connection reset")],
            [tx2, HANG],
        ]
        live = make_live(fake_client, event_bus)

        await live.start()
        received = recorded_events["transaction_received"]
        await wait_for(lambda: len(received) == 2)

        assert fake_client.stream_cursors == ["now", tx1.cursor]
        assert [e.record.hash for e in received] == [tx1.hash, tx2.hash]
        assert "reconnecting" in [e.state for e in recorded_events["live_state_changed"]]
        assert live.stats["reconnect_count"] == 1
        await live.stop()

    @pytest.mark.asyncio
    async def test_stream_end_triggers_reconnect(self, fake_client, event_bus):
        """A stream the server closes is reopened."""
        tx1 = with_payment(fake_client, 1)
        fake_client.stream_scripts = [[tx1]]
        live = make_live(fake_client, event_bus)

        await live.start()
        await wait_for(lambda: len(fake_client.stream_cursors) == 2)

        assert fake_client.stream_cursors[1] == tx1.cursor
        await live.stop()

    @pytest.mark.asyncio
    async def test_operation_failure_keeps_cursor(self, fake_client, event_bus, recorded_events):
        """If operations cannot be fetched, the transaction is redelivered after reconnect."""
        tx1 = with_payment(fake_client, 1)
        fake_client.operation_errors[tx1.hash] = FetchError("HTTP 503")
        fake_client.stream_scripts = [[tx1, HANG], [tx1, HANG]]

        def heal(event):
            if event.state == "reconnecting":
                fake_client.operation_errors.clear()

        event_bus.subscribe(EventType.LIVE_STATE_CHANGED, heal)
        live = make_live(fake_client, event_bus)

        await live.start()
        received = recorded_events["transaction_received"]
        await wait_for(lambda: len(received) == 1)

        assert fake_client.stream_cursors == ["now", "now"]
        assert live.cursor == tx1.cursor
        assert fake_client.active_streams == 1
        await live.stop()

    @pytest.mark.asyncio
    async def test_retries_exhausted_publishes_error(self, fake_client, event_bus, recorded_events):
        """After max_retries failed attempts an ERROR event is published and the stream stops."""
        fake_client.stream_scripts = [StreamError("refused")] * 3
        live = make_live(fake_client, event_bus, max_retries=2)

        await live.start()
        errors = recorded_events["error"]
        await wait_for(lambda: len(errors) == 1)
        await wait_for(lambda: not live.is_running)

        assert len(fake_client.stream_cursors) == 3
        assert errors[0].phase is ErrorPhase.LIVE
        assert errors[0].account == WATCHED
        assert isinstance(errors[0].cause, StreamError)
        assert live.state is LiveState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_zero_retries_fails_immediately(self, fake_client, event_bus, recorded_events):
        """max_retries=0 disables reconnects."""
        fake_client.stream_scripts = [StreamError("refused")]
        live = make_live(fake_client, event_bus, max_retries=0)

        await live.start()
        await wait_for(lambda: len(recorded_events["error"]) == 1)

        assert len(fake_client.stream_cursors) == 1

    @pytest.mark.asyncio
    async def test_progress_resets_retry_budget(self, fake_client, event_bus, recorded_events):
        """Delivering a transaction resets the consecutive failure count."""
        tx1 = with_payment(fake_client, 1)
        fake_client.stream_scripts = [
            StreamError("refused"),
            [tx1, StreamError("reset")],
            [HANG],
        ]
        live = make_live(fake_client, event_bus, max_retries=1)

        await live.start()
        await wait_for(lambda: len(fake_client.stream_cursors) == 3)
        await wait_for(lambda: live.state is LiveState.STREAMING)

        assert recorded_events["error"] == []
        await live.stop()

    @pytest.mark.asyncio
    async def test_backoff_delay_used_between_attempts(self, fake_client, event_bus):
        """The reconnect delay comes from the backoff policy."""
        delays = []

        class RecordingPolicy:
            def delay(self, attempt):
                delays.append(attempt)
                return NO_DELAY.delay(attempt)

        fake_client.stream_scripts = [StreamError("a"), StreamError("b")]
        live = make_live(fake_client, event_bus, backoff=RecordingPolicy())

        await live.start()
        await wait_for(lambda: len(fake_client.stream_cursors) == 3)

        assert delays == [1, 2]
        await live.stop()


class TestStop:
    """stop() guarantees."""

    @pytest.mark.asyncio
    async def test_stop_closes_stream(self, fake_client, event_bus):
        """After stop() the stream is closed and the task finished."""
        live = make_live(fake_client, event_bus)
        await live.start()
        await wait_for(lambda: fake_client.active_streams == 1)

        await live.stop()

        assert fake_client.active_streams == 0
        assert not live.is_running
        assert live.state is LiveState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_no_events_after_stop(self, fake_client, event_bus, recorded_events):
        """Nothing is published for the account once stop() returns."""
        tx1 = with_payment(fake_client, 1)
        fake_client.stream_scripts = [[tx1, HANG]]
        live = make_live(fake_client, event_bus)

        await live.start()
        await wait_for(lambda: len(recorded_events["transaction_received"]) == 1)
        await live.stop()

        counts = {k: len(v) for k, v in recorded_events.items()}
        await asyncio.sleep(0.01)
        assert {k: len(v) for k, v in recorded_events.items()} == counts

    @pytest.mark.asyncio
    async def test_stop_during_backoff(self, fake_client, event_bus, recorded_events):
        """stop() interrupts a pending reconnect delay."""
        fake_client.stream_scripts = [StreamError("refused")]
        live = make_live(fake_client, event_bus, backoff=BackoffPolicy(initial=30.0, max_delay=30.0))

        await live.start()
        await wait_for(lambda: live.state is LiveState.RECONNECTING)
        await asyncio.wait_for(live.stop(), timeout=1.0)

        assert len(fake_client.stream_cursors) == 1
        assert recorded_events["error"] == []
        assert live.state is LiveState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_stop_from_subscriber(self, fake_client, event_bus, recorded_events):
        """A subscriber may stop the stream; later transactions are not published."""
        tx1, tx2 = with_payment(fake_client, 1), with_payment(fake_client, 2)
        fake_client.stream_scripts = [[tx1, tx2, HANG]]
        live = make_live(fake_client, event_bus)

        async def stop_on_first(event):
            await live.stop()

        event_bus.subscribe(EventType.TRANSACTION_RECEIVED, stop_on_first)

        await live.start()
        await wait_for(lambda: live.state is LiveState.DISCONNECTED)
        await event_bus.drain()

        assert [e.record.hash for e in recorded_events["transaction_received"]] == [tx1.hash]
        assert not live.is_running

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, fake_client, event_bus, recorded_events):
        """stop() without start, or twice, is harmless."""
        live = make_live(fake_client, event_bus)
        await live.stop()

        await live.start()
        await live.stop()
        await live.stop()

        states = [e.state for e in recorded_events["live_state_changed"]]
        assert states.count("disconnected") == 1


class TestCursorStore:
    """Cursor persistence."""

    @pytest.mark.asyncio
    async def test_resumes_from_stored_cursor(self, fake_client, event_bus):
        """A stored cursor is used when start() gets none."""
        store = InMemoryCursorStore()
        store.set(WATCHED, "777")
        live = make_live(fake_client, event_bus, cursor_store=store)

        await live.start()
        await wait_for(lambda: live.state is LiveState.STREAMING)

        assert fake_client.stream_cursors == ["777"]
        await live.stop()

    @pytest.mark.asyncio
    async def test_explicit_cursor_wins(self, fake_client, event_bus):
        """An explicit cursor overrides the stored one."""
        store = InMemoryCursorStore()
        store.set(WATCHED, "777")
        live = make_live(fake_client, event_bus, cursor_store=store)

        await live.start(cursor="42")
        await wait_for(lambda: live.state is LiveState.STREAMING)

        assert fake_client.stream_cursors == ["42"]
        await live.stop()

    @pytest.mark.asyncio
    async def test_cursor_persisted_after_processing(self, fake_client, event_bus, recorded_events):
        """The store holds the cursor of the last processed transaction."""
        store = InMemoryCursorStore()
        tx1 = with_payment(fake_client, 1)
        fake_client.stream_scripts = [[tx1, HANG]]
        live = make_live(fake_client, event_bus, cursor_store=store)

        await live.start()
        await wait_for(lambda: len(recorded_events["transaction_received"]) == 1)

        assert store.get(WATCHED) == tx1.cursor
        await live.stop()


class TestValidation:
    def test_negative_max_retries_rejected(self, fake_client, event_bus):
        """max_retries must be None or >= 0."""
        with pytest.raises(ValueError):
            LiveSync(fake_client, event_bus, WATCHED, max_retries=-1)
