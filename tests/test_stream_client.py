# Ariwa - Vote Stream Client Tests
"""
Unit tests for the VoteStreamClient state machine.

Tests cover:
- Handshake headers and marker resolution
- Frame classification and marker tracking
- Close handling and reconnection policy
- Intentional disconnect, timeout and stale callbacks

No sockets are opened: WebSocketApp is replaced with a mock and the handle
thread is not started.
"""

import json
import threading
from unittest.mock import MagicMock, Mock, patch

import pytest

from ariwa.errors import DisconnectTimeoutError, FrameError
from ariwa.stream_client import ConnectionState, VoteStreamClient


@pytest.fixture
def ws_app():
    """Patch WebSocketApp; each construction returns a fresh mock handle."""
    with patch("ariwa.stream_client.websocket.WebSocketApp") as app:
        app.side_effect = lambda *args, **kwargs: MagicMock(name="WebSocketApp")
        yield app


@pytest.fixture
def no_thread():
    with patch.object(VoteStreamClient, "_start") as start:
        yield start


@pytest.fixture
def timer():
    """Patch threading.Timer used for reconnect scheduling."""
    with patch("ariwa.stream_client.threading.Timer") as timer_cls:
        yield timer_cls


@pytest.fixture
def client(ws_app, no_thread):
    return VoteStreamClient(token="ws-token", name="TestClient")


def listen(client, *events):
    """Attach a Mock listener for each event name."""
    listeners = {}
    for event in events:
        listeners[event] = Mock()
        client.events.on(event, listeners[event])
    return listeners


def open_client(client, marker=None):
    client.connect(marker)
    client._on_open(client._generation, client.ws)
    return client.ws


class TestConnect:
    """Tests for connect() and the handshake headers."""

    def test_headers_without_marker(self, client, ws_app):
        client.connect()

        kwargs = ws_app.call_args.kwargs
        assert ws_app.call_args.args[0] == "wss://api.websockets-topgg.com/v0/websocket"
        assert kwargs["header"] == {"Authorization": "ws-token", "name": "TestClient"}
        assert client.state == ConnectionState.OPENING

    def test_marker_override_in_headers(self, client, ws_app):
        client.connect(1700000000123)

        assert ws_app.call_args.kwargs["header"]["lastMessageTimestamp"] == "1700000000123"

    def test_persisted_marker_in_headers(self, ws_app, no_thread, tmp_path):
        """Test that the checkpoint file feeds the handshake."""
        path = tmp_path / "ts.json"
        path.write_text(json.dumps({"lastMessageTimestamp": 1700000000000}))
        client = VoteStreamClient(token="t", name="n", persist_path=path)

        client.connect()

        assert ws_app.call_args.kwargs["header"]["lastMessageTimestamp"] == "1700000000000"
        assert client.last_message_timestamp == 1700000000000

    def test_override_beats_persisted_marker(self, ws_app, no_thread, tmp_path):
        path = tmp_path / "ts.json"
        path.write_text(json.dumps({"lastMessageTimestamp": 1}))
        client = VoteStreamClient(token="t", name="n", persist_path=path)

        client.connect(2)

        assert ws_app.call_args.kwargs["header"]["lastMessageTimestamp"] == "2"

    def test_connect_while_open_is_ignored(self, client, ws_app):
        open_client(client)

        client.connect()

        assert ws_app.call_count == 1

    def test_connect_resets_attempts(self, client):
        client.policy.attempts = 3
        client.connect()
        assert client.policy.attempts == 0


class TestOnOpen:
    """Tests for successful opens."""

    def test_open_transitions_and_emits(self, client):
        listeners = listen(client, "open")
        client.connect()
        client.policy.attempts = 4

        client._on_open(client._generation, client.ws)

        assert client.state == ConnectionState.OPEN
        assert client.is_connected()
        assert client.policy.attempts == 0
        assert client.last_connect_time is not None
        listeners["open"].assert_called_once_with()

    def test_stale_open_closes_handle(self, client):
        client.connect()
        stale = Mock()

        client._on_open(client._generation - 1, stale)

        stale.close.assert_called_once()
        assert client.state == ConnectionState.OPENING


class TestHandleMessage:
    """Tests for frame classification."""

    @pytest.mark.parametrize(
        "op,event",
        [(3, "ready"), (10, "vote"), (11, "test"), (12, "reminder")],
    )
    def test_known_ops_emit_one_event(self, client, op, event):
        listeners = listen(client, "ready", "vote", "test", "reminder", "unknownOp")

        client._handle_message(json.dumps({"op": op, "d": {"user": {"id": "1"}}, "ts": 100}))

        listeners[event].assert_called_once_with({"user": {"id": "1"}, "ts": 100})
        for name, listener in listeners.items():
            if name != event:
                listener.assert_not_called()

    def test_ready_payload_without_ts(self, client):
        listeners = listen(client, "ready")
        payload = {"name": "TestClient", "connectionId": "c1", "entityId": "e1"}

        client._handle_message(json.dumps({"op": 3, "d": payload}))

        listeners["ready"].assert_called_once_with(payload)

    def test_unknown_op_emits_raw_code_and_payload(self, client):
        listeners = listen(client, "unknownOp", "vote")

        client._handle_message(json.dumps({"op": 99, "d": {"x": 1}}))

        listeners["unknownOp"].assert_called_once_with(99, {"x": 1})
        listeners["vote"].assert_not_called()

    @pytest.mark.parametrize("raw", ["not json", '{"op": "10", "d": {}}', '{"op": 10}', b"\xff\xfe"])
    def test_invalid_frame_emits_error(self, client, raw):
        listeners = listen(client, "error", "vote", "unknownOp")

        client._handle_message(raw)

        listeners["error"].assert_called_once()
        assert isinstance(listeners["error"].call_args.args[0], FrameError)
        listeners["vote"].assert_not_called()
        listeners["unknownOp"].assert_not_called()

    def test_bytes_frame_accepted(self, client):
        listeners = listen(client, "vote")

        client._handle_message(b'{"op": 10, "d": {}, "ts": 1}')

        listeners["vote"].assert_called_once_with({"ts": 1})

    def test_ts_advances_marker(self, client):
        client._handle_message(json.dumps({"op": 10, "d": {}, "ts": 500}))
        assert client.last_message_timestamp == 500

    def test_marker_never_regresses(self, client):
        listeners = listen(client, "vote")
        client._handle_message(json.dumps({"op": 10, "d": {}, "ts": 500}))

        client._handle_message(json.dumps({"op": 10, "d": {}, "ts": 400}))

        assert client.last_message_timestamp == 500
        assert listeners["vote"].call_count == 2

    def test_frame_without_ts_keeps_marker(self, client):
        client._handle_message(json.dumps({"op": 10, "d": {}, "ts": 500}))
        client._handle_message(json.dumps({"op": 3, "d": {}}))
        assert client.last_message_timestamp == 500

    def test_marker_persisted(self, ws_app, no_thread, tmp_path):
        path = tmp_path / "ts.json"
        client = VoteStreamClient(token="t", name="n", persist_path=path)

        client._handle_message(json.dumps({"op": 10, "d": {}, "ts": 1700000000999}))
        client.checkpoint.flush()

        assert json.loads(path.read_text()) == {"lastMessageTimestamp": 1700000000999}

    def test_persist_failure_does_not_block_dispatch(self, ws_app, no_thread, tmp_path):
        client = VoteStreamClient(token="t", name="n", persist_path=tmp_path / "nope" / "ts.json")
        listeners = listen(client, "vote", "error")

        client._handle_message(json.dumps({"op": 10, "d": {}, "ts": 1}))
        client.checkpoint.flush()

        listeners["vote"].assert_called_once()
        listeners["error"].assert_not_called()

    def test_stale_message_ignored(self, client):
        listeners = listen(client, "vote")
        client.connect()

        client._on_message(client._generation - 1, Mock(), json.dumps({"op": 10, "d": {}}))

        listeners["vote"].assert_not_called()


class TestOnError:
    def test_error_emitted_without_reconnect(self, client, timer):
        listeners = listen(client, "error")
        open_client(client)
        error = ConnectionResetError("reset")

        client._on_error(client._generation, client.ws, error)

        listeners["error"].assert_called_once_with(error)
        timer.assert_not_called()
        assert client.state == ConnectionState.OPEN

    def test_error_from_released_handle_ignored(self, client):
        ws = open_client(client)
        generation = client._generation
        ws.close.side_effect = lambda *a, **k: client._on_close(generation, ws, 1000, "")
        client.disconnect()
        listeners = listen(client, "error")

        client._on_error(generation, ws, ConnectionResetError("late"))

        listeners["error"].assert_not_called()


class TestOnClose:
    """Tests for close handling and the reconnection decision."""

    def test_abnormal_close_schedules_reconnect(self, client, timer):
        listeners = listen(client, "disconnected")
        open_client(client)

        client._on_close(client._generation, client.ws, 1006, "gone")

        listeners["disconnected"].assert_called_once_with(1006, "gone")
        timer.assert_called_once()
        delay = timer.call_args.args[0]
        assert 1.0 <= delay <= 2.0
        timer.return_value.start.assert_called_once()
        assert client.policy.attempts == 1
        assert client.state == ConnectionState.CLOSED

    def test_normal_close_never_reconnects(self, client, timer):
        open_client(client)
        assert client.auto_reconnect is True

        client._on_close(client._generation, client.ws, 1000, "bye")

        timer.assert_not_called()
        assert client.state == ConnectionState.CLOSED

    def test_auto_reconnect_disabled(self, ws_app, no_thread, timer):
        client = VoteStreamClient(token="t", name="n", auto_reconnect=False)
        open_client(client)

        client._on_close(client._generation, client.ws, 1006, "")

        timer.assert_not_called()

    def test_close_without_code_reconnects(self, client, timer):
        client.connect()

        client._on_close(client._generation, client.ws, None, None)

        timer.assert_called_once()

    def test_bytes_reason_decoded(self, client, timer):
        listeners = listen(client, "disconnected")
        open_client(client)

        client._on_close(client._generation, client.ws, 4000, b"kicked")

        listeners["disconnected"].assert_called_once_with(4000, "kicked")

    def test_stops_after_max_attempts(self, ws_app, no_thread, timer):
        client = VoteStreamClient(token="t", name="n", max_attempts=2)
        client.connect()

        for _ in range(3):
            client._on_close(client._generation, client.ws, 1006, "")
            if timer.call_count and client.state == ConnectionState.CLOSED:
                reconnect_fn, args = timer.call_args.args[1], timer.call_args.kwargs["args"]
                reconnect_fn(*args)

        assert timer.call_count == 2
        assert client.state == ConnectionState.CLOSED

    def test_delays_grow(self, client, timer):
        client.connect()
        delays = []
        for _ in range(4):
            client._on_close(client._generation, client.ws, 1006, "")
            delays.append(timer.call_args.args[0])
            timer.call_args.args[1](*timer.call_args.kwargs["args"])

        for attempt, delay in enumerate(delays, start=1):
            base = min(1.5 ** (attempt - 1), 30.0)
            assert base <= delay <= base + 1.0

    def test_reconnect_fire_opens_new_handle(self, client, ws_app, timer):
        listeners = listen(client, "open")
        open_client(client)
        first = client.ws

        client._on_close(client._generation, first, 1006, "")
        timer.call_args.args[1](*timer.call_args.kwargs["args"])

        assert ws_app.call_count == 2
        assert client.ws is not first
        assert client.state == ConnectionState.OPENING

        client._on_open(client._generation, client.ws)
        assert client.policy.attempts == 0
        assert listeners["open"].call_count == 2

    def test_reconnect_keeps_latest_marker(self, client, ws_app, timer):
        open_client(client, 10)
        client._handle_message(json.dumps({"op": 10, "d": {}, "ts": 20}))

        client._on_close(client._generation, client.ws, 1006, "")
        timer.call_args.args[1](*timer.call_args.kwargs["args"])

        assert ws_app.call_args.kwargs["header"]["lastMessageTimestamp"] == "20"

    def test_stale_close_ignored(self, client, timer):
        """Test that a close from a superseded handle does not touch state."""
        listeners = listen(client, "disconnected")
        open_client(client)

        client._on_close(client._generation - 1, Mock(), 1006, "old")

        listeners["disconnected"].assert_not_called()
        timer.assert_not_called()
        assert client.state == ConnectionState.OPEN


class TestDisconnect:
    """Tests for intentional disconnects."""

    def test_disconnect_when_idle_returns(self, client):
        client.disconnect()
        assert client.state == ConnectionState.IDLE

    def test_disconnect_closes_gracefully(self, client, timer):
        listeners = listen(client, "disconnected")
        ws = open_client(client)
        generation = client._generation

        def server_close(*args, **kwargs):
            # Server answers with an abnormal code; still no reconnect
            client._on_close(generation, ws, 1006, "closing")

        ws.close.side_effect = server_close

        client.disconnect(timeout=1.0)

        ws.close.assert_any_call(status=1000, reason=b"Client disconnect")
        listeners["disconnected"].assert_called_once_with(1006, "closing")
        timer.assert_not_called()
        assert client.state == ConnectionState.CLOSED
        assert client.ws is None
        assert ws.on_message is None
        assert ws.on_close is None

    def test_disconnect_timeout_raises(self, client):
        open_client(client)

        with pytest.raises(DisconnectTimeoutError):
            client.disconnect(timeout=0.05)

        assert client.state == ConnectionState.CLOSED
        assert client.ws is None

    def test_disconnect_cancels_pending_reconnect(self, client, ws_app, timer):
        open_client(client)
        client._on_close(client._generation, client.ws, 1006, "")
        pending = timer.return_value
        reconnect_fn, args = timer.call_args.args[1], timer.call_args.kwargs["args"]

        client.disconnect()
        reconnect_fn(*args)

        pending.cancel.assert_called_once()
        assert ws_app.call_count == 1
        assert client.state == ConnectionState.CLOSED

    def test_late_close_after_disconnect_ignored(self, client, timer):
        ws = open_client(client)
        generation = client._generation
        ws.close.side_effect = lambda *a, **k: client._on_close(generation, ws, 1000, "")
        client.disconnect()
        listeners = listen(client, "disconnected")

        client._on_close(generation, ws, 1006, "late")

        listeners["disconnected"].assert_not_called()
        timer.assert_not_called()

    def test_connect_after_disconnect(self, client, ws_app):
        ws = open_client(client)
        generation = client._generation
        ws.close.side_effect = lambda *a, **k: client._on_close(generation, ws, 1000, "")
        client.disconnect()

        client.connect()

        assert ws_app.call_count == 2
        assert client.state == ConnectionState.OPENING

    def test_disconnect_during_open_wins(self, client):
        """Test that a disconnect racing the open callback is not undone by it."""
        client.connect()
        ws = client.ws
        generation = client._generation
        ws.close.side_effect = lambda *a, **k: client._on_close(generation, ws, 1000, "")
        real_is_current = client._is_current
        racers = []

        def is_current_then_disconnect(gen):
            current = real_is_current(gen)
            if not racers:
                racer = threading.Thread(target=client.disconnect, args=(1.0,))
                racers.append(racer)
                racer.start()
                racer.join(0.2)
            return current

        with patch.object(client, "_is_current", side_effect=is_current_then_disconnect):
            client._on_open(generation, ws)
            racers[0].join(2.0)

        assert not racers[0].is_alive()
        assert client.state == ConnectionState.CLOSED
        assert client.ws is None
        assert not client.is_connected()

    def test_connect_allowed_after_racing_disconnect(self, client, ws_app):
        client.connect()
        ws = client.ws
        generation = client._generation
        client.disconnect()

        client._on_open(generation, ws)
        client.connect()

        ws.close.assert_called()
        assert ws_app.call_count == 2
        assert client.state == ConnectionState.OPENING
