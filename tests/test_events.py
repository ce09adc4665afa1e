"""
Structured event emission and event store tests.
"""
import json
from datetime import datetime
from io import StringIO

from observability.event_store import EventStore, event_store
from observability.events import Component, EventEmitter, Severity


class TestEventFormat:
    """Envelope fields of every emitted event."""

    def test_required_fields(self, capsys):
        """Test that all envelope fields are present."""
        emitter = EventEmitter(Component.ENGINE)
        emitter.emit("turn.started", session_id="koe_123", severity=Severity.INFO, correlation_id="turn_1")

        event = json.loads(capsys.readouterr().out.strip())

        for key in ("ts", "session_id", "component", "event_type", "severity", "correlation_id", "pii"):
            assert key in event
        assert event["session_id"] == "koe_123"
        assert event["component"] == "engine"
        assert event["event_type"] == "turn.started"
        assert event["severity"] == "info"
        assert event["correlation_id"] == "turn_1"

    def test_timestamp_format(self, capsys):
        """Test that timestamp is ISO8601."""
        EventEmitter(Component.ENGINE).emit("turn.started", session_id="koe_123")

        event = json.loads(capsys.readouterr().out.strip())
        datetime.fromisoformat(event["ts"].replace("Z", "+00:00"))

    def test_correlation_defaults_to_session(self, capsys):
        """Events outside a turn correlate on the session id."""
        EventEmitter(Component.VOICE_CONTROLLER).emit("voice.capture_started", session_id="koe_123")

        event = json.loads(capsys.readouterr().out.strip())
        assert event["correlation_id"] == "koe_123"

    def test_default_pii_block(self, capsys):
        """Test that events declare no PII by default."""
        EventEmitter(Component.TOOL_DISPATCHER).emit("tool.executed", session_id="koe_123")

        event = json.loads(capsys.readouterr().out.strip())
        assert event["pii"] == {"contains_pii": False, "fields": [], "handling": "none"}

    def test_extra_fields(self, capsys):
        """Test that event-specific fields are merged into the event."""
        EventEmitter(Component.TOOL_DISPATCHER).emit(
            "tool.executed",
            session_id="koe_123",
            tool="create_thought",
            outcome="ok",
            latency_ms=3,
        )

        event = json.loads(capsys.readouterr().out.strip())
        assert event["tool"] == "create_thought"
        assert event["outcome"] == "ok"
        assert event["latency_ms"] == 3

    def test_custom_stream(self):
        """Test that an explicit stream receives the JSON line."""
        buffer = StringIO()
        EventEmitter(Component.CONTROL_SURFACE, stream=buffer).emit("control.command_received", session_id="s")

        assert json.loads(buffer.getvalue())["event_type"] == "control.command_received"

    def test_emitted_events_are_stored(self, capsys):
        """Test that emit() also records the event in the global store."""
        EventEmitter(Component.ENGINE).emit("turn.completed", session_id="koe_123", tool_calls=2)

        stored = event_store.query(session_id="koe_123")
        assert len(stored) == 1
        assert stored[0]["event_type"] == "turn.completed"
        assert stored[0]["tool_calls"] == 2


class TestEventStore:
    """Bounded in-memory store."""

    def _event(self, event_type, session_id="s1", correlation_id=None, component="engine"):
        return {
            "ts": "2026-01-01T00:00:00+00:00",
            "session_id": session_id,
            "component": component,
            "event_type": event_type,
            "severity": "info",
            "correlation_id": correlation_id or session_id,
        }

    def test_query_filters(self):
        """Test filtering by correlation id, event type and component."""
        store = EventStore()
        store.store(self._event("turn.started", correlation_id="turn_1"))
        store.store(self._event("tool.executed", correlation_id="turn_1", component="tool_dispatcher"))
        store.store(self._event("turn.started", correlation_id="turn_2"))

        assert len(store.query(correlation_id="turn_1")) == 2
        assert len(store.query(event_type="turn.started")) == 2
        assert len(store.query(component="tool_dispatcher")) == 1
        assert store.query(session_id="other") == []

    def test_query_limit_returns_oldest_first(self):
        store = EventStore()
        for i in range(5):
            store.store(self._event(f"e{i}"))

        assert [e["event_type"] for e in store.query(limit=2)] == ["e0", "e1"]

    def test_bounded(self):
        """Test that the oldest events fall off when full."""
        store = EventStore(max_events=3)
        for i in range(5):
            store.store(self._event(f"e{i}"))

        assert [e["event_type"] for e in store.query()] == ["e2", "e3", "e4"]
        stats = store.get_stats()
        assert stats["total_events"] == 3
        assert stats["max_events"] == 3

    def test_clear(self):
        store = EventStore()
        store.store(self._event("e"))
        store.clear()

        assert store.get_stats()["total_events"] == 0
        assert store.get_stats()["oldest_event_ts"] is None
