"""
Structured JSON event emission (shared).

Every observable engine transition (turn lifecycle, tool execution, undo,
voice mode changes) goes out as one JSON line on stdout and is kept in the
in-memory event store for the control surface read API.

Events never carry transcript or document content, only lengths and counts.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .event_store import event_store


class Component(str, Enum):
    """Event sources."""

    ENGINE = "engine"
    VOICE_CONTROLLER = "voice_controller"
    TOOL_DISPATCHER = "tool_dispatcher"
    CONTROL_SURFACE = "control_surface"


class Severity(str, Enum):
    """Event severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


DEFAULT_PII = {"contains_pii": False, "fields": [], "handling": "none"}


class EventEmitter:
    """Emits structured JSON events."""

    def __init__(self, component: Component, *, stream=None):
        self.component = component
        self._stream = stream

    def emit(
        self,
        event_type: str,
        session_id: str,
        severity: Severity = Severity.INFO,
        correlation_id: Optional[str] = None,
        pii: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Emit one event.

        Args:
            event_type: Stable dotted event name (e.g. "turn.started")
            session_id: Engine session identifier
            severity: Event severity level
            correlation_id: Turn ID when the event belongs to a turn
            pii: PII metadata dict with contains_pii, fields, handling
            **kwargs: Event-specific fields

        Returns the emitted event dict.
        """
        event: Dict[str, Any] = dict(
            ts=datetime.now(timezone.utc).isoformat(),
            session_id=session_id,
            component=self.component.value,
            event_type=event_type,
            severity=severity.value,
            correlation_id=correlation_id or session_id,
            pii=dict(pii) if pii else dict(DEFAULT_PII),
            **kwargs,
        )

        # Resolved per call so a swapped sys.stdout (capsys) is honoured
        print(json.dumps(event, ensure_ascii=False, default=str), file=self._stream or sys.stdout, flush=True)

        event_store.store(event)
        return event
