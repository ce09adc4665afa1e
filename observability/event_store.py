"""
In-memory event store backing the control surface /events endpoint.

The engine keeps no persistent history. Events sit in a bounded deque and
the oldest drop off once it is full.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

_FILTER_KEYS = ("session_id", "correlation_id", "event_type", "component")


def _normalize(event: Dict[str, Any]) -> Dict[str, Any]:
    """Fill in envelope defaults so every stored event has the same shape."""
    session_id = event.get("session_id", "")
    ts = event.get("ts")
    if not isinstance(ts, str):
        ts = datetime.now(timezone.utc).isoformat()

    normalized = dict(event)
    normalized.update(
        ts=ts,
        session_id=session_id,
        component=event.get("component", "unknown"),
        event_type=event.get("event_type", "unknown"),
        severity=event.get("severity", "info"),
        correlation_id=event.get("correlation_id") or session_id,
        pii=event.get("pii") or {"contains_pii": False, "fields": [], "handling": "none"},
    )
    return normalized


class EventStore:
    """Bounded FIFO of emitted events, queried oldest first."""

    def __init__(self, max_events: int = 10000):
        self.max_events = max_events
        self._events: Deque[Dict[str, Any]] = deque(maxlen=max_events)

    def __len__(self) -> int:
        return len(self._events)

    def store(self, event: Dict[str, Any]) -> None:
        self._events.append(_normalize(event))

    def query(
        self,
        session_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        event_type: Optional[str] = None,
        component: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return copies of the matching events.

        Every filter is an exact match and unset filters match anything.
        correlation_id is the turn ID for turn-scoped events.
        """
        wanted = {
            key: value
            for key, value in zip(_FILTER_KEYS, (session_id, correlation_id, event_type, component))
            if value
        }
        matches: List[Dict[str, Any]] = []
        for event in self._events:
            if any(event[key] != value for key, value in wanted.items()):
                continue
            matches.append(dict(event))
            if limit and len(matches) == limit:
                break
        return matches

    def clear(self) -> None:
        self._events.clear()

    def get_stats(self) -> Dict[str, Any]:
        first = self._events[0]["ts"] if self._events else None
        last = self._events[-1]["ts"] if self._events else None
        return {
            "total_events": len(self._events),
            "max_events": self.max_events,
            "oldest_event_ts": first,
            "newest_event_ts": last,
        }


event_store = EventStore()
