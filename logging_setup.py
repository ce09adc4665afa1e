"""
Shared logging for the Koe voice agent.

voice_agent, control_surface and observability all log through get_logger()
so stdout carries one JSON object per record, tagged with the engine stage
that wrote it and, inside a turn, the turn ID.

Utterances and document text are PII: pass them only through the *_pii
methods, which keep them under a separate "pii" key.
"""

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Component(str, Enum):
    """Engine stages used to tag log records."""
    ENGINE = "engine"
    VOICE_CONTROLLER = "voice_controller"
    TRANSCRIPT_ROUTER = "transcript_router"
    AGENT_SESSION = "agent_session"
    TOOL_DISPATCHER = "tool_dispatcher"
    UNDO_LOG = "undo_log"
    TRANSPORT = "transport"
    CONTROL_SURFACE = "control_surface"


# Populated on every LogRecord by the logging module itself.
_STANDARD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}
_HANDLED_ATTRS = {"component", "turn_id"}

_LATENCY = re.compile(r'("latency_ms": )(-?\d+(?:\.\d+)?)')
_TRUTHY = {"1", "true", "yes"}


def _use_color() -> bool:
    if os.environ.get("NO_COLOR", "").lower() in _TRUTHY:
        return False
    if os.environ.get("FORCE_COLOR", "").lower() in _TRUTHY:
        return True
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


class JSONFormatter(logging.Formatter):
    """
    Renders a record as a single JSON line.

    Keys: timestamp (ISO8601, UTC), severity, component, message, turn_id
    when bound, every extra field, and exception when exc_info is set.
    A latency_ms value is written with an " ms" unit, highlighted when
    stdout is a terminal.
    """

    HIGHLIGHT = "\033[38;5;208m"
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "severity": record.levelname.lower(),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }
        turn_id = getattr(record, "turn_id", None)
        if turn_id:
            entry["turn_id"] = turn_id

        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and key not in _HANDLED_ATTRS
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        line = json.dumps(entry, ensure_ascii=False, default=str)
        if "latency_ms" in entry:
            line = self._with_unit(line)
        return line

    def _with_unit(self, line: str) -> str:
        if _use_color():
            return _LATENCY.sub(lambda m: f"{m.group(1)}{self.HIGHLIGHT}{m.group(2)} ms{self.RESET}", line)
        return _LATENCY.sub(r"\1\2 ms", line)


class StructuredLogger:
    """
    Component-tagged logger with keyword fields.

        log = get_logger(Component.AGENT_SESSION).with_turn("turn_1")
        log.info("Stream opened", model="claude-sonnet-4-20250514")
        log.debug_pii("Utterance", text="make a list of groceries")
    """

    def __init__(
        self,
        component: "str | Component",
        turn_id: Optional[str] = None,
        logger_name: Optional[str] = None,
    ):
        self.component = component.value if isinstance(component, Component) else component
        self.turn_id = turn_id
        self.logger = logging.getLogger(logger_name or f"koe.{self.component}")

    def _emit(self, level: int, message: str, fields: Dict[str, Any], pii: Optional[Dict[str, Any]] = None) -> None:
        if not self.logger.isEnabledFor(level):
            return
        exc_info = fields.pop("exc_info", None)
        extra: Dict[str, Any] = {"component": self.component}
        if self.turn_id:
            extra["turn_id"] = self.turn_id
        extra.update(fields)
        if pii:
            extra["pii"] = pii
        # stacklevel 3 points the record at the caller of info()/debug()/...
        self.logger.log(level, message, exc_info=exc_info, extra=extra, stacklevel=3)

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Error record with the exception being handled attached."""
        fields.setdefault("exc_info", True)
        self._emit(logging.ERROR, message, fields)

    def debug_pii(self, message: str, **pii_fields: Any) -> None:
        self._emit(logging.DEBUG, message, {}, pii=pii_fields)

    def info_pii(self, message: str, **pii_fields: Any) -> None:
        self._emit(logging.INFO, message, {}, pii=pii_fields)

    def with_turn(self, turn_id: str) -> "StructuredLogger":
        """Same component and underlying logger, bound to one turn."""
        return StructuredLogger(self.component, turn_id=turn_id, logger_name=self.logger.name)


def setup_logging(level: str = "INFO", use_json: bool = True, include_timestamp: bool = True) -> None:
    """
    Point the root logger at stdout. Call once when the process starts.

    use_json=False gives "LEVEL - component - message" lines, prefixed with
    the time when include_timestamp is set.
    """
    if use_json:
        formatter: logging.Formatter = JSONFormatter()
    else:
        fmt = "%(levelname)s - %(component)s - %(message)s"
        formatter = logging.Formatter(
            f"%(asctime)s - {fmt}" if include_timestamp else fmt,
            defaults={"component": "unknown"},
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(component: "str | Component", turn_id: Optional[str] = None) -> StructuredLogger:
    """Logger for one engine component, optionally bound to a turn."""
    return StructuredLogger(component, turn_id=turn_id)
