"""
Structured progress events written to stdout.

Each event is one JSON object per line, ``{"code": ..., "params": {...}}``,
for a supervising process to parse and render.
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, TextIO

logger = logging.getLogger(__name__)


class EventCode(str, Enum):
    """Event codes emitted by the engine."""

    CONFIG_LOADED = "CONFIG_LOADED"
    SCHEDULER_STARTED = "SCHEDULER_STARTED"
    SCHEDULER_STOPPED = "SCHEDULER_STOPPED"
    CHECK_STARTED = "CHECK_STARTED"
    CHECK_COMPLETED = "CHECK_COMPLETED"
    CHECK_FAILED = "CHECK_FAILED"
    WEEKEND_STOCKS_SKIPPED = "WEEKEND_STOCKS_SKIPPED"
    NO_ASSETS = "NO_ASSETS"
    ASSET_CHECKING = "ASSET_CHECKING"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    BELOW_THRESHOLD = "BELOW_THRESHOLD"
    ALREADY_ALERTED = "ALREADY_ALERTED"
    ALERT_SENT = "ALERT_SENT"
    NOTIFICATION_FAILED = "NOTIFICATION_FAILED"
    NOTIFICATION_DISABLED = "NOTIFICATION_DISABLED"
    HISTORY_SAVED = "HISTORY_SAVED"
    HISTORY_SAVE_FAILED = "HISTORY_SAVE_FAILED"
    LOG_APPEND_FAILED = "LOG_APPEND_FAILED"
    CACHE_SAVE_FAILED = "CACHE_SAVE_FAILED"
    ASSET_ERROR = "ASSET_ERROR"


@dataclass
class Event:
    """A single progress record."""

    code: EventCode
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "params": self.params}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class EventEmitter:
    """Writes events to a stream, one JSON line each."""

    def __init__(self, stream: Optional[TextIO] = None, keep: bool = False):
        """
        Initialize emitter.

        Args:
            stream: Destination stream, stdout when None
            keep: Also keep emitted events in ``self.events``
        """
        self.stream = stream
        self.keep = keep
        self.events: list[Event] = []

    def emit(self, code: EventCode, **params: Any) -> Event:
        event = Event(code=code, params=params)
        if self.keep:
            self.events.append(event)

        stream = self.stream or sys.stdout
        try:
            stream.write(event.to_json() + "\n")
            stream.flush()
        except (OSError, ValueError) as e:
            # Supervisor went away; keep monitoring
            logger.warning(f"Cannot write event {code.value}: {e}")
        return event

    def codes(self) -> list[EventCode]:
        return [event.code for event in self.events]
