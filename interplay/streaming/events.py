"""SSE event types and serialization for report runs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ReportEventType(str, Enum):
    """All event types emitted during a report run."""

    REPORT_CREATED = "report_created"
    STATUS_CHANGED = "status_changed"
    STAGE_COMPLETED = "stage_completed"
    REPORT_COMPLETED = "report_completed"
    REPORT_FAILED = "report_failed"


TERMINAL_EVENTS = frozenset({ReportEventType.REPORT_COMPLETED, ReportEventType.REPORT_FAILED})


@dataclass
class SSEEvent:
    """A single Server-Sent Event ready for wire serialization."""

    event_type: ReportEventType
    data: dict[str, Any]
    sequence_id: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.event_type in TERMINAL_EVENTS

    def to_sse_string(self) -> str:
        """Serialize to SSE wire format.

        Format:
            event: <type>
            data: <json>
            id: <seq>

            (terminated by double newline)
        """
        payload = {
            **self.data,
            "timestamp": self.timestamp.isoformat(),
        }
        data_json = json.dumps(payload, default=str)
        return f"event: {self.event_type.value}\ndata: {data_json}\nid: {self.sequence_id}\n\n"
