from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    AUDIT_STARTED = "audit_started"
    STATUS = "status"
    THOUGHT = "thought"
    THOUGHT_REVEALED = "thought_revealed"
    RETRY = "retry"
    AUDIT_COMPLETE = "audit_complete"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def as_message(self) -> dict[str, str]:
        """Shape for ``EventSourceResponse``: event name plus JSON-encoded data."""
        return {"event": self.event.value, "data": json.dumps(self.data)}
