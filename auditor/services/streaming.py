from __future__ import annotations

from typing import Any

from auditor.models.audit import ThoughtEntry
from auditor.models.events import EventType, SSEEvent


def audit_started(session_id: str, mode: str, input_text: str) -> SSEEvent:
    return SSEEvent(
        event=EventType.AUDIT_STARTED,
        data={"session_id": session_id, "mode": mode, "input_text": input_text},
    )


def status(message: str) -> SSEEvent:
    return SSEEvent(event=EventType.STATUS, data={"message": message})


def thought(text: str, index: int) -> SSEEvent:
    """Raw reasoning fragment, in arrival order."""
    return SSEEvent(event=EventType.THOUGHT, data={"text": text, "index": index})


def thought_revealed(entry: ThoughtEntry) -> SSEEvent:
    return SSEEvent(
        event=EventType.THOUGHT_REVEALED,
        data={"text": entry.text, "timestamp_label": entry.timestamp_label},
    )


def retry(message: str) -> SSEEvent:
    return SSEEvent(event=EventType.RETRY, data={"message": message})


def audit_complete(
    result: dict[str, Any],
    thoughts: list[ThoughtEntry],
    runtime_ms: int | None = None,
) -> SSEEvent:
    data: dict[str, Any] = {
        "result": result,
        "thoughts": [t.model_dump() for t in thoughts],
    }
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return SSEEvent(event=EventType.AUDIT_COMPLETE, data=data)


def error(message: str, kind: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if kind:
        data["kind"] = kind
    return SSEEvent(event=EventType.ERROR, data=data)
