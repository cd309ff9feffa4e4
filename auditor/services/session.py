from __future__ import annotations

import time
from dataclasses import dataclass, field
from uuid import uuid4

from auditor.models.audit import AuditRequest, ThoughtEntry


@dataclass(slots=True)
class AuditSession:
    """State owned by exactly one in-flight audit."""

    request: AuditRequest
    id: str = field(default_factory=lambda: str(uuid4()))
    fragments: list[str] = field(default_factory=list)
    thoughts: list[ThoughtEntry] = field(default_factory=list)
    complete: bool = False
    started_at: float = field(default_factory=time.monotonic)

    def add_fragment(self, text: str) -> int:
        """Append a raw reasoning fragment and return its position."""
        self.fragments.append(text)
        return len(self.fragments) - 1

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


class SessionSlot:
    """Holds the single active audit session."""

    def __init__(self) -> None:
        self._current: AuditSession | None = None

    @property
    def current(self) -> AuditSession | None:
        return self._current

    @property
    def busy(self) -> bool:
        return self._current is not None and not self._current.complete

    def begin(self, request: AuditRequest) -> AuditSession | None:
        """Replace the previous session with a fresh one, or return None if busy."""
        if self.busy:
            return None
        self._current = AuditSession(request=request)
        return self._current

    def finish(self, session: AuditSession) -> None:
        session.complete = True
