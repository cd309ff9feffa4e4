"""Replays the reasoning trace on a fixed timeline.

Raw reasoning fragments arrive whenever the provider sends them. The scheduler
ignores that timing: at audit start it books one timer per reveal offset, and
each timer samples whatever the session buffer holds at that moment.
"""
from __future__ import annotations

import asyncio
import re
from typing import Callable

from loguru import logger

from auditor.models.audit import ThoughtEntry
from auditor.services.session import AuditSession

REVEAL_OFFSETS_S: tuple[float, ...] = (2.0, 5.0, 9.0, 14.0)
MAX_REVEALED = 4
MAX_THOUGHT_CHARS = 100
ELLIPSIS = "..."

RevealCallback = Callable[[ThoughtEntry], None]

# Headings and quotes only at line start; underscores only outside words.
_LINE_MARKERS = re.compile(r"^[ \t]*(?:#{1,6}|>)+[ \t]*", re.MULTILINE)
_EMPHASIS_MARKERS = re.compile(r"[*`]+|(?<!\w)_+|_+(?!\w)")
_WHITESPACE = re.compile(r"\s+")
_FIRST_SENTENCE = re.compile(r"[^.!?]*[.!?]")


def format_offset(offset_s: float) -> str:
    seconds = int(offset_s)
    return f"{seconds // 60}:{seconds % 60:02d}"


def first_sentence(text: str) -> str:
    unmarked = _EMPHASIS_MARKERS.sub("", _LINE_MARKERS.sub("", text))
    cleaned = _WHITESPACE.sub(" ", unmarked).strip()
    match = _FIRST_SENTENCE.match(cleaned)
    sentence = match.group(0).strip() if match else cleaned
    if len(sentence) > MAX_THOUGHT_CHARS:
        sentence = sentence[: MAX_THOUGHT_CHARS - len(ELLIPSIS)] + ELLIPSIS
    return sentence


class ThoughtRevealScheduler:
    def __init__(self, offsets_s: tuple[float, ...] = REVEAL_OFFSETS_S):
        self.offsets_s = offsets_s
        self.labels = tuple(format_offset(o) for o in offsets_s)
        self._timers: dict[str, list[asyncio.TimerHandle]] = {}

    def start(self, session: AuditSession, on_reveal: RevealCallback | None = None) -> None:
        """Book every reveal offset for ``session`` on the running loop."""
        loop = asyncio.get_running_loop()
        self.cancel(session.id)
        self._timers[session.id] = [
            loop.call_later(offset, self._fire, session, idx, on_reveal)
            for idx, offset in enumerate(self.offsets_s)
        ]

    def cancel(self, session_id: str) -> None:
        for handle in self._timers.pop(session_id, []):
            handle.cancel()

    def cancel_all(self) -> None:
        for session_id in list(self._timers):
            self.cancel(session_id)

    def pending(self, session_id: str) -> int:
        return sum(1 for h in self._timers.get(session_id, []) if not h.cancelled())

    def reveal(self, session: AuditSession, offset_index: int) -> ThoughtEntry | None:
        """Sample the session buffer for one offset; append and return the entry."""
        available = len(session.fragments)
        if available == 0 or len(session.thoughts) >= MAX_REVEALED:
            return None
        fragment = session.fragments[min(offset_index, available - 1)]
        text = first_sentence(fragment)
        if not text:
            return None
        entry = ThoughtEntry(text=text, timestamp_label=self.labels[offset_index])
        session.thoughts.append(entry)
        return entry

    def _fire(
        self,
        session: AuditSession,
        offset_index: int,
        on_reveal: RevealCallback | None,
    ) -> None:
        if session.complete:
            return
        entry = self.reveal(session, offset_index)
        if entry is None:
            return
        logger.debug(f"Revealed thought {entry.timestamp_label} for session {session.id}")
        if on_reveal is not None:
            on_reveal(entry)
