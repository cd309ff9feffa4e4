from __future__ import annotations

import asyncio

import pytest

from auditor.models.audit import AuditRequest
from auditor.services.reveal import (
    REVEAL_OFFSETS_S,
    ThoughtRevealScheduler,
    first_sentence,
    format_offset,
)
from auditor.services.session import AuditSession, SessionSlot


def _session() -> AuditSession:
    return AuditSession(request=AuditRequest(input_text="X will happen by 2030"))


class TestFirstSentence:
    def test_takes_text_up_to_first_terminator(self):
        assert first_sentence("Rates rose. Then fell.") == "Rates rose."
        assert first_sentence("Is it true? Maybe.") == "Is it true?"

    def test_long_text_without_terminator_is_truncated(self):
        text = "a" * 150

        result = first_sentence(text)

        assert result == "a" * 97 + "..."
        assert len(result) == 100

    def test_strips_markdown_and_collapses_whitespace(self):
        raw = "**Evaluating the base rate**\n\nI'm   checking the  historical data. More later."

        assert first_sentence(raw) == "Evaluating the base rate I'm checking the historical data."

    def test_heading_and_quote_markers_only_stripped_at_line_start(self):
        raw = "## Reference classes\n> quoted _emphasis_ here. Rest."

        assert first_sentence(raw) == "Reference classes quoted emphasis here."

    def test_keeps_in_word_underscores_and_operators(self):
        raw = "Checking base_rate where p > q for C# projects. Next."

        assert first_sentence(raw) == "Checking base_rate where p > q for C# projects."


class TestRevealSampling:
    def test_labels_follow_offsets(self):
        scheduler = ThoughtRevealScheduler()
        assert REVEAL_OFFSETS_S == (2.0, 5.0, 9.0, 14.0)
        assert scheduler.labels == ("0:02", "0:05", "0:09", "0:14")
        assert format_offset(75) == "1:15"

    def test_clamps_to_last_available_fragment(self):
        scheduler = ThoughtRevealScheduler()
        session = _session()

        # t=0.5s: first fragment arrives
        session.add_fragment("First thought about the claim. Extra.")
        first = scheduler.reveal(session, 0)  # t=2s
        # t=3s: second fragment arrives
        session.add_fragment("Second thought on evidence.")
        later = [scheduler.reveal(session, idx) for idx in (1, 2, 3)]  # t=5s, 9s, 14s

        assert first is not None and first.text == "First thought about the claim."
        assert first.timestamp_label == "0:02"
        assert [e.text for e in later] == ["Second thought on evidence."] * 3
        assert [e.timestamp_label for e in later] == ["0:05", "0:09", "0:14"]
        assert len(session.thoughts) == 4

    def test_never_reveals_more_than_four(self):
        scheduler = ThoughtRevealScheduler(offsets_s=(1, 2, 3, 4, 5, 6))
        session = _session()
        for i in range(10):
            session.add_fragment(f"Fragment {i}.")

        revealed = [scheduler.reveal(session, idx) for idx in range(6)]

        assert sum(1 for e in revealed if e is not None) == 4
        assert revealed[4] is None and revealed[5] is None
        assert len(session.thoughts) == 4

    def test_no_fragments_reveals_nothing(self):
        scheduler = ThoughtRevealScheduler()
        session = _session()

        assert scheduler.reveal(session, 0) is None
        assert session.thoughts == []


class TestRevealTimers:
    @pytest.mark.asyncio
    async def test_timers_fire_in_order_and_sample_buffer(self):
        scheduler = ThoughtRevealScheduler(offsets_s=(0.01, 0.1, 0.15, 0.2))
        session = _session()
        revealed = []

        session.add_fragment("Early fragment.")
        scheduler.start(session, revealed.append)
        await asyncio.sleep(0.05)
        session.add_fragment("Late fragment.")
        await asyncio.sleep(0.3)

        assert [e.text for e in revealed] == [
            "Early fragment.",
            "Late fragment.",
            "Late fragment.",
            "Late fragment.",
        ]
        scheduler.cancel(session.id)

    @pytest.mark.asyncio
    async def test_cancel_stops_pending_reveals(self):
        scheduler = ThoughtRevealScheduler(offsets_s=(0.01, 0.2, 0.3, 0.4))
        session = _session()
        session.add_fragment("Only fragment.")
        revealed = []

        scheduler.start(session, revealed.append)
        await asyncio.sleep(0.05)
        scheduler.cancel(session.id)
        await asyncio.sleep(0.25)

        assert len(revealed) == 1
        assert scheduler.pending(session.id) == 0

    @pytest.mark.asyncio
    async def test_completed_session_is_not_revealed(self):
        scheduler = ThoughtRevealScheduler(offsets_s=(0.01, 0.02, 0.03, 0.04))
        session = _session()
        session.add_fragment("Fragment.")
        session.complete = True
        revealed = []

        scheduler.start(session, revealed.append)
        await asyncio.sleep(0.08)

        assert revealed == []
        scheduler.cancel_all()


class TestSessionSlot:
    def test_busy_slot_ignores_new_submission(self):
        slot = SessionSlot()
        first = slot.begin(AuditRequest(input_text="first"))

        assert first is not None
        assert slot.begin(AuditRequest(input_text="second")) is None

        slot.finish(first)
        second = slot.begin(AuditRequest(input_text="second"))
        assert second is not None
        assert second.id != first.id
        assert second.fragments == []
