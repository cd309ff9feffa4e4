from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import AsyncGenerator

from loguru import logger

from auditor.agents.deeper_agent import DeeperAgent
from auditor.agents.extraction_agent import ExtractionAgent, build_result
from auditor.agents.research_agent import FragmentCallback, ResearchAgent, StatusCallback
from auditor.config import Settings, settings as default_settings
from auditor.llm_client import (
    AuditorClient,
    client as shared_client,
    get_client,
    get_extraction_model,
    get_model,
)
from auditor.models.audit import AuditRequest, AuditResult, DeeperKind, ThoughtEntry
from auditor.models.errors import (
    GENERIC_FAILURE_MESSAGE,
    AuditError,
    Err,
    ErrorKind,
    Ok,
)
from auditor.models.events import SSEEvent
from auditor.services import logger as log_service
from auditor.services import streaming
from auditor.services.retry import run_stage
from auditor.services.reveal import RevealCallback, ThoughtRevealScheduler
from auditor.services.session import AuditSession, SessionSlot
from auditor.services.sources import resolve_sources

EXTRACTION_STATUS = {
    "claim": "Extracting structured analysis...",
    "forecast": "Extracting structured analysis...",
    "definition": "Extracting definition...",
}
COMPLETE_STATUS = "Complete."


@dataclass
class AuditOutcome:
    session_id: str
    result: AuditResult | None = None
    error_message: str | None = None
    error_kind: ErrorKind | None = None
    thoughts: list[ThoughtEntry] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.result is not None


def user_facing_message(error: AuditError) -> str:
    # Configuration problems are the operator's to fix and safe to show as is.
    if error.kind == ErrorKind.MISSING_CREDENTIAL:
        return error.message
    return GENERIC_FAILURE_MESSAGE


class AuditOrchestrator:
    """Runs one audit at a time: grounded research, then structured extraction.

    Flow:
      1. Open a fresh session and book the reasoning reveal timers
      2. Stream research (reasoning to the session buffer, answer accumulated)
      3. Extract a schema-shaped result from the answer text
      4. Merge grounding and declared citations into the result
      5. Close the session and cancel any timers that have not fired

    Both LLM stages run under the single-retry rate-limit policy. Failures
    collapse into one generic message; details go to the operator log only.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: AuditorClient | None = None,
        scheduler: ThoughtRevealScheduler | None = None,
    ):
        self.settings = settings or default_settings
        self.client = client
        self.scheduler = scheduler or ThoughtRevealScheduler()
        self.sessions = SessionSlot()
        self.model = get_model(self.settings)
        self.extraction_model = get_extraction_model(self.settings)

    @property
    def busy(self) -> bool:
        return self.sessions.busy

    def _client(self) -> AuditorClient:
        """Return the injected handle, building one from this orchestrator's settings on first use.

        The process-wide handle is shared only when running on the global settings.
        A missing key raises and leaves nothing cached.
        """
        if self.client is None:
            if self.settings is default_settings:
                self.client = shared_client()
            else:
                self.client = get_client(self.settings)
        return self.client

    def research_agent(self) -> ResearchAgent:
        return ResearchAgent(self._client(), self.model)

    def extraction_agent(self) -> ExtractionAgent:
        return ExtractionAgent(
            self._client(), self.extraction_model, self.settings.extraction_max_tokens
        )

    def deeper_agent(self) -> DeeperAgent:
        return DeeperAgent(self._client(), self.model, self.settings.deeper_max_tokens)

    def open_session(self, request: AuditRequest) -> AuditSession | None:
        """Start a fresh session, or return None while another audit is in flight."""
        previous = self.sessions.current
        session = self.sessions.begin(request)
        if session is None:
            logger.info("Audit submitted while another is running; ignoring")
            return None
        if previous is not None:
            self.scheduler.cancel(previous.id)

        log_service.log_event(
            event_type="audit_started",
            message="Audit started",
            session_id=session.id,
            mode=request.mode.value,
            input_text=request.input_text[:100],
        )
        return session

    async def audit(
        self,
        request: AuditRequest,
        *,
        on_status: StatusCallback | None = None,
        on_thought: FragmentCallback | None = None,
        on_reveal: RevealCallback | None = None,
    ) -> AuditOutcome | None:
        """Run a full audit. Returns None when another audit is still in flight."""
        session = self.open_session(request)
        if session is None:
            return None
        return await self.run_session(
            session, on_status=on_status, on_thought=on_thought, on_reveal=on_reveal
        )

    async def run_session(
        self,
        session: AuditSession,
        *,
        on_status: StatusCallback | None = None,
        on_thought: FragmentCallback | None = None,
        on_reveal: RevealCallback | None = None,
        on_retry: StatusCallback | None = None,
    ) -> AuditOutcome:
        def notify(message: str) -> None:
            if on_status is not None:
                on_status(message)

        def notify_retry(message: str) -> None:
            if on_retry is not None:
                on_retry(message)
            else:
                notify(message)

        def record_fragment(text: str) -> None:
            session.add_fragment(text)
            if on_thought is not None:
                on_thought(text)

        self.scheduler.start(session, on_reveal)
        try:
            return await self._run(session, notify, notify_retry, record_fragment)
        finally:
            self.sessions.finish(session)
            self.scheduler.cancel(session.id)

    async def _run(
        self,
        session: AuditSession,
        notify: StatusCallback,
        notify_retry: StatusCallback,
        record_fragment: FragmentCallback,
    ) -> AuditOutcome:
        request = session.request
        mode = request.mode
        delay_s = self.settings.rate_limit_retry_delay_s

        try:
            research = self.research_agent()
            extraction = self.extraction_agent()
        except AuditError as exc:
            return self._failed(session, "setup", exc)

        research_outcome = await run_stage(
            lambda: research.run(
                mode,
                request.input_text,
                on_status=notify,
                on_fragment=record_fragment,
            ),
            notify_retry,
            delay_s=delay_s,
        )
        match research_outcome:
            case Err(error=error):
                return self._failed(session, "research", error)
            case Ok(value=findings):
                log_service.log_audit_step(
                    session.id,
                    "research",
                    "completed",
                    {
                        "answer_chars": len(findings.answer_text),
                        "raw_sources": len(findings.raw_sources),
                        "fragments": len(session.fragments),
                    },
                )

        notify(EXTRACTION_STATUS[mode.value])
        extraction_outcome = await run_stage(
            lambda: extraction.run(mode, findings.answer_text),
            notify_retry,
            delay_s=delay_s,
        )
        match extraction_outcome:
            case Err(error=error):
                return self._failed(session, "extraction", error)
            case Ok(value=payload):
                pass

        declared_urls = payload.get("source_urls")
        if not isinstance(declared_urls, list):
            declared_urls = []
        sources = resolve_sources(findings.raw_sources, declared_urls)
        try:
            result = build_result(mode, payload, sources)
        except AuditError as exc:
            return self._failed(session, "extraction", exc)

        log_service.log_audit_step(
            session.id,
            "extraction",
            "completed",
            {"sources": len(sources), "runtime_ms": session.elapsed_ms()},
        )
        notify(COMPLETE_STATUS)
        return AuditOutcome(
            session_id=session.id,
            result=result,
            thoughts=list(session.thoughts),
        )

    def _failed(self, session: AuditSession, stage: str, error: AuditError) -> AuditOutcome:
        detail: dict[str, str] = {"kind": error.kind.value, "message": error.message}
        if error.diagnostic:
            detail["diagnostic"] = error.diagnostic
        log_service.log_audit_step(session.id, stage, "failed", detail)
        return AuditOutcome(
            session_id=session.id,
            error_message=user_facing_message(error),
            error_kind=error.kind,
            thoughts=list(session.thoughts),
        )

    async def stream(self, request: AuditRequest) -> AsyncGenerator[SSEEvent, None]:
        """Run an audit and yield its progress as SSE events."""
        session = self.open_session(request)
        if session is None:
            yield streaming.error("An audit is already running.")
            return
        async for event in self.stream_session(session):
            yield event

    async def stream_session(self, session: AuditSession) -> AsyncGenerator[SSEEvent, None]:
        """Yield SSE events for a session already opened with ``open_session``."""
        request = session.request
        queue: asyncio.Queue[SSEEvent] = asyncio.Queue()

        def on_thought(text: str) -> None:
            queue.put_nowait(streaming.thought(text, len(session.fragments) - 1))

        yield streaming.audit_started(session.id, request.mode.value, request.input_text)
        task = asyncio.create_task(
            self.run_session(
                session,
                on_status=lambda message: queue.put_nowait(streaming.status(message)),
                on_thought=on_thought,
                on_reveal=lambda entry: queue.put_nowait(streaming.thought_revealed(entry)),
                on_retry=lambda message: queue.put_nowait(streaming.retry(message)),
            )
        )

        while not task.done() or not queue.empty():
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                yield getter.result()
            else:
                getter.cancel()

        outcome = task.result()
        if outcome.result is not None:
            yield streaming.audit_complete(
                outcome.result.model_dump(mode="json"),
                outcome.thoughts,
                runtime_ms=session.elapsed_ms(),
            )
        else:
            yield streaming.error(
                outcome.error_message or GENERIC_FAILURE_MESSAGE,
                kind=outcome.error_kind.value if outcome.error_kind else None,
            )

    async def go_deeper(
        self,
        kind: DeeperKind,
        claim: str,
        on_status: StatusCallback | None = None,
    ) -> Ok[str] | Err:
        try:
            agent = self.deeper_agent()
        except AuditError as exc:
            return Err(error=exc)
        outcome = await run_stage(
            lambda: agent.run(kind, claim),
            on_status,
            delay_s=self.settings.rate_limit_retry_delay_s,
        )
        if isinstance(outcome, Err):
            log_service.log_event(
                event_type="deeper_failed",
                message=outcome.error.message,
                kind=outcome.kind.value,
                deeper_kind=kind.value,
            )
        return outcome
