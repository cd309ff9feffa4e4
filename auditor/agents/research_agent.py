from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from auditor.llm_client import AnswerFragment, AuditorClient, ReasoningFragment
from auditor.models.audit import AuditMode, GroundingSource
from auditor.models.errors import AuditError, ErrorKind
from auditor.services import logger as log_service
from auditor.services.prompt_store import research_prompts

RESEARCH_STATUS = "Researching with web search..."

StatusCallback = Callable[[str], None]
FragmentCallback = Callable[[str], None]


@dataclass
class ResearchFindings:
    answer_text: str
    raw_sources: list[GroundingSource] = field(default_factory=list)


class ResearchAgent:
    """Streams grounded research and splits the reasoning trace from the answer.

    Reasoning fragments go straight to ``on_fragment`` as they arrive; only
    answer text and citations are accumulated here.
    """

    name = "research"

    def __init__(self, client: AuditorClient, model: str):
        self.client = client
        self.model = model

    async def run(
        self,
        mode: AuditMode,
        input_text: str,
        *,
        on_status: StatusCallback | None = None,
        on_fragment: FragmentCallback | None = None,
    ) -> ResearchFindings:
        system, user_message = research_prompts(mode.value, input_text)
        if on_status is not None:
            on_status(RESEARCH_STATUS)

        answer_parts: list[str] = []
        raw_sources: list[GroundingSource] = []
        t0 = time.monotonic()

        async with self.client.stream_research(
            model=self.model, system=system, user_message=user_message
        ) as stream:
            async for part in stream.parts:
                if isinstance(part, ReasoningFragment):
                    if on_fragment is not None:
                        on_fragment(part.text)
                elif isinstance(part, AnswerFragment):
                    answer_parts.append(part.text)
                else:
                    raw_sources.append(part)

        log_service.log_llm_call(
            model=self.model,
            caller=f"{self.name}.{mode.value}",
            input_tokens=stream.usage.input_tokens,
            output_tokens=stream.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )

        answer_text = "".join(answer_parts)
        if not answer_text.strip():
            raise AuditError(ErrorKind.NO_RESEARCH_DATA, "No response received from research step.")
        return ResearchFindings(answer_text=answer_text, raw_sources=raw_sources)
