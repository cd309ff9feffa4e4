from __future__ import annotations

import time

from auditor.llm_client import AuditorClient
from auditor.models.audit import DeeperKind
from auditor.models.errors import AuditError, ErrorKind
from auditor.services import logger as log_service
from auditor.services.prompt_store import render_prompt


class DeeperAgent:
    """Follow-up analyses of an audited claim: steel man, crux, historical analogues."""

    name = "deeper"

    def __init__(self, client: AuditorClient, model: str, max_tokens: int = 2048):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def run(self, kind: DeeperKind, claim: str) -> str:
        t0 = time.monotonic()
        completion = await self.client.complete(
            model=self.model,
            system=render_prompt(f"deeper.{kind.value}.system_prompt"),
            user_message=render_prompt("deeper.user_message", claim=claim),
            max_tokens=self.max_tokens,
            web_search=True,
        )
        log_service.log_llm_call(
            model=self.model,
            caller=f"{self.name}.{kind.value}",
            input_tokens=completion.usage.input_tokens,
            output_tokens=completion.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        text = completion.text.strip()
        if not text:
            raise AuditError(ErrorKind.NO_RESEARCH_DATA, f"No response received for {kind.value}.")
        return text
