from __future__ import annotations

import time
from typing import Any

from loguru import logger
from pydantic import ValidationError

from auditor.llm_client import AuditorClient
from auditor.models.audit import (
    CONFIDENCE_LEVELS,
    OVERALL_SCORES,
    REQUIRED_KEYS,
    RESULT_MODELS,
    AuditMode,
    AuditResult,
    ResolvedSource,
)
from auditor.models.errors import AuditError, ErrorKind
from auditor.services import logger as log_service
from auditor.services.json_extract import DIAGNOSTIC_PREFIX_CHARS, parse_json_payload
from auditor.services.prompt_store import extraction_prompts


class ExtractionAgent:
    """Turns free-text research into a schema-shaped payload for one mode."""

    name = "extraction"

    def __init__(self, client: AuditorClient, model: str, max_tokens: int = 4096):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def run(self, mode: AuditMode, research_text: str) -> dict[str, Any]:
        system, user_message = extraction_prompts(mode.value, research_text)

        t0 = time.monotonic()
        completion = await self.client.complete(
            model=self.model,
            system=system,
            user_message=user_message,
            max_tokens=self.max_tokens,
            json_mode=True,
        )
        log_service.log_llm_call(
            model=self.model,
            caller=f"{self.name}.{mode.value}",
            input_tokens=completion.usage.input_tokens,
            output_tokens=completion.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )

        payload = parse_json_payload(completion.text)
        check_structure(mode, payload, completion.text)
        warn_on_unknown_labels(mode, payload)
        return payload


def check_structure(mode: AuditMode, payload: dict[str, Any], raw_text: str = "") -> None:
    missing = [key for key in REQUIRED_KEYS[mode] if key not in payload]
    if missing:
        raise AuditError(
            ErrorKind.MALFORMED_EXTRACTION,
            f"Extraction for {mode.value} is missing keys: {', '.join(missing)}",
            diagnostic=(raw_text or "")[:DIAGNOSTIC_PREFIX_CHARS],
        )


def warn_on_unknown_labels(mode: AuditMode, payload: dict[str, Any]) -> None:
    # Labels outside the closed sets are kept; only flagged for operators.
    score = payload.get("overall_score")
    if mode != AuditMode.DEFINITION and score not in OVERALL_SCORES:
        logger.warning(f"Unexpected overall_score from extraction: {score!r}")
    if mode == AuditMode.CLAIM:
        for sub_claim in payload.get("sub_claims") or []:
            confidence = sub_claim.get("confidence") if isinstance(sub_claim, dict) else None
            if confidence not in CONFIDENCE_LEVELS:
                logger.warning(f"Unexpected sub-claim confidence from extraction: {confidence!r}")


def build_result(
    mode: AuditMode,
    payload: dict[str, Any],
    sources: list[ResolvedSource],
) -> AuditResult:
    """Shape an extraction payload and its resolved sources into the frozen result."""
    data = {
        **{key: value for key, value in payload.items() if value is not None},
        "mode": mode,
        "sources": sources,
        "source_urls": [s.url for s in sources],
    }
    try:
        return RESULT_MODELS[mode].model_validate(data)
    except ValidationError as exc:
        raise AuditError(
            ErrorKind.MALFORMED_EXTRACTION,
            f"Extraction for {mode.value} does not fit the result schema",
            diagnostic=str(exc)[:DIAGNOSTIC_PREFIX_CHARS],
        ) from exc
