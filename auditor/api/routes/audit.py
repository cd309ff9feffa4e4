from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from sse_starlette.sse import EventSourceResponse

from auditor.agents.orchestrator import AuditOrchestrator, user_facing_message
from auditor.api.deps import get_orchestrator
from auditor.models.audit import AuditMode, AuditRequest, DeeperKind
from auditor.models.errors import Err
from auditor.models.schemas import AuditRunRequest, DeeperRequest, DeeperResponse, ModesResponse

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("/modes", response_model=ModesResponse)
async def list_modes():
    return ModesResponse(
        modes=[m.value for m in AuditMode],
        deeper_kinds=[k.value for k in DeeperKind],
    )


@router.post("")
async def run_audit(
    body: AuditRunRequest,
    orchestrator: AuditOrchestrator = Depends(get_orchestrator),
):
    """Run an audit and stream status, reasoning and the final result over SSE."""
    try:
        request = AuditRequest(input_text=body.input_text, mode=body.mode)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail="input_text must not be empty") from exc
    # Claim the slot now so a concurrent POST gets 409 rather than an error event
    session = orchestrator.open_session(request)
    if session is None:
        raise HTTPException(status_code=409, detail="An audit is already running.")

    async def event_generator():
        async for event in orchestrator.stream_session(session):
            yield event.as_message()

    return EventSourceResponse(event_generator())


@router.post("/deeper", response_model=DeeperResponse)
async def go_deeper(
    body: DeeperRequest,
    orchestrator: AuditOrchestrator = Depends(get_orchestrator),
):
    claim = body.claim.strip()
    if not claim:
        raise HTTPException(status_code=422, detail="claim must not be empty")

    outcome = await orchestrator.go_deeper(body.kind, claim)
    if isinstance(outcome, Err):
        raise HTTPException(status_code=503, detail=user_facing_message(outcome.error))
    return DeeperResponse(kind=body.kind, claim=claim, text=outcome.value)
