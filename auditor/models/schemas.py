from __future__ import annotations

from pydantic import BaseModel

from auditor.models.audit import AuditMode, DeeperKind


# --- Requests ---


class AuditRunRequest(BaseModel):
    input_text: str
    mode: AuditMode = AuditMode.CLAIM


class DeeperRequest(BaseModel):
    kind: DeeperKind
    claim: str


# --- Responses ---


class DeeperResponse(BaseModel):
    kind: DeeperKind
    claim: str
    text: str


class ModesResponse(BaseModel):
    modes: list[str]
    deeper_kinds: list[str]
