from __future__ import annotations

from auditor.agents.orchestrator import AuditOrchestrator

_orchestrator: AuditOrchestrator | None = None


def get_orchestrator() -> AuditOrchestrator:
    """Return the orchestrator serving this process's single interactive session."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = AuditOrchestrator()
    return _orchestrator
