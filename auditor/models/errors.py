from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")

GENERIC_FAILURE_MESSAGE = "The audit service is temporarily unavailable. Please try again."


class ErrorKind(StrEnum):
    MISSING_CREDENTIAL = "missing_credential"
    NO_RESEARCH_DATA = "no_research_data"
    MALFORMED_EXTRACTION = "malformed_extraction"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_UNKNOWN = "upstream_unknown"


class AuditError(Exception):
    """Failure raised inside a pipeline stage, tagged with its kind."""

    def __init__(self, kind: ErrorKind, message: str, *, diagnostic: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.diagnostic = diagnostic

    def __repr__(self) -> str:
        return f"AuditError(kind={self.kind.value!r}, message={self.message!r})"


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Err:
    error: AuditError

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


StageResult = Ok[T] | Err
