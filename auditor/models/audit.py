from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

OVERALL_SCORES = ("Strong", "Moderate", "Weak", "Unsupported")
CONFIDENCE_LEVELS = ("High", "Moderate", "Low")


class AuditMode(StrEnum):
    CLAIM = "claim"
    FORECAST = "forecast"
    DEFINITION = "definition"


class DeeperKind(StrEnum):
    STEELMAN = "steelman"
    CRUX = "crux"
    HISTORICAL = "historical"


class AuditRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_text: str
    mode: AuditMode = AuditMode.CLAIM

    @field_validator("input_text")
    @classmethod
    def _strip_input(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("input_text must not be empty")
        return value


# --- Sources ---


class GroundingSource(BaseModel):
    """A citation as reported by the provider: possibly duplicated or redirect-wrapped."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str | None = None


class ResolvedSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    title: str


# --- Extracted analyses ---


class _ResultModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)


class SubClaim(_ResultModel):
    title: str
    evidence_for: list[str] = Field(default_factory=list)
    evidence_against: list[str] = Field(default_factory=list)
    confidence: str = ""


class ReferenceClass(_ResultModel):
    name: str
    base_rate: str = ""
    relevance: str = ""


class KeyDebate(_ResultModel):
    title: str
    description: str = ""


class Misconception(_ResultModel):
    misconception: str
    reality: str = ""


class _AnalysisBase(_ResultModel):
    related_concepts: list[str] = Field(default_factory=list)
    source_urls: list[str] = Field(default_factory=list)
    sources: list[ResolvedSource] = Field(default_factory=list)


class ClaimAnalysis(_AnalysisBase):
    mode: Literal[AuditMode.CLAIM] = AuditMode.CLAIM
    claim: str
    sub_claims: list[SubClaim] = Field(default_factory=list)
    overall_score: str
    summary: str


class ForecastAnalysis(_AnalysisBase):
    mode: Literal[AuditMode.FORECAST] = AuditMode.FORECAST
    forecast: str
    stated_probability: str
    adjusted_probability: str
    base_rate_analysis: str = ""
    reference_classes: list[ReferenceClass] = Field(default_factory=list)
    calibration_assessment: str = ""
    overall_score: str
    summary: str


class DefinitionAnalysis(_AnalysisBase):
    mode: Literal[AuditMode.DEFINITION] = AuditMode.DEFINITION
    concept: str
    definition: str
    key_debates: list[KeyDebate] = Field(default_factory=list)
    common_misconceptions: list[Misconception] = Field(default_factory=list)


AuditResult = Annotated[
    Union[ClaimAnalysis, ForecastAnalysis, DefinitionAnalysis],
    Field(discriminator="mode"),
]

RESULT_MODELS: dict[AuditMode, type[_AnalysisBase]] = {
    AuditMode.CLAIM: ClaimAnalysis,
    AuditMode.FORECAST: ForecastAnalysis,
    AuditMode.DEFINITION: DefinitionAnalysis,
}

REQUIRED_KEYS: dict[AuditMode, tuple[str, ...]] = {
    AuditMode.CLAIM: ("claim", "sub_claims", "overall_score", "summary"),
    AuditMode.FORECAST: (
        "forecast",
        "stated_probability",
        "adjusted_probability",
        "overall_score",
        "summary",
    ),
    AuditMode.DEFINITION: ("concept", "definition"),
}


# --- Reasoning log ---


class ThoughtEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = Field(max_length=100)
    timestamp_label: str
