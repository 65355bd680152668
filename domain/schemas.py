from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal, Optional

JobStatus = Literal["queued", "processing", "completed", "failed"]
TERMINAL_STATUSES = frozenset({"completed", "failed"})

Recommendation = Literal["Hire", "Interview", "Reject"]


class JobInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_title: str
    cv_document_id: str
    project_document_id: str


class JobResult(BaseModel):
    cv_match_rate: float = 0.0
    cv_feedback: str = ""
    project_score: float = 0.0
    project_feedback: str = ""
    overall_summary: str = ""
    recommendation: str = ""


class Job(BaseModel):
    id: str
    status: JobStatus = "queued"
    step: Optional[str] = None
    input: JobInput
    result: Optional[JobResult] = None
    error: Optional[str] = None
    revision: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class DocumentRef(BaseModel):
    id: str
    type: str
    original_name: str
    storage_path: str


class Snippet(BaseModel):
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


def _feedback_to_text(value):
    if value is None:
        return ""
    if isinstance(value, list):
        return "\n".join(f"- {item}" for item in value if item is not None)
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError("feedback must be a string or list of strings")


# Structured model outputs. Scores outside the rubric range fail validation
# and go through the repair protocol.

class CVEvaluationPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    technical_skills: Optional[float] = Field(None, ge=1.0, le=5.0)
    experience_level: Optional[float] = Field(None, ge=1.0, le=5.0)
    achievements: Optional[float] = Field(None, ge=1.0, le=5.0)
    cultural_fit: Optional[float] = Field(None, ge=1.0, le=5.0)
    cv_match_rate: Optional[float] = None
    cv_feedback: str = ""

    @field_validator("cv_feedback", mode="before")
    @classmethod
    def _ensure_text(cls, value):
        return _feedback_to_text(value)


class ProjectEvaluationPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    correctness: Optional[float] = Field(None, ge=1.0, le=5.0)
    code_quality: Optional[float] = Field(None, ge=1.0, le=5.0)
    resilience: Optional[float] = Field(None, ge=1.0, le=5.0)
    documentation: Optional[float] = Field(None, ge=1.0, le=5.0)
    creativity: Optional[float] = Field(None, ge=1.0, le=5.0)
    project_score: Optional[float] = None
    project_feedback: str = ""

    @field_validator("project_feedback", mode="before")
    @classmethod
    def _ensure_text(cls, value):
        return _feedback_to_text(value)


class SynthesisPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    overall_summary: str = ""
    recommendation: Optional[Recommendation] = None

    @field_validator("overall_summary", mode="before")
    @classmethod
    def _ensure_text(cls, value):
        if isinstance(value, list):
            return "\n\n".join(str(v) for v in value if v is not None)
        return "" if value is None else value

    @field_validator("recommendation", mode="before")
    @classmethod
    def _normalize_recommendation(cls, value):
        if not isinstance(value, str):
            return None
        for option in ("Hire", "Interview", "Reject"):
            if value.strip().lower() == option.lower():
                return option
        return None


# HTTP payloads

class UploadResponse(BaseModel):
    cv_id: Optional[str] = None
    project_id: Optional[str] = None

class EvaluateRequest(BaseModel):
    job_title: str = Field(..., min_length=1)
    cv_id: str
    project_id: str

class JobStatusResponse(BaseModel):
    id: str
    status: str
    result: Optional[JobResult] = None
    error: Optional[str] = None


class StallReport(BaseModel):
    requeued: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
