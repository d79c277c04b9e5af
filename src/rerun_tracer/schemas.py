from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import SCHEMA_VERSION
from .utils import to_utc

OutcomeKind = Literal["passed", "failed", "pending", "skipped"]
OUTCOME_KINDS = ("passed", "failed", "pending", "skipped")


class ExecutionResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    started_at: datetime
    finished_at: datetime
    run_time: float
    status: str

    @field_validator("started_at", "finished_at")
    @classmethod
    def _normalize_utc(cls, value: datetime) -> datetime:
        return to_utc(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status_text(cls, value: Any) -> str:
        return str(getattr(value, "value", value))


class Example(BaseModel):
    example_id: str
    full_description: str
    description: str = ""
    file_name: str
    rerun_file_name: str
    rerun_line_number: int
    execution_result: Optional[ExecutionResult] = None

    @property
    def location(self) -> str:
        return f"{self.rerun_file_name.lstrip('/')}:{self.rerun_line_number}"


class SourceFile(BaseModel):
    file_name: str
    file_path: str = ""
    digest: str = ""


class SeenExample(BaseModel):
    """What the previous run remembers about one example id."""

    model_config = ConfigDict(extra="ignore")

    file_name: str
    rerun_file_name: str


class ReverseDependencyEntry(BaseModel):
    example_count: int = 0
    examples: Dict[str, int] = Field(default_factory=dict)


class ArtifactRecord(BaseModel):
    report_type: str
    path: str
    content_hash: str
    bytes: int


class LastRunRecord(BaseModel):
    schema_version: str = SCHEMA_VERSION
    run_id: str
    timestamp: datetime
    pid: int
    actual_count: int
    example_count: int
    duplicate_examples: int
    interrupted_examples: int
    failed_examples: int
    skipped_examples: int
    pending_examples: int
    flaky_examples: int
    deleted_examples: int = 0
    interrupted: bool = False

    @field_validator("timestamp")
    @classmethod
    def _normalize_utc(cls, value: datetime) -> datetime:
        return to_utc(value)
