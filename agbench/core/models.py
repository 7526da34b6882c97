"""
Pydantic models for tasks, execution records and backend skips.

These are the rows persisted to results.jsonl; the report is rebuilt from
them without rerunning anything.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Outcome(str, Enum):
    """Closed set of task outcomes, in classification priority order."""

    TIMEOUT = "timeout"
    FAILED = "failed"
    SUCCEEDED_WITH_WARNINGS = "succeeded_with_warnings"
    SUCCEEDED = "succeeded"

    @property
    def passed(self) -> bool:
        return self in (Outcome.SUCCEEDED, Outcome.SUCCEEDED_WITH_WARNINGS)

    @property
    def label(self) -> str:
        return {
            Outcome.TIMEOUT: "TIMEOUT",
            Outcome.FAILED: "FAILED",
            Outcome.SUCCEEDED_WITH_WARNINGS: "SUCCESS (with warnings)",
            Outcome.SUCCEEDED: "SUCCESS",
        }[self]


class TaskSpec(BaseModel):
    """One natural-language instruction given to the agent."""

    model_config = ConfigDict(frozen=True)

    name: str
    instruction: str
    expected_artifacts: List[str] = Field(default_factory=list)
    timeout: Optional[float] = None
    clean_patterns: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_safe(cls, v: str) -> str:
        # task names end up in log file names
        if not v or "/" in v or v.strip() != v:
            raise ValueError(f"invalid task name: {v!r}")
        return v

    @field_validator("instruction")
    @classmethod
    def instruction_nonempty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("instruction must not be empty")
        return v

    @field_validator("timeout")
    @classmethod
    def timeout_positive(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("timeout must be > 0")
        return v


class ExecutionRecord(BaseModel):
    """Result of one (model, task) attempt. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["record"] = "record"
    model: str
    task: str
    started_at: float
    duration_s: float
    exit_code: Optional[int] = None
    timed_out: bool = False
    cancelled: bool = False
    artifact_count: int = 0
    missing_artifacts: List[str] = Field(default_factory=list)
    commit_count: int = 0
    output_lines: int = 0
    marker_count: int = 0
    outcome: Outcome
    log_path: Optional[str] = None

    @field_validator("duration_s")
    @classmethod
    def duration_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("duration_s must be >= 0")
        return v

    @field_validator("artifact_count", "commit_count", "output_lines", "marker_count")
    @classmethod
    def count_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("counts must be >= 0")
        return v

    @model_validator(mode="after")
    def check_outcome(self) -> "ExecutionRecord":
        if self.timed_out != (self.outcome is Outcome.TIMEOUT):
            raise ValueError("timed_out must match a timeout outcome")
        if self.outcome.passed:
            if self.exit_code != 0 or self.missing_artifacts:
                raise ValueError("passing outcome requires exit_code 0 and all artifacts")
        return self


class BackendSkip(BaseModel):
    """A model whose tasks were not attempted."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["skip"] = "skip"
    model: str
    reason: Literal["model_missing", "backend_start_failed", "backend_unready"]
    detail: str = ""
    at: float
