from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from enum import StrEnum


class JobState(StrEnum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"


class ErrorProto(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    reason: Optional[str] = None
    location: Optional[str] = None
    message: Optional[str] = None
    debug_info: Optional[str] = Field(default=None, alias="debugInfo")


class JobStatus(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    state: Optional[JobState] = None
    error_result: Optional[ErrorProto] = Field(default=None, alias="errorResult")
    errors: Optional[List[ErrorProto]] = None

    @property
    def failed(self) -> bool:
        # The errors list may be present for a job that is DONE; its
        # presence alone marks the job as failed.
        return bool(self.errors)

    @property
    def done(self) -> bool:
        return self.state == JobState.DONE


class JobReference(BaseModel):
    """Identity of a job. Immutable once created."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    job_id: str = Field(alias="jobId")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    location: Optional[str] = None


class JobMetadata(BaseModel):
    """Snapshot of a job resource as returned by ``jobs.get``.

    Only ``status`` is interpreted; every other field is kept verbatim so
    that callers see the full resource. A fresh snapshot replaces the
    previous one on each fetch, nothing is merged across fetches.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    kind: Optional[str] = None
    etag: Optional[str] = None
    self_link: Optional[str] = Field(default=None, alias="selfLink")
    job_reference: Optional[JobReference] = Field(default=None, alias="jobReference")
    status: Optional[JobStatus] = None
    configuration: Optional[Dict[str, Any]] = None
    statistics: Optional[Dict[str, Any]] = None

    @property
    def state(self) -> Optional[JobState]:
        return self.status.state if self.status else None
