from typing import List, Optional

from bqjob.core.models.api_error import ApiErrorResponse
from bqjob.core.models.job import ErrorProto, JobStatus


class BigQueryJobError(Exception):
    """Base exception for job handle failures.

    Attributes:
        message: Human-readable error description
        job_id: Optional job identifier
    """
    def __init__(self, message: str, job_id: Optional[str] = None):
        self.message = message
        self.job_id = job_id
        super().__init__(message)


class TransportError(BigQueryJobError):
    """Raised when a request to the service fails.

    Covers network failures, timeouts, authentication failures, non-2xx
    responses and bodies that are not valid JSON. ``response`` carries the
    structured error as far as it could be recovered.
    """
    def __init__(self, response: ApiErrorResponse, job_id: Optional[str] = None):
        self.response = response
        super().__init__(message=response.message, job_id=job_id)

    @property
    def code(self) -> int:
        return self.response.code

    @property
    def transient(self) -> bool:
        """Whether repeating the identical request may succeed."""
        if self.response.reason == "invalidResponse":
            return False
        return self.code == 429 or self.code >= 500


class JobFailedError(BigQueryJobError):
    """Raised when a job's status carries errors.

    Synthesized locally from the job resource, never retried.

    Attributes:
        errors: All errors reported in ``status.errors``
        error_result: The summarising ``status.errorResult``, if any
    """
    def __init__(
        self,
        job_id: Optional[str],
        errors: List[ErrorProto],
        error_result: Optional[ErrorProto] = None,
    ):
        self.errors = errors
        self.error_result = error_result
        primary = error_result or (errors[0] if errors else None)
        detail = primary.message if primary and primary.message else "job reported errors"
        if len(errors) > 1:
            detail = f"{detail} - and {len(errors) - 1} other error(s)"
        super().__init__(message=f"Job {job_id} failed: {detail}", job_id=job_id)

    @property
    def reason(self) -> Optional[str]:
        primary = self.error_result or (self.errors[0] if self.errors else None)
        return primary.reason if primary else None

    @classmethod
    def from_status(cls, job_id: Optional[str], status: JobStatus) -> "JobFailedError":
        return cls(job_id=job_id, errors=list(status.errors or []), error_result=status.error_result)


class MonitorStateError(BigQueryJobError):
    """Raised on misuse of the completion monitor's listener API."""
    pass
