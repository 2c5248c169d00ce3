from pydantic import BaseModel
from typing import List, Optional

from bqjob.core.models.job import ErrorProto


class ApiErrorResponse(BaseModel):
    """Structured description of a failed API call.

    Mirrors the ``error`` object of the service's error envelope so that
    transport failures and job failures can be inspected the same way.
    """
    code: int
    message: str
    reason: Optional[str] = None
    errors: List[ErrorProto] = []
    body: Optional[str] = None

    @classmethod
    def from_body(cls, status: int, body) -> "ApiErrorResponse":
        """Build from an error response body; tolerates non-envelope bodies."""
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            errors = [ErrorProto.model_validate(e) for e in error.get("errors") or []]
            return cls(
                code=error.get("code") or status,
                message=error.get("message") or f"HTTP {status}",
                reason=errors[0].reason if errors else error.get("status"),
                errors=errors,
            )
        text = body if isinstance(body, str) else None
        return cls(code=status, message=f"HTTP {status}", body=text[:500] if text else None)
