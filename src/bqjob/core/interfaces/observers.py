"""Listener protocols for job completion events.

The completion monitor delivers two events: ``complete`` with the final
metadata snapshot and ``error`` with the exception that ended monitoring.
Listeners may be plain callables or coroutine functions; both shapes satisfy
these protocols.
"""

from typing import Awaitable, Protocol, Union

from bqjob.core.exceptions import BigQueryJobError
from bqjob.core.models.job import JobMetadata


class CompleteListener(Protocol):
    def __call__(self, metadata: JobMetadata) -> Union[None, Awaitable[None]]:
        """Called once when the job reached DONE without errors."""
        ...


class ErrorListener(Protocol):
    def __call__(self, error: BigQueryJobError) -> Union[None, Awaitable[None]]:
        """Called once when fetching failed or the job reported errors."""
        ...
