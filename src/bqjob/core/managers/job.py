"""Job: handle to one long-running remote job.

A handle is identity plus addressing (job id and optional location); the
location, when known, is attached to every request about the job. Handles
carry no shared mutable state and can be used concurrently.

Status can be watched push-style through the completion monitor::

    job = bigquery.job("job-id", location="europe-west3")
    job.on("error", handle_error)
    job.on("complete", handle_metadata)   # polling starts here
    ...
    job.remove_all_listeners()            # polling stops

or awaited with ``metadata = await job.wait()``. Results are read with
``get_query_results`` (automatic paging by default, one page at a time with
``auto_paginate=False``) or ``get_query_results_stream``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, Optional, Union
from urllib.parse import quote

from bqjob.core.exceptions import JobFailedError, TransportError
from bqjob.core.managers.completion_monitor import CompletionMonitor
from bqjob.core.managers.result_paginator import ResultPaginator
from bqjob.core.models.job import JobMetadata, JobReference
from bqjob.core.models.query_results import (
    QueryResultsOptions,
    QueryResultsPage,
    QueryResultsResponse,
    ResultRows,
)
from bqjob.core.settings import logger

if TYPE_CHECKING:
    from bqjob.core.managers.bigquery import BigQuery

OptionsArg = Union[QueryResultsOptions, Dict[str, Any], None]


class Job:
    def __init__(self, bigquery: "BigQuery", job_id: str, location: Optional[str] = None) -> None:
        if not job_id:
            raise ValueError("job_id must be a non-empty string")
        self.bigquery = bigquery
        self.reference = JobReference(
            job_id=job_id,
            project_id=bigquery.project_id,
            location=location or bigquery.location,
        )
        self.metadata: Optional[JobMetadata] = None
        self._monitor = CompletionMonitor(self.poll, config=bigquery.monitor_config, job_id=job_id)
        self._paginator = ResultPaginator(
            self._fetch_results,
            bigquery.merge_schema_with_rows,
            config=bigquery.paginator_config,
            job_id=job_id,
        )

    def __repr__(self) -> str:
        return f"Job(id={self.id!r}, location={self.location!r})"

    @property
    def id(self) -> str:
        return self.reference.job_id

    @property
    def location(self) -> Optional[str]:
        return self.reference.location

    @property
    def monitor(self) -> CompletionMonitor:
        return self._monitor

    def _location_params(self) -> Optional[Dict[str, str]]:
        return {"location": self.location} if self.location else None

    def _path(self, suffix: str = "") -> str:
        return f"jobs/{quote(self.id, safe='')}{suffix}"

    # ---------------- Resource operations -----------------
    async def exists(self) -> bool:
        try:
            await self.get_metadata()
        except TransportError as exc:
            if exc.code == 404:
                return False
            raise
        return True

    async def get(self) -> "Job":
        """Load the job's metadata and return the handle itself."""
        await self.get_metadata()
        return self

    async def get_metadata(self) -> JobMetadata:
        self.metadata = await self._fetch_metadata()
        return self.metadata

    async def _fetch_metadata(self) -> JobMetadata:
        response = await self.bigquery.request("GET", self._path(), params=self._location_params())
        return JobMetadata.model_validate(response)

    async def set_metadata(self, metadata: Dict[str, Any]) -> Dict[str, Any]:
        """Patch the job resource, e.g. ``{"configuration": {"labels": {...}}}``."""
        response = await self.bigquery.request(
            "PATCH", self._path(), params=self._location_params(), json=metadata
        )
        self.metadata = JobMetadata.model_validate(response)
        return response

    async def cancel(self) -> Dict[str, Any]:
        """Request cancellation and return the raw API response.

        The service cancels asynchronously; watch ``complete``/``error`` or
        poll the metadata to learn the outcome.
        """
        logger.info(f"[job:cancel] job_id={self.id} location={self.location}")
        return await self.bigquery.request("POST", self._path("/cancel"), params=self._location_params())

    # ---------------- Status -----------------
    async def poll(self) -> Optional[JobMetadata]:
        """Fetch the status once.

        Returns None while the job is not done and the metadata once it is.
        Raises TransportError if the fetch failed and JobFailedError if the
        status carries errors, whatever the state. Never retries. The
        fetched metadata is not stored on the handle; a result the monitor
        discards leaves no trace.
        """
        metadata = await self._fetch_metadata()
        status = metadata.status
        if status is not None and status.failed:
            raise JobFailedError.from_status(self.id, status)
        if status is None or not status.done:
            return None
        return metadata

    def on(self, event: str, callback: Callable[[Any], Any]) -> "Job":
        self._monitor.on(event, callback)
        return self

    def once(self, event: str, callback: Callable[[Any], Any]) -> "Job":
        self._monitor.once(event, callback)
        return self

    def off(self, event: str, callback: Callable[[Any], Any]) -> "Job":
        self._monitor.off(event, callback)
        return self

    def remove_all_listeners(self, event: Optional[str] = None) -> "Job":
        self._monitor.remove_all_listeners(event)
        return self

    def listener_count(self, event: str) -> int:
        return self._monitor.listener_count(event)

    async def wait(self) -> JobMetadata:
        return await self._monitor.wait()

    def rearm(self) -> None:
        self._monitor.rearm()

    # ---------------- Results -----------------
    def _resolve_options(self, options: OptionsArg) -> QueryResultsOptions:
        resolved = QueryResultsOptions.coerce(options)
        if resolved.location is None and self.location:
            resolved = resolved.merge(location=self.location)
        return resolved

    async def _fetch_results(self, options: QueryResultsOptions) -> QueryResultsResponse:
        response = await self.bigquery.request(
            "GET",
            f"queries/{quote(self.id, safe='')}",
            params=options.to_query_params(),
        )
        return QueryResultsResponse.model_validate(response)

    async def get_query_results(
        self, options: OptionsArg = None
    ) -> Union[ResultRows, QueryResultsPage]:
        """Read query results.

        With ``auto_paginate`` (the default) all pages are followed and the
        accumulated rows returned as ResultRows; ``max_api_calls`` and
        ``max_results`` may cut this short. With ``auto_paginate=False`` one
        request is made and a QueryResultsPage returned; resubmit its
        ``next_query`` until that is None.
        """
        resolved = self._resolve_options(options)
        if resolved.auto_paginate:
            return await self._paginator.collect(resolved)
        return await self._paginator.fetch_page(resolved)

    def get_query_results_stream(self, options: OptionsArg = None) -> AsyncIterator[Dict[str, Any]]:
        """Async iterator over result records, fetched page by page on demand."""
        return self._paginator.stream(self._resolve_options(options))

    def get_query_results_pages(self, options: OptionsArg = None) -> AsyncIterator[QueryResultsPage]:
        return self._paginator.iter_pages(self._resolve_options(options))
