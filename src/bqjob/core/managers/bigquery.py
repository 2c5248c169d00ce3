"""BigQuery: owner context shared by the job handles of one project."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote

from bqjob.adapters.schema_row_merger import SchemaRowMerger
from bqjob.core.config import JobMonitorConfig, ResultPaginatorConfig
from bqjob.core.interfaces.http_client import HttpClientPort
from bqjob.core.interfaces.row_merger import RowMergerPort
from bqjob.core.managers.job import Job
from bqjob.core.models.query_results import TableSchema
from bqjob.core.settings import app_settings


class BigQuery:
    """Holds transport, project and defaults; creates :class:`Job` handles.

    Defaults not passed explicitly are taken from the environment settings
    once, here, and are not re-read afterwards.
    """

    def __init__(
        self,
        http_client: HttpClientPort,
        project_id: Optional[str] = None,
        api_base_url: Optional[str] = None,
        location: Optional[str] = None,
        row_merger: Optional[RowMergerPort] = None,
        monitor_config: Optional[JobMonitorConfig] = None,
        paginator_config: Optional[ResultPaginatorConfig] = None,
    ) -> None:
        self._http = http_client
        self.project_id = project_id or app_settings.BQJOB_PROJECT_ID
        if not self.project_id:
            raise ValueError("project_id is required (argument or BQJOB_PROJECT_ID)")
        self.api_base_url = str(api_base_url or app_settings.BQJOB_API_BASE_URL).rstrip("/")
        self.location = location if location is not None else app_settings.BQJOB_DEFAULT_LOCATION
        self.row_merger = row_merger or SchemaRowMerger()
        self.monitor_config = monitor_config or JobMonitorConfig.from_app_settings(app_settings)
        self.paginator_config = paginator_config or ResultPaginatorConfig.from_app_settings(app_settings)

    def job(self, job_id: str, location: Optional[str] = None) -> Job:
        return Job(self, job_id, location=location)

    def url(self, path: str) -> str:
        return f"{self.api_base_url}/projects/{quote(self.project_id, safe='')}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        return await self._http.request(method, self.url(path), params=params, json=json)

    def merge_schema_with_rows(
        self, schema: TableSchema, rows: Sequence[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        return self.row_merger.merge(schema, rows)
