from __future__ import annotations

from enum import StrEnum
from typing import Any, ClassVar, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bqjob.core.models.job import ErrorProto, JobReference


class TableFieldSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    type: str = "STRING"
    mode: Optional[str] = None  # NULLABLE, REQUIRED or REPEATED
    fields: Optional[List["TableFieldSchema"]] = None
    description: Optional[str] = None

    @property
    def repeated(self) -> bool:
        return (self.mode or "").upper() == "REPEATED"


class TableSchema(BaseModel):
    fields: List[TableFieldSchema] = Field(default_factory=list)


class QueryResultsOptions(BaseModel):
    """Options of one ``getQueryResults`` call.

    Python side names are snake_case; the wire uses the camelCase aliases.
    ``auto_paginate`` and ``max_api_calls`` only steer the local paginator and
    are never sent. ``max_results`` is sent as the page size and also caps
    the number of rows accumulated in automatic mode.

    Instances are frozen; use :meth:`merge` to derive a changed copy.
    """
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    LOCAL_ONLY: ClassVar[frozenset[str]] = frozenset({"auto_paginate", "max_api_calls"})

    auto_paginate: bool = True
    max_api_calls: Optional[int] = Field(default=None, ge=1)
    max_results: Optional[int] = Field(default=None, ge=0)
    page_token: Optional[str] = None
    start_index: Optional[int] = Field(default=None, ge=0)
    timeout_ms: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None

    @classmethod
    def coerce(
        cls, value: Union["QueryResultsOptions", Dict[str, Any], None]
    ) -> "QueryResultsOptions":
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls.model_validate(value)

    def merge(self, **changes: Any) -> "QueryResultsOptions":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def to_query_params(self) -> Dict[str, str]:
        params = self.model_dump(by_alias=True, exclude_none=True, exclude=set(self.LOCAL_ONLY))
        return {key: str(value) for key, value in params.items()}


class QueryResultsResponse(BaseModel):
    """Body of a ``jobs.getQueryResults`` response."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    kind: Optional[str] = None
    etag: Optional[str] = None
    table_schema: Optional[TableSchema] = Field(default=None, alias="schema")
    job_reference: Optional[JobReference] = Field(default=None, alias="jobReference")
    total_rows: Optional[int] = Field(default=None, alias="totalRows")
    page_token: Optional[str] = Field(default=None, alias="pageToken")
    rows: Optional[List[Dict[str, Any]]] = None
    job_complete: Optional[bool] = Field(default=None, alias="jobComplete")
    errors: Optional[List[ErrorProto]] = None
    cache_hit: Optional[bool] = Field(default=None, alias="cacheHit")


class ContinuationKind(StrEnum):
    RUNNING = "RUNNING"
    NEXT_PAGE = "NEXT_PAGE"
    DONE = "DONE"


class Continuation(BaseModel):
    """How to obtain more data after a results call.

    RUNNING: the query has not finished; resubmit ``options`` unchanged.
    NEXT_PAGE: more pages exist; ``options`` carries the new page token.
    DONE: nothing left to read; ``options`` is None.
    """
    model_config = ConfigDict(frozen=True)

    kind: ContinuationKind
    options: Optional[QueryResultsOptions] = None

    @classmethod
    def running(cls, options: QueryResultsOptions) -> "Continuation":
        return cls(kind=ContinuationKind.RUNNING, options=options)

    @classmethod
    def next_page(cls, options: QueryResultsOptions, page_token: str) -> "Continuation":
        return cls(kind=ContinuationKind.NEXT_PAGE, options=options.merge(page_token=page_token))

    @classmethod
    def done(cls) -> "Continuation":
        return cls(kind=ContinuationKind.DONE)

    @property
    def is_done(self) -> bool:
        return self.kind == ContinuationKind.DONE

    @property
    def page_token(self) -> Optional[str]:
        if self.kind != ContinuationKind.NEXT_PAGE or self.options is None:
            return None
        return self.options.page_token


class QueryResultsPage(BaseModel):
    """One page of a manual-mode results call."""

    rows: List[Dict[str, Any]] = Field(default_factory=list)
    continuation: Continuation
    response: QueryResultsResponse

    @property
    def next_query(self) -> Optional[QueryResultsOptions]:
        """Options for the next request, or None when no more data exists."""
        return self.continuation.options

    @property
    def job_complete(self) -> bool:
        return self.response.job_complete is not False


class ResultRows(list):
    """Rows accumulated in automatic mode.

    Behaves as a plain list of records. When ``max_api_calls`` or
    ``max_results`` stopped the loop early the result may be incomplete;
    ``continuation`` then holds the request that would have come next and
    ``is_complete`` is False. ``truncated`` is set when rows the server
    delivered were dropped to honour ``max_results``.
    """

    def __init__(
        self,
        rows=(),
        continuation: Optional[Continuation] = None,
        api_calls: int = 0,
        truncated: bool = False,
    ):
        super().__init__(rows)
        self.continuation = continuation or Continuation.done()
        self.api_calls = api_calls
        self.truncated = truncated

    @property
    def is_complete(self) -> bool:
        return self.continuation.is_done and not self.truncated
