"""ResultPaginator: manual, automatic and streaming reads of query results.

Every step issues one results request and classifies the answer:

- ``jobComplete`` is False: the query is still running. The same options
  must be sent again (RUNNING). Rows delivered alongside are kept.
- a ``pageToken`` is present: more pages exist (NEXT_PAGE).
- otherwise nothing is left (DONE).

Requests are strictly sequential, no page is prefetched.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from bqjob.core.config import ResultPaginatorConfig
from bqjob.core.models.query_results import (
    Continuation,
    ContinuationKind,
    QueryResultsOptions,
    QueryResultsPage,
    QueryResultsResponse,
    ResultRows,
    TableSchema,
)
from bqjob.core.settings import app_settings, logger

FetchFunc = Callable[[QueryResultsOptions], Awaitable[QueryResultsResponse]]
MergeFunc = Callable[[TableSchema, Sequence[Dict[str, Any]]], List[Dict[str, Any]]]


class ResultPaginator:
    """Drive the results protocol for one job.

    Args:
        fetch: Coroutine function issuing one results request for the given
            options (location already applied). Raises TransportError.
        merge_rows: Combines schema and raw rows into records.
        config: Paginator policy.
        job_id: Used for logging only.
    """

    def __init__(
        self,
        fetch: FetchFunc,
        merge_rows: MergeFunc,
        config: Optional[ResultPaginatorConfig] = None,
        job_id: Optional[str] = None,
    ) -> None:
        self._fetch = fetch
        self._merge_rows = merge_rows
        self.config = config or ResultPaginatorConfig.from_app_settings(app_settings)
        self.job_id = job_id

    @staticmethod
    def continuation_for(
        options: QueryResultsOptions, response: QueryResultsResponse
    ) -> Continuation:
        if response.job_complete is False:
            return Continuation.running(options)
        if response.page_token:
            return Continuation.next_page(options, response.page_token)
        return Continuation.done()

    async def fetch_page(self, options: QueryResultsOptions) -> QueryResultsPage:
        """One request; errors propagate unchanged."""
        response = await self._fetch(options)
        rows: List[Dict[str, Any]] = []
        if response.table_schema is not None and response.rows:
            rows = self._merge_rows(response.table_schema, response.rows)
        continuation = self.continuation_for(options, response)
        logger.debug(
            f"[paginator:page] job_id={self.job_id} rows={len(rows)} "
            f"job_complete={response.job_complete} continuation={continuation.kind}"
        )
        return QueryResultsPage(rows=rows, continuation=continuation, response=response)

    async def collect(self, options: QueryResultsOptions) -> ResultRows:
        """Automatic mode: follow continuations and accumulate rows.

        Stops when the continuation is DONE, after ``max_api_calls``
        requests, or once ``max_results`` rows were gathered. In the two
        capped cases the result may be incomplete; the continuation that
        would have been followed is kept on the returned ResultRows.
        Follow-up requests ask only for the rows still missing. Rows beyond
        ``max_results`` are dropped and mark the result as truncated.
        """
        rows: List[Dict[str, Any]] = []
        api_calls = 0
        current = options
        while True:
            page = await self.fetch_page(current)
            api_calls += 1
            rows.extend(page.rows)
            continuation = page.continuation
            if continuation.is_done:
                break
            if options.max_results is not None and len(rows) >= options.max_results:
                logger.debug(f"[paginator:collect] job_id={self.job_id} max_results={options.max_results} reached")
                break
            if options.max_api_calls is not None and api_calls >= options.max_api_calls:
                logger.debug(f"[paginator:collect] job_id={self.job_id} max_api_calls={options.max_api_calls} reached")
                break
            await self._before_resubmit(continuation)
            current = self._next_options(options, continuation, len(rows))

        truncated = options.max_results is not None and len(rows) > options.max_results
        if truncated:
            logger.warning(
                f"[paginator:collect] job_id={self.job_id} dropped {len(rows) - options.max_results} "
                f"rows beyond max_results={options.max_results}"
            )
            del rows[options.max_results:]
        return ResultRows(rows, continuation=continuation, api_calls=api_calls, truncated=truncated)

    async def iter_pages(self, options: QueryResultsOptions) -> AsyncIterator[QueryResultsPage]:
        """Yield pages lazily in manual mode until nothing is left.

        Honours ``max_api_calls`` and ``max_results`` like :meth:`collect`.
        The iterator is single use; start a new one to read from the start.
        """
        current = options.merge(auto_paginate=False)
        api_calls = 0
        delivered = 0
        while True:
            page = await self.fetch_page(current)
            api_calls += 1
            if options.max_results is not None:
                remaining = options.max_results - delivered
                if len(page.rows) > remaining:
                    logger.warning(
                        f"[paginator:pages] job_id={self.job_id} dropped {len(page.rows) - remaining} "
                        f"rows beyond max_results={options.max_results}"
                    )
                    page = page.model_copy(update={"rows": page.rows[:remaining]})
            delivered += len(page.rows)
            yield page

            continuation = page.continuation
            if continuation.is_done:
                return
            if options.max_results is not None and delivered >= options.max_results:
                return
            if options.max_api_calls is not None and api_calls >= options.max_api_calls:
                return
            await self._before_resubmit(continuation)
            current = self._next_options(options, continuation, delivered)

    async def stream(self, options: QueryResultsOptions) -> AsyncIterator[Dict[str, Any]]:
        """Yield records one by one; see :meth:`iter_pages`."""
        async for page in self.iter_pages(options):
            for row in page.rows:
                yield row

    async def _before_resubmit(self, continuation: Continuation) -> None:
        if continuation.kind == ContinuationKind.RUNNING and self.config.running_retry_delay > 0:
            await asyncio.sleep(self.config.running_retry_delay)

    @staticmethod
    def _next_options(
        options: QueryResultsOptions, continuation: Continuation, gathered: int
    ) -> QueryResultsOptions:
        """Options to resubmit, asking only for the rows ``max_results`` still allows."""
        following = continuation.options
        if options.max_results is None:
            return following
        return following.merge(max_results=options.max_results - gathered)
