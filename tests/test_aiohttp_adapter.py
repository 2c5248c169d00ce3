import asyncio
import pytest
from aioresponses import aioresponses

from bqjob.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from bqjob.adapters.retry_tenacity import TenacityRetryAdapter
from bqjob.core.config import HttpClientConfig, JobMonitorConfig
from bqjob.core.exceptions import TransportError
from bqjob.core.managers.bigquery import BigQuery
from bqjob.core.settings import BqJobSettings

"""
Tests for AioHttpClientAdapter behavior.

Each test verifies how the adapter maps upstream responses and errors into
TransportError. Expected outcomes:
- Non-JSON responses are invalid upstream content: code 502, not transient.
- HTTP error statuses keep the upstream status and the service's error
    envelope (message, reason).
- Network timeouts map to code 504.
- With a retry port, transient failures are retried and permanent ones are not.
"""

URL = "http://example.test/bigquery/v2/projects/p/jobs/job-1"


def fast_retry():
    return TenacityRetryAdapter(attempts=3, wait_initial=0.001, wait_max=0.002)


@pytest.mark.asyncio
async def test_get_json_response():
    with aioresponses() as m:
        m.get(URL + "?location=EU", payload={"status": {"state": "DONE"}}, status=200)

        async with AioHttpClientAdapter() as client:
            data = await client.get(URL, params={"location": "EU"})
            assert data == {"status": {"state": "DONE"}}


@pytest.mark.asyncio
async def test_post_json_response():
    with aioresponses() as m:
        m.post(URL + "/cancel", payload={"kind": "bigquery#jobCancelResponse"}, status=200)

        async with AioHttpClientAdapter() as client:
            data = await client.post(URL + "/cancel")
            assert data["kind"] == "bigquery#jobCancelResponse"


@pytest.mark.asyncio
async def test_non_json_response_raises_transport_error():
    with aioresponses() as m:
        m.get(URL, body="<html>error</html>", status=200, headers={"Content-Type": "text/html"})

        async with AioHttpClientAdapter() as client:
            with pytest.raises(TransportError) as excinfo:
                await client.get(URL)
            assert excinfo.value.code == 502
            assert not excinfo.value.transient


@pytest.mark.asyncio
async def test_error_envelope_is_parsed():
    envelope = {
        "error": {
            "code": 404,
            "message": "Not found: Job p:job-1",
            "errors": [{"reason": "notFound", "message": "Not found: Job p:job-1"}],
            "status": "NOT_FOUND",
        }
    }
    with aioresponses() as m:
        m.get(URL, status=404, payload=envelope)

        async with AioHttpClientAdapter() as client:
            with pytest.raises(TransportError) as excinfo:
                await client.get(URL)
            assert excinfo.value.code == 404
            assert excinfo.value.response.reason == "notFound"
            assert excinfo.value.message == "Not found: Job p:job-1"


@pytest.mark.asyncio
async def test_error_with_text_body():
    with aioresponses() as m:
        m.patch(URL, status=500, body="Server Error")

        async with AioHttpClientAdapter() as client:
            with pytest.raises(TransportError) as excinfo:
                await client.patch(URL, json={})
            assert excinfo.value.code == 500
            assert excinfo.value.response.body == "Server Error"
            assert excinfo.value.transient


@pytest.mark.asyncio
async def test_timeout_maps_to_504():
    with aioresponses() as m:
        m.get(URL, exception=asyncio.TimeoutError())

        async with AioHttpClientAdapter() as client:
            with pytest.raises(TransportError) as excinfo:
                await client.get(URL)
            assert excinfo.value.code == 504


@pytest.mark.asyncio
async def test_uninitialized_client_raises():
    client = AioHttpClientAdapter()
    with pytest.raises(RuntimeError):
        await client.get(URL)


@pytest.mark.asyncio
async def test_transient_error_is_retried():
    with aioresponses() as m:
        m.get(URL, status=503, payload={"error": {"code": 503, "message": "Backend error"}})
        m.get(URL, payload={"status": {"state": "RUNNING"}})

        async with AioHttpClientAdapter(retry=fast_retry()) as client:
            data = await client.get(URL)
            assert data["status"]["state"] == "RUNNING"


@pytest.mark.asyncio
async def test_permanent_error_is_not_retried():
    # A second attempt would hit no registered response and surface as a
    # connection error (502) instead of the original 400.
    with aioresponses() as m:
        m.get(URL, status=400, payload={"error": {"code": 400, "message": "Invalid job ID"}})

        async with AioHttpClientAdapter(retry=fast_retry()) as client:
            with pytest.raises(TransportError) as excinfo:
                await client.get(URL)
            assert excinfo.value.code == 400


@pytest.mark.asyncio
async def test_retry_gives_up_after_attempts():
    with aioresponses() as m:
        m.get(URL, status=503, repeat=True, payload={"error": {"code": 503, "message": "Backend error"}})

        async with AioHttpClientAdapter(retry=fast_retry()) as client:
            with pytest.raises(TransportError) as excinfo:
                await client.get(URL)
            assert excinfo.value.code == 503


@pytest.mark.asyncio
async def test_job_wait_end_to_end():
    """Every status request carries the job location; polling ends at DONE."""
    base = "http://example.test/bigquery/v2"
    status_url = base + "/projects/p/jobs/job-1?location=EU"
    with aioresponses() as m:
        m.get(status_url, payload={"status": {"state": "PENDING"}})
        m.get(status_url, payload={"status": {"state": "RUNNING"}})
        m.get(status_url, payload={"id": "p:EU.job-1", "status": {"state": "DONE"}})

        config = HttpClientConfig(total_timeout=5, connect_timeout=1)
        async with AioHttpClientAdapter(config=config) as client:
            bigquery = BigQuery(
                client,
                project_id="p",
                api_base_url=base,
                monitor_config=JobMonitorConfig(poll_interval=0.01, poll_max_interval=0.01),
            )
            job = bigquery.job("job-1", location="EU")
            metadata = await asyncio.wait_for(job.wait(), 2)

        assert metadata.id == "p:EU.job-1"


@pytest.mark.asyncio
async def test_malformed_json_body_raises_transport_error():
    with aioresponses() as m:
        m.get(URL, body="{not json", status=200, headers={"Content-Type": "application/json"})

        async with AioHttpClientAdapter() as client:
            with pytest.raises(TransportError) as excinfo:
                await client.get(URL)
            assert excinfo.value.code == 502
            assert excinfo.value.response.reason == "invalidResponse"
            assert not excinfo.value.transient


@pytest.mark.asyncio
async def test_from_app_settings_wires_timeouts_and_retry():
    settings = BqJobSettings(
        BQJOB_HTTP_TIMEOUT=12.0,
        BQJOB_HTTP_CONNECT_TIMEOUT=3.0,
        BQJOB_HTTP_RETRY_ATTEMPTS=2,
        BQJOB_HTTP_RETRY_WAIT_INITIAL=0.001,
        BQJOB_HTTP_RETRY_WAIT_MAX=0.002,
    )
    adapter = AioHttpClientAdapter.from_app_settings(settings, default_headers={"Authorization": "Bearer t"})

    assert adapter.config.total_timeout == 12.0
    assert adapter.config.connect_timeout == 3.0
    assert adapter.config.default_headers == {"Authorization": "Bearer t"}

    with aioresponses() as m:
        m.get(URL, status=503, payload={"error": {"code": 503, "message": "Backend error"}})
        m.get(URL, status=503, payload={"error": {"code": 503, "message": "Backend error"}})
        m.get(URL, payload={"status": {"state": "DONE"}})

        async with adapter as client:
            # Two attempts allowed, so the third registered response is never reached.
            with pytest.raises(TransportError) as excinfo:
                await client.get(URL)
            assert excinfo.value.code == 503
