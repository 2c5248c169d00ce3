# bqjob/adapters/aiohttp_client_adapter.py
import asyncio
import aiohttp
from typing import Any, Dict, Mapping, Optional

from bqjob.adapters.retry_tenacity import TenacityRetryAdapter
from bqjob.core.config import HttpClientConfig
from bqjob.core.exceptions import TransportError
from bqjob.core.interfaces.http_client import HttpClientPort
from bqjob.core.interfaces.retry import RetryPort
from bqjob.core.models.api_error import ApiErrorResponse
from bqjob.core.settings import app_settings, logger


class AioHttpClientAdapter(HttpClientPort):
    """aiohttp transport.

    Translates every failure into TransportError. When a retry port is
    given, transient failures (429, 5xx, timeouts, connection errors) are
    retried there; nothing above the transport retries.
    """

    def __init__(
        self,
        config: Optional[HttpClientConfig] = None,
        retry: Optional[RetryPort] = None,
    ):
        self.config = config or HttpClientConfig()
        self._retry = retry
        self._session: Optional[aiohttp.ClientSession] = None
        # Pre-built ClientTimeout used when callers do not provide a timeout
        self._default_client_timeout = aiohttp.ClientTimeout(
            total=self.config.total_timeout,
            sock_connect=self.config.connect_timeout,
        )

    @classmethod
    def from_app_settings(
        cls,
        settings=None,
        default_headers: Optional[Dict[str, str]] = None,
    ) -> "AioHttpClientAdapter":
        """Transport with timeouts and tenacity retries taken from ``BQJOB_HTTP_*``.

        ``default_headers`` typically carries the ``Authorization`` header.
        """
        config = HttpClientConfig.from_app_settings(settings or app_settings)
        if default_headers:
            config = config.model_copy(update={"default_headers": default_headers})
        return cls(config, retry=TenacityRetryAdapter.from_config(config))

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession(headers=self.config.default_headers)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    async def request(
        self,
        method: str,
        url: str,
        params: Mapping[str, str] | None = None,
        json: Dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")

        if timeout is None:
            client_timeout = self._default_client_timeout
        else:
            # Keep adapter-level connect timeout but apply provided total
            client_timeout = aiohttp.ClientTimeout(
                total=timeout,
                sock_connect=self.config.connect_timeout,
            )

        if self._retry is None:
            return await self._send(method, url, params, json, client_timeout)
        return await self._retry.execute(self._send, method, url, params, json, client_timeout)

    async def _send(
        self,
        method: str,
        url: str,
        params: Mapping[str, str] | None,
        json: Dict[str, Any] | None,
        timeout: aiohttp.ClientTimeout,
    ) -> Dict[str, Any]:
        """Issue one request and return the JSON body."""
        logger.debug("[http:%s] url=%s params=%s", method, url, dict(params) if params else None)
        try:
            async with self._session.request(
                method, url, params=params, json=json, timeout=timeout
            ) as response:
                if response.status >= 400:
                    raise self._error_from_response(url, response.status, await self._read_body(response))

                if response.status == 204:
                    return {}

                try:
                    body = await response.json()
                except (aiohttp.ContentTypeError, ValueError):
                    # ValueError: JSON content type with a malformed body
                    response_text = await response.text()
                    logger.error(
                        "Invalid JSON response from remote service. URL: %s, Content: %s",
                        url,
                        response_text[:500],
                    )
                    raise TransportError(
                        ApiErrorResponse(
                            code=502,
                            message=(
                                "The response from the remote service was not valid JSON"
                                f": '{response_text[:100]}'"
                            ),
                            reason="invalidResponse",
                            body=response_text[:500],
                        )
                    )
                return body if body is not None else {}

        except TransportError:
            raise

        except asyncio.TimeoutError:
            logger.error("Timeout when requesting remote service. URL: %s", url)
            raise TransportError(
                ApiErrorResponse(
                    code=504,
                    message="The request to the remote service timed out.",
                    reason="timeout",
                )
            )

        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when requesting remote service. URL: %s, Error: %s",
                url,
                str(client_error),
            )
            raise TransportError(
                ApiErrorResponse(
                    code=502,
                    message=f"There was a connection error with the remote service: {client_error}",
                    reason="connectionError",
                )
            )

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> Any:
        text = await response.text()
        try:
            return await response.json(content_type=None)
        except ValueError:
            return text

    @staticmethod
    def _error_from_response(url: str, status: int, body: Any) -> TransportError:
        error = ApiErrorResponse.from_body(status, body)
        if status in (401, 403):
            logger.warning(
                "Authentication failed when requesting remote service. URL: %s, Status: %s, Error: %s",
                url,
                status,
                error.message,
            )
        else:
            logger.error(
                "HTTP error when requesting remote service. URL: %s, Status: %s, Error: %s",
                url,
                status,
                error.message,
            )
        return TransportError(error)

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
