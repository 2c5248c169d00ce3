# bqjob/core/interfaces/http_client.py
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping

class HttpClientPort(ABC):
    @abstractmethod
    async def __aenter__(self) -> "HttpClientPort":
        """Async context manager entry method"""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit method"""
        pass

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        params: Mapping[str, str] | None = None,
        json: Dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        """Make a request and return the parsed JSON body.

        Any failure (network, timeout, non-2xx status, invalid JSON) raises
        TransportError. The timeout is optional; adapters fall back to their
        configured default when it is None.
        """
        pass

    async def get(self, url: str, params: Mapping[str, str] | None = None, timeout: float | None = None) -> Dict[str, Any]:
        return await self.request("GET", url, params=params, timeout=timeout)

    async def post(self, url: str, json: Dict[str, Any] | None = None, params: Mapping[str, str] | None = None, timeout: float | None = None) -> Dict[str, Any]:
        return await self.request("POST", url, params=params, json=json, timeout=timeout)

    async def patch(self, url: str, json: Dict[str, Any] | None = None, params: Mapping[str, str] | None = None, timeout: float | None = None) -> Dict[str, Any]:
        return await self.request("PATCH", url, params=params, json=json, timeout=timeout)

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client session"""
        pass
