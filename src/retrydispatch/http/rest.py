"""REST helpers built on the retrying transports.

:class:`RestClient` (sync) and :class:`AsyncRestClient` (async) build a
request from a method, URL and optional JSON payload and pick the send
path: ``send_with_retry`` when retries are requested **and** the method is
idempotent, plain ``send`` otherwise.  Response interpretation is left to
the caller; every status code comes back as a response.
"""

from __future__ import annotations

import enum
from typing import Any

import httpx

from .transport import AsyncRetryingTransport, RetryingTransport

_DEFAULT_HEADERS: dict[str, str] = {"Accept": "application/json"}


class HttpMethod(str, enum.Enum):
    """HTTP methods with their idempotency (RFC 9110 section 9.2.2)."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    CONNECT = "CONNECT"

    @property
    def is_idempotent(self) -> bool:
        return self not in _NON_IDEMPOTENT


_NON_IDEMPOTENT: frozenset[HttpMethod] = frozenset({
    HttpMethod.POST,
    HttpMethod.PATCH,
    HttpMethod.CONNECT,
})


def _merge_headers(headers: dict[str, str] | None) -> dict[str, str]:
    merged = dict(_DEFAULT_HEADERS)
    if headers:
        # Caller-supplied values win, whatever their casing.
        lowered = {k.lower() for k in headers}
        merged = {k: v for k, v in merged.items() if k.lower() not in lowered}
        merged.update(headers)
    return merged


def _should_retry(method: HttpMethod, retry: bool) -> bool:
    return retry and method.is_idempotent


class RestClient:
    """Synchronous REST helper.

    Parameters
    ----------
    transport:
        A configured :class:`RetryingTransport` instance.
    """

    def __init__(self, transport: RetryingTransport) -> None:
        self._transport = transport

    def request(
        self,
        method: HttpMethod | str,
        url: str,
        *,
        retry: bool = True,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        """Send one request and return the raw response.

        Parameters
        ----------
        method:
            An :class:`HttpMethod` or its name (case-insensitive).
        url:
            Absolute URL, or a path relative to the transport's base URL.
        retry:
            Enable retries.  Ignored for non-idempotent methods
            (``POST``, ``PATCH``, ``CONNECT``), which are always sent once.
        headers:
            Extra headers; ``Accept: application/json`` is added unless
            overridden.
        params:
            Query string parameters.
        json:
            JSON-serialisable payload.
        """
        method = HttpMethod(method.upper()) if isinstance(method, str) else method
        req = self._transport.build_request(
            method.value, url, headers=_merge_headers(headers), params=params, json=json,
        )
        if _should_retry(method, retry):
            return self._transport.send_with_retry(req)
        return self._transport.send(req)

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request(HttpMethod.GET, url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request(HttpMethod.POST, url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request(HttpMethod.PUT, url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request(HttpMethod.PATCH, url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request(HttpMethod.DELETE, url, **kwargs)


class AsyncRestClient:
    """Asynchronous REST helper.

    Async equivalent of :class:`RestClient`.
    """

    def __init__(self, transport: AsyncRetryingTransport) -> None:
        self._transport = transport

    async def request(
        self,
        method: HttpMethod | str,
        url: str,
        *,
        retry: bool = True,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        """See :meth:`RestClient.request`."""
        method = HttpMethod(method.upper()) if isinstance(method, str) else method
        req = self._transport.build_request(
            method.value, url, headers=_merge_headers(headers), params=params, json=json,
        )
        if _should_retry(method, retry):
            return await self._transport.send_with_retry(req)
        return await self._transport.send(req)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request(HttpMethod.GET, url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request(HttpMethod.POST, url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request(HttpMethod.PUT, url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request(HttpMethod.PATCH, url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request(HttpMethod.DELETE, url, **kwargs)
