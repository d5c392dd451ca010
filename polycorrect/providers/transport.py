"""Shared pooled HTTP clients used by all provider adapters."""
from __future__ import annotations

import asyncio
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..errors import (
    ApiConnectionError,
    ApiError,
    ApiResponseError,
    ApiTimeoutError,
    CONNECTION_TIMEOUT,
    DEFAULT_TIMEOUT,
    STREAMING_READ_TIMEOUT,
)
from ..logger import get_logger

logger = get_logger(__name__)

MAX_IDLE_PER_HOST = 10
BATCH_KEEPALIVE_EXPIRY = 30.0
STREAMING_KEEPALIVE_EXPIRY = 90.0


def classify_transport_error(error: Exception, timeout: float) -> ApiError:
    """Map an httpx failure onto the Connection/Timeout/Response taxonomy."""
    if isinstance(error, httpx.TimeoutException):
        return ApiTimeoutError.after(timeout)
    if isinstance(error, httpx.ConnectError):
        return ApiConnectionError(str(error) or type(error).__name__)
    return ApiResponseError(str(error) or type(error).__name__)


class HttpTransport:
    """
    Two lazily-created ``httpx.AsyncClient`` pools with distinct timeout profiles.

    The batch client enforces a total request timeout, the streaming client only
    bounds the connect phase and the gap between received bytes so long
    generations are not cut off. Both clients are safe to share between the
    concurrently running provider tasks of one event loop.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = CONNECTION_TIMEOUT,
        stream_read_timeout: float = STREAMING_READ_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.stream_read_timeout = stream_read_timeout
        self._transport = transport
        self._batch_client: Optional[httpx.AsyncClient] = None
        self._stream_client: Optional[httpx.AsyncClient] = None
        self._lock = threading.Lock()

    def _build_client(self, timeout: httpx.Timeout, keepalive_expiry: float) -> httpx.AsyncClient:
        limits = httpx.Limits(
            max_keepalive_connections=MAX_IDLE_PER_HOST,
            keepalive_expiry=keepalive_expiry,
        )
        kwargs: Dict[str, Any] = {"timeout": timeout, "limits": limits}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    def batch_timeout(self, request_timeout: Optional[float] = None) -> httpx.Timeout:
        return httpx.Timeout(request_timeout or self.timeout, connect=self.connect_timeout)

    def stream_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self.timeout,
            connect=self.connect_timeout,
            read=self.stream_read_timeout,
        )

    @property
    def batch_client(self) -> httpx.AsyncClient:
        with self._lock:
            if self._batch_client is None:
                self._batch_client = self._build_client(self.batch_timeout(), BATCH_KEEPALIVE_EXPIRY)
            return self._batch_client

    @property
    def stream_client(self) -> httpx.AsyncClient:
        with self._lock:
            if self._stream_client is None:
                self._stream_client = self._build_client(self.stream_timeout(), STREAMING_KEEPALIVE_EXPIRY)
            return self._stream_client

    async def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """POST a JSON body and return the decoded JSON response."""
        effective_timeout = timeout or self.timeout
        try:
            response = await self.batch_client.post(
                url,
                json=payload,
                headers=headers,
                timeout=self.batch_timeout(effective_timeout),
            )
        except httpx.HTTPError as error:
            raise classify_transport_error(error, self._error_timeout(error, effective_timeout)) from error

        if not response.is_success:
            raise ApiResponseError.from_status(response.status_code, response.reason_phrase, response.text)

        try:
            return response.json()
        except ValueError as error:
            raise ApiResponseError(f"Failed to parse response: {error}") from error

    @asynccontextmanager
    async def stream_lines(
        self,
        url: str,
        payload: Dict[str, Any],
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[AsyncIterator[str]]:
        """
        Open a streaming POST and yield an async iterator over its text lines.

        Transport failures are classified with the connect timeout when the
        connection never opened, otherwise with the streaming read timeout.
        """
        try:
            async with self.stream_client.stream("POST", url, json=payload, headers=headers) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise ApiResponseError.from_status(response.status_code, response.reason_phrase, body)
                yield response.aiter_lines()
        except httpx.HTTPError as error:
            raise classify_transport_error(error, self._error_timeout(error, self.stream_read_timeout)) from error

    def _error_timeout(self, error: Exception, request_timeout: float) -> float:
        """The timeout that actually expired: connect, or the request/read limit."""
        if isinstance(error, httpx.ConnectTimeout):
            return self.connect_timeout
        return request_timeout

    async def aclose(self) -> None:
        with self._lock:
            clients = [client for client in (self._batch_client, self._stream_client) if client is not None]
            self._batch_client = None
            self._stream_client = None
        if clients:
            await asyncio.gather(*(client.aclose() for client in clients), return_exceptions=True)
            logger.debug("HTTP transport closed")
