"""
Async HTTP transport for the AI services Cloud Functions.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping

import httpx

from narrative_forge.common.errors import ErrorCode, ServiceError

from .envelope import ServiceResponse

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})

_JSON_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

SleepCallable = Callable[[float], Awaitable[Any]]


def is_retryable(error: ServiceError) -> bool:
    """Return True for transient failures worth another attempt."""
    if error.code == ErrorCode.NETWORK_ERROR:
        return True
    return error.status_code in RETRYABLE_STATUS_CODES


def _describe_network_error(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return f"request timed out ({type(exc).__name__})"
    return str(exc) or type(exc).__name__


class AIServicesTransport:
    """
    Issues JSON requests against one base URL and normalises the response envelope.

    Parameters
    ----------
    base_url:
        Base URL that endpoint paths are appended to.
    timeout:
        Per-request timeout in seconds, applied by the underlying ``httpx`` client.
    max_retries:
        Number of extra attempts for network failures and 429/502/503/504 responses.
        ``0`` means a single attempt per call.
    backoff_base / backoff_cap:
        Exponential backoff, in seconds, between retry attempts.
    headers:
        Extra headers sent with every request.
    client:
        Optional pre-configured :class:`httpx.AsyncClient`. Mainly useful for testing
        with :class:`httpx.MockTransport`. Clients passed in are not closed by
        :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 120.0,
        max_retries: int = 0,
        backoff_base: float = 0.5,
        backoff_cap: float = 8.0,
        headers: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: SleepCallable | None = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise ValueError("AI services base URL is required.")
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative.")

        self._base_url = base_url.strip().rstrip("/")
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._backoff_cap = backoff_cap
        self._headers = {**_JSON_HEADERS, **dict(headers or {})}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 30.0)),
        )
        self._sleep: SleepCallable = sleep or asyncio.sleep

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> "AIServicesTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def request(
        self,
        endpoint: str,
        *,
        method: str = "POST",
        body: Mapping[str, Any] | None = None,
    ) -> ServiceResponse:
        """
        Send a request and return the successful envelope.

        Raises
        ------
        ServiceError
            ``NETWORK_ERROR`` when no HTTP response was obtained, the envelope's
            ``error``/``code`` with the HTTP status when the call failed, and
            ``PARSE_ERROR`` when a successful response is not a JSON envelope.
        """
        attempt = 0
        while True:
            try:
                return await self._request_once(endpoint, method=method, body=body)
            except ServiceError as exc:
                if attempt >= self._max_retries or not is_retryable(exc):
                    raise
                delay = min(self._backoff_cap, self._backoff_base * (2**attempt))
                attempt += 1
                logger.warning(
                    "AI services %s %s failed (%s); retry %d/%d in %.2fs",
                    method,
                    endpoint,
                    exc.message,
                    attempt,
                    self._max_retries,
                    delay,
                )
                await self._sleep(delay)

    async def _request_once(
        self,
        endpoint: str,
        *,
        method: str,
        body: Mapping[str, Any] | None,
    ) -> ServiceResponse:
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        url = f"{self._base_url}{path}"

        request_kwargs: dict[str, Any] = {"headers": self._headers}
        if body is not None:
            request_kwargs["json"] = dict(body)

        try:
            response = await self._client.request(method, url, **request_kwargs)
        except httpx.HTTPError as exc:
            raise ServiceError(
                f"Network error: {_describe_network_error(exc)}",
                code=ErrorCode.NETWORK_ERROR,
                cause=exc,
            ) from exc

        status = response.status_code
        try:
            payload = response.json()
        except ValueError as exc:
            if response.is_success:
                raise ServiceError(
                    "AI services returned a response that is not valid JSON.",
                    code=ErrorCode.PARSE_ERROR,
                    status_code=status,
                    cause=exc,
                ) from exc
            raise ServiceError(
                f"Request failed with status {status}",
                status_code=status,
                cause=exc,
            ) from exc

        if not isinstance(payload, Mapping):
            if response.is_success:
                raise ServiceError(
                    "AI services response envelope must be a JSON object.",
                    code=ErrorCode.PARSE_ERROR,
                    status_code=status,
                )
            raise ServiceError(f"Request failed with status {status}", status_code=status)

        envelope = ServiceResponse.from_mapping(payload, status_code=status)
        if not response.is_success or not envelope.success:
            raise ServiceError(
                envelope.error or f"Request failed with status {status}",
                code=envelope.code,
                status_code=status,
            )

        logger.debug(
            "AI services %s %s -> %d (cached=%s, source=%s)",
            method,
            path,
            status,
            envelope.cached,
            envelope.source,
        )
        return envelope
