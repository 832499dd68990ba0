"""HTTP transport for the HMC REST API.

The transport only moves bytes: it sends a request and returns the status,
headers and body of the response. HTTP error statuses are returned, not
raised; mapping them to exceptions is the connection's job.
"""

import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

import httpx
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class TransportResponse:
    """Response returned by a transport."""

    status: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)


class Transport(Protocol):
    """Interface used by :class:`Connection` to perform HTTP requests."""

    def perform(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: str | bytes | None,
    ) -> TransportResponse: ...

    def close(self) -> None: ...


class HttpxTransport:
    """Transport backed by ``httpx``.

    Thread-safe through thread-local storage of httpx.Client instances.
    Can be used as a context manager for automatic cleanup.
    """

    def __init__(
        self,
        base_url: str,
        verify: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = 0,
        http_transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the transport.

        Args:
            base_url: Base URL relative request URLs are resolved against
                (e.g., "https://hmc.example.com:12443").
            verify: Verify the server TLS certificate.
            timeout: Request timeout in seconds.
            retries: Number of connection retries on connect errors.
            http_transport: Replacement for the default httpx transport
                (e.g., httpx.MockTransport in tests).

        Raises:
            ValueError: If base_url is empty or timeout is not positive.
        """
        if not base_url:
            msg = "base_url cannot be empty"
            raise ValueError(msg)
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)

        self.base_url = base_url.rstrip("/")
        self._verify = verify
        self._timeout = timeout
        self._retries = retries
        self._http_transport = http_transport

        # Use thread-local storage for httpx.Client (thread safety)
        self._local = threading.local()

    @property
    def client(self) -> httpx.Client:
        """Get or create thread-local httpx client.

        Returns:
            Thread-local httpx.Client instance.
        """
        if not hasattr(self._local, "client") or self._local.client.is_closed:
            transport = self._http_transport or httpx.HTTPTransport(
                verify=self._verify,
                retries=self._retries,
            )
            self._local.client = httpx.Client(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=transport,
            )
        return self._local.client

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self) -> None:
        """Close the thread-local HTTP client if open."""
        if hasattr(self._local, "client") and not self._local.client.is_closed:
            self._local.client.close()

    def perform(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: str | bytes | None,
    ) -> TransportResponse:
        """Send one HTTP request.

        Args:
            method: HTTP method.
            url: Absolute URL or path relative to base_url.
            headers: Request headers.
            body: Request payload.

        Returns:
            Status, headers and body of the response.

        Raises:
            httpx.HTTPError: If the request could not be sent or answered.
        """
        start_time = time.time()
        try:
            logger.debug("Sending HMC request", method=method, url=url)
            response = self.client.request(method, url, headers=dict(headers), content=body)
        except httpx.HTTPError:
            logger.exception(
                "HMC request failed",
                method=method,
                url=url,
                duration_seconds=round(time.time() - start_time, 3),
            )
            raise

        logger.debug(
            "HMC request completed",
            method=method,
            url=url,
            status=response.status_code,
            duration_seconds=round(time.time() - start_time, 3),
        )
        return TransportResponse(
            status=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )
