"""
ApiClient - Async HTTP client for the storefront backend.

Every backend call goes through ``ApiClient.request`` which adds:
- A timeout on each individual attempt
- Classification of failures (ProtocolError, NetworkError, RequestTimeoutError)
- Retries with exponential backoff for retryable failures
- Content-type negotiation (StructuredPayload for JSON, RawText otherwise)

Caching is not done here, see CacheCoordinator.
"""

import asyncio
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import httpx
from loguru import logger

from storefront.services.backoff import backoff_delay
from storefront.services.errors import (
    ConfigurationError,
    NetworkError,
    ProtocolError,
    RequestTimeoutError,
    ServiceError,
)
from storefront.services.request_log import RequestLog

if TYPE_CHECKING:
    from storefront.settings import Settings

METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

DEFAULT_HEADERS = {"Content-Type": "application/json"}


def accept_2xx(status: int) -> bool:
    """Default status predicate."""
    return 200 <= status < 300


@dataclass
class RequestOptions:
    """
    Per-call request descriptor.

    Fields left as None fall back to the client defaults.
    """

    method: str = "GET"
    headers: dict[str, str] | None = None
    body: Any = None
    timeout: float | None = None
    retries: int | None = None
    retry_delay: float | None = None
    validate_status: Callable[[int], bool] = accept_2xx
    # 4xx statuses the caller wants retried anyway (e.g. 408, 429)
    retryable_statuses: Collection[int] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        if self.method not in METHODS:
            raise ValueError(f"Unsupported HTTP method: {self.method}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.retries is not None and self.retries < 0:
            raise ValueError(f"retries must be >= 0, got {self.retries}")
        if self.retry_delay is not None and self.retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {self.retry_delay}")


@dataclass(frozen=True)
class StructuredPayload:
    """Decoded JSON response body."""

    data: Any
    status: int = 200


@dataclass(frozen=True)
class RawText:
    """Response body returned as text because it did not declare JSON."""

    text: str
    status: int = 200


Payload = StructuredPayload | RawText


def is_structured_content_type(content_type: str | None) -> bool:
    """True for application/json and any +json media type."""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def expect_structured(payload: Payload) -> Any:
    """Return the decoded data, or fail if the backend sent plain text."""
    if isinstance(payload, StructuredPayload):
        return payload.data
    raise ProtocolError(
        payload.status,
        "Expected a structured (JSON) response body",
        retryable=False,
    )


class ApiClient:
    """
    Backend HTTP client with per-attempt timeouts and retries.

    Usage:
        client = ApiClient(base_url="https://api.example.com")

        payload = await client.get("/products")
        products = expect_structured(payload)

        await client.patch("/products/p1/stock", body={"stockCount": 3})

    Retry rules:
        - NetworkError, RequestTimeoutError and 5xx ProtocolError are retried
        - 4xx ProtocolError fails immediately unless marked retryable
        - Writes follow the same rules; pass retries=0 to opt out
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        retries: int = 3,
        retry_delay: float = 1.0,
        retry_jitter: float = 0.0,
        default_headers: dict[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        request_log: RequestLog | None = None,
        service_id: str = "backend",
        debug: bool = False,
    ):
        if not base_url:
            raise ConfigurationError("ApiClient requires a base_url")
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")
        if retries < 0:
            raise ValueError(f"retries must be >= 0, got {retries}")
        if retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {retry_delay}")

        self._base_url = base_url.rstrip("/")
        self._default_timeout = timeout
        self._default_retries = retries
        self._default_retry_delay = retry_delay
        self._retry_jitter = retry_jitter
        self._default_headers = httpx.Headers(
            DEFAULT_HEADERS if default_headers is None else default_headers
        )
        self._sleep = sleep
        self._debug = debug
        self.service_id = service_id
        self.request_log = request_log or RequestLog(debug=debug)

        # HTTP client (lazy initialization unless injected)
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @classmethod
    def from_settings(cls, settings: "Settings", **kwargs: Any) -> "ApiClient":
        """Build a client from application settings."""
        return cls(
            base_url=settings.api_base_url(),
            timeout=settings.api_timeout,
            retries=settings.api_max_retries,
            retry_delay=settings.api_retry_delay,
            retry_jitter=settings.api_retry_jitter,
            debug=settings.debug,
            **kwargs,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._default_timeout),
                follow_redirects=True,
            )
        return self._http_client

    def build_url(self, endpoint: str) -> str:
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self._base_url}{endpoint}"

    def merge_headers(self, headers: dict[str, str] | None) -> httpx.Headers:
        """Defaults overlaid with per-call headers (case-insensitive)."""
        merged = httpx.Headers(self._default_headers)
        if headers:
            merged.update(headers)
        return merged

    async def request(
        self,
        endpoint: str,
        options: RequestOptions | None = None,
    ) -> Payload:
        """
        Make a backend request with timeout and retry handling.

        Args:
            endpoint: Path appended to the base URL
            options: Per-call overrides (method, headers, body, timeout, ...)

        Returns:
            StructuredPayload or RawText

        Raises:
            ProtocolError: Upstream rejected the request
            NetworkError: Upstream could not be reached
            RequestTimeoutError: An attempt exceeded its timeout
        """
        options = options or RequestOptions()
        timeout = options.timeout or self._default_timeout
        retries = (
            options.retries if options.retries is not None else self._default_retries
        )
        retry_delay = (
            options.retry_delay
            if options.retry_delay is not None
            else self._default_retry_delay
        )
        method = options.method
        url = self.build_url(endpoint)
        headers = self.merge_headers(options.headers)

        pending = self.request_log.log_request(method, endpoint)

        for attempt in range(retries + 1):
            try:
                payload = await self._attempt(method, url, headers, timeout, options)
            except ServiceError as e:
                status = e.status if isinstance(e, ProtocolError) else None

                if (
                    isinstance(e, ProtocolError)
                    and e.is_client_error
                    and not e.retryable
                ):
                    self.request_log.log_error(pending, e, status=status)
                    raise

                if attempt == retries:
                    self.request_log.log_error(pending, e, status=status)
                    raise

                delay = backoff_delay(attempt, retry_delay, self._retry_jitter)
                logger.warning(
                    f"[API] {method} {endpoint} attempt {attempt + 1}/{retries + 1} "
                    f"failed ({type(e).__name__}: {e}), retrying in {delay:.2f}s"
                )
                await self._sleep(delay)
            else:
                self.request_log.log_response(pending, payload.status)
                return payload

        raise AssertionError("retry loop exited without a result")

    async def _attempt(
        self,
        method: str,
        url: str,
        headers: httpx.Headers,
        timeout: float,
        options: RequestOptions,
    ) -> Payload:
        """Run a single attempt and classify its outcome."""
        client = await self._get_http_client()

        try:
            response = await asyncio.wait_for(
                client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    json=options.body,
                    timeout=timeout,
                ),
                timeout=timeout,
            )

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(timeout, service_id=self.service_id) from e

        except httpx.RequestError as e:
            raise NetworkError(
                f"Network request failed: {e or type(e).__name__}",
                service_id=self.service_id,
            ) from e

        if not options.validate_status(response.status_code):
            raise self._protocol_error(response, options)

        return self._decode(response)

    def _protocol_error(
        self,
        response: httpx.Response,
        options: RequestOptions,
    ) -> ProtocolError:
        """Build a ProtocolError from a rejected response."""
        message = response.reason_phrase or "Unknown error"
        code = None

        if is_structured_content_type(response.headers.get("content-type")):
            try:
                error_data = response.json()
            except ValueError:
                error_data = None

            if isinstance(error_data, dict):
                detail = error_data.get("message") or error_data.get("error")
                if isinstance(detail, list):
                    detail = "; ".join(str(item) for item in detail)
                if detail:
                    message = str(detail)
                raw_code = error_data.get("code") or error_data.get("errorCode")
                code = str(raw_code) if raw_code is not None else None

        status = response.status_code
        return ProtocolError(
            status,
            message,
            code=code,
            retryable=status >= 500 or status in options.retryable_statuses,
            service_id=self.service_id,
        )

    def _decode(self, response: httpx.Response) -> Payload:
        """Decode an accepted response according to its content type."""
        status = response.status_code

        if response.content and is_structured_content_type(
            response.headers.get("content-type")
        ):
            try:
                return StructuredPayload(data=response.json(), status=status)
            except ValueError as e:
                # Truncated or garbled body, worth another attempt
                raise ProtocolError(
                    status,
                    f"Invalid JSON body: {e}",
                    retryable=True,
                    service_id=self.service_id,
                ) from e

        return RawText(text=response.text, status=status)

    # Convenience methods

    async def get(self, endpoint: str, **options: Any) -> Payload:
        return await self.request(endpoint, RequestOptions(method="GET", **options))

    async def post(self, endpoint: str, body: Any = None, **options: Any) -> Payload:
        return await self.request(
            endpoint, RequestOptions(method="POST", body=body, **options)
        )

    async def put(self, endpoint: str, body: Any = None, **options: Any) -> Payload:
        return await self.request(
            endpoint, RequestOptions(method="PUT", body=body, **options)
        )

    async def patch(self, endpoint: str, body: Any = None, **options: Any) -> Payload:
        return await self.request(
            endpoint, RequestOptions(method="PATCH", body=body, **options)
        )

    async def delete(self, endpoint: str, **options: Any) -> Payload:
        return await self.request(endpoint, RequestOptions(method="DELETE", **options))

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("ApiClient closed")

    async def __aenter__(self) -> "ApiClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
