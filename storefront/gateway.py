"""
Remote Data Gateway - httpx round trips to the storefront API.

Builds absolute or relative URLs depending on the runtime mode, performs
the request with a timeout and an optional caller abort signal, and
negotiates JSON vs. text bodies.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from storefront.config import Settings, get_settings
from storefront.errors import (
    ERROR_REQUEST_ABORTED,
    ERROR_SERVICE_TIMEOUT,
    ERROR_SERVICE_UNREACHABLE,
    ConfigurationError,
    NetworkError,
    RequestAbortedError,
    RetryableError,
)
from storefront.logging import get_logger, sanitize_string_for_logging

logger = get_logger(__name__)

INVALID_JSON_PREVIEW_CHARS = 100


def _has_scheme(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


def resolve_base_url(settings: Settings) -> str:
    """Production base URL: api_url -> site_url -> origin -> ""."""
    for candidate in (settings.api_url, settings.site_url, settings.origin):
        if candidate:
            base = candidate if _has_scheme(candidate) else f"https://{candidate}"
            return base.rstrip("/")
    return ""


def build_url(endpoint: str, settings: Optional[Settings] = None) -> str:
    """
    Build the request URL for an endpoint.

    Absolute URLs pass through. In development mode the endpoint is
    returned as-is so the dev proxy can route it.
    """
    if _has_scheme(endpoint):
        return endpoint

    settings = settings or get_settings()
    if settings.is_development:
        return endpoint

    normalized = endpoint if endpoint.startswith("/") else f"/{endpoint}"
    return f"{resolve_base_url(settings)}{normalized}"


@dataclass
class GatewayResponse:
    """Decoded response. `data` is parsed JSON or {"text": raw}."""

    status_code: int
    data: Any
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def get(self, key: str, default: Any = None) -> Any:
        if isinstance(self.data, dict):
            return self.data.get(key, default)
        return default

    def error_message(self, default: str) -> str:
        """Provider's `error` (or `message`) field, else default."""
        message = self.get("error") or self.get("message")
        return str(message) if message else default


class Gateway:
    """Async HTTP gateway to the storefront API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy creation of the shared httpx client."""
        if self._client is None:
            base_url = self.settings.dev_proxy_url if self.settings.is_development else ""
            self._client = httpx.AsyncClient(
                base_url=base_url,
                timeout=httpx.Timeout(self.settings.request_timeout, connect=5.0),
                follow_redirects=True,
            )
        return self._client

    def build_url(self, endpoint: str) -> str:
        return build_url(endpoint, self.settings)

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        timeout: Optional[float] = None,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        abort: Optional[asyncio.Event] = None,
    ) -> GatewayResponse:
        """
        Perform one request.

        Raises:
            RequestAbortedError: abort was set before or during the call
            NetworkError: transport failure or internal timeout
            RetryableError: JSON content type with an unparsable body
        """
        if abort is not None and abort.is_set():
            raise RequestAbortedError(ERROR_REQUEST_ABORTED, code="ABORTED")

        url = self.build_url(endpoint)
        if not self.settings.is_development and not _has_scheme(url):
            raise ConfigurationError(
                f"No API base URL configured for {url}. Set STOREFRONT_API_URL "
                "(or STOREFRONT_SITE_URL / STOREFRONT_ORIGIN).",
                code="API_URL_MISSING",
            )

        request_headers = {"Accept": "application/json", "Cache-Control": "no-store"}
        if headers:
            request_headers.update(headers)

        request_timeout = timeout if timeout is not None else self.settings.request_timeout

        try:
            response = await self._send(
                method.upper(),
                url,
                body=body,
                headers=request_headers,
                params=params,
                timeout=request_timeout,
                abort=abort,
            )
        except httpx.TimeoutException:
            if abort is not None and abort.is_set():
                raise RequestAbortedError(ERROR_REQUEST_ABORTED, code="ABORTED")
            logger.warning(f"Timeout after {request_timeout}s calling {method} {url}")
            raise NetworkError(ERROR_SERVICE_TIMEOUT, code="TIMEOUT")
        except httpx.RequestError as e:
            logger.warning(f"Connection error calling {method} {url}: {e}")
            raise NetworkError(ERROR_SERVICE_UNREACHABLE, code="NETWORK", details=str(e))

        return self._decode(response)

    async def _send(
        self,
        method: str,
        url: str,
        *,
        body: Any,
        headers: dict[str, str],
        params: Optional[dict[str, Any]],
        timeout: float,
        abort: Optional[asyncio.Event],
    ) -> httpx.Response:
        request = self.client.request(
            method,
            url,
            json=body,
            headers=headers,
            params=params,
            timeout=timeout,
        )
        if abort is None:
            return await request

        request_task = asyncio.ensure_future(request)
        abort_task = asyncio.ensure_future(abort.wait())
        try:
            done, _ = await asyncio.wait(
                {request_task, abort_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            abort_task.cancel()
            # Covers abort and cancellation of the caller; the response is discarded
            if not request_task.done():
                request_task.cancel()

        if request_task not in done:
            raise RequestAbortedError(ERROR_REQUEST_ABORTED, code="ABORTED")
        return request_task.result()

    @staticmethod
    def _decode(response: httpx.Response) -> GatewayResponse:
        content_type = response.headers.get("content-type", "")
        headers = dict(response.headers)

        if "application/json" in content_type:
            try:
                data = response.json()
            except ValueError:
                preview = response.text[:INVALID_JSON_PREVIEW_CHARS]
                logger.error(
                    f"Invalid JSON from {response.request.url}: "
                    f"{sanitize_string_for_logging(preview, INVALID_JSON_PREVIEW_CHARS)}"
                )
                raise RetryableError(
                    f"Server returned invalid JSON: {preview}",
                    code="INVALID_JSON",
                    status_code=response.status_code,
                )
            return GatewayResponse(response.status_code, data, headers)

        return GatewayResponse(response.status_code, {"text": response.text}, headers)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
