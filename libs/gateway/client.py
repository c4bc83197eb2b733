"""Request gateway for the introspection backend.

One method per backend operation. Every failure is normalized into a
``GatewayError`` subclass carrying an HTTP-like status code:

- connection problems and timeouts -> ``TransportFailure`` (503 / 504)
- a success response with an undecodable body -> ``TransportFailure`` (502)
- any non-2xx response -> ``BackendFailure`` with the body's message

The gateway never retries; retry policy belongs to the caller.
"""

import time
from typing import Any, List, Optional
from urllib.parse import quote

import httpx
import structlog

from libs.common.config import BaseConfig
from libs.common.logging import log_performance
from libs.common.metrics import MetricsCollector
from libs.introspection.errors import BackendFailure, GatewayError, SchemaMismatch, TransportFailure

logger = structlog.get_logger("gateway.client")

DEFAULT_ERROR_MESSAGE = "An error occurred"


def _error_message(response: httpx.Response) -> str:
    """Pull a human-readable message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if value:
                return value if isinstance(value, str) else str(value)

    return response.reason_phrase or DEFAULT_ERROR_MESSAGE


class RequestGateway:
    """Async HTTP client for the backend's analyze/analysis/history/health API."""

    def __init__(
        self,
        config: BaseConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        """Initialize the gateway.

        Parameters
        - config: Provides backend URL, timeout, and submit field name
        - transport: Optional custom transport (``httpx.MockTransport`` in tests)
        - metrics: Optional collector for outbound call metrics
        """
        self.config = config
        self.base_url = config.watcher_backend_url.rstrip("/")
        self.timeout = config.watcher_request_timeout
        self.submit_field = config.watcher_submit_field
        self.transport = transport
        self.metrics = metrics
        self.client: Optional[httpx.AsyncClient] = None

    async def connect(self):
        """Create the underlying HTTP client if needed."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
                headers={"Content-Type": "application/json"},
            )

    async def close(self):
        """Close the underlying HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None

    async def __aenter__(self) -> "RequestGateway":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> Any:
        await self.connect()
        start_time = time.time()
        outcome = "ok"

        try:
            try:
                response = await self.client.request(method, path, **kwargs)
            except httpx.TimeoutException as e:
                raise TransportFailure(504, f"Backend timed out during {operation}") from e
            except httpx.HTTPError as e:
                raise TransportFailure(503, f"Failed to connect to backend: {e}") from e

            if not response.is_success:
                raise BackendFailure(response.status_code, _error_message(response))

            try:
                return response.json()
            except ValueError as e:
                raise TransportFailure(502, f"Backend returned a malformed body for {operation}") from e

        except GatewayError as e:
            outcome = type(e).__name__
            logger.warning(
                "Backend call failed",
                operation=operation,
                path=path,
                status_code=e.status_code,
                error=e.message
            )
            raise

        finally:
            duration = time.time() - start_time
            if self.metrics:
                self.metrics.record_backend_request(operation, outcome, duration)
            log_performance(f"backend.{operation}", duration * 1000, outcome=outcome)

    async def submit(self, prompt: str, output: str) -> Any:
        """POST /analyze. Older backends expect the output under ``response``."""
        body = {"prompt": prompt, self.submit_field: output}
        return await self._request("submit", "POST", "/analyze", json=body)

    async def fetch_by_id(self, result_id: str) -> Any:
        """GET /analysis/{id}. Backends without a store answer 404."""
        return await self._request("fetch_by_id", "GET", f"/analysis/{quote(result_id, safe='')}")

    async def list_history(self, limit: int = 20, offset: int = 0) -> List[Any]:
        """GET /history. Returns the raw rows in backend order."""
        if limit < 0 or offset < 0:
            raise ValueError("limit and offset must be non-negative")

        body = await self._request(
            "list_history", "GET", "/history", params={"limit": limit, "offset": offset}
        )
        items = body.get("items") if isinstance(body, dict) else body
        if not isinstance(items, list):
            raise SchemaMismatch(
                "History response carries no item list",
                body.keys() if isinstance(body, dict) else None,
            )
        return items

    async def health(self) -> Any:
        """GET /health."""
        return await self._request("health", "GET", "/health")
