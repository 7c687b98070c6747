"""HTTP model backend on httpx, parameterised by a wire-format adapter."""

from __future__ import annotations

import logging
import time

import httpx

from conductor.errors import BackendError, TransientBackendError
from conductor.llm.adapters import ModelAdapter
from conductor.llm.backend import ModelBackend, ModelRequest, ModelResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class HttpModelBackend(ModelBackend):
    """
    Posts adapter-encoded requests to a provider endpoint.

    Status mapping: 429 and 5xx raise TransientBackendError (retried by the
    turn loop), other 4xx raise BackendError. Connect/read/write/pool waits
    are all bounded by ``timeout_seconds``.
    """

    def __init__(
        self,
        adapter: ModelAdapter,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ):
        self.adapter = adapter
        self.base_url = base_url or adapter.DEFAULT_BASE_URL
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def generate(self, request: ModelRequest) -> ModelResponse:
        url = self.adapter.endpoint(self.base_url, request.model)
        body = self.adapter.encode_request(request)
        start = time.perf_counter()

        try:
            response = await self._client.post(
                url, json=body, headers=self.adapter.headers(self.api_key)
            )
        except httpx.TimeoutException as e:
            raise TransientBackendError(f"Request to {self.adapter.name} timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientBackendError(f"Connection to {self.adapter.name} failed: {e}") from e

        latency_ms = int((time.perf_counter() - start) * 1000)
        status = response.status_code
        if status == 429 or status >= 500:
            raise TransientBackendError(
                f"{self.adapter.name} returned HTTP {status}: {response.text[:500]}",
                status_code=status,
            )
        if status >= 400:
            raise BackendError(
                f"{self.adapter.name} returned HTTP {status}: {response.text[:500]}",
                status_code=status,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise BackendError(f"{self.adapter.name} returned invalid JSON") from e

        logger.debug(
            f"{self.adapter.name} responded in {latency_ms}ms",
            extra={"latency_ms": latency_ms, "model": request.model},
        )
        return self.adapter.decode_response(payload)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
