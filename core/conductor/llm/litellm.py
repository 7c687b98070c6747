"""LiteLLM backend - any provider LiteLLM supports, spoken in the OpenAI shape."""

from __future__ import annotations

import logging
from typing import Any

import litellm

from conductor.errors import BackendError, TransientBackendError
from conductor.llm.adapters import OpenAIChatAdapter
from conductor.llm.backend import ModelBackend, ModelRequest, ModelResponse

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    litellm.RateLimitError,
    litellm.Timeout,
    litellm.APIConnectionError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
)


class LiteLLMBackend(ModelBackend):
    """
    Calls ``litellm.acompletion``.

    Requests are encoded with the OpenAI adapter (LiteLLM translates to the
    target provider), and the returned ModelResponse object is decoded by
    the same adapter after ``model_dump()``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        timeout_seconds: float = 30.0,
    ):
        self.api_key = api_key
        self.api_base = api_base
        self.timeout_seconds = timeout_seconds
        self.adapter = OpenAIChatAdapter()

    async def generate(self, request: ModelRequest) -> ModelResponse:
        kwargs: dict[str, Any] = self.adapter.encode_request(request)
        kwargs["timeout"] = self.timeout_seconds
        kwargs["num_retries"] = 0
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        try:
            response = await litellm.acompletion(**kwargs)
        except TRANSIENT_ERRORS as e:
            raise TransientBackendError(
                f"LiteLLM transient error: {e}", status_code=getattr(e, "status_code", None)
            ) from e
        except litellm.APIError as e:
            raise BackendError(
                f"LiteLLM error: {e}", status_code=getattr(e, "status_code", None)
            ) from e

        payload = response.model_dump() if hasattr(response, "model_dump") else dict(response)
        return self.adapter.decode_response(payload)
