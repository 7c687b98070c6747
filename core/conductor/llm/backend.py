"""
Model backend contract and fixed-delay retry.

A backend turns a ModelRequest into a ModelResponse. Backends must be safe
to retry and must bound every network wait. ``generate_with_retry`` is the
only way the turn loop calls a backend: it retries transient failures with
a fixed delay and, once attempts are exhausted, returns a synthetic
terminal response instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from conductor.capabilities.descriptor import CapabilityDescriptor
from conductor.errors import BackendError
from conductor.state import Message, ToolCall

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1024


class ModelParameters(BaseModel):
    """Sampling parameters. ``extras`` carries backend-specific settings verbatim."""

    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    stop: list[str] = Field(default_factory=list)
    extras: dict[str, Any] = Field(default_factory=dict)

    def merged(self, overrides: ModelParameters | dict[str, Any] | None) -> ModelParameters:
        """Return a copy with *overrides* applied (only explicitly set fields)."""
        if overrides is None:
            return self
        if isinstance(overrides, ModelParameters):
            overrides = overrides.model_dump(exclude_unset=True)
        return self.model_validate({**self.model_dump(), **overrides})


@dataclass
class ModelRequest:
    """Everything a backend needs for one round-trip."""

    model: str
    system_instruction: str | None
    messages: list[Message]
    capabilities: list[CapabilityDescriptor] = field(default_factory=list)
    parameters: ModelParameters = field(default_factory=ModelParameters)
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelResponse:
    """Assistant text and/or tool calls returned by a backend."""

    text: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: str = ""
    is_error: bool = False
    raw: Any = None

    @classmethod
    def error(cls, message: str) -> ModelResponse:
        """Synthetic terminal response used when the backend cannot answer."""
        return cls(text=message, stop_reason="error", is_error=True)


class ModelBackend(ABC):
    """Pluggable model backend."""

    @abstractmethod
    async def generate(self, request: ModelRequest) -> ModelResponse:
        """
        Perform one request/response round-trip.

        Raises:
            TransientBackendError: retryable failure (timeout, 429, 5xx)
            BackendError: permanent failure
        """

    async def aclose(self) -> None:
        """Release network resources. Default: nothing to release."""


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with a fixed delay between them."""

    max_attempts: int = 3
    delay_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")


async def generate_with_retry(
    backend: ModelBackend,
    request: ModelRequest,
    policy: RetryPolicy | None = None,
) -> ModelResponse:
    """
    Call *backend* with fixed-delay retries on transient failures.

    Never raises for backend failures: permanent errors and exhausted retries
    both become ``ModelResponse.error``. Cancellation propagates.
    """
    policy = policy or RetryPolicy()
    last_error: Exception | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await backend.generate(request)
        except BackendError as e:
            last_error = e
            if not e.retryable:
                logger.error(f"✗ Backend error (not retryable): {e}", extra={"attempt": attempt})
                break
            if attempt < policy.max_attempts:
                logger.warning(
                    f"⚠ Transient backend error, retrying in {policy.delay_seconds}s "
                    f"({attempt}/{policy.max_attempts}): {e}",
                    extra={"attempt": attempt},
                )
                await asyncio.sleep(policy.delay_seconds)
            else:
                logger.error(
                    f"✗ Backend failed after {attempt} attempts: {e}", extra={"attempt": attempt}
                )
        except Exception as e:
            logger.exception("✗ Unexpected backend failure", extra={"attempt": attempt})
            last_error = e
            break

    return ModelResponse.error(f"Model backend unavailable: {last_error}")
