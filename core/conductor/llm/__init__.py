"""Model backend abstraction, wire adapters and concrete backends."""

from conductor.llm.adapters import (
    ADAPTERS,
    GeminiAdapter,
    ModelAdapter,
    OpenAIChatAdapter,
    get_adapter,
)
from conductor.llm.backend import (
    ModelBackend,
    ModelParameters,
    ModelRequest,
    ModelResponse,
    RetryPolicy,
    generate_with_retry,
)
from conductor.llm.http import HttpModelBackend
from conductor.llm.mock import ScriptedBackend

__all__ = [
    "ModelBackend",
    "ModelParameters",
    "ModelRequest",
    "ModelResponse",
    "RetryPolicy",
    "generate_with_retry",
    "ModelAdapter",
    "OpenAIChatAdapter",
    "GeminiAdapter",
    "ADAPTERS",
    "get_adapter",
    "HttpModelBackend",
    "ScriptedBackend",
]
