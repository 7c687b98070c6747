"""Shared configuration utilities.

Reads ~/.conductor/configuration.json (or the file named by
CONDUCTOR_CONFIG_FILE) so that every entry point builds backends and
runtime limits the same way.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from conductor.graph.scheduler import DEFAULT_MAX_STEPS
from conductor.graph.turn_loop import DEFAULT_MAX_ITERATIONS
from conductor.llm.backend import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ModelBackend,
    ModelParameters,
    RetryPolicy,
)

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_FILE = Path.home() / ".conductor" / "configuration.json"


def get_config_path() -> Path:
    override = os.environ.get("CONDUCTOR_CONFIG_FILE")
    return Path(override) if override else DEFAULT_CONFIG_FILE


def get_conductor_config() -> dict[str, Any]:
    """Load the configuration file; missing or unreadable files yield {}."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def _llm_section() -> dict[str, Any]:
    return get_conductor_config().get("llm", {})


def get_preferred_model() -> str:
    """Return the configured model identifier (e.g. 'gpt-4o-mini')."""
    return _llm_section().get("model", "gpt-4o-mini")


def get_wire_format() -> str:
    """Return the configured wire format: 'openai', 'gemini' or 'litellm'."""
    return _llm_section().get("wire_format", "openai")


def get_max_tokens() -> int:
    return _llm_section().get("max_tokens", DEFAULT_MAX_TOKENS)


def get_api_key() -> str | None:
    """Return the API key from the environment variable named in configuration."""
    api_key_env_var = _llm_section().get("api_key_env_var")
    if api_key_env_var:
        return os.environ.get(api_key_env_var)
    return None


def get_api_base() -> str | None:
    return _llm_section().get("api_base")


def _runtime_setting(name: str, default: Any) -> Any:
    return get_conductor_config().get("runtime", {}).get(name, default)


# ---------------------------------------------------------------------------
# RuntimeConfig
# ---------------------------------------------------------------------------


@dataclass
class RuntimeConfig:
    """Backend and limit settings loaded from the configuration file."""

    model: str = field(default_factory=get_preferred_model)
    wire_format: str = field(default_factory=get_wire_format)
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = field(default_factory=get_max_tokens)
    api_key: str | None = field(default_factory=get_api_key)
    api_base: str | None = field(default_factory=get_api_base)
    timeout_seconds: float = field(default_factory=lambda: _runtime_setting("timeout_seconds", 30.0))
    max_retries: int = field(default_factory=lambda: _runtime_setting("max_retries", 3))
    retry_delay_seconds: float = field(
        default_factory=lambda: _runtime_setting("retry_delay_seconds", 5.0)
    )
    max_iterations: int = field(
        default_factory=lambda: _runtime_setting("max_iterations", DEFAULT_MAX_ITERATIONS)
    )
    max_steps: int = field(default_factory=lambda: _runtime_setting("max_steps", DEFAULT_MAX_STEPS))

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_retries, delay_seconds=self.retry_delay_seconds)

    @property
    def parameters(self) -> ModelParameters:
        return ModelParameters(temperature=self.temperature, max_tokens=self.max_tokens)


def build_backend(config: RuntimeConfig | None = None) -> ModelBackend:
    """Create the backend selected by ``config.wire_format``."""
    config = config or RuntimeConfig()
    wire_format = config.wire_format.lower()

    if wire_format == "litellm":
        from conductor.llm.litellm import LiteLLMBackend

        return LiteLLMBackend(
            api_key=config.api_key,
            api_base=config.api_base,
            timeout_seconds=config.timeout_seconds,
        )

    from conductor.llm.adapters import get_adapter
    from conductor.llm.http import HttpModelBackend

    return HttpModelBackend(
        adapter=get_adapter(wire_format),
        base_url=config.api_base,
        api_key=config.api_key,
        timeout_seconds=config.timeout_seconds,
    )
