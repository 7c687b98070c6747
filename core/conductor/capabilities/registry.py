"""
Capability registry and per-call invocation.

The registry maps a capability name to the provider that implements it.
Every tool call goes through ``invoke``, which always returns an outcome
(never raises for capability problems) so the turn loop can pair exactly
one tool message with each call.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from conductor.capabilities.descriptor import CapabilityDescriptor
from conductor.capabilities.provider import CapabilityProvider
from conductor.errors import CapabilityError, CapabilityErrorType
from conductor.schemas.workflow_config import WorkflowConfig
from conductor.state import StateContainer, ToolCall

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapabilityOutcome:
    """Result of one tool call, ready to become a tool-role message."""

    content: str
    is_error: bool = False
    error_type: str | None = None

    @classmethod
    def from_error(cls, error: CapabilityError) -> CapabilityOutcome:
        payload = {"error": str(error), "type": str(error.error_type)}
        return cls(content=json.dumps(payload), is_error=True, error_type=str(error.error_type))


def encode_result(result: Any) -> str:
    """Tool results are sent to the model as text; non-strings are JSON encoded."""
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


class CapabilityRegistry:
    """Name → provider lookup plus gating-aware invocation."""

    def __init__(self, providers: Iterable[CapabilityProvider] = ()):
        self._providers: dict[str, CapabilityProvider] = {}
        self._owners: dict[str, CapabilityProvider] = {}
        self._descriptors: dict[str, CapabilityDescriptor] = {}
        for provider in providers:
            self.add_provider(provider)

    def add_provider(self, provider: CapabilityProvider) -> None:
        if provider.provider_id in self._providers:
            raise ValueError(f"Provider '{provider.provider_id}' already registered")
        descriptors = provider.descriptors()
        for descriptor in descriptors:
            owner = self._owners.get(descriptor.name)
            if owner is not None:
                raise ValueError(
                    f"Capability '{descriptor.name}' is provided by both "
                    f"'{owner.provider_id}' and '{provider.provider_id}'"
                )
        self._providers[provider.provider_id] = provider
        for descriptor in descriptors:
            self._owners[descriptor.name] = provider
            self._descriptors[descriptor.name] = descriptor
        logger.debug(
            f"Registered provider {provider.provider_id} with {len(descriptors)} capabilities"
        )

    def subset(self, names: Iterable[str]) -> CapabilityRegistry:
        """
        A registry restricted to *names*.

        Providers are shared; capabilities outside *names* resolve as missing.
        Registration order is kept.
        """
        wanted = set(names)
        unknown = wanted - set(self._descriptors)
        if unknown:
            raise ValueError(f"Unknown capabilities: {sorted(unknown)}")
        restricted = CapabilityRegistry()
        for name, descriptor in self._descriptors.items():
            if name not in wanted:
                continue
            provider = self._owners[name]
            restricted._providers.setdefault(provider.provider_id, provider)
            restricted._owners[name] = provider
            restricted._descriptors[name] = descriptor
        return restricted

    def provider_for(self, name: str) -> CapabilityProvider | None:
        return self._owners.get(name)

    def descriptors(self) -> list[CapabilityDescriptor]:
        return list(self._descriptors.values())

    def names(self) -> list[str]:
        return list(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def is_enabled(self, name: str, workflow_config: WorkflowConfig | None) -> bool:
        provider = self._owners.get(name)
        if provider is None or workflow_config is None:
            return False
        return workflow_config.is_enabled(provider.provider_id, name)

    def active_descriptors(self, workflow_config: WorkflowConfig | None) -> list[CapabilityDescriptor]:
        """Descriptors the tenant has enabled. No config means nothing is exposed."""
        return [d for d in self._descriptors.values() if self.is_enabled(d.name, workflow_config)]

    async def invoke(
        self,
        call: ToolCall,
        state: StateContainer,
        workflow_config: WorkflowConfig | None,
    ) -> CapabilityOutcome:
        """Run one tool call. Capability failures come back as error outcomes."""
        try:
            provider = self._resolve(call, workflow_config)
            raw = call.arguments.get("_raw") if len(call.arguments) == 1 else None
            if raw is not None:
                raise CapabilityError(
                    call.name,
                    f"Arguments for '{call.name}' are not valid JSON: {raw}",
                    CapabilityErrorType.INVALID_ARGUMENTS,
                )
            start = time.perf_counter()
            result = await provider.invoke(call.name, call.arguments, state)
            latency_ms = int((time.perf_counter() - start) * 1000)
            logger.info(
                f"✓ {call.name} completed",
                extra={"tool": call.name, "latency_ms": latency_ms},
            )
            return CapabilityOutcome(content=encode_result(result))
        except CapabilityError as e:
            logger.warning(f"✗ {call.name}: {e}", extra={"tool": call.name})
            return CapabilityOutcome.from_error(e)
        except Exception as e:
            logger.exception(f"✗ {call.name} raised", extra={"tool": call.name})
            return CapabilityOutcome.from_error(
                CapabilityError(
                    call.name,
                    f"Capability '{call.name}' failed: {e}",
                    CapabilityErrorType.FAILED,
                )
            )

    def _resolve(self, call: ToolCall, workflow_config: WorkflowConfig | None) -> CapabilityProvider:
        provider = self._owners.get(call.name)
        if provider is None:
            raise CapabilityError(
                call.name,
                f"Capability '{call.name}' not found",
                CapabilityErrorType.NOT_FOUND,
            )
        if not self.is_enabled(call.name, workflow_config):
            tenant = workflow_config.tenant_id if workflow_config else "unknown"
            raise CapabilityError(
                call.name,
                f"Capability '{call.name}' is not enabled for tenant '{tenant}'",
                CapabilityErrorType.GATED,
            )
        return provider
