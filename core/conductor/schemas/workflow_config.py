"""
Workflow Config Schema - per-tenant capability allow-list.

Maps a capability provider id to the method names a tenant may expose to
the model. ``"*"`` enables every method of that provider. A provider with
no entry is entirely hidden.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

WILDCARD = "*"


class WorkflowConfig(BaseModel):
    """Capability gating for one tenant."""

    tenant_id: str
    enabled_capabilities: dict[str, list[str]] = Field(
        default_factory=dict,
        description="provider_id -> enabled method names (or ['*'])",
    )
    updated_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    model_config = {"extra": "allow"}

    def enable(self, provider_id: str, *methods: str) -> "WorkflowConfig":
        """Enable specific methods of a provider (additive)."""
        enabled = self.enabled_capabilities.setdefault(provider_id, [])
        for method in methods:
            if method not in enabled:
                enabled.append(method)
        self._touch()
        return self

    def enable_all(self, provider_id: str) -> "WorkflowConfig":
        """Enable every method of a provider, replacing any explicit list."""
        self.enabled_capabilities[provider_id] = [WILDCARD]
        self._touch()
        return self

    def disable_provider(self, provider_id: str) -> "WorkflowConfig":
        self.enabled_capabilities.pop(provider_id, None)
        self._touch()
        return self

    def is_enabled(self, provider_id: str, method: str) -> bool:
        enabled = self.enabled_capabilities.get(provider_id)
        if not enabled:
            return False
        return WILDCARD in enabled or method in enabled

    def is_provider_configured(self, provider_id: str) -> bool:
        return bool(self.enabled_capabilities.get(provider_id))

    def active_providers(self) -> list[str]:
        return [pid for pid, methods in self.enabled_capabilities.items() if methods]

    def _touch(self) -> None:
        self.updated_at = datetime.now(UTC).isoformat()
