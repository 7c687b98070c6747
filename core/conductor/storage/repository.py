"""
Repository contracts for state snapshots and workflow configs.

Both repositories store opaque JSON documents. Implementations may be
caches with a TTL or durable stores; the engine only relies on these four
operations.
"""

from abc import ABC, abstractmethod

from conductor.schemas.workflow_config import WorkflowConfig
from conductor.state import StateSnapshot

DEFAULT_STATE_TTL_SECONDS = 600


def validate_key(key: str) -> None:
    """
    Reject keys that are empty or could escape a storage directory.

    Raises:
        ValueError: If key is empty or contains path traversal patterns
    """
    if not key or key.strip() == "":
        raise ValueError("Key cannot be empty")
    if "/" in key or "\\" in key:
        raise ValueError(f"Invalid key format: path separators not allowed in '{key}'")
    if ".." in key or key.startswith("."):
        raise ValueError(f"Invalid key format: path traversal detected in '{key}'")


class StateRepository(ABC):
    """Persists StateContainer snapshots by (tenant_id, thread_id)."""

    @abstractmethod
    async def save(self, tenant_id: str, thread_id: str, snapshot: StateSnapshot) -> None: ...

    @abstractmethod
    async def find_by_id(self, tenant_id: str, thread_id: str) -> StateSnapshot | None: ...

    @abstractmethod
    async def delete(self, tenant_id: str, thread_id: str) -> bool:
        """Delete a snapshot. Returns False if nothing was stored."""

    @abstractmethod
    async def exists(self, tenant_id: str, thread_id: str) -> bool: ...


class ConfigRepository(ABC):
    """Persists WorkflowConfig documents by tenant_id."""

    @abstractmethod
    async def save(self, tenant_id: str, config: WorkflowConfig) -> None: ...

    @abstractmethod
    async def find_by_id(self, tenant_id: str) -> WorkflowConfig | None: ...

    @abstractmethod
    async def delete(self, tenant_id: str) -> bool: ...

    @abstractmethod
    async def exists(self, tenant_id: str) -> bool: ...
