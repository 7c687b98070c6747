"""
In-memory repositories.

Documents are kept as serialized JSON so callers never share mutable
objects with the store. The state repository behaves like a cache: entries
expire ``ttl_seconds`` after their last save (600 by default, ``None`` keeps
them forever). Expired entries are dropped when read and swept on every save.
"""

import logging
import threading
import time
from collections.abc import Callable

from conductor.schemas.workflow_config import WorkflowConfig
from conductor.state import StateSnapshot
from conductor.storage.repository import (
    DEFAULT_STATE_TTL_SECONDS,
    ConfigRepository,
    StateRepository,
)

logger = logging.getLogger(__name__)


class InMemoryStateRepository(StateRepository):
    """Process-local snapshot store with optional TTL."""

    def __init__(
        self,
        ttl_seconds: float | None = DEFAULT_STATE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _expired(expires_at: float | None, now: float) -> bool:
        return expires_at is not None and now >= expires_at

    def _sweep(self) -> None:
        now = self._clock()
        expired = [
            key for key, (_, expires_at) in self._entries.items() if self._expired(expires_at, now)
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired state entries")

    def _get_live(self, key: tuple[str, str]) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        document, expires_at = entry
        if self._expired(expires_at, self._clock()):
            del self._entries[key]
            logger.debug(f"State {key[0]}::{key[1]} expired")
            return None
        return document

    async def save(self, tenant_id: str, thread_id: str, snapshot: StateSnapshot) -> None:
        expires_at = self._clock() + self.ttl_seconds if self.ttl_seconds is not None else None
        with self._lock:
            self._sweep()
            self._entries[(tenant_id, thread_id)] = (snapshot.model_dump_json(), expires_at)

    async def find_by_id(self, tenant_id: str, thread_id: str) -> StateSnapshot | None:
        with self._lock:
            document = self._get_live((tenant_id, thread_id))
        if document is None:
            return None
        return StateSnapshot.model_validate_json(document)

    async def delete(self, tenant_id: str, thread_id: str) -> bool:
        with self._lock:
            live = self._get_live((tenant_id, thread_id)) is not None
            self._entries.pop((tenant_id, thread_id), None)
        return live

    async def exists(self, tenant_id: str, thread_id: str) -> bool:
        with self._lock:
            return self._get_live((tenant_id, thread_id)) is not None


class InMemoryConfigRepository(ConfigRepository):
    """Process-local WorkflowConfig store."""

    def __init__(self):
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    async def save(self, tenant_id: str, config: WorkflowConfig) -> None:
        with self._lock:
            self._entries[tenant_id] = config.model_dump_json()

    async def find_by_id(self, tenant_id: str) -> WorkflowConfig | None:
        with self._lock:
            document = self._entries.get(tenant_id)
        return WorkflowConfig.model_validate_json(document) if document is not None else None

    async def delete(self, tenant_id: str) -> bool:
        with self._lock:
            return self._entries.pop(tenant_id, None) is not None

    async def exists(self, tenant_id: str) -> bool:
        with self._lock:
            return tenant_id in self._entries
