"""
File repositories - one JSON document per key.

Layout:
  {base_path}/
    ├── state/{tenant_id}/{thread_id}.json
    └── config/{tenant_id}.json

Writes are atomic (temp file + rename) and all disk I/O runs in a worker
thread so the event loop never blocks.
"""

import asyncio
import logging
from pathlib import Path

from conductor.schemas.workflow_config import WorkflowConfig
from conductor.state import StateSnapshot
from conductor.storage.repository import ConfigRepository, StateRepository, validate_key
from conductor.utils.io import atomic_write

logger = logging.getLogger(__name__)


def _write(path: Path, document: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with atomic_write(path) as f:
        f.write(document)


def _delete(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


class FileStateRepository(StateRepository):
    """Durable snapshot store on the local filesystem."""

    def __init__(self, base_path: Path | str):
        self.base_path = Path(base_path)
        self.state_dir = self.base_path / "state"

    def get_state_path(self, tenant_id: str, thread_id: str) -> Path:
        validate_key(tenant_id)
        validate_key(thread_id)
        return self.state_dir / tenant_id / f"{thread_id}.json"

    async def save(self, tenant_id: str, thread_id: str, snapshot: StateSnapshot) -> None:
        path = self.get_state_path(tenant_id, thread_id)
        await asyncio.to_thread(_write, path, snapshot.model_dump_json(indent=2))
        logger.debug(f"Wrote state for {tenant_id}::{thread_id}")

    async def find_by_id(self, tenant_id: str, thread_id: str) -> StateSnapshot | None:
        path = self.get_state_path(tenant_id, thread_id)

        def _read():
            if not path.exists():
                return None
            return StateSnapshot.model_validate_json(path.read_text(encoding="utf-8"))

        return await asyncio.to_thread(_read)

    async def delete(self, tenant_id: str, thread_id: str) -> bool:
        deleted = await asyncio.to_thread(_delete, self.get_state_path(tenant_id, thread_id))
        if deleted:
            logger.info(f"Deleted state {tenant_id}::{thread_id}")
        return deleted

    async def exists(self, tenant_id: str, thread_id: str) -> bool:
        return await asyncio.to_thread(self.get_state_path(tenant_id, thread_id).exists)


class FileConfigRepository(ConfigRepository):
    """Durable WorkflowConfig store on the local filesystem."""

    def __init__(self, base_path: Path | str):
        self.base_path = Path(base_path)
        self.config_dir = self.base_path / "config"

    def get_config_path(self, tenant_id: str) -> Path:
        validate_key(tenant_id)
        return self.config_dir / f"{tenant_id}.json"

    async def save(self, tenant_id: str, config: WorkflowConfig) -> None:
        path = self.get_config_path(tenant_id)
        await asyncio.to_thread(_write, path, config.model_dump_json(indent=2))
        logger.debug(f"Wrote workflow config for tenant {tenant_id}")

    async def find_by_id(self, tenant_id: str) -> WorkflowConfig | None:
        path = self.get_config_path(tenant_id)

        def _read():
            if not path.exists():
                return None
            return WorkflowConfig.model_validate_json(path.read_text(encoding="utf-8"))

        return await asyncio.to_thread(_read)

    async def delete(self, tenant_id: str) -> bool:
        return await asyncio.to_thread(_delete, self.get_config_path(tenant_id))

    async def exists(self, tenant_id: str) -> bool:
        return await asyncio.to_thread(self.get_config_path(tenant_id).exists)
