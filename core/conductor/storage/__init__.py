"""State and workflow-config repositories."""

from conductor.storage.file_store import FileConfigRepository, FileStateRepository
from conductor.storage.memory import InMemoryConfigRepository, InMemoryStateRepository
from conductor.storage.repository import (
    DEFAULT_STATE_TTL_SECONDS,
    ConfigRepository,
    StateRepository,
    validate_key,
)

__all__ = [
    "StateRepository",
    "ConfigRepository",
    "InMemoryStateRepository",
    "InMemoryConfigRepository",
    "FileStateRepository",
    "FileConfigRepository",
    "DEFAULT_STATE_TTL_SECONDS",
    "validate_key",
]
