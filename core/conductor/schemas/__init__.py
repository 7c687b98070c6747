"""Persisted schemas."""

from conductor.schemas.workflow_config import WILDCARD, WorkflowConfig

__all__ = ["WorkflowConfig", "WILDCARD"]
