"""Runtime context for running workflows per tenant and thread."""

from conductor.runtime.workflow_runtime import WorkflowRuntime

__all__ = ["WorkflowRuntime"]
