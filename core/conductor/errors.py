"""
Error taxonomy for graph definition, routing, model backends and capabilities.

Only GraphDefinitionError escapes to callers, and only from Graph.compile().
Everything else is contained by the scheduler or the turn loop and surfaces
as data (ExecutionResult.errors, error-tagged tool messages, or a synthetic
terminal model response).
"""

from __future__ import annotations

from enum import StrEnum


class ConductorError(Exception):
    """Base class for all engine errors."""


class GraphDefinitionError(ConductorError):
    """Graph cannot be compiled: missing entry node, cycle, duplicate node."""


class RoutingError(ConductorError):
    """A router produced a target that is not a node in the graph."""

    def __init__(self, source: str, target: str):
        self.source = source
        self.target = target
        super().__init__(f"Router on '{source}' targets unknown node '{target}'")


class BackendError(ConductorError):
    """A model backend call failed."""

    retryable = False

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TransientBackendError(BackendError):
    """Timeout, rate limit (429), server error (5xx) or dropped connection."""

    retryable = True


class CapabilityErrorType(StrEnum):
    """Why a tool call could not produce a successful result."""

    NOT_FOUND = "capability_not_found"
    GATED = "capability_gated"
    FAILED = "capability_failed"
    INVALID_ARGUMENTS = "invalid_arguments"


class CapabilityError(ConductorError):
    """A single tool call failed. Rendered as a paired tool-role error message."""

    def __init__(self, name: str, message: str, error_type: CapabilityErrorType):
        self.name = name
        self.error_type = error_type
        super().__init__(message)
