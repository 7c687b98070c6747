"""
Conductor - graph orchestration for multi-step, tool-using model agents.

Build a Graph of nodes and routers, compile it once, and run it many times
with a Scheduler against per-thread StateContainers.
"""

from conductor.capabilities import (
    CapabilityDescriptor,
    CapabilityParameter,
    CapabilityProvider,
    CapabilityRegistry,
    FunctionProvider,
)
from conductor.errors import (
    BackendError,
    CapabilityError,
    ConductorError,
    GraphDefinitionError,
    RoutingError,
    TransientBackendError,
)
from conductor.graph import (
    CompiledGraph,
    ExecutionResult,
    ExecutionStatus,
    FunctionNode,
    Graph,
    ModelNode,
    Node,
    Scheduler,
    TurnResult,
)
from conductor.llm import ModelBackend, ModelParameters, ModelRequest, ModelResponse, RetryPolicy
from conductor.runtime import WorkflowRuntime
from conductor.schemas import WorkflowConfig
from conductor.state import Message, Role, StateContainer, ToolCall

__version__ = "0.1.0"

__all__ = [
    "Graph",
    "CompiledGraph",
    "Scheduler",
    "ExecutionResult",
    "ExecutionStatus",
    "Node",
    "FunctionNode",
    "ModelNode",
    "TurnResult",
    "StateContainer",
    "Message",
    "Role",
    "ToolCall",
    "WorkflowConfig",
    "CapabilityDescriptor",
    "CapabilityParameter",
    "CapabilityProvider",
    "CapabilityRegistry",
    "FunctionProvider",
    "ModelBackend",
    "ModelParameters",
    "ModelRequest",
    "ModelResponse",
    "RetryPolicy",
    "WorkflowRuntime",
    "ConductorError",
    "GraphDefinitionError",
    "RoutingError",
    "BackendError",
    "TransientBackendError",
    "CapabilityError",
]
