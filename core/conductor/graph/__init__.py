"""Graph structures: nodes, routers, compilation, scheduling and the turn loop."""

from conductor.graph.builder import Graph
from conductor.graph.compiled import CompiledGraph
from conductor.graph.model_node import ModelNode
from conductor.graph.node import FunctionNode, Node
from conductor.graph.router import FixedRouter, PredicateRouter, Router
from conductor.graph.scheduler import ExecutionResult, ExecutionStatus, Scheduler
from conductor.graph.strategies import (
    DEFAULT_STRATEGY,
    TurnStrategy,
    extract_plan_steps,
    parse_reasoning_trace,
    plan_and_execute,
    reasoning_trace,
)
from conductor.graph.turn_loop import (
    LoopConfig,
    ToolCallRecord,
    TurnLoop,
    TurnResult,
    TurnStopReason,
)

__all__ = [
    # Nodes
    "Node",
    "FunctionNode",
    "ModelNode",
    # Routing
    "Router",
    "FixedRouter",
    "PredicateRouter",
    # Graph
    "Graph",
    "CompiledGraph",
    # Execution
    "Scheduler",
    "ExecutionResult",
    "ExecutionStatus",
    # Turn loop
    "TurnLoop",
    "LoopConfig",
    "TurnResult",
    "TurnStopReason",
    "ToolCallRecord",
    # Strategies
    "TurnStrategy",
    "DEFAULT_STRATEGY",
    "plan_and_execute",
    "reasoning_trace",
    "extract_plan_steps",
    "parse_reasoning_trace",
]
