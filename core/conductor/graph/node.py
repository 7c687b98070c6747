"""
Node Protocol - the unit of work in a graph.

A node mutates the shared StateContainer in place; routing happens after
``process`` returns, based on the state it left behind. ModelNode (the
model-invoking variant) lives in ``conductor.graph.model_node``.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from conductor.schemas.workflow_config import WorkflowConfig
from conductor.state import StateContainer

NodeFunction = Callable[[StateContainer, WorkflowConfig], None | Awaitable[None]]


class Node(ABC):
    """A named unit of work. Names are unique within a graph."""

    def __init__(self, name: str):
        if not name:
            raise ValueError("Node name must be a non-empty string")
        self.name = name

    @abstractmethod
    async def process(self, state: StateContainer, config: WorkflowConfig) -> None:
        """Do the node's work against *state*."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionNode(Node):
    """
    Plain node wrapping a function of ``(state, config)``.

    Sync and async functions are both accepted.
    """

    def __init__(self, name: str, func: NodeFunction):
        super().__init__(name)
        self.func = func

    async def process(self, state: StateContainer, config: WorkflowConfig) -> None:
        result = self.func(state, config)
        if asyncio.iscoroutine(result) or asyncio.isfuture(result):
            await result
