"""CompiledGraph - the frozen, validated form of a Graph."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from conductor.graph.node import Node
from conductor.graph.router import Router

if TYPE_CHECKING:
    from conductor.graph.scheduler import ExecutionResult
    from conductor.schemas.workflow_config import WorkflowConfig
    from conductor.state import StateContainer


class CompiledGraph:
    """
    Immutable node and router tables plus static analysis results.

    Holds no per-execution state, so one instance can serve any number of
    concurrent executions.

    Attributes:
        fan_in: node name -> distinct nodes with a fixed edge into it.
            Nodes with more than one such source are join barriers.
        unreachable_nodes: nodes not reachable from the entry through
            fixed edges (they may still be reached through predicates).
    """

    def __init__(
        self,
        name: str,
        entry_node: str,
        nodes: dict[str, Node],
        routers: dict[str, list[Router]],
        fan_in: dict[str, frozenset[str]],
        unreachable_nodes: list[str],
    ):
        self.name = name
        self.entry_node = entry_node
        self.nodes: Mapping[str, Node] = MappingProxyType(dict(nodes))
        self.routers: Mapping[str, tuple[Router, ...]] = MappingProxyType(
            {source: tuple(rs) for source, rs in routers.items()}
        )
        self.fan_in: Mapping[str, frozenset[str]] = MappingProxyType(dict(fan_in))
        self.unreachable_nodes: tuple[str, ...] = tuple(unreachable_nodes)

    def get_node(self, name: str) -> Node | None:
        return self.nodes.get(name)

    def routers_for(self, name: str) -> tuple[Router, ...]:
        return self.routers.get(name, ())

    def successors(self, name: str) -> list[str]:
        """Statically known targets of *name*, in registration order."""
        targets = []
        for router in self.routers_for(name):
            target = router.static_target
            if target is not None and target not in targets:
                targets.append(target)
        return targets

    def expected_sources(self, name: str) -> frozenset[str]:
        return self.fan_in.get(name, frozenset())

    def is_barrier(self, name: str) -> bool:
        return len(self.expected_sources(name)) > 1

    async def execute(
        self,
        state: StateContainer,
        workflow_config: WorkflowConfig | None = None,
        **kwargs,
    ) -> ExecutionResult:
        """Shortcut for ``Scheduler(self).execute(...)``."""
        from conductor.graph.scheduler import Scheduler

        return await Scheduler(self).execute(state, workflow_config, **kwargs)

    def __repr__(self) -> str:
        return (
            f"CompiledGraph(name={self.name!r}, entry={self.entry_node!r}, "
            f"nodes={len(self.nodes)})"
        )
