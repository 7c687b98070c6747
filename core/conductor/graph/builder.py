"""
Graph builder and compiler.

``Graph`` is mutable: add nodes and routers in any order, then call
``compile()``. Compilation validates, in order:

1. the entry node exists (fatal)
2. no cycle among fixed edges (fatal; predicate cycles are only bounded
   at runtime by the scheduler step limit and the turn iteration cap)
3. reachability from the entry over fixed edges (warning only)

and returns a CompiledGraph with its own copies of the node and router
tables, so later builder edits never leak into compiled graphs.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable

from conductor.errors import GraphDefinitionError
from conductor.graph.compiled import CompiledGraph
from conductor.graph.node import Node
from conductor.graph.router import FixedRouter, PredicateRouter, Router
from conductor.state import StateContainer

logger = logging.getLogger(__name__)


class Graph:
    """Mutable builder of nodes and routers."""

    def __init__(self, entry_node: str, name: str = "workflow"):
        self.name = name
        self.entry_node = entry_node
        self._nodes: dict[str, Node] = {}
        self._routers: dict[str, list[Router]] = {}

    @property
    def nodes(self) -> dict[str, Node]:
        return dict(self._nodes)

    def add_node(self, node: Node) -> Graph:
        if node.name in self._nodes:
            raise GraphDefinitionError(f"Duplicate node name '{node.name}'")
        self._nodes[node.name] = node
        return self

    def add_router(self, source: str, router: Router) -> Graph:
        self._routers.setdefault(source, []).append(router)
        return self

    def add_fixed_edge(self, source: str, target: str) -> Graph:
        return self.add_router(source, FixedRouter(target))

    def add_conditional_edge(
        self,
        source: str,
        predicate: Callable[[StateContainer], str | None],
        description: str = "",
    ) -> Graph:
        return self.add_router(source, PredicateRouter(predicate, description))

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def _static_edges(self) -> dict[str, list[str]]:
        edges: dict[str, list[str]] = {}
        for source, routers in self._routers.items():
            for router in routers:
                target = router.static_target
                if target is not None and target not in edges.setdefault(source, []):
                    edges[source].append(target)
        return edges

    def _find_cycle(self, edges: dict[str, list[str]]) -> list[str] | None:
        """Depth-first search with a recursion stack. Returns the cycle path."""
        visited: set[str] = set()
        on_stack: list[str] = []

        def visit(name: str) -> list[str] | None:
            visited.add(name)
            on_stack.append(name)
            for target in edges.get(name, []):
                if target in on_stack:
                    return on_stack[on_stack.index(target) :] + [target]
                if target not in visited:
                    cycle = visit(target)
                    if cycle:
                        return cycle
            on_stack.pop()
            return None

        for start in [self.entry_node, *self._nodes, *edges]:
            if start not in visited:
                cycle = visit(start)
                if cycle:
                    return cycle
        return None

    def _reachable(self, edges: dict[str, list[str]]) -> set[str]:
        reachable = {self.entry_node}
        queue = deque([self.entry_node])
        while queue:
            current = queue.popleft()
            for target in edges.get(current, []):
                if target not in reachable:
                    reachable.add(target)
                    queue.append(target)
        return reachable

    def compile(self) -> CompiledGraph:
        """Validate and freeze the graph."""
        if self.entry_node not in self._nodes:
            raise GraphDefinitionError(f"Entry node '{self.entry_node}' not found")

        edges = self._static_edges()

        cycle = self._find_cycle(edges)
        if cycle:
            raise GraphDefinitionError(f"Cycle among fixed edges: {' -> '.join(cycle)}")

        reachable = self._reachable(edges)
        unreachable = [name for name in self._nodes if name not in reachable]
        for name in unreachable:
            logger.warning(
                f"⚠ Node '{name}' is not reachable from '{self.entry_node}' "
                "through fixed edges (it may still be reached by a predicate router)"
            )

        for source, targets in edges.items():
            if source not in self._nodes:
                logger.warning(f"⚠ Routers registered on unknown node '{source}' will never run")
            for target in targets:
                if target not in self._nodes:
                    logger.warning(f"⚠ Fixed edge {source} -> {target} targets an unknown node")

        fan_in: dict[str, set[str]] = {}
        for source, targets in edges.items():
            if source not in self._nodes:
                continue
            for target in targets:
                fan_in.setdefault(target, set()).add(source)

        compiled = CompiledGraph(
            name=self.name,
            entry_node=self.entry_node,
            nodes=self._nodes,
            routers=self._routers,
            fan_in={target: frozenset(sources) for target, sources in fan_in.items()},
            unreachable_nodes=unreachable,
        )
        barriers = [n for n in compiled.nodes if compiled.is_barrier(n)]
        logger.info(
            f"Compiled graph '{self.name}': {len(self._nodes)} nodes, "
            f"entry '{self.entry_node}', join barriers {barriers or 'none'}"
        )
        return compiled
