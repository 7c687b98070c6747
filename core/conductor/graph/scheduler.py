"""
Scheduler - runs a CompiledGraph against a StateContainer.

The scheduler:
1. Starts one branch at the entry node
2. Runs the node, then evaluates every router registered on it
3. Continues the branch with the first distinct target and fans out the
   rest as new asyncio tasks sharing the same StateContainer
4. Holds branches at join barriers until all expected sources arrive
5. Returns an ExecutionResult when no branch is left

Join barriers: a node with more than one distinct fixed-edge source runs
exactly once per execution, by the branch whose arrival completes the set
of expected sources. Other arriving branches end there, as do branches
that reach it after it has run. Arrivals through predicate routers are
recorded but never counted, since their fan-in is not known statically.
If every branch has finished and a barrier still holds
arrivals (some expected branch was routed elsewhere), the barrier is
released then, oldest first, so the joined node still runs once.

Failures are contained: a router pointing at an unknown node, a router
that raises, or a node that raises all end only the affected branch and
are recorded in ``ExecutionResult.errors``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from dataclasses import dataclass, field
from enum import StrEnum

from conductor.errors import RoutingError
from conductor.graph.compiled import CompiledGraph
from conductor.observability import set_trace_context
from conductor.schemas.workflow_config import WorkflowConfig
from conductor.state import StateContainer

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 100


class ExecutionStatus(StrEnum):
    """How an execution ended."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    STEP_LIMIT = "step_limit"


@dataclass
class ExecutionResult:
    """Result of executing a graph."""

    status: ExecutionStatus
    state: StateContainer
    execution_id: str = ""
    path: list[str] = field(default_factory=list)  # Node names in execution order
    errors: list[str] = field(default_factory=list)
    steps_executed: int = 0
    node_visit_counts: dict[str, int] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED

    @property
    def is_clean_success(self) -> bool:
        """Completed with no contained routing or node failures."""
        return self.success and not self.errors


@dataclass
class _Barrier:
    """Arrival bookkeeping for one join node within one execution."""

    expected: frozenset[str]
    arrived: set[str] = field(default_factory=set)
    uncounted: int = 0
    first_arrival: int = 0
    released: bool = False

    @property
    def holding(self) -> bool:
        return not self.released and (bool(self.arrived) or self.uncounted > 0)


class _Execution:
    """Mutable bookkeeping for a single ``Scheduler.execute`` call."""

    def __init__(
        self,
        graph: CompiledGraph,
        state: StateContainer,
        config: WorkflowConfig,
        max_steps: int,
        execution_id: str,
    ):
        self.graph = graph
        self.state = state
        self.config = config
        self.max_steps = max_steps
        self.execution_id = execution_id

        self.tasks: set[asyncio.Task] = set()
        self.barriers: dict[str, _Barrier] = {}
        self.path: list[str] = []
        self.errors: list[str] = []
        self.visit_counts: dict[str, int] = {}
        self.stopping = False
        self.hit_step_limit = False
        self._arrival_seq = itertools.count(1)
        self._branch_seq = itertools.count(1)

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    async def drive(self) -> None:
        set_trace_context(
            execution_id=self.execution_id,
            tenant_id=self.state.tenant_id,
            thread_id=self.state.thread_id,
            workflow=self.graph.name,
        )
        logger.info(f"▶ Executing '{self.graph.name}' from '{self.graph.entry_node}'")
        try:
            self.spawn(self.graph.entry_node)
            while True:
                while self.tasks:
                    done, _ = await asyncio.wait(self.tasks, return_when=asyncio.FIRST_COMPLETED)
                    self.tasks.difference_update(done)
                    for task in done:
                        if not task.cancelled() and task.exception() is not None:
                            logger.error(f"✗ {task.get_name()} crashed: {task.exception()}")
                            self.errors.append(f"{task.get_name()} crashed: {task.exception()}")

                if self.stopping:
                    break
                node_name = self._oldest_holding_barrier()
                if node_name is None:
                    break
                barrier = self.barriers[node_name]
                logger.info(
                    f"   ⑃ Releasing barrier '{node_name}' with "
                    f"{len(barrier.arrived)}/{len(barrier.expected)} expected arrivals"
                )
                barrier.released = True
                self.spawn(node_name)
        finally:
            await self.cancel_branches()

    def spawn(self, node_name: str) -> None:
        branch_id = next(self._branch_seq)
        task = asyncio.create_task(
            self.run_branch(node_name, branch_id), name=f"branch-{branch_id}:{node_name}"
        )
        self.tasks.add(task)

    async def cancel_branches(self) -> None:
        self.stopping = True
        pending = [t for t in self.tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self.tasks.clear()

    def _oldest_holding_barrier(self) -> str | None:
        holding = [(b.first_arrival, name) for name, b in self.barriers.items() if b.holding]
        return min(holding)[1] if holding else None

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def run_branch(self, node_name: str, branch_id: int) -> None:
        """Run one branch sequentially until it ends, fanning out as needed."""
        current: str | None = node_name
        while current is not None and not self.stopping:
            if len(self.path) >= self.max_steps:
                logger.warning(f"⚠ Step limit ({self.max_steps}) reached before '{current}'")
                self.hit_step_limit = True
                self.stopping = True
                return

            if not await self._run_node(current):
                return

            targets = self._route(current)
            if self.stopping or not targets:
                if not targets:
                    logger.debug(f"Branch {branch_id} ends after '{current}'")
                return

            if len(targets) > 1:
                logger.info(f"   ⑂ Fan-out from '{current}': {', '.join(targets)}")

            next_node = None
            for target in targets:
                if not self._arrive(target, source=current):
                    continue
                if next_node is None:
                    next_node = target
                else:
                    self.spawn(target)
            current = next_node

    async def _run_node(self, name: str) -> bool:
        node = self.graph.get_node(name)
        set_trace_context(node=name)
        self.path.append(name)
        self.visit_counts[name] = self.visit_counts.get(name, 0) + 1
        self.state.move_to(name)

        logger.info(f"   → Node '{name}'")
        try:
            await node.process(self.state, self.config)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"   ✗ Node '{name}' failed")
            self.errors.append(f"Node '{name}' failed: {e}")
            return False
        return True

    def _route(self, source: str) -> list[str]:
        """Evaluate every router on *source*; distinct known targets in order."""
        targets: list[str] = []
        for router in self.graph.routers_for(source):
            try:
                target = router.route(self.state)
            except Exception as e:
                logger.exception(f"   ✗ Router on '{source}' raised")
                self.errors.append(f"Router on '{source}' failed: {e}")
                continue
            if not target or target in targets:
                continue
            if self.graph.get_node(target) is None:
                error = RoutingError(source, target)
                logger.error(f"   ✗ {error}")
                self.errors.append(str(error))
                continue
            targets.append(target)
        return targets

    def _arrive(self, target: str, source: str) -> bool:
        """Register an arrival at *target*. True if this branch should run it now."""
        expected = self.graph.expected_sources(target)
        if len(expected) <= 1:
            return True

        barrier = self.barriers.get(target)
        if barrier is None:
            barrier = self.barriers[target] = _Barrier(expected=expected)
        if barrier.released:
            logger.info(f"   ⑃ '{target}' already joined; branch from '{source}' ends")
            return False
        if not barrier.holding:
            barrier.first_arrival = next(self._arrival_seq)

        if source in expected:
            barrier.arrived.add(source)
        else:
            barrier.uncounted += 1

        if barrier.arrived >= barrier.expected:
            logger.info(f"   ⑃ Fan-in complete at '{target}' ({len(expected)} branches)")
            barrier.released = True
            return True

        logger.info(
            f"   ⑃ Branch from '{source}' waiting at '{target}' "
            f"({len(barrier.arrived)}/{len(expected)})"
        )
        return False


class Scheduler:
    """
    Executes compiled graphs.

    Example:
        scheduler = Scheduler(compiled_graph)
        result = await scheduler.execute(state, workflow_config, timeout=60)

    A Scheduler holds no per-execution state and may run many executions
    concurrently. ``timeout`` (seconds) and ``cancel_event`` both stop new
    branch work, cancel in-flight backend and capability calls, and yield a
    CANCELLED or TIMED_OUT result instead of raising.
    """

    def __init__(self, graph: CompiledGraph, max_steps: int = DEFAULT_MAX_STEPS):
        if max_steps < 1:
            raise ValueError("max_steps must be >= 1")
        self.graph = graph
        self.max_steps = max_steps

    async def execute(
        self,
        state: StateContainer,
        workflow_config: WorkflowConfig | None = None,
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ExecutionResult:
        config = workflow_config or WorkflowConfig(tenant_id=state.tenant_id)
        execution_id = uuid.uuid4().hex
        run = _Execution(self.graph, state, config, self.max_steps, execution_id)

        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Execution of '{self.graph.name}' cancelled before start")
            return self._result(run, ExecutionStatus.CANCELLED)

        drive_task = asyncio.create_task(run.drive(), name=f"execution-{execution_id[:8]}")
        waiters: set[asyncio.Future] = {drive_task}
        cancel_task = None
        if cancel_event is not None:
            cancel_task = asyncio.create_task(cancel_event.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            await self._abort(drive_task)
            raise
        finally:
            if cancel_task is not None:
                cancel_task.cancel()

        if drive_task in done:
            drive_task.result()
            status = (
                ExecutionStatus.STEP_LIMIT if run.hit_step_limit else ExecutionStatus.COMPLETED
            )
        elif cancel_task is not None and cancel_task in done:
            logger.warning(f"⚠ Execution of '{self.graph.name}' cancelled")
            status = ExecutionStatus.CANCELLED
        else:
            logger.warning(f"⚠ Execution of '{self.graph.name}' timed out after {timeout}s")
            status = ExecutionStatus.TIMED_OUT

        if not drive_task.done():
            await self._abort(drive_task)

        result = self._result(run, status)
        logger.info(
            f"■ '{self.graph.name}' {status} after {result.steps_executed} steps"
            + (f" with {len(result.errors)} contained error(s)" if result.errors else "")
        )
        return result

    @staticmethod
    async def _abort(drive_task: asyncio.Task) -> None:
        drive_task.cancel()
        await asyncio.gather(drive_task, return_exceptions=True)

    @staticmethod
    def _result(run: _Execution, status: ExecutionStatus) -> ExecutionResult:
        return ExecutionResult(
            status=status,
            state=run.state,
            execution_id=run.execution_id,
            path=list(run.path),
            errors=list(run.errors),
            steps_executed=len(run.path),
            node_visit_counts=dict(run.visit_counts),
        )
