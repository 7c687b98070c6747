"""
WorkflowRuntime - explicit registry of workflows plus their repositories.

The caller creates the runtime, registers compiled graphs per tenant, and
closes it when done. Nothing here is global: two runtimes never share
workflows, state or configs unless they share repositories.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from conductor.capabilities import CapabilityRegistry
from conductor.config import RuntimeConfig, build_backend
from conductor.graph import CompiledGraph, ExecutionResult, Graph, ModelNode, Scheduler
from conductor.llm.backend import ModelBackend, ModelParameters
from conductor.schemas.workflow_config import WorkflowConfig
from conductor.state import Message, StateContainer
from conductor.storage import (
    ConfigRepository,
    InMemoryConfigRepository,
    InMemoryStateRepository,
    StateRepository,
)

logger = logging.getLogger(__name__)


class WorkflowRuntime:
    """
    Runs registered workflows for tenants and threads.

    Example:
        async with WorkflowRuntime() as runtime:
            runtime.create_chat_workflow("acme", "support", backend, "gpt-4o-mini")
            result = await runtime.process_message("acme", "t-1", "support", "Hi!")
    """

    def __init__(
        self,
        state_repository: StateRepository | None = None,
        config_repository: ConfigRepository | None = None,
        runtime_config: RuntimeConfig | None = None,
    ):
        self.state_repository = state_repository or InMemoryStateRepository()
        self.config_repository = config_repository or InMemoryConfigRepository()
        self.runtime_config = runtime_config or RuntimeConfig()
        self._workflows: dict[str, dict[str, CompiledGraph]] = {}
        self._backends: list[ModelBackend] = []

    @property
    def max_steps(self) -> int:
        return self.runtime_config.max_steps

    async def __aenter__(self) -> WorkflowRuntime:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close backends created through this runtime."""
        for backend in self._backends:
            await backend.aclose()
        self._backends.clear()

    # ------------------------------------------------------------------
    # Workflow registry
    # ------------------------------------------------------------------

    def register(self, tenant_id: str, name: str, graph: CompiledGraph) -> None:
        self._workflows.setdefault(tenant_id, {})[name] = graph
        logger.info(f"Registered workflow '{name}' for tenant {tenant_id}")

    def get_workflow(self, tenant_id: str, name: str) -> CompiledGraph | None:
        return self._workflows.get(tenant_id, {}).get(name)

    def list_workflows(self, tenant_id: str) -> list[str]:
        return sorted(self._workflows.get(tenant_id, {}))

    def create_chat_workflow(
        self,
        tenant_id: str,
        name: str,
        backend: ModelBackend | None = None,
        model: str | None = None,
        system_prompt: str = "",
        capabilities: CapabilityRegistry | None = None,
        parameters: ModelParameters | None = None,
        max_iterations: int | None = None,
        own_backend: bool = False,
    ) -> CompiledGraph:
        """
        Build and register a single-ModelNode workflow.

        Anything not given comes from ``runtime_config``: the model, the
        sampling parameters, the iteration cap and the retry policy. Without
        a *backend* one is built from the configuration and owned by the
        runtime.
        """
        config = self.runtime_config
        if backend is None:
            backend = build_backend(config)
            own_backend = True
        node = ModelNode(
            name="model",
            backend=backend,
            model=model or config.model,
            system_prompt=system_prompt,
            parameters=parameters or config.parameters,
            capabilities=capabilities,
            max_iterations=max_iterations or config.max_iterations,
            retry_policy=config.retry_policy,
        )
        graph = Graph(entry_node="model", name=name).add_node(node).compile()
        self.register(tenant_id, name, graph)
        if own_backend:
            self._backends.append(backend)
        return graph

    # ------------------------------------------------------------------
    # State and config
    # ------------------------------------------------------------------

    async def load_state(self, tenant_id: str, thread_id: str) -> StateContainer:
        """Load a thread's state, or start a fresh one."""
        snapshot = await self.state_repository.find_by_id(tenant_id, thread_id)
        if snapshot is None:
            logger.debug(f"Starting new state for {tenant_id}::{thread_id}")
            return StateContainer(tenant_id=tenant_id, thread_id=thread_id)
        return StateContainer.from_snapshot(snapshot)

    async def load_config(self, tenant_id: str) -> WorkflowConfig:
        """The tenant's WorkflowConfig; an empty one (nothing enabled) if none is stored."""
        config = await self.config_repository.find_by_id(tenant_id)
        return config or WorkflowConfig(tenant_id=tenant_id)

    async def save_config(self, config: WorkflowConfig) -> None:
        await self.config_repository.save(config.tenant_id, config)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def process_message(
        self,
        tenant_id: str,
        thread_id: str,
        workflow_name: str,
        user_message: str,
        parameters: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ExecutionResult:
        """
        Append *user_message* to the thread and run the workflow on it.

        Raises:
            KeyError: If the tenant has no workflow named *workflow_name*
        """
        graph = self.get_workflow(tenant_id, workflow_name)
        if graph is None:
            raise KeyError(f"Workflow '{workflow_name}' not found for tenant '{tenant_id}'")

        state = await self.load_state(tenant_id, thread_id)
        if parameters:
            state.update(parameters)
        state.add_message(Message.user(user_message))
        config = await self.load_config(tenant_id)

        result = await Scheduler(graph, max_steps=self.max_steps).execute(
            state, config, timeout=timeout, cancel_event=cancel_event
        )
        await self.state_repository.save(tenant_id, thread_id, state.snapshot())
        return result
