"""ModelNode - a node that runs one model turn per visit."""

from __future__ import annotations

import logging
from typing import Any

from conductor.capabilities import CapabilityRegistry
from conductor.graph.node import Node
from conductor.graph.strategies import DEFAULT_STRATEGY, TurnStrategy
from conductor.graph.turn_loop import DEFAULT_MAX_ITERATIONS, LoopConfig, TurnLoop, TurnResult
from conductor.llm.backend import ModelBackend, ModelParameters, RetryPolicy
from conductor.schemas.workflow_config import WorkflowConfig
from conductor.state import Message, StateContainer

logger = logging.getLogger(__name__)


class ModelNode(Node):
    """
    Invokes a model backend with a bounded tool-calling loop.

    The final answer is appended to the message log by the loop and also
    stored in ``state[output_key]`` (default ``"{name}_output"``).

    Args:
        name: Node name
        backend: Model backend to call
        model: Model identifier passed through to the backend
        system_prompt: Default system prompt (callers may override per turn)
        parameters: Default sampling parameters
        capabilities: Capabilities this node may expose (still gated per tenant)
        max_iterations: Cap on backend round-trips per turn
        strategy: Prompt policy wrapping the loop
        retry_policy: Fixed-delay retry settings for backend calls
        output_key: State key for the final answer
        extras: Backend-specific request fields
    """

    def __init__(
        self,
        name: str,
        backend: ModelBackend,
        model: str,
        system_prompt: str = "",
        parameters: ModelParameters | None = None,
        capabilities: CapabilityRegistry | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        strategy: TurnStrategy = DEFAULT_STRATEGY,
        retry_policy: RetryPolicy | None = None,
        output_key: str | None = None,
        extras: dict[str, Any] | None = None,
    ):
        super().__init__(name)
        self.backend = backend
        self.model = model
        self.system_prompt = system_prompt
        self.parameters = parameters or ModelParameters()
        self.capabilities = capabilities or CapabilityRegistry()
        self.strategy = strategy
        self.output_key = output_key or f"{name}_output"
        self.extras = dict(extras or {})
        self.loop = TurnLoop(
            backend=backend,
            capabilities=self.capabilities,
            config=LoopConfig(
                max_iterations=max_iterations,
                retry_policy=retry_policy or RetryPolicy(),
            ),
            node_name=name,
        )

    @property
    def max_iterations(self) -> int:
        return self.loop.config.max_iterations

    async def process(self, state: StateContainer, config: WorkflowConfig) -> None:
        await self.run_turn(state, config)

    async def run_turn(
        self,
        state: StateContainer,
        config: WorkflowConfig | None = None,
        *,
        user_message: str | None = None,
        system_prompt: str | None = None,
        parameters: ModelParameters | dict[str, Any] | None = None,
    ) -> TurnResult:
        """
        Run one turn, optionally appending a user message first.

        ``system_prompt`` and ``parameters`` override the node defaults for
        this turn only.
        """
        config = config or WorkflowConfig(tenant_id=state.tenant_id)
        if user_message is not None:
            state.add_message(Message.user(user_message))

        prompt = self.strategy.compose_system_prompt(
            system_prompt if system_prompt is not None else self.system_prompt
        )
        if self.strategy.before_turn is not None:
            self.strategy.before_turn(state, self.name)

        merged = self.parameters.merged(parameters)

        async def run_loop() -> TurnResult:
            return await self.loop.run(
                state,
                config,
                model=self.model,
                system_prompt=prompt,
                parameters=merged,
                extras=self.extras,
            )

        result = await self.strategy.drive(state, self.name, run_loop)

        if result.text is not None:
            state.set(self.output_key, result.text)
        if self.strategy.after_turn is not None:
            self.strategy.after_turn(state, self.name, result)

        logger.info(
            f"{'✓' if result.completed else '⚠'} Turn finished: {result.stop_reason} "
            f"after {result.iterations} iteration(s), {len(result.tool_calls)} tool call(s)"
        )
        return result
