"""
Turn loop - the bounded tool-calling cycle behind every ModelNode.

One turn:

    AWAITING_MODEL ──(tool calls)──► EXECUTING_TOOLS ──► AWAITING_MODEL ...
          │
          └──(no tool calls)──► DONE

Each iteration rebuilds the request from the full message log, filtered to
the capabilities the tenant has enabled. Backend calls go through
``generate_with_retry``, so a dead backend ends the turn with an
error-tagged assistant message instead of an exception. Every tool call the
model issues gets exactly one paired tool message, even when the capability
is missing, gated off, or fails, and even when the turn is cancelled while
the calls are in flight.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from conductor.capabilities import CapabilityOutcome, CapabilityRegistry
from conductor.llm.backend import (
    ModelBackend,
    ModelParameters,
    ModelRequest,
    RetryPolicy,
    generate_with_retry,
)
from conductor.schemas.workflow_config import WorkflowConfig
from conductor.state import Message, StateContainer, ToolCall

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


class TurnStopReason(StrEnum):
    """Why a turn ended."""

    COMPLETED = "completed"  # Model answered without tool calls
    ITERATION_LIMIT = "iteration_limit"  # Cap reached while tools were still requested
    BACKEND_ERROR = "backend_error"  # Backend unavailable, synthetic answer recorded


@dataclass
class ToolCallRecord:
    """What happened to one tool call."""

    call_id: str
    name: str
    is_error: bool
    error_type: str | None = None


@dataclass
class TurnResult:
    """Outcome of one ModelNode turn."""

    text: str | None
    iterations: int
    stop_reason: TurnStopReason
    tool_calls: list[ToolCallRecord] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.stop_reason == TurnStopReason.COMPLETED


@dataclass
class LoopConfig:
    """Configuration for a turn loop."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")


class TurnLoop:
    """Drives one turn against a backend and a capability registry."""

    def __init__(
        self,
        backend: ModelBackend,
        capabilities: CapabilityRegistry | None = None,
        config: LoopConfig | None = None,
        node_name: str = "",
    ):
        self.backend = backend
        self.capabilities = capabilities or CapabilityRegistry()
        self.config = config or LoopConfig()
        self.node_name = node_name

    async def run(
        self,
        state: StateContainer,
        workflow_config: WorkflowConfig,
        *,
        model: str,
        system_prompt: str | None,
        parameters: ModelParameters,
        extras: dict[str, Any] | None = None,
    ) -> TurnResult:
        records: list[ToolCallRecord] = []
        last_text: str | None = None
        iterations = 0
        # Ids already in the log stay reserved so every reply pairs with one call
        seen_ids = {call.id for message in state.messages for call in message.tool_calls}

        while iterations < self.config.max_iterations:
            iterations += 1
            active = self.capabilities.active_descriptors(workflow_config)
            request = ModelRequest(
                model=model,
                system_instruction=system_prompt,
                messages=state.messages,
                capabilities=active,
                parameters=parameters,
                extras=dict(extras or {}),
            )
            logger.debug(
                f"Iteration {iterations}/{self.config.max_iterations}: "
                f"{len(request.messages)} messages, {len(active)} capabilities",
                extra={"model": model},
            )

            response = await generate_with_retry(self.backend, request, self.config.retry_policy)

            if response.is_error:
                state.add_message(
                    Message.assistant(response.text, is_error=True, node=self.node_name)
                )
                return TurnResult(
                    text=response.text,
                    iterations=iterations,
                    stop_reason=TurnStopReason.BACKEND_ERROR,
                    tool_calls=records,
                )

            if not response.tool_calls:
                text = response.text or ""
                state.add_message(Message.assistant(text, node=self.node_name))
                return TurnResult(
                    text=text,
                    iterations=iterations,
                    stop_reason=TurnStopReason.COMPLETED,
                    tool_calls=records,
                )

            calls = self._unique_ids(response.tool_calls, seen_ids)
            state.add_message(Message.assistant(response.text, calls, node=self.node_name))
            if response.text:
                last_text = response.text

            logger.info(f"Executing {len(calls)} tool call(s): {[c.name for c in calls]}")
            outcomes = await self._execute_calls(calls, state, workflow_config)
            for call, outcome in zip(calls, outcomes, strict=True):
                state.add_message(
                    Message.tool_result(call, outcome.content, outcome.is_error, outcome.error_type)
                )
                records.append(
                    ToolCallRecord(
                        call_id=call.id,
                        name=call.name,
                        is_error=outcome.is_error,
                        error_type=outcome.error_type,
                    )
                )

        logger.warning(
            f"⚠ Reached max_iterations ({self.config.max_iterations}) while tools were "
            "still being requested"
        )
        return TurnResult(
            text=last_text,
            iterations=iterations,
            stop_reason=TurnStopReason.ITERATION_LIMIT,
            tool_calls=records,
        )

    async def _execute_calls(
        self,
        calls: list[ToolCall],
        state: StateContainer,
        workflow_config: WorkflowConfig,
    ) -> list[CapabilityOutcome]:
        """Run calls concurrently; results come back in call order."""
        try:
            return list(
                await asyncio.gather(
                    *(self.capabilities.invoke(call, state, workflow_config) for call in calls)
                )
            )
        except asyncio.CancelledError:
            payload = json.dumps({"error": "Cancelled before completion", "type": "cancelled"})
            for call in calls:
                state.add_message(Message.tool_result(call, payload, True, "cancelled"))
            raise

    @staticmethod
    def _unique_ids(calls: list[ToolCall], seen: set[str]) -> list[ToolCall]:
        """
        Backends may omit or repeat ids, within one response or across
        iterations (counters restarting at ``call_0``). Replaces those ids and
        records the issued ones in *seen*.
        """
        unique = []
        for call in calls:
            if not call.id or call.id in seen:
                call = call.model_copy(update={"id": uuid.uuid4().hex})
            seen.add(call.id)
            unique.append(call)
        return unique
