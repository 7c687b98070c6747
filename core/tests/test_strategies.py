"""Tests for turn strategies."""

import pytest

from conductor.errors import BackendError
from conductor.graph import ModelNode, TurnStopReason
from conductor.graph.strategies import (
    DEFAULT_STRATEGY,
    PLAN_COMPLETED,
    PLANNING_INSTRUCTION,
    TurnStrategy,
    extract_plan_steps,
    parse_reasoning_trace,
    plan_and_execute,
    reasoning_trace,
)
from conductor.llm import ModelResponse, ScriptedBackend
from conductor.state import Role, StateContainer


class TestPromptComposition:
    def test_default_passes_prompt_through(self):
        assert DEFAULT_STRATEGY.compose_system_prompt("Be brief.") == "Be brief."
        assert DEFAULT_STRATEGY.compose_system_prompt("") is None

    def test_templates_wrap_prompt(self):
        prompt = reasoning_trace().compose_system_prompt("You sell shoes.")

        assert prompt.startswith("You are an AI assistant that follows the ReAct")
        assert prompt.endswith("You sell shoes.")

    def test_custom_strategy(self):
        strategy = TurnStrategy(
            name="pirate", prompt_template="Talk like a pirate. {system_prompt}"
        )

        assert strategy.compose_system_prompt("Be kind.") == "Talk like a pirate. Be kind."


class TestPlanParsing:
    def test_numbered_lines(self):
        text = "Plan:\n1. Look up the order\n2. Check the refund policy\n3) Reply to the customer"

        assert extract_plan_steps(text) == [
            "Look up the order",
            "Check the refund policy",
            "Reply to the customer",
        ]

    def test_no_steps(self):
        assert extract_plan_steps("Just answer directly.") == []
        assert extract_plan_steps("") == []


class TestReasoningParsing:
    def test_sections(self):
        text = (
            "Thought: I need the weather.\n"
            "Action: getWeather(Paris)\n"
            "Observation: 21C\n"
            "Answer: It is 21C in Paris."
        )

        assert parse_reasoning_trace(text) == {
            "thought": "I need the weather.",
            "action": "getWeather(Paris)",
            "observation": "21C",
            "answer": "It is 21C in Paris.",
        }

    def test_first_label_wins(self):
        sections = parse_reasoning_trace("Thought: one\nThought: two\nAnswer: done")

        assert sections["thought"] == "one"


class TestStrategiesOnModelNode:
    @pytest.mark.asyncio
    async def test_plan_and_execute_runs_one_loop_per_step(self):
        backend = ScriptedBackend(
            [
                ModelResponse(text="1. Find order\n2. Refund it"),
                ModelResponse(text="Order 42 found"),
                ModelResponse(text="Refund issued"),
            ]
        )
        node = ModelNode(
            "assistant", backend, "m", system_prompt="Support agent.", strategy=plan_and_execute()
        )
        state = StateContainer("acme", "t-1")

        result = await node.run_turn(state, user_message="Refund order 42")

        assert backend.call_count == 3
        planning_request = backend.requests[0]
        assert planning_request.system_instruction.endswith("Support agent.")
        assert planning_request.messages[-1].role == Role.SYSTEM
        assert planning_request.messages[-1].content == PLANNING_INSTRUCTION

        step_request = backend.requests[1]
        assert step_request.messages[-1].role == Role.USER
        assert step_request.messages[-1].content.startswith("Execute step 1/2: Find order")
        assert backend.requests[2].messages[-1].content.startswith("Execute step 2/2: Refund it")

        system_notes = [m.content for m in state.messages if m.role == Role.SYSTEM]
        assert system_notes[1:] == [
            "Plan:\nFind order\nRefund it",
            "Executing step 1: Find order",
            "Executing step 2: Refund it",
            PLAN_COMPLETED,
        ]
        assert state.get("assistant_plan") == ["Find order", "Refund it"]
        assert state.get("assistant_output") == "Refund issued"
        assert result.completed
        assert result.iterations == 3

    @pytest.mark.asyncio
    async def test_plan_without_steps_keeps_planning_answer(self):
        backend = ScriptedBackend([ModelResponse(text="Nothing to plan, the answer is 4.")])
        node = ModelNode("assistant", backend, "m", strategy=plan_and_execute())
        state = StateContainer("acme", "t-1")

        result = await node.run_turn(state, user_message="2+2?")

        assert backend.call_count == 1
        assert result.text == "Nothing to plan, the answer is 4."
        assert not state.contains("assistant_plan")

    @pytest.mark.asyncio
    async def test_backend_failure_stops_remaining_steps(self):
        backend = ScriptedBackend(
            [
                ModelResponse(text="1. Look\n2. Act\n3. Report"),
                ModelResponse(text="looked"),
                BackendError("bad request", status_code=400),
            ]
        )
        node = ModelNode("assistant", backend, "m", strategy=plan_and_execute())
        state = StateContainer("acme", "t-1")

        result = await node.run_turn(state, user_message="go")

        assert backend.call_count == 3
        assert result.stop_reason == TurnStopReason.BACKEND_ERROR
        contents = [m.content for m in state.messages]
        assert "Executing step 3: Report" not in contents
        assert PLAN_COMPLETED not in contents

    @pytest.mark.asyncio
    async def test_reasoning_trace(self):
        backend = ScriptedBackend([ModelResponse(text="Thought: easy\nAnswer: 4")])
        node = ModelNode("solver", backend, "m", strategy=reasoning_trace())
        state = StateContainer("acme", "t-1")

        result = await node.run_turn(state, user_message="2+2?")

        assert result.completed
        assert state.get("solver_reasoning") == {"thought": "easy", "answer": "4"}
        assert "Thought:" in backend.requests[0].system_instruction
