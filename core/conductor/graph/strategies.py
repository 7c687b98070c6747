"""
Turn strategies - prompt policies layered on the one turn loop.

A strategy is a value, not a subclass: a system-prompt template, optional
hooks that run before and after the turn, and optionally a driver that
decides how many times the loop runs and what is added to the log between
runs. Every run is a full TurnLoop run, so the iteration mechanics and the
tool-call pairing are always those of TurnLoop.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from conductor.graph.turn_loop import TurnResult, TurnStopReason
from conductor.state import Message, StateContainer

logger = logging.getLogger(__name__)

PROMPT_PLACEHOLDER = "{system_prompt}"

PLAN_PROMPT_TEMPLATE = (
    "You are an AI assistant that follows the Plan-and-Execute framework. "
    "For each task, first create a clear plan with numbered steps. "
    "Then execute each step in order, using tools when necessary."
    "\n\n" + PROMPT_PLACEHOLDER
)

PLANNING_INSTRUCTION = (
    "First, create a plan with numbered steps for completing this task. "
    'Format your plan as: "1. First step\\n2. Second step\\n..."'
)

REASONING_PROMPT_TEMPLATE = (
    "You are an AI assistant that follows the ReAct (Reasoning and Acting) framework. "
    "For each task, think step-by-step and reason about what to do next. "
    "When you need information, use the available tools. "
    "Follow this format for your reasoning:\n\n"
    "Thought: Reason about what needs to be done and how to accomplish it.\n"
    "Action: Use a tool if needed (e.g., search, calculate, etc.)\n"
    "Observation: Examine the result from the tool.\n"
    "... (repeat Thought/Action/Observation as needed)\n"
    "Answer: Provide your final answer based on your reasoning and observations."
    "\n\n" + PROMPT_PLACEHOLDER
)

PLAN_HEADER = "Plan:"
STEP_INSTRUCTION = (
    "Execute step {number}/{total}: {step}\n"
    "Use available tools if needed to complete this specific step."
)
PLAN_COMPLETED = "Plan execution completed"

BeforeTurnHook = Callable[[StateContainer, str], None]
AfterTurnHook = Callable[[StateContainer, str, TurnResult], None]
RunLoop = Callable[[], Awaitable[TurnResult]]
TurnDriver = Callable[[StateContainer, str, RunLoop], Awaitable[TurnResult]]


@dataclass(frozen=True)
class TurnStrategy:
    """
    Prompt template plus hooks around a turn.

    ``driver(state, node_name, run_loop)`` replaces the single loop run
    when set. ``run_loop()`` runs the turn loop once against the current
    message log and returns its TurnResult.
    """

    name: str = "default"
    prompt_template: str = PROMPT_PLACEHOLDER
    before_turn: BeforeTurnHook | None = None
    after_turn: AfterTurnHook | None = None
    driver: TurnDriver | None = None

    def compose_system_prompt(self, system_prompt: str | None) -> str | None:
        composed = self.prompt_template.replace(PROMPT_PLACEHOLDER, system_prompt or "").strip()
        return composed or None

    async def drive(self, state: StateContainer, node_name: str, run_loop: RunLoop) -> TurnResult:
        if self.driver is None:
            return await run_loop()
        return await self.driver(state, node_name, run_loop)


DEFAULT_STRATEGY = TurnStrategy()


def combine_results(results: list[TurnResult]) -> TurnResult:
    """Fold several loop runs into one TurnResult; the last run decides text and stop reason."""
    last = results[-1]
    return TurnResult(
        text=last.text,
        iterations=sum(r.iterations for r in results),
        stop_reason=last.stop_reason,
        tool_calls=[record for r in results for record in r.tool_calls],
    )


# ---------------------------------------------------------------------------
# Plan-then-execute
# ---------------------------------------------------------------------------

_STEP_PATTERN = re.compile(r"(\d+)[.)]\s*([^\d\n].+?)(?=\s*(?:\d+[.)]|$))", re.DOTALL)
_STEP_LINE = re.compile(r"^\d+[.)]\s+(.+)$")


def extract_plan_steps(text: str) -> list[str]:
    """Pull numbered steps ("1. ...", "2) ...") out of a plan."""
    if not text:
        return []
    steps = [m.group(2).strip() for m in _STEP_PATTERN.finditer(text)]
    if steps:
        return steps
    for line in text.splitlines():
        match = _STEP_LINE.match(line.strip())
        if match:
            steps.append(match.group(1).strip())
    return steps


async def _plan_then_execute(
    state: StateContainer, node_name: str, run_loop: RunLoop
) -> TurnResult:
    """
    Planning run, then one loop run per parsed step.

    A planning answer without numbered steps stands as the turn's answer.
    A backend failure during a step ends the turn without running the
    remaining steps.
    """
    state.add_message(
        Message.system(PLANNING_INSTRUCTION, strategy="plan_and_execute", node=node_name)
    )
    planning = await run_loop()
    steps = extract_plan_steps(planning.text or "") if planning.completed else []
    if not steps:
        logger.warning(f"⚠ '{node_name}' produced no plan steps; using the planning answer")
        return planning

    state.set(f"{node_name}_plan", steps)
    state.add_message(Message.system(f"{PLAN_HEADER}\n" + "\n".join(steps), node=node_name))
    logger.info(f"Executing {len(steps)} plan step(s) for '{node_name}'")

    results = [planning]
    for number, step in enumerate(steps, start=1):
        state.add_message(Message.system(f"Executing step {number}: {step}", node=node_name))
        state.add_message(
            Message.user(STEP_INSTRUCTION.format(number=number, total=len(steps), step=step))
        )
        result = await run_loop()
        results.append(result)
        if result.stop_reason == TurnStopReason.BACKEND_ERROR:
            logger.error(f"✗ Plan step {number}/{len(steps)} failed; remaining steps skipped")
            return combine_results(results)

    state.add_message(Message.system(PLAN_COMPLETED, node=node_name))
    return combine_results(results)


def plan_and_execute() -> TurnStrategy:
    """
    Ask for a numbered plan, then execute each step with its own loop run.

    The parsed steps land in ``{node}_plan``; the last step's answer is the
    turn's answer.
    """
    return TurnStrategy(
        name="plan_and_execute",
        prompt_template=PLAN_PROMPT_TEMPLATE,
        driver=_plan_then_execute,
    )


# ---------------------------------------------------------------------------
# Reasoning trace
# ---------------------------------------------------------------------------

_SECTION_PATTERN = re.compile(r"(Thought|Action|Observation|Answer):")


def parse_reasoning_trace(text: str) -> dict[str, str]:
    """
    Split Thought/Action/Observation/Answer sections.

    The first occurrence of each label wins; a section runs until the next
    label of any kind.
    """
    sections: dict[str, str] = {}
    if not text:
        return sections
    matches = list(_SECTION_PATTERN.finditer(text))
    for i, match in enumerate(matches):
        key = match.group(1).lower()
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = text[match.end() : end].strip()
        if body and key not in sections:
            sections[key] = body
    return sections


def _store_reasoning(state: StateContainer, node_name: str, result: TurnResult) -> None:
    sections = parse_reasoning_trace(result.text or "")
    if sections:
        state.set(f"{node_name}_reasoning", sections)


def reasoning_trace() -> TurnStrategy:
    """Thought/Action/Observation prompting; parsed sections land in ``{node}_reasoning``."""
    return TurnStrategy(
        name="reasoning_trace",
        prompt_template=REASONING_PROMPT_TEMPLATE,
        after_turn=_store_reasoning,
    )
