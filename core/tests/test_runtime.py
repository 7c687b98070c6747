"""Tests for WorkflowRuntime: end-to-end message processing over repositories."""

import asyncio

import pytest

from conductor.capabilities import CapabilityParameter, CapabilityRegistry, FunctionProvider
from conductor.config import RuntimeConfig
from conductor.graph import ExecutionStatus, FunctionNode, Graph
from conductor.llm import HttpModelBackend, ModelParameters, ModelResponse, ScriptedBackend
from conductor.runtime import WorkflowRuntime
from conductor.schemas import WorkflowConfig
from conductor.state import Role, ToolCall
from conductor.storage import FileStateRepository


def echo_registry() -> CapabilityRegistry:
    provider = FunctionProvider("Echo")
    provider.register(
        "echo",
        lambda text: text.upper(),
        "Echo text back in upper case",
        parameters=[CapabilityParameter("text")],
    )
    return CapabilityRegistry([provider])


class RecordingBackend(ScriptedBackend):
    def __init__(self, script=()):
        super().__init__(script)
        self.closed = False

    async def aclose(self):
        self.closed = True


class TestProcessMessage:
    @pytest.mark.asyncio
    async def test_conversation_persists_across_messages(self):
        backend = ScriptedBackend(
            [ModelResponse(text="Hi there"), ModelResponse(text="Still here")]
        )
        runtime = WorkflowRuntime()
        runtime.create_chat_workflow("acme", "chat", backend, "m", system_prompt="Be nice.")

        first = await runtime.process_message("acme", "t-1", "chat", "Hello")
        second = await runtime.process_message("acme", "t-1", "chat", "Are you there?")

        assert first.success and second.success
        state = await runtime.load_state("acme", "t-1")
        assert [(m.role, m.content) for m in state.messages] == [
            (Role.USER, "Hello"),
            (Role.ASSISTANT, "Hi there"),
            (Role.USER, "Are you there?"),
            (Role.ASSISTANT, "Still here"),
        ]
        assert state.get("model_output") == "Still here"
        # The second request carried the whole thread
        assert len(backend.requests[1].messages) == 3
        assert backend.requests[1].system_instruction == "Be nice."

    @pytest.mark.asyncio
    async def test_threads_are_separate(self):
        backend = ScriptedBackend([ModelResponse(text="a"), ModelResponse(text="b")])
        runtime = WorkflowRuntime()
        runtime.create_chat_workflow("acme", "chat", backend, "m")

        await runtime.process_message("acme", "t-1", "chat", "one")
        await runtime.process_message("acme", "t-2", "chat", "two")

        assert (await runtime.load_state("acme", "t-2")).message_count() == 2

    @pytest.mark.asyncio
    async def test_stored_config_gates_capabilities(self):
        backend = ScriptedBackend(
            [
                ModelResponse(
                    tool_calls=[ToolCall(id="c1", name="echo", arguments={"text": "hey"})]
                ),
                ModelResponse(text="done"),
            ]
        )
        runtime = WorkflowRuntime()
        runtime.create_chat_workflow("acme", "chat", backend, "m", capabilities=echo_registry())
        await runtime.save_config(WorkflowConfig(tenant_id="acme").enable("Echo", "echo"))

        result = await runtime.process_message("acme", "t-1", "chat", "shout hey")

        assert [c.name for c in backend.requests[0].capabilities] == ["echo"]
        tool_message = result.state.messages[2]
        assert tool_message.role == Role.TOOL
        assert tool_message.content == "HEY"

    @pytest.mark.asyncio
    async def test_missing_config_exposes_nothing(self):
        backend = ScriptedBackend([ModelResponse(text="ok")])
        runtime = WorkflowRuntime()
        runtime.create_chat_workflow("acme", "chat", backend, "m", capabilities=echo_registry())

        await runtime.process_message("acme", "t-1", "chat", "hi")

        assert backend.requests[0].capabilities == []

    @pytest.mark.asyncio
    async def test_parameters_merge_into_values(self):
        seen = {}

        def capture(state, config):
            seen["lang"] = state.get("lang")

        runtime = WorkflowRuntime()
        graph = Graph("capture").add_node(FunctionNode("capture", capture)).compile()
        runtime.register("acme", "custom", graph)

        await runtime.process_message("acme", "t-1", "custom", "hi", {"lang": "fr"})

        assert seen == {"lang": "fr"}

    @pytest.mark.asyncio
    async def test_unknown_workflow_raises(self):
        runtime = WorkflowRuntime()

        with pytest.raises(KeyError):
            await runtime.process_message("acme", "t-1", "missing", "hi")

    @pytest.mark.asyncio
    async def test_cancel_event_still_saves_state(self):
        runtime = WorkflowRuntime()
        runtime.create_chat_workflow("acme", "chat", ScriptedBackend(), "m")
        cancel = asyncio.Event()
        cancel.set()

        result = await runtime.process_message("acme", "t-1", "chat", "hi", cancel_event=cancel)

        assert result.status == ExecutionStatus.CANCELLED
        state = await runtime.load_state("acme", "t-1")
        assert state.messages[0].content == "hi"

    @pytest.mark.asyncio
    async def test_file_repository(self, tmp_path):
        backend = ScriptedBackend([ModelResponse(text="stored")])
        runtime = WorkflowRuntime(state_repository=FileStateRepository(tmp_path))
        runtime.create_chat_workflow("acme", "chat", backend, "m")

        await runtime.process_message("acme", "t-1", "chat", "persist me")

        assert (tmp_path / "state" / "acme" / "t-1.json").exists()


class TestRegistry:
    def test_workflows_scoped_by_tenant(self):
        runtime = WorkflowRuntime()
        runtime.create_chat_workflow("acme", "chat", ScriptedBackend(), "m")
        runtime.create_chat_workflow("acme", "triage", ScriptedBackend(), "m")

        assert runtime.list_workflows("acme") == ["chat", "triage"]
        assert runtime.get_workflow("globex", "chat") is None

    @pytest.mark.asyncio
    async def test_close_only_owned_backends(self):
        owned = RecordingBackend()
        shared = RecordingBackend()

        async with WorkflowRuntime() as runtime:
            runtime.create_chat_workflow("acme", "a", owned, "m", own_backend=True)
            runtime.create_chat_workflow("acme", "b", shared, "m")

        assert owned.closed
        assert not shared.closed


class TestRuntimeConfig:
    @pytest.mark.asyncio
    async def test_max_steps_reaches_scheduler(self):
        runtime = WorkflowRuntime(runtime_config=RuntimeConfig(max_steps=2))
        graph = Graph(entry_node="spin", name="spin")
        graph.add_node(FunctionNode("spin", lambda s, c: s.set("n", s.get("n", 0) + 1)))
        graph.add_conditional_edge("spin", lambda s: "spin")
        runtime.register("acme", "spin", graph.compile())

        result = await runtime.process_message("acme", "t-1", "spin", "go")

        assert result.status == ExecutionStatus.STEP_LIMIT
        assert result.steps_executed == 2
        assert result.state.get("n") == 2

    def test_chat_workflow_takes_limits_from_config(self):
        config = RuntimeConfig(
            model="configured-model",
            temperature=0.2,
            max_tokens=256,
            max_iterations=4,
            max_retries=2,
            retry_delay_seconds=0.5,
        )
        runtime = WorkflowRuntime(runtime_config=config)

        graph = runtime.create_chat_workflow("acme", "chat", ScriptedBackend())
        node = graph.get_node("model")

        assert node.model == "configured-model"
        assert node.max_iterations == 4
        assert node.loop.config.retry_policy.max_attempts == 2
        assert node.loop.config.retry_policy.delay_seconds == 0.5
        assert node.parameters.temperature == 0.2
        assert node.parameters.max_tokens == 256

    def test_explicit_arguments_override_config(self):
        runtime = WorkflowRuntime(runtime_config=RuntimeConfig(max_iterations=4, temperature=0.2))

        graph = runtime.create_chat_workflow(
            "acme",
            "chat",
            ScriptedBackend(),
            "m",
            parameters=ModelParameters(temperature=0.9),
            max_iterations=7,
        )
        node = graph.get_node("model")

        assert node.model == "m"
        assert node.max_iterations == 7
        assert node.parameters.temperature == 0.9

    @pytest.mark.asyncio
    async def test_backend_built_from_config_is_owned(self):
        runtime = WorkflowRuntime(
            runtime_config=RuntimeConfig(wire_format="openai", api_base="http://localhost:1")
        )

        graph = runtime.create_chat_workflow("acme", "chat")

        backend = graph.get_node("model").backend
        assert isinstance(backend, HttpModelBackend)
        assert backend in runtime._backends
        await runtime.close()
        assert runtime._backends == []
