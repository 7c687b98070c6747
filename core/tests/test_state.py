"""Tests for StateContainer, Message and snapshot serialization."""

import threading

import pytest
from pydantic import ValidationError

from conductor.state import Message, Role, StateContainer, StateSnapshot, ToolCall


def populated_state() -> StateContainer:
    state = StateContainer(tenant_id="acme", thread_id="t-42")
    state.set("city", "Paris")
    state.set("attempts", 3)
    state.set("nested", {"tags": ["a", "b"], "score": 0.5})
    call = ToolCall(id="call-1", name="getWeather", arguments={"city": "Paris"})
    state.add_message(Message.user("Weather?"))
    state.add_message(Message.assistant(None, [call]))
    state.add_message(Message.tool_result(call, '{"temp_c": 21}'))
    state.add_message(Message.assistant("21°C"))
    state.move_to("model")
    return state


class TestStateContainer:
    def test_identity_is_required(self):
        with pytest.raises(ValueError):
            StateContainer(tenant_id="", thread_id="t")

    def test_identity_is_read_only(self):
        state = StateContainer("acme", "t-1")

        with pytest.raises(AttributeError):
            state.tenant_id = "other"

    def test_values_roundtrip_through_accessors(self):
        state = StateContainer("acme", "t-1", values={"a": 1})
        state.update({"b": 2})

        assert state.get("a") == 1
        assert state.get("missing", "dflt") == "dflt"
        assert state.contains("b")
        assert state.remove("a") == 1
        assert state.keys() == ["b"]

    def test_messages_returns_a_copy(self):
        state = StateContainer("acme", "t-1")
        state.add_message(Message.user("hi"))

        state.messages.append(Message.user("sneaky"))

        assert state.message_count() == 1

    def test_last_message_by_role(self):
        state = populated_state()

        assert state.last_message().content == "21°C"
        assert state.last_message(Role.TOOL).tool_call_id == "call-1"
        assert state.last_message(Role.SYSTEM) is None

    def test_routing_cursor(self):
        state = StateContainer("acme", "t-1")
        state.move_to("a")
        state.move_to("b")

        assert state.current_node == "b"
        assert state.previous_node == "a"

    def test_concurrent_appends_are_not_lost(self):
        state = StateContainer("acme", "t-1")

        def append_many():
            for i in range(200):
                state.add_message(Message.user(str(i)))

        threads = [threading.Thread(target=append_many) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert state.message_count() == 800


class TestMessages:
    def test_messages_are_immutable(self):
        message = Message.user("hi")

        with pytest.raises(ValidationError):
            message.content = "changed"

    def test_tool_result_pairs_with_call(self):
        call = ToolCall(name="getWeather", arguments={"city": "Oslo"})

        reply = Message.tool_result(call, "boom", is_error=True, error_type="capability_failed")

        assert reply.role == Role.TOOL
        assert reply.tool_call_id == call.id
        assert reply.tool_name == "getWeather"
        assert reply.is_error
        assert reply.metadata["error_type"] == "capability_failed"

    def test_generated_ids_are_unique(self):
        assert ToolCall(name="x").id != ToolCall(name="x").id
        assert Message.user("a").id != Message.user("a").id


class TestSerialization:
    def test_json_roundtrip_preserves_log_and_values(self):
        state = populated_state()

        restored = StateContainer.from_json(state.to_json())

        assert restored.messages == state.messages
        assert restored.values == state.values
        assert restored.tenant_id == "acme"
        assert restored.thread_id == "t-42"
        assert restored.current_node == "model"

    def test_snapshot_roundtrip(self):
        state = populated_state()

        snapshot = StateSnapshot.model_validate_json(state.snapshot().model_dump_json())
        restored = StateContainer.from_snapshot(snapshot)

        assert [m.id for m in restored.messages] == [m.id for m in state.messages]
        assert restored.messages[1].tool_calls[0].arguments == {"city": "Paris"}
        assert restored.messages[1].content is None

    def test_snapshot_is_detached(self):
        state = populated_state()
        snapshot = state.snapshot()

        state.set("city", "Rome")
        state.add_message(Message.user("more"))

        assert snapshot.values["city"] == "Paris"
        assert len(snapshot.messages) == 4
