"""Tests for the OpenAI and Gemini wire adapters."""

import json

import pytest

from conductor.capabilities import CapabilityDescriptor, CapabilityParameter
from conductor.errors import BackendError
from conductor.llm import (
    GeminiAdapter,
    ModelParameters,
    ModelRequest,
    OpenAIChatAdapter,
    get_adapter,
)
from conductor.state import Message, ToolCall

WEATHER = CapabilityDescriptor(
    name="getWeather",
    description="Current weather",
    parameters=(CapabilityParameter("city", "string", "City name"),),
)
PING = CapabilityDescriptor(name="ping", description="No arguments")


def conversation() -> list[Message]:
    call = ToolCall(id="call-1", name="getWeather", arguments={"city": "Paris"})
    return [
        Message.user("Weather in Paris?"),
        Message.assistant(None, [call]),
        Message.tool_result(call, '{"temp_c": 21}'),
        Message.system("Answer briefly."),
    ]


def request(**kwargs) -> ModelRequest:
    defaults = dict(
        model="some-model",
        system_instruction="Be helpful.",
        messages=conversation(),
        capabilities=[WEATHER],
        parameters=ModelParameters(temperature=0.2, max_tokens=256, top_p=0.9, stop=["END"]),
    )
    defaults.update(kwargs)
    return ModelRequest(**defaults)


class TestOpenAIAdapter:
    def test_encode_request(self):
        body = OpenAIChatAdapter().encode_request(request())

        assert body["model"] == "some-model"
        assert body["temperature"] == 0.2
        assert body["max_tokens"] == 256
        assert body["top_p"] == 0.9
        assert body["stop"] == ["END"]

        messages = body["messages"]
        assert messages[0] == {"role": "system", "content": "Be helpful."}
        assert messages[1] == {"role": "user", "content": "Weather in Paris?"}
        assistant = messages[2]
        assert assistant["content"] is None
        assert assistant["tool_calls"][0]["id"] == "call-1"
        assert assistant["tool_calls"][0]["type"] == "function"
        assert json.loads(assistant["tool_calls"][0]["function"]["arguments"]) == {"city": "Paris"}
        assert messages[3] == {
            "role": "tool",
            "tool_call_id": "call-1",
            "name": "getWeather",
            "content": '{"temp_c": 21}',
        }
        assert messages[4] == {"role": "system", "content": "Answer briefly."}

        tool = body["tools"][0]
        assert tool["type"] == "function"
        assert tool["function"]["name"] == "getWeather"
        assert tool["function"]["parameters"]["required"] == ["city"]

    def test_optional_fields_omitted(self):
        body = OpenAIChatAdapter().encode_request(
            request(system_instruction=None, capabilities=[], parameters=ModelParameters())
        )

        assert "tools" not in body
        assert "top_p" not in body
        assert "stop" not in body
        assert body["messages"][0]["role"] == "user"

    def test_extras_pass_through(self):
        body = OpenAIChatAdapter().encode_request(
            request(
                parameters=ModelParameters(extras={"seed": 7}),
                extras={"response_format": {"type": "json_object"}},
            )
        )

        assert body["seed"] == 7
        assert body["response_format"] == {"type": "json_object"}

    def test_decode_tool_calls(self):
        payload = {
            "choices": [
                {
                    "message": {
                        "role": "assistant",
                        "content": None,
                        "tool_calls": [
                            {
                                "id": "abc",
                                "type": "function",
                                "function": {"name": "getWeather", "arguments": '{"city": "Oslo"}'},
                            },
                            {
                                "id": "def",
                                "type": "function",
                                "function": {"name": "getWeather", "arguments": "{broken"},
                            },
                        ],
                    },
                    "finish_reason": "tool_calls",
                }
            ]
        }

        response = OpenAIChatAdapter().decode_response(payload)

        assert response.text is None
        assert response.stop_reason == "tool_calls"
        assert response.tool_calls[0].id == "abc"
        assert response.tool_calls[0].arguments == {"city": "Oslo"}
        assert response.tool_calls[1].arguments == {"_raw": "{broken"}

    def test_decode_without_choices_raises(self):
        with pytest.raises(BackendError):
            OpenAIChatAdapter().decode_response({"error": "nope"})


class TestGeminiAdapter:
    def test_encode_request(self):
        body = GeminiAdapter().encode_request(request(capabilities=[WEATHER, PING]))

        assert body["systemInstruction"] == {
            "parts": [{"text": "Be helpful."}, {"text": "Answer briefly."}]
        }
        contents = body["contents"]
        assert contents[0] == {"role": "user", "parts": [{"text": "Weather in Paris?"}]}
        assert contents[1] == {
            "role": "model",
            "parts": [{"functionCall": {"name": "getWeather", "args": {"city": "Paris"}}}],
        }
        assert contents[2]["role"] == "function"
        response = contents[2]["parts"][0]["functionResponse"]
        assert response["name"] == "getWeather"
        assert response["response"] == {"name": "getWeather", "content": '{"temp_c": 21}'}

        assert body["generationConfig"] == {
            "temperature": 0.2,
            "maxOutputTokens": 256,
            "topP": 0.9,
            "stopSequences": ["END"],
        }
        declarations = body["tools"][0]["functionDeclarations"]
        assert declarations[0]["parameters"]["properties"]["city"]["type"] == "string"
        assert "parameters" not in declarations[1]

    def test_consecutive_tool_results_are_grouped(self):
        a = ToolCall(id="a", name="getWeather", arguments={"city": "A"})
        b = ToolCall(id="b", name="getWeather", arguments={"city": "B"})
        messages = [
            Message.user("both"),
            Message.assistant(None, [a, b]),
            Message.tool_result(a, "1"),
            Message.tool_result(b, "2"),
        ]

        body = GeminiAdapter().encode_request(request(messages=messages))

        assert len(body["contents"]) == 3
        assert len(body["contents"][2]["parts"]) == 2

    def test_decode_text_and_function_calls(self):
        payload = {
            "candidates": [
                {
                    "content": {
                        "role": "model",
                        "parts": [
                            {"text": "Let me check. "},
                            {"functionCall": {"name": "getWeather", "args": {"city": "Rome"}}},
                            {"functionCall": {"name": "getWeather", "args": {"city": "Milan"}}},
                        ],
                    },
                    "finishReason": "STOP",
                }
            ]
        }

        response = GeminiAdapter().decode_response(payload)

        assert response.text == "Let me check. "
        assert [c.arguments["city"] for c in response.tool_calls] == ["Rome", "Milan"]
        assert response.tool_calls[0].id != response.tool_calls[1].id
        assert response.stop_reason == "STOP"

    def test_decode_blocked_prompt_raises(self):
        with pytest.raises(BackendError, match="SAFETY"):
            GeminiAdapter().decode_response({"promptFeedback": {"blockReason": "SAFETY"}})

    def test_endpoint_and_headers(self):
        adapter = GeminiAdapter()

        assert (
            adapter.endpoint("https://g.test/v1beta/", "gemini-pro")
            == "https://g.test/v1beta/models/gemini-pro:generateContent"
        )
        assert adapter.headers("k")["x-goog-api-key"] == "k"


def test_get_adapter_by_name():
    assert isinstance(get_adapter("OpenAI"), OpenAIChatAdapter)
    assert isinstance(get_adapter("gemini"), GeminiAdapter)
    with pytest.raises(ValueError):
        get_adapter("smoke-signals")
