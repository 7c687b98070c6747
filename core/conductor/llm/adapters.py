"""
Wire-format adapters.

Each adapter is an ``encode_request``/``decode_response`` pair for one
provider family, plus the endpoint and auth header conventions that go with
it. Backends pick an adapter by configured name (``get_adapter``) and never
by sniffing the JSON they receive.
"""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any

from conductor.capabilities.descriptor import CapabilityDescriptor
from conductor.errors import BackendError
from conductor.llm.backend import ModelRequest, ModelResponse
from conductor.state import Message, Role, ToolCall

logger = logging.getLogger(__name__)


def _parse_arguments(raw: Any) -> dict[str, Any]:
    """Tool-call arguments arrive as a JSON string or an object."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning(f"Could not parse tool call arguments: {raw!r}")
        return {"_raw": raw}
    if not isinstance(parsed, dict):
        return {"_raw": raw}
    return parsed


class ModelAdapter(ABC):
    """Translate between ModelRequest/ModelResponse and one provider's JSON."""

    name: str = ""
    DEFAULT_BASE_URL: str = ""

    @abstractmethod
    def encode_request(self, request: ModelRequest) -> dict[str, Any]: ...

    @abstractmethod
    def decode_response(self, payload: dict[str, Any]) -> ModelResponse: ...

    @abstractmethod
    def endpoint(self, base_url: str, model: str) -> str: ...

    def headers(self, api_key: str | None) -> dict[str, str]:
        return {"Content-Type": "application/json"}


# ---------------------------------------------------------------------------
# OpenAI chat-completions
# ---------------------------------------------------------------------------


class OpenAIChatAdapter(ModelAdapter):
    """OpenAI-style ``/chat/completions`` payloads (also used by LiteLLM)."""

    name = "openai"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def encode_messages(self, request: ModelRequest) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if request.system_instruction:
            messages.append({"role": "system", "content": request.system_instruction})
        for message in request.messages:
            messages.append(self._encode_message(message))
        return messages

    def _encode_message(self, message: Message) -> dict[str, Any]:
        if message.role == Role.TOOL:
            return {
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "name": message.tool_name,
                "content": message.content or "",
            }
        if message.role == Role.ASSISTANT:
            d: dict[str, Any] = {"role": "assistant", "content": message.content}
            if message.tool_calls:
                d["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.arguments),
                        },
                    }
                    for call in message.tool_calls
                ]
            return d
        return {"role": str(message.role), "content": message.content or ""}

    @staticmethod
    def encode_tools(capabilities: list[CapabilityDescriptor]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": c.name,
                    "description": c.description,
                    "parameters": c.to_json_schema(),
                },
            }
            for c in capabilities
        ]

    def encode_request(self, request: ModelRequest) -> dict[str, Any]:
        params = request.parameters
        body: dict[str, Any] = {
            "model": request.model,
            "messages": self.encode_messages(request),
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
        }
        if params.top_p is not None:
            body["top_p"] = params.top_p
        if params.stop:
            body["stop"] = list(params.stop)
        if request.capabilities:
            body["tools"] = self.encode_tools(request.capabilities)
        body.update(params.extras)
        body.update(request.extras)
        return body

    def decode_response(self, payload: dict[str, Any]) -> ModelResponse:
        choices = payload.get("choices") or []
        if not choices:
            raise BackendError(f"Response has no choices: {payload.get('error') or payload}")
        choice = choices[0]
        message = choice.get("message") or {}

        tool_calls = []
        for tc in message.get("tool_calls") or []:
            function = tc.get("function") or {}
            tool_calls.append(
                ToolCall(
                    id=tc.get("id") or uuid.uuid4().hex,
                    name=function.get("name", ""),
                    arguments=_parse_arguments(function.get("arguments")),
                )
            )

        return ModelResponse(
            text=message.get("content"),
            tool_calls=tool_calls,
            stop_reason=choice.get("finish_reason") or "",
            raw=payload,
        )

    def endpoint(self, base_url: str, model: str) -> str:
        return f"{base_url.rstrip('/')}/chat/completions"

    def headers(self, api_key: str | None) -> dict[str, str]:
        headers = super().headers(api_key)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers


# ---------------------------------------------------------------------------
# Gemini generateContent
# ---------------------------------------------------------------------------


class GeminiAdapter(ModelAdapter):
    """
    Gemini ``generateContent`` payloads.

    Roles map to user/model/function. System-role messages from the log are
    folded into ``systemInstruction`` after the node's system prompt, and
    consecutive tool results are grouped into one ``function`` content.
    Gemini does not issue tool-call ids, so ids are generated on decode.
    """

    name = "gemini"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def encode_request(self, request: ModelRequest) -> dict[str, Any]:
        params = request.parameters
        system_parts = []
        if request.system_instruction:
            system_parts.append({"text": request.system_instruction})

        contents: list[dict[str, Any]] = []
        for message in request.messages:
            if message.role == Role.SYSTEM:
                if message.content:
                    system_parts.append({"text": message.content})
                continue

            if message.role == Role.TOOL:
                part = {
                    "functionResponse": {
                        "name": message.tool_name,
                        "response": {"name": message.tool_name, "content": message.content},
                    }
                }
                if contents and contents[-1]["role"] == "function":
                    contents[-1]["parts"].append(part)
                else:
                    contents.append({"role": "function", "parts": [part]})
                continue

            if message.role == Role.ASSISTANT:
                parts: list[dict[str, Any]] = []
                if message.content:
                    parts.append({"text": message.content})
                for call in message.tool_calls:
                    parts.append({"functionCall": {"name": call.name, "args": call.arguments}})
                if parts:
                    contents.append({"role": "model", "parts": parts})
                continue

            contents.append({"role": "user", "parts": [{"text": message.content or ""}]})

        generation_config: dict[str, Any] = {
            "temperature": params.temperature,
            "maxOutputTokens": params.max_tokens,
        }
        if params.top_p is not None:
            generation_config["topP"] = params.top_p
        if params.stop:
            generation_config["stopSequences"] = list(params.stop)

        body: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}
        if request.capabilities:
            body["tools"] = [
                {"functionDeclarations": [self._declaration(c) for c in request.capabilities]}
            ]
        body.update(params.extras)
        body.update(request.extras)
        return body

    @staticmethod
    def _declaration(capability: CapabilityDescriptor) -> dict[str, Any]:
        declaration: dict[str, Any] = {
            "name": capability.name,
            "description": capability.description,
        }
        if capability.parameters:
            declaration["parameters"] = capability.to_json_schema()
        return declaration

    def decode_response(self, payload: dict[str, Any]) -> ModelResponse:
        candidates = payload.get("candidates") or []
        if not candidates:
            feedback = payload.get("promptFeedback") or {}
            reason = feedback.get("blockReason") or payload.get("error") or "no candidates"
            raise BackendError(f"Gemini returned no candidates: {reason}")
        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []

        texts = []
        tool_calls = []
        for part in parts:
            if "text" in part:
                texts.append(part["text"])
            elif "functionCall" in part:
                fc = part["functionCall"]
                tool_calls.append(
                    ToolCall(
                        id=uuid.uuid4().hex,
                        name=fc.get("name", ""),
                        arguments=_parse_arguments(fc.get("args")),
                    )
                )

        return ModelResponse(
            text="".join(texts) if texts else None,
            tool_calls=tool_calls,
            stop_reason=candidate.get("finishReason") or "",
            raw=payload,
        )

    def endpoint(self, base_url: str, model: str) -> str:
        return f"{base_url.rstrip('/')}/models/{model}:generateContent"

    def headers(self, api_key: str | None) -> dict[str, str]:
        headers = super().headers(api_key)
        if api_key:
            headers["x-goog-api-key"] = api_key
        return headers


ADAPTERS: dict[str, type[ModelAdapter]] = {
    OpenAIChatAdapter.name: OpenAIChatAdapter,
    GeminiAdapter.name: GeminiAdapter,
}


def get_adapter(name: str) -> ModelAdapter:
    """Instantiate the adapter registered under *name*."""
    try:
        return ADAPTERS[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown wire format '{name}'. Known: {sorted(ADAPTERS)}") from None
