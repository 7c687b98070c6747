"""Conversation log entries: Message and ToolCall."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(UTC)


class Role(StrEnum):
    """Who authored a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class ToolCall(BaseModel):
    """A model-issued request to invoke a named capability."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class Message(BaseModel):
    """
    One entry in the message log.

    Messages are immutable once built. A ``tool`` message pairs with the
    assistant ToolCall whose id equals its ``tool_call_id``; an assistant
    message carrying tool calls may have no content.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    role: Role
    content: str | None = None
    tool_name: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_now)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def user(cls, content: str, **metadata: Any) -> Message:
        return cls(role=Role.USER, content=content, metadata=metadata)

    @classmethod
    def system(cls, content: str, **metadata: Any) -> Message:
        return cls(role=Role.SYSTEM, content=content, metadata=metadata)

    @classmethod
    def assistant(
        cls,
        content: str | None,
        tool_calls: list[ToolCall] | None = None,
        **metadata: Any,
    ) -> Message:
        return cls(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=list(tool_calls or []),
            metadata=metadata,
        )

    @classmethod
    def tool_result(
        cls,
        call: ToolCall,
        content: str,
        is_error: bool = False,
        error_type: str | None = None,
    ) -> Message:
        """Build the tool-role reply paired with *call*."""
        metadata: dict[str, Any] = {"is_error": is_error}
        if error_type:
            metadata["error_type"] = error_type
        return cls(
            role=Role.TOOL,
            content=content,
            tool_name=call.name,
            tool_call_id=call.id,
            metadata=metadata,
        )

    @property
    def is_error(self) -> bool:
        return bool(self.metadata.get("is_error", False))

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)
