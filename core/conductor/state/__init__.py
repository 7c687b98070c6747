"""State data model: messages, tool calls and the shared state container."""

from conductor.state.container import StateContainer, StateSnapshot
from conductor.state.message import Message, Role, ToolCall

__all__ = [
    "Message",
    "Role",
    "ToolCall",
    "StateContainer",
    "StateSnapshot",
]
