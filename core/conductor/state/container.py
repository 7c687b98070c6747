"""
StateContainer - the mutable state threaded through every node of one execution.

Holds keyed scratch values, the append-only message log, the routing cursor
and the tenant/thread identity. The same instance is shared by all fan-out
branches of an execution; appends and value writes take a lock so that sync
capabilities running on worker threads can touch it too. Concurrent writers
to ``values`` must use disjoint keys; otherwise the last write wins.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field

from conductor.state.message import Message, Role


class StateSnapshot(BaseModel):
    """Serialized form of a StateContainer, as stored by repositories."""

    tenant_id: str
    thread_id: str
    values: dict[str, Any] = Field(default_factory=dict)
    messages: list[Message] = Field(default_factory=list)
    current_node: str | None = None
    previous_node: str | None = None


class StateContainer:
    """Shared state for one task/thread."""

    def __init__(
        self,
        tenant_id: str,
        thread_id: str,
        values: dict[str, Any] | None = None,
        messages: Iterable[Message] | None = None,
    ):
        if not tenant_id or not thread_id:
            raise ValueError("tenant_id and thread_id are required")
        self._tenant_id = tenant_id
        self._thread_id = thread_id
        self._values: dict[str, Any] = dict(values or {})
        self._messages: list[Message] = list(messages or [])
        self._current_node: str | None = None
        self._previous_node: str | None = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    @property
    def thread_id(self) -> str:
        return self._thread_id

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value

    def update(self, values: dict[str, Any]) -> None:
        with self._lock:
            self._values.update(values)

    def remove(self, key: str) -> Any:
        with self._lock:
            return self._values.pop(key, None)

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._values)

    @property
    def values(self) -> dict[str, Any]:
        """Shallow copy of the values map."""
        with self._lock:
            return dict(self._values)

    # ------------------------------------------------------------------
    # Message log
    # ------------------------------------------------------------------

    def add_message(self, message: Message) -> None:
        with self._lock:
            self._messages.append(message)

    @property
    def messages(self) -> list[Message]:
        """Copy of the message log in append order."""
        with self._lock:
            return list(self._messages)

    def message_count(self) -> int:
        with self._lock:
            return len(self._messages)

    def last_message(self, role: Role | None = None) -> Message | None:
        with self._lock:
            for message in reversed(self._messages):
                if role is None or message.role == role:
                    return message
        return None

    # ------------------------------------------------------------------
    # Routing cursor
    # ------------------------------------------------------------------

    @property
    def current_node(self) -> str | None:
        return self._current_node

    @property
    def previous_node(self) -> str | None:
        return self._previous_node

    def move_to(self, node_name: str) -> None:
        with self._lock:
            self._previous_node = self._current_node
            self._current_node = node_name

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return StateSnapshot(
                tenant_id=self._tenant_id,
                thread_id=self._thread_id,
                values=dict(self._values),
                messages=list(self._messages),
                current_node=self._current_node,
                previous_node=self._previous_node,
            )

    @classmethod
    def from_snapshot(cls, snapshot: StateSnapshot) -> StateContainer:
        state = cls(
            tenant_id=snapshot.tenant_id,
            thread_id=snapshot.thread_id,
            values=snapshot.values,
            messages=snapshot.messages,
        )
        state._current_node = snapshot.current_node
        state._previous_node = snapshot.previous_node
        return state

    def to_json(self) -> str:
        return self.snapshot().model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> StateContainer:
        return cls.from_snapshot(StateSnapshot.model_validate_json(data))

    def __repr__(self) -> str:
        return (
            f"StateContainer(tenant_id={self._tenant_id!r}, thread_id={self._thread_id!r}, "
            f"values={len(self._values)}, messages={len(self._messages)})"
        )
