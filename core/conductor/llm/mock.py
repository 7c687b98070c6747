"""Deterministic backend for tests and offline runs."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from conductor.errors import BackendError
from conductor.llm.backend import ModelBackend, ModelRequest, ModelResponse

ScriptEntry = ModelResponse | Exception | Callable[[ModelRequest], ModelResponse]


class ScriptedBackend(ModelBackend):
    """
    Replays a fixed script of responses.

    Each entry is a ModelResponse to return, an exception to raise, or a
    callable producing a response from the request. Every request is kept
    in ``requests`` for assertions. Running past the end of the script
    raises a non-retryable BackendError.
    """

    def __init__(self, script: Iterable[ScriptEntry] = ()):
        self._script = list(script)
        self.requests: list[ModelRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def add(self, *entries: ScriptEntry) -> None:
        self._script.extend(entries)

    async def generate(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request)
        if not self._script:
            raise BackendError("ScriptedBackend has no responses left")
        entry = self._script.pop(0)
        if isinstance(entry, Exception):
            raise entry
        if callable(entry):
            return entry(request)
        return entry
