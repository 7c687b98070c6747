"""
Routers decide where a branch goes after its node runs.

Every router registered on a node is evaluated on every visit; each yields
zero or one target. Only FixedRouter targets are known before runtime, so
only they take part in cycle detection, reachability and join barriers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from conductor.state import StateContainer


class Router(ABC):
    """Maps the current state to zero or one next node name."""

    @property
    def static_target(self) -> str | None:
        """Target known at compile time, if any."""
        return None

    @abstractmethod
    def route(self, state: StateContainer) -> str | None: ...


@dataclass(frozen=True)
class FixedRouter(Router):
    """Always routes to ``target``."""

    target: str

    @property
    def static_target(self) -> str | None:
        return self.target

    def route(self, state: StateContainer) -> str | None:
        return self.target


@dataclass(frozen=True)
class PredicateRouter(Router):
    """Routes to whatever ``predicate(state)`` returns; None ends the branch."""

    predicate: Callable[[StateContainer], str | None]
    description: str = ""

    def route(self, state: StateContainer) -> str | None:
        return self.predicate(state) or None
