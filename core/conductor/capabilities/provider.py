"""
Capability providers.

A provider groups related capabilities under one ``provider_id`` (the key
WorkflowConfig gates on) and exposes a static list of descriptors plus a
single ``invoke`` entry point. FunctionProvider is the explicit registration
table: each capability is a plain function registered with its schema.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from conductor.capabilities.descriptor import CapabilityDescriptor, CapabilityParameter
from conductor.errors import CapabilityError, CapabilityErrorType
from conductor.state import StateContainer

logger = logging.getLogger(__name__)


class CapabilityProvider(ABC):
    """A source of callable capabilities."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Identifier used by WorkflowConfig gating."""

    @abstractmethod
    def descriptors(self) -> list[CapabilityDescriptor]:
        """Static list of capabilities this provider exposes."""

    @abstractmethod
    async def invoke(self, name: str, arguments: dict[str, Any], state: StateContainer) -> Any:
        """
        Run capability *name*.

        Raises:
            CapabilityError: unknown name or bad arguments
            Exception: whatever the capability itself raises
        """


@dataclass(frozen=True)
class RegisteredCapability:
    """A function together with its descriptor."""

    descriptor: CapabilityDescriptor
    func: Callable[..., Any]
    inject_state: bool = False


class FunctionProvider(CapabilityProvider):
    """
    Provider backed by an explicit table of functions.

    Example:
        weather = FunctionProvider("WeatherService")

        @weather.capability(
            "getWeather",
            "Current weather for a city",
            parameters=[CapabilityParameter("city", "string", "City name")],
        )
        def get_weather(city: str) -> dict:
            ...

    Functions may be sync or async. With ``inject_state=True`` the live
    StateContainer is passed as the ``state`` keyword argument.
    """

    def __init__(self, provider_id: str):
        self._provider_id = provider_id
        self._capabilities: dict[str, RegisteredCapability] = {}

    @property
    def provider_id(self) -> str:
        return self._provider_id

    def register(
        self,
        name: str,
        func: Callable[..., Any],
        description: str,
        parameters: Iterable[CapabilityParameter] = (),
        inject_state: bool = False,
    ) -> None:
        if name in self._capabilities:
            raise ValueError(f"Capability '{name}' already registered on {self._provider_id}")
        descriptor = CapabilityDescriptor(
            name=name, description=description, parameters=tuple(parameters)
        )
        self._capabilities[name] = RegisteredCapability(
            descriptor=descriptor, func=func, inject_state=inject_state
        )

    def capability(
        self,
        name: str,
        description: str,
        parameters: Iterable[CapabilityParameter] = (),
        inject_state: bool = False,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of register()."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.register(name, func, description, parameters, inject_state)
            return func

        return decorator

    def descriptors(self) -> list[CapabilityDescriptor]:
        return [c.descriptor for c in self._capabilities.values()]

    async def invoke(self, name: str, arguments: dict[str, Any], state: StateContainer) -> Any:
        registered = self._capabilities.get(name)
        if registered is None:
            raise CapabilityError(
                name,
                f"Capability '{name}' is not provided by {self._provider_id}",
                CapabilityErrorType.NOT_FOUND,
            )

        missing = registered.descriptor.missing_arguments(arguments)
        if missing:
            raise CapabilityError(
                name,
                f"Missing required argument(s) for '{name}': {', '.join(missing)}",
                CapabilityErrorType.INVALID_ARGUMENTS,
            )

        kwargs = dict(arguments)
        if registered.inject_state:
            kwargs["state"] = state

        result = registered.func(**kwargs)
        if asyncio.iscoroutine(result) or asyncio.isfuture(result):
            result = await result
        return result
