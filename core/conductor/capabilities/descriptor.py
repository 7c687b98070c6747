"""Declarative capability metadata, built once at registration time."""

from dataclasses import dataclass, field
from typing import Any

JSON_TYPES = frozenset({"string", "integer", "number", "boolean", "object", "array"})


@dataclass(frozen=True)
class CapabilityParameter:
    """One named argument of a capability."""

    name: str
    type: str = "string"
    description: str = ""
    required: bool = True

    def __post_init__(self) -> None:
        if self.type not in JSON_TYPES:
            raise ValueError(f"Unsupported parameter type '{self.type}' for '{self.name}'")


@dataclass(frozen=True)
class CapabilityDescriptor:
    """Name, description and ordered parameter list of a capability."""

    name: str
    description: str
    parameters: tuple[CapabilityParameter, ...] = field(default_factory=tuple)

    def to_json_schema(self) -> dict[str, Any]:
        """JSON-schema object describing the arguments."""
        return {
            "type": "object",
            "properties": {
                p.name: {"type": p.type, "description": p.description} for p in self.parameters
            },
            "required": [p.name for p in self.parameters if p.required],
        }

    def missing_arguments(self, arguments: dict[str, Any]) -> list[str]:
        return [p.name for p in self.parameters if p.required and p.name not in arguments]
