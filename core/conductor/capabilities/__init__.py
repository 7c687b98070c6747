"""Capabilities (tools) the model can call: descriptors, providers, registry."""

from conductor.capabilities.descriptor import CapabilityDescriptor, CapabilityParameter
from conductor.capabilities.provider import (
    CapabilityProvider,
    FunctionProvider,
    RegisteredCapability,
)
from conductor.capabilities.registry import CapabilityOutcome, CapabilityRegistry, encode_result

__all__ = [
    "CapabilityDescriptor",
    "CapabilityParameter",
    "CapabilityProvider",
    "FunctionProvider",
    "RegisteredCapability",
    "CapabilityRegistry",
    "CapabilityOutcome",
    "encode_result",
]
