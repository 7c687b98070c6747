"""
Observability: structured logging with automatic trace correlation.

Trace fields set by the scheduler propagate through ContextVar copies into
every branch task, so plain ``logger.info()`` calls are correlated.
"""

from conductor.observability.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    clear_trace_context,
    configure_logging,
    get_trace_context,
    set_trace_context,
)

__all__ = [
    "configure_logging",
    "get_trace_context",
    "set_trace_context",
    "clear_trace_context",
    "StructuredFormatter",
    "HumanReadableFormatter",
]
