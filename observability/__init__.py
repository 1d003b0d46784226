"""Observability: structured logging and optional Logfire tracing.

setup_tracing:
    Initialize Logfire with PydanticAI instrumentation.

trace_operation:
    Context manager for report stage spans.

TracingContext:
    Tracing state for the process.

Example:
    >>> from observability import setup_tracing, trace_operation
    >>> setup_tracing(enabled=True, service_name="content-intel")
    >>> with trace_operation("deliver"):
    ...     pass
"""

from observability.tracing import TracingContext, instrument_app, setup_tracing, trace_operation

__all__ = [
    "setup_tracing",
    "trace_operation",
    "instrument_app",
    "TracingContext",
]
