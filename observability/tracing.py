"""Optional Logfire tracing.

Logfire is imported lazily so the service runs without it installed.
When enabled, PydanticAI agent calls are instrumented automatically and
report stages open their own spans via trace_operation.

Enable via configuration:
    ENABLE_LOGFIRE=true
    LOGFIRE_TOKEN=your-token  # Optional for cloud dashboard

Usage:
    >>> from observability.tracing import setup_tracing, trace_operation
    >>> setup_tracing(enabled=True, service_name="content-intel")
    >>> with trace_operation("research", {"mode": "fast"}) as attrs:
    ...     attrs["results"] = 42
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator

logger = logging.getLogger(__name__)


@dataclass
class TracingContext:
    """Tracing state for the process."""
    enabled: bool = False
    service_name: str = "content-intel"
    token: str = ""
    _logfire_configured: bool = field(default=False, init=False)


_context = TracingContext()


def setup_tracing(
    enabled: bool = False,
    service_name: str = "content-intel",
    token: str = "",
) -> TracingContext:
    """Set up tracing with Logfire.

    Args:
        enabled: Whether to enable tracing
        service_name: Name of the service for tracing
        token: Logfire authentication token

    Returns:
        TracingContext for the session
    """
    _context.enabled = enabled
    _context.service_name = service_name
    _context.token = token

    if not enabled:
        logger.debug("Tracing disabled")
        return _context

    if _context._logfire_configured:
        return _context

    try:
        import logfire

        logfire.configure(service_name=service_name, token=token or None)
        logfire.instrument_pydantic_ai()
        _context._logfire_configured = True
        logger.info("Logfire tracing enabled | service=%s", service_name)

    except ImportError:
        logger.warning("Logfire not installed. Tracing disabled.")
        _context.enabled = False
    except Exception as e:
        logger.error("Failed to configure Logfire: %s", e)
        _context.enabled = False

    return _context


def instrument_app(app: Any) -> None:
    """Instrument a FastAPI app when tracing is active."""
    if not (_context.enabled and _context._logfire_configured):
        return
    import logfire

    logfire.instrument_fastapi(app)


@contextmanager
def trace_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[dict[str, Any], None, None]:
    """Span around an operation (no-op when tracing is disabled).

    Yields:
        Dictionary for adding attributes during the operation
    """
    span_attrs = attributes or {}
    start = time.monotonic()

    try:
        if _context.enabled and _context._logfire_configured:
            import logfire

            with logfire.span(name, **span_attrs) as span:
                result_attrs: dict[str, Any] = {}
                yield result_attrs
                for key, value in result_attrs.items():
                    span.set_attribute(key, value)
        else:
            yield {}
    finally:
        logger.debug("Operation '%s' completed in %.2fs", name, time.monotonic() - start)
