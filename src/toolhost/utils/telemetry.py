"""OpenTelemetry tracing helpers for toolhost.

Modules take a tracer with ``get_tracer(__name__)`` and wrap requests and
tool calls in spans.  Only ``opentelemetry-api`` is a hard dependency: until
:func:`configure_telemetry` installs an SDK provider, every span is a no-op.

Usage::

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("toolhost.tool.call") as span:
        span.set_attribute(ATTR_TOOL_NAME, "echo_message")
"""

from __future__ import annotations

import logging
from typing import Any

from opentelemetry import trace

logger = logging.getLogger(__name__)

ATTR_TOOL_NAME = "toolhost.tool.name"
ATTR_TOOL_ERROR_CODE = "toolhost.tool.error_code"
ATTR_RPC_METHOD = "toolhost.rpc.method"
ATTR_PEER = "toolhost.peer"

_INSTRUMENTATION_NAME = "toolhost"
_OTEL_HINT = "Install it with: pip install toolhost[otel]"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a tracer for *name* (no-op until the SDK is configured)."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    service_name: str = "toolhost",
    otlp_endpoint: str | None = None,
    console: bool = False,
) -> None:
    """Install an SDK tracer provider exporting to OTLP and/or stdout.

    The background server calls this when ``otlp_endpoint`` is configured.

    Raises:
        ImportError: If ``opentelemetry-sdk`` (or, for OTLP, the exporter)
            is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
    except ImportError as exc:
        msg = f"opentelemetry-sdk is required for tracing. {_OTEL_HINT}"
        raise ImportError(msg) from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    for processor in _span_processors(otlp_endpoint, console):
        provider.add_span_processor(processor)

    trace.set_tracer_provider(provider)
    logger.debug("Tracing enabled (otlp=%s, console=%s)", otlp_endpoint, console)


def _span_processors(otlp_endpoint: str | None, console: bool) -> list[Any]:
    from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
        BatchSpanProcessor,
        ConsoleSpanExporter,
        SimpleSpanProcessor,
    )

    processors: list[Any] = []
    if otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
                OTLPSpanExporter,
            )
        except ImportError as exc:
            msg = f"opentelemetry-exporter-otlp is required for OTLP export. {_OTEL_HINT}"
            raise ImportError(msg) from exc
        processors.append(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))
    if console:
        processors.append(SimpleSpanProcessor(ConsoleSpanExporter()))
    return processors
