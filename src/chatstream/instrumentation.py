"""Optional OpenTelemetry tracing for stream consumption and tool runs.

Tracing is off until :func:`instrument` is called. Without it (or without
``opentelemetry-api`` installed) every span helper yields ``None`` and the
``record_*`` helpers do nothing.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "chatstream") -> None:
    """Start emitting spans through the global TracerProvider.

    Configure the provider first::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())
        chatstream.instrument()

    Raises:
        ImportError: ``opentelemetry-api`` is not installed
            (``pip install chatstream[otel]``).
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for tracing. "
            "Install it with: pip install chatstream[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info("No TracerProvider configured; stream spans will be dropped")
    else:
        logger.info(f"Tracing enabled with tracer {tracer_name!r}")


def uninstrument() -> None:
    global _tracer
    _tracer = None


@asynccontextmanager
async def _span(name: str, attributes: dict, client: bool = False):
    if _tracer is None:
        yield None
        return
    kwargs = {"attributes": attributes}
    if client:
        from opentelemetry.trace import SpanKind
        kwargs["kind"] = SpanKind.CLIENT
    with _tracer.start_as_current_span(name, **kwargs) as span:
        yield span


def stream_span(provider: str | None, model: str | None, message_id: str | None = None):
    """Span covering one response stream, from first read to finalization."""
    attributes = {
        "gen_ai.operation.name": "chat",
        "gen_ai.provider.name": provider or "unknown",
        "gen_ai.request.model": model or "unknown",
    }
    if message_id is not None:
        attributes["chatstream.message.id"] = message_id
    return _span(f"chat {model or 'unknown'}", attributes, client=True)


def tool_span(tool_name: str, call_id: str):
    """Span covering one provider-side tool execution."""
    return _span(
        f"execute_tool {tool_name}",
        {
            "gen_ai.operation.name": "execute_tool",
            "gen_ai.tool.name": tool_name,
            "gen_ai.tool.call.id": call_id,
        },
    )


def record_usage(span, usage, decode_errors: int = 0) -> None:
    """Attach the finalized token counts and skipped-line count to *span*."""
    if span is None:
        return
    if decode_errors:
        span.set_attribute("chatstream.stream.decode_errors", decode_errors)
    if usage is None:
        return
    for attribute, value in (
        ("gen_ai.usage.input_tokens", usage.prompt_tokens),
        ("gen_ai.usage.output_tokens", usage.completion_tokens),
    ):
        if value is not None:
            span.set_attribute(attribute, value)


def record_error(span, exception: BaseException) -> None:
    """Mark *span* failed with *exception*."""
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute("error.type", type(exception).__qualname__)
