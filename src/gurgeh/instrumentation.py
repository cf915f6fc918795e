"""Optional OpenTelemetry instrumentation for gurgeh.

Call ``gurgeh.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; exchanges run
identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager, contextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "gurgeh") -> None:
    """Enable OpenTelemetry tracing for exchanges, rounds and tool calls.

    The host installs a TracerProvider first; gurgeh only creates spans.
    Requires ``opentelemetry-api``: ``pip install gurgeh[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())

        import gurgeh
        gurgeh.instrument()

    Args:
        tracer_name: Instrumentation scope name for the tracer.

    Raises:
        ImportError: When the ``otel`` extra is missing.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "Tracing needs opentelemetry-api. "
            "Install it with: pip install gurgeh[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "Tracing enabled without a TracerProvider; "
            "exchange spans go nowhere until one is set."
        )
    else:
        logger.info("Gurgeh instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


def is_instrumented() -> bool:
    return _tracer is not None


# Spans are never made current; the runner yields events from inside them.
@contextmanager
def _span(name: str, parent=None, **kwargs):
    from opentelemetry import trace

    ctx = trace.set_span_in_context(parent) if parent is not None else None
    span = _tracer.start_span(name, context=ctx, **kwargs)
    try:
        yield span
    finally:
        span.end()


@asynccontextmanager
async def exchange_span(agent_name: str, model: str, max_rounds: int):
    """Wrap one exchange in an ``invoke_agent`` span."""
    if _tracer is None:
        yield None
        return
    with _span(
        f"invoke_agent {agent_name}",
        attributes={
            "gen_ai.operation.name": "invoke_agent",
            "gen_ai.agent.name": agent_name,
            "gen_ai.request.model": model,
            "gurgeh.max_rounds": max_rounds,
        },
    ) as span:
        yield span


@asynccontextmanager
async def round_span(system: str, model: str, round_number: int, parent=None):
    """Wrap one streamed model round in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _span(
        f"chat {model}",
        parent=parent,
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": system,
            "gen_ai.request.model": model,
            "gurgeh.round": round_number,
        },
    ) as span:
        yield span


@asynccontextmanager
async def tool_span(tool_name: str, call_id: str, parent=None):
    """Span around one tool call, child of the exchange span."""
    if _tracer is None:
        yield None
        return
    with _span(
        f"execute_tool {tool_name}",
        parent=parent,
        attributes={
            "gen_ai.operation.name": "execute_tool",
            "gen_ai.tool.name": tool_name,
            "gen_ai.tool.call.id": call_id,
        },
    ) as span:
        yield span


def record_round(
    span, text: str, tool_call_count: int, finish_reason: str | None = None,
) -> None:
    """Attach the round's output sizes to a ``chat`` span."""
    if span is None:
        return
    span.set_attribute("gurgeh.round.text_length", len(text))
    span.set_attribute("gurgeh.round.tool_calls", tool_call_count)
    if finish_reason:
        span.set_attribute("gen_ai.response.finish_reasons", [finish_reason])


def record_tool_result(span, success: bool) -> None:
    if span is None:
        return
    span.set_attribute("gurgeh.tool.success", success)


def record_error(span, exception: BaseException) -> None:
    """Mark *span* failed with *exception*. Does nothing without a span."""
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
