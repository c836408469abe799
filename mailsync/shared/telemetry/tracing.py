"""Tracing helpers: the ``traced`` decorator and TracedOperation around OpenTelemetry spans."""

import asyncio
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

# Only these kwarg names are copied onto spans; tokens and message bodies never are.
_SAFE_SPAN_ATTR_KEYS = frozenset({
    "connection_id", "subscription_id", "start_history_id", "user_id",
    "count", "limit", "page_size", "status", "operation",
})


def _set_safe_span_attrs(span: trace.Span, kwargs: dict) -> None:
    for key, value in kwargs.items():
        if key.lower() in _SAFE_SPAN_ATTR_KEYS and value is not None:
            span.set_attribute(f"arg.{key}", str(value))


def _finish(span: trace.Span, error: BaseException | None) -> None:
    if error is None:
        # Keep an error recorded inside the body via set_span_error.
        status = getattr(span, "status", None)
        if status is None or status.status_code != StatusCode.ERROR:
            span.set_status(Status(StatusCode.OK))
        return
    span.set_status(Status(StatusCode.ERROR, str(error)))
    span.record_exception(error)


@contextmanager
def _span(
    tracer: trace.Tracer,
    name: str,
    attributes: dict | None,
    kwargs: dict,
) -> Iterator[trace.Span]:
    with tracer.start_as_current_span(
        name, record_exception=False, set_status_on_exception=False
    ) as span:
        for key, value in (attributes or {}).items():
            span.set_attribute(key, value)
        _set_safe_span_attrs(span, kwargs)
        try:
            yield span
        except Exception as e:
            _finish(span, e)
            raise
        _finish(span, None)


def traced(
    operation_name: str | None = None,
    attributes: dict | None = None,
) -> Callable:
    """Wrap an async or sync callable in a span.

    Args:
        operation_name: Span name (defaults to module.funcname).
        attributes: Optional static attributes for the span.
    """

    def decorator(func: Callable) -> Callable:
        tracer = trace.get_tracer(func.__module__)
        span_name = operation_name or f"{func.__module__}.{func.__name__}"

        if asyncio.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with _span(tracer, span_name, attributes, kwargs):
                    return await func(*args, **kwargs)

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with _span(tracer, span_name, attributes, kwargs):
                return func(*args, **kwargs)

        return sync_wrapper

    return decorator


def add_span_attributes(**attributes: str | int | float | bool) -> None:
    """Add attributes to the current span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        for key, value in attributes.items():
            span.set_attribute(key, value)


def set_span_error(exception: Exception) -> None:
    span = trace.get_current_span()
    if span.is_recording():
        _finish(span, exception)


class TracedOperation:
    """Async context manager opening a span for one tracked operation.

    Used by PerformanceMonitor so each timed operation also shows up in traces.
    Exceptions are recorded on the span and propagate.
    """

    def __init__(self, operation_name: str, attributes: dict | None = None) -> None:
        self.operation_name = operation_name
        self.attributes = {k: str(v) for k, v in (attributes or {}).items() if v is not None}
        self.tracer = trace.get_tracer(__name__)
        self._cm: Any = None
        self.span: trace.Span | None = None

    async def __aenter__(self) -> "TracedOperation":
        self._cm = _span(self.tracer, self.operation_name, self.attributes, {})
        self.span = self._cm.__enter__()
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self._cm.__exit__(exc_type, exc_val, exc_tb)
