"""Invocation-scoped trace context - stored in OpenTelemetry's context API.

OpenTelemetry's context is backed by ``contextvars``, so whatever is attached
here is visible to code running later in the same logical flow (including
worker threads started from a copied context) and to nothing else. Two
invocations in one process never see each other's headers.
"""

from __future__ import annotations

from contextvars import Token
from typing import Any, Mapping, Optional, TYPE_CHECKING

from opentelemetry import context as context_api
from opentelemetry.context import Context

from ddlambda.tracer.trace_headers import TraceHeaders

if TYPE_CHECKING:
    from ddlambda.wrapper import Invocation

_TRACE_HEADERS_KEY = context_api.create_key("ddlambda-trace-headers")
_INVOCATION_KEY = context_api.create_key("ddlambda-invocation")

_EMPTY = TraceHeaders()


def get_headers_in_context(context: Optional[Context] = None) -> TraceHeaders:
    """Return the trace headers held by ``context`` (default: the current one)."""
    headers = context_api.get_value(_TRACE_HEADERS_KEY, context)
    return headers if headers is not None else _EMPTY


def set_headers_in_context(headers: TraceHeaders, context: Optional[Context] = None) -> Context:
    """Return a copy of ``context`` carrying ``headers``; nothing is attached."""
    return context_api.set_value(_TRACE_HEADERS_KEY, headers, context)


def set_from_headers(headers: Mapping[str, Any]) -> Token:
    """
    Extract the trace headers from an inbound header map and make them current.

    Lookup is case-insensitive; missing or malformed headers leave the field unset.

    Returns:
        Token needed to restore the previous state
    """
    from ddlambda.context.propagators import extract_trace_headers

    return context_api.attach(set_headers_in_context(extract_trace_headers(headers)))


def current() -> TraceHeaders:
    """Trace headers of the active invocation, or an empty set outside one."""
    return get_headers_in_context()


def current_invocation() -> Optional["Invocation"]:
    return context_api.get_value(_INVOCATION_KEY)


def activate(invocation: "Invocation") -> Token:
    """
    Make ``invocation`` and its trace headers current.

    Returns:
        Token needed to restore the previous state
    """
    ctx = set_headers_in_context(invocation.trace_headers)
    ctx = context_api.set_value(_INVOCATION_KEY, invocation, ctx)
    return context_api.attach(ctx)


def deactivate(token: Token) -> None:
    """
    Restore the context that was current before ``activate``.

    Args:
        token: Token returned by activate()
    """
    context_api.detach(token)
