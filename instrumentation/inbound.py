"""Inbound event helpers for extracting the caller's trace context."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from opentelemetry.context import Context

from ddlambda.context import DatadogHeadersPropagator, get_headers_in_context
from ddlambda.tracer.trace_headers import TraceHeaders

_propagator = DatadogHeadersPropagator()


def event_headers(event: Any) -> Optional[Mapping[str, Any]]:
    """
    Return the header map carried by ``event``, if any.

    API Gateway and ALB events put headers under ``headers``; events that
    merged single and multi-value headers use ``multiValueHeaders`` as well.
    """
    if not isinstance(event, Mapping):
        return None
    headers = event.get("headers")
    if isinstance(headers, Mapping) and headers:
        return headers
    multi = event.get("multiValueHeaders")
    if isinstance(multi, Mapping) and multi:
        return multi
    return None


def extract_parent_headers(event: Any) -> TraceHeaders:
    """Parse x-datadog-* headers from the event; missing fields stay unset."""
    carrier = event_headers(event)
    if not carrier:
        return TraceHeaders()
    # Extract into an empty context so nothing ambient leaks into the result.
    return get_headers_in_context(_propagator.extract(carrier, context=Context()))
