"""Context utilities for ddlambda."""

from ddlambda.context.context import (
    activate,
    current,
    current_invocation,
    deactivate,
    get_headers_in_context,
    set_from_headers,
    set_headers_in_context,
)
from ddlambda.context.propagators import (
    CaseInsensitiveGetter,
    DatadogHeadersPropagator,
    case_insensitive_getter,
    extract_trace_headers,
    inject_trace_headers,
)

__all__ = [
    "activate",
    "deactivate",
    "current",
    "current_invocation",
    "get_headers_in_context",
    "set_headers_in_context",
    "set_from_headers",
    "CaseInsensitiveGetter",
    "case_insensitive_getter",
    "DatadogHeadersPropagator",
    "extract_trace_headers",
    "inject_trace_headers",
]
