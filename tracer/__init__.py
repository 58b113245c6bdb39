"""Tracer components for ddlambda."""

from ddlambda.tracer.trace_headers import (
    HEADER_NAMES,
    PARENT_ID_HEADER,
    SAMPLING_PRIORITY_HEADER,
    TRACE_ID_HEADER,
    TraceHeaders,
)
from ddlambda.tracer.tracer import AUTO_KEEP, Tracer

__all__ = [
    "TraceHeaders",
    "Tracer",
    "AUTO_KEEP",
    "HEADER_NAMES",
    "TRACE_ID_HEADER",
    "PARENT_ID_HEADER",
    "SAMPLING_PRIORITY_HEADER",
]
