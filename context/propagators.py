"""Datadog header propagation using OpenTelemetry's TextMapPropagator interface."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, MutableMapping, Optional, Set

from opentelemetry.context import Context
from opentelemetry.propagators.textmap import (
    CarrierT,
    Getter,
    Setter,
    TextMapPropagator,
    default_setter,
)

from ddlambda.context.context import get_headers_in_context, set_headers_in_context
from ddlambda.tracer.trace_headers import (
    HEADER_NAMES,
    PARENT_ID_HEADER,
    SAMPLING_PRIORITY_HEADER,
    TRACE_ID_HEADER,
    TraceHeaders,
)
from ddlambda.utils.helpers import parse_id, parse_sampling_priority

logger = logging.getLogger(__name__)


class CaseInsensitiveGetter(Getter[Mapping[str, Any]]):
    """
    Header getter that ignores key case.

    Multi-value entries (lists/tuples) are returned as-is; single values are
    wrapped in a list, matching the Getter contract.
    """

    def get(self, carrier: Mapping[str, Any], key: str) -> Optional[List[str]]:
        if not carrier:
            return None
        wanted = key.lower()
        for name, value in carrier.items():
            if str(name).lower() != wanted or value is None:
                continue
            if isinstance(value, (list, tuple)):
                return [str(v) for v in value]
            return [str(value)]
        return None

    def keys(self, carrier: Mapping[str, Any]) -> List[str]:
        return [str(name) for name in carrier] if carrier else []


case_insensitive_getter = CaseInsensitiveGetter()


def _first(getter: Getter, carrier: Any, key: str) -> Optional[str]:
    values = getter.get(carrier, key)
    if not values:
        return None
    return values[0]


def extract_trace_headers(carrier: Optional[Mapping[str, Any]], getter: Getter = case_insensitive_getter) -> TraceHeaders:
    """
    Read the three Datadog headers from ``carrier``.

    Values that are not base-10 integers are dropped so the tracer mints a
    replacement. Valid values are kept verbatim.
    """
    if not carrier:
        return TraceHeaders()

    trace_id = _first(getter, carrier, TRACE_ID_HEADER)
    if trace_id is not None and parse_id(trace_id) is None:
        logger.debug("Ignoring malformed %s header: %r", TRACE_ID_HEADER, trace_id)
        trace_id = None

    parent_id = _first(getter, carrier, PARENT_ID_HEADER)
    if parent_id is not None and parse_id(parent_id) is None:
        logger.debug("Ignoring malformed %s header: %r", PARENT_ID_HEADER, parent_id)
        parent_id = None

    priority = _first(getter, carrier, SAMPLING_PRIORITY_HEADER)
    if priority is not None and parse_sampling_priority(priority) is None:
        logger.debug("Ignoring malformed %s header: %r", SAMPLING_PRIORITY_HEADER, priority)
        priority = None

    return TraceHeaders(
        trace_id=trace_id.strip() if trace_id else None,
        parent_id=parent_id.strip() if parent_id else None,
        sampling_priority=priority.strip() if priority else None,
    )


def inject_trace_headers(carrier: MutableMapping[str, str], headers: TraceHeaders, setter: Setter = default_setter) -> None:
    """
    Write ``headers`` into ``carrier``.

    Each header is assigned rather than appended, so injecting twice leaves a
    single set behind. Nothing else in the carrier is touched.
    """
    for name, value in headers.to_dict().items():
        setter.set(carrier, name, value)


class DatadogHeadersPropagator(TextMapPropagator):
    """TextMapPropagator for the x-datadog-* header triple."""

    def extract(
        self,
        carrier: CarrierT,
        context: Optional[Context] = None,
        getter: Getter = case_insensitive_getter,
    ) -> Context:
        headers = extract_trace_headers(carrier, getter)
        if not headers.to_dict():
            return context if context is not None else Context()
        return set_headers_in_context(headers, context)

    def inject(
        self,
        carrier: CarrierT,
        context: Optional[Context] = None,
        setter: Setter = default_setter,
    ) -> None:
        inject_trace_headers(carrier, get_headers_in_context(context), setter)

    @property
    def fields(self) -> Set[str]:
        return set(HEADER_NAMES)
