"""Tracer that completes inherited trace headers using OpenTelemetry's id generator."""

from __future__ import annotations

import logging
from typing import Optional

from opentelemetry.sdk.trace.id_generator import IdGenerator, RandomIdGenerator

from ddlambda.tracer.trace_headers import TraceHeaders
from ddlambda.utils.helpers import format_id

logger = logging.getLogger(__name__)

# Datadog "auto keep" priority, used when the caller made no sampling decision.
AUTO_KEEP = "1"


class Tracer:
    """
    Mints whatever part of the trace context was not inherited.

    Only identifiers are produced here; span lifecycles stay with the
    application's own tracing client.
    """

    def __init__(self, id_generator: Optional[IdGenerator] = None):
        self._id_generator = id_generator or RandomIdGenerator()

    def new_id(self) -> str:
        return format_id(self._id_generator.generate_span_id())

    def complete(self, inherited: TraceHeaders) -> TraceHeaders:
        """
        Fill every missing field of ``inherited``.

        Without an inherited trace id a new trace is started, and any orphaned
        parent id is discarded along with it.
        """
        if inherited.is_complete():
            return inherited

        trace_id = inherited.trace_id
        parent_id = inherited.parent_id
        if trace_id is None:
            if parent_id is not None:
                logger.debug("Discarding parent id %s received without a trace id", parent_id)
            trace_id = self.new_id()
            parent_id = self.new_id()
        elif parent_id is None:
            parent_id = self.new_id()

        sampling_priority = inherited.sampling_priority
        if sampling_priority is None:
            sampling_priority = AUTO_KEEP

        return TraceHeaders(
            trace_id=trace_id,
            parent_id=parent_id,
            sampling_priority=sampling_priority,
        )
