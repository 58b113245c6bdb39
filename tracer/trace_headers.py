"""Immutable Datadog trace metadata."""

from dataclasses import dataclass
from typing import Dict, Optional

TRACE_ID_HEADER = "x-datadog-trace-id"
PARENT_ID_HEADER = "x-datadog-parent-id"
SAMPLING_PRIORITY_HEADER = "x-datadog-sampling-priority"

HEADER_NAMES = (TRACE_ID_HEADER, PARENT_ID_HEADER, SAMPLING_PRIORITY_HEADER)


@dataclass(frozen=True)
class TraceHeaders:
    trace_id: Optional[str] = None
    parent_id: Optional[str] = None
    sampling_priority: Optional[str] = None

    def is_complete(self) -> bool:
        return bool(self.trace_id and self.parent_id and self.sampling_priority is not None)

    def to_dict(self) -> Dict[str, str]:
        """Header name -> value for every field that is set."""
        values = (self.trace_id, self.parent_id, self.sampling_priority)
        return {name: value for name, value in zip(HEADER_NAMES, values) if value is not None}
