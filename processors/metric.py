"""Distribution metric samples."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union

Number = Union[int, float]


@dataclass(frozen=True)
class DistributionMetric:
    name: str
    value: Number
    tags: Tuple[str, ...] = ()
    timestamp: int = field(default_factory=lambda: int(time.time()))

    def to_series(self) -> Dict[str, Any]:
        """Series entry for the distribution_points payload."""
        return {
            "metric": self.name,
            "points": [[self.timestamp, self.value]],
            "tags": list(self.tags),
        }
