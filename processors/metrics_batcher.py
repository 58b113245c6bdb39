"""Per-invocation buffer of distribution metrics, delivered in one batch."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, List, Optional

from ddlambda.errors import MetricsDeliveryError
from ddlambda.processors.drop_policy import DEFAULT_DROP_POLICY, DropPolicy
from ddlambda.processors.metric import DistributionMetric, Number

logger = logging.getLogger(__name__)


class MetricsBatcher:
    """
    Buffers distribution metrics and hands them to the client on flush.

    ``add`` never touches the network. ``flush`` drains everything buffered so
    far into a single ``client.export()`` call and never raises: delivery is
    best-effort and must not fail the invocation that produced the samples.
    """

    def __init__(
        self,
        client=None,
        *,
        max_queue_size: int = 10000,
        drop_policy: Optional[DropPolicy] = None,
    ) -> None:
        self.client = client
        self.max_queue_size = max_queue_size
        self.drop_policy = drop_policy or DEFAULT_DROP_POLICY

        self._queue: Deque[DistributionMetric] = deque()
        self._lock = threading.Lock()
        self._dropped = 0

    def add(self, name: str, value: Number, *tags: str) -> None:
        """Buffer one sample. Duplicate names and tags are kept."""
        metric = DistributionMetric(name=name, value=value, tags=tuple(str(tag) for tag in tags))
        with self._lock:
            self._dropped += self.drop_policy.handle(self._queue, metric, self.max_queue_size)

    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Deliver and clear the buffer.

        Args:
            timeout: Seconds the delivery may take, or None for the client default

        Returns:
            True if there was nothing to send or the backend accepted the batch
        """
        batch = self._drain_queue()
        if not batch:
            return True
        if self.client is None:
            logger.warning("Dropping %d distribution metric(s): no metrics client configured", len(batch))
            return False

        try:
            self.client.export(batch, timeout=timeout)
        except MetricsDeliveryError as exc:
            logger.warning("Failed to deliver %d distribution metric(s): %s", len(batch), exc)
            return False
        except Exception:
            # Delivery errors are swallowed; the invocation result matters more.
            logger.exception("Unexpected error delivering %d distribution metric(s)", len(batch))
            return False
        logger.debug("Delivered %d distribution metric(s)", len(batch))
        return True

    # Internal
    def _drain_queue(self) -> List[DistributionMetric]:
        with self._lock:
            items = list(self._queue)
            self._queue.clear()
            dropped, self._dropped = self._dropped, 0
        if dropped:
            logger.warning("Dropped %d distribution metric(s): buffer limit of %d reached", dropped, self.max_queue_size)
        return items
