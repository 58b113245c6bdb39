"""What to give up when a metric buffer is full."""

from typing import Deque

from ddlambda.processors.metric import DistributionMetric


class DropPolicy:
    """Decides which sample loses when the buffer is at capacity."""

    def handle(self, queue: Deque[DistributionMetric], metric: DistributionMetric, max_size: int) -> int:
        """
        Offer ``metric`` to ``queue``.

        Returns the number of samples discarded (0 or 1), counting either an
        evicted sample or the rejected incoming one.
        """
        raise NotImplementedError


class DropOldestPolicy(DropPolicy):
    """Evict the oldest buffered sample; the newest reading always wins."""

    def handle(self, queue: Deque[DistributionMetric], metric: DistributionMetric, max_size: int) -> int:
        if max_size <= 0:
            return 1
        evicted = 0
        while len(queue) >= max_size:
            queue.popleft()
            evicted += 1
        queue.append(metric)
        return evicted


class DropNewestPolicy(DropPolicy):
    """Keep what is buffered and reject the incoming sample."""

    def handle(self, queue: Deque[DistributionMetric], metric: DistributionMetric, max_size: int) -> int:
        if len(queue) >= max_size:
            return 1
        queue.append(metric)
        return 0


DEFAULT_DROP_POLICY = DropOldestPolicy()
