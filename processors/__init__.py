"""Metric buffering and supporting utilities."""

from ddlambda.processors.drop_policy import (
    DEFAULT_DROP_POLICY,
    DropNewestPolicy,
    DropOldestPolicy,
    DropPolicy,
)
from ddlambda.processors.metric import DistributionMetric
from ddlambda.processors.metrics_batcher import MetricsBatcher

__all__ = [
    "MetricsBatcher",
    "DistributionMetric",
    "DropPolicy",
    "DropOldestPolicy",
    "DropNewestPolicy",
    "DEFAULT_DROP_POLICY",
]
