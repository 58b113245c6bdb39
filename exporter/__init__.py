"""Exporters for delivering metrics to Datadog."""

from ddlambda.exporter.api_client import (
    DISTRIBUTION_POINTS_PATH,
    DistributionMetricsClient,
    close_shared_clients,
    shared_client,
)

__all__ = ["DistributionMetricsClient", "DISTRIBUTION_POINTS_PATH", "shared_client", "close_shared_clients"]
