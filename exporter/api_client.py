"""Client for the Datadog distribution metrics intake."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Optional, Tuple

from requests import RequestException, Session

from ddlambda.config import DEFAULT_SITE, Config
from ddlambda.errors import MetricsDeliveryError
from ddlambda.instrumentation.http_client import suppress_propagation
from ddlambda.processors.metric import DistributionMetric

logger = logging.getLogger(__name__)

DISTRIBUTION_POINTS_PATH = "/api/v1/distribution_points"

_shared_lock = threading.Lock()
_shared_clients: Dict[Tuple[Optional[str], str], "DistributionMetricsClient"] = {}


class DistributionMetricsClient:
    """
    Delivers batches of distribution metrics with one POST per batch.

    The API key travels as the ``api_key`` query parameter; the target host is
    derived from the site (``api.<site>``).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        site: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[Session] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: Datadog API key; delivery fails without one
            site: Datadog site, e.g. ``datadoghq.eu`` (defaults to datadoghq.com)
            timeout: Upper bound on request time in seconds
            session: Optional requests session to send through
        """
        self.api_key = api_key
        self.site = site or DEFAULT_SITE
        self.timeout = timeout
        self._session = session
        self._session_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Config, **kwargs) -> "DistributionMetricsClient":
        return cls(api_key=config.api_key, site=config.resolved_site, **kwargs)

    @property
    def endpoint(self) -> str:
        return f"https://api.{self.site}{DISTRIBUTION_POINTS_PATH}"

    @property
    def session(self) -> Session:
        with self._session_lock:
            if self._session is None:
                self._session = Session()
            return self._session

    def export(self, metrics: Iterable[DistributionMetric], timeout: Optional[float] = None) -> None:
        """
        Send ``metrics`` as a single request.

        Args:
            metrics: Samples to deliver
            timeout: Time budget for this call; never exceeds the client timeout

        Raises:
            MetricsDeliveryError: missing API key, transport failure or non-2xx response
        """
        series = [metric.to_series() for metric in metrics]
        if not series:
            return
        if not self.api_key:
            raise MetricsDeliveryError("no API key configured", {"site": self.site})

        request_timeout = self.timeout if timeout is None else min(self.timeout, timeout)
        try:
            # Our own traffic must not pick up the invocation's trace headers.
            with suppress_propagation():
                response = self.session.post(
                    self.endpoint,
                    params={"api_key": self.api_key},
                    json={"series": series},
                    timeout=request_timeout,
                )
        except RequestException as exc:
            raise MetricsDeliveryError(f"request to {self.endpoint} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise MetricsDeliveryError(
                "metrics intake rejected the batch",
                {"status": response.status_code, "site": self.site},
            )
        logger.debug("Metrics intake accepted %d series (status %d)", len(series), response.status_code)

    def close(self) -> None:
        with self._session_lock:
            if self._session is not None:
                self._session.close()
                self._session = None


def shared_client(config: Config) -> DistributionMetricsClient:
    """
    Process-wide client for ``config``'s API key and site.

    Warm containers serve many invocations; sharing the client keeps one
    connection pool to the intake per destination.
    """
    key = (config.api_key, config.resolved_site)
    with _shared_lock:
        client = _shared_clients.get(key)
        if client is None:
            client = DistributionMetricsClient.from_config(config)
            _shared_clients[key] = client
        return client


def close_shared_clients() -> None:
    """Close and forget every client handed out by shared_client()."""
    with _shared_lock:
        clients = list(_shared_clients.values())
        _shared_clients.clear()
    for client in clients:
        client.close()
