"""Shared fixtures: isolated environment and in-process HTTP capture."""

import os
import time
from typing import List, Optional
from unittest import mock

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from ddlambda.config import clear_config_cache
from ddlambda.exporter import close_shared_clients
from ddlambda.instrumentation import unpatch_http_client, unpatch_requests

DD_ENV_VARS = (
    "DD_API_KEY",
    "DD_SITE",
    "DD_AUTO_PATCH_HTTP",
    "DD_APM_FLUSH_DEADLINE_MILLISECONDS",
    "DD_LAMBDA_HANDLER",
)


class RecordingAdapter(BaseAdapter):
    """Transport adapter that records prepared requests instead of sending them."""

    def __init__(self, status_code: int = 202, error: Optional[Exception] = None, delay: float = 0.0) -> None:
        super().__init__()
        self.status_code = status_code
        self.error = error
        self.delay = delay
        self.requests: List[requests.PreparedRequest] = []
        self.timeouts: List[object] = []

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.requests.append(request)
        self.timeouts.append(timeout)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        response = requests.Response()
        response.status_code = self.status_code
        response.headers = CaseInsensitiveDict({"Content-Type": "application/json"})
        response._content = b"{}"
        response.url = request.url
        response.request = request
        response.connection = self
        return response

    def close(self) -> None:
        pass


def make_session(adapter: RecordingAdapter) -> requests.Session:
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


@pytest.fixture(autouse=True)
def clean_env():
    """Strip DD_* variables, reset caches and shared clients, undo HTTP patching."""
    saved = {name: os.environ.pop(name) for name in DD_ENV_VARS if name in os.environ}
    clear_config_cache()
    close_shared_clients()
    try:
        yield
    finally:
        for name in DD_ENV_VARS:
            os.environ.pop(name, None)
        os.environ.update(saved)
        clear_config_cache()
        close_shared_clients()
        unpatch_requests()
        unpatch_http_client()


@pytest.fixture
def outbound():
    """A session whose traffic is captured by a RecordingAdapter."""
    adapter = RecordingAdapter(status_code=200)
    session = make_session(adapter)
    yield session, adapter
    session.close()


@pytest.fixture
def metrics_intake():
    """Capture everything the metrics client sends; yields the adapter."""
    adapter = RecordingAdapter(status_code=202)
    with mock.patch("ddlambda.exporter.api_client.Session", side_effect=lambda: make_session(adapter)):
        yield adapter
