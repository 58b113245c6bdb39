"""Tests for http.client patching (and everything built on it)."""

import http.client
import io
import urllib.request

import pytest

from ddlambda import datadog
from ddlambda.config import Config
from ddlambda.context import activate, deactivate
from ddlambda.errors import InstrumentationError
from ddlambda.instrumentation import patch_http_client, suppress_propagation, unpatch_http_client
from ddlambda.instrumentation.httplib import is_patched
from ddlambda.processors import MetricsBatcher
from ddlambda.tracer import TraceHeaders
from ddlambda.wrapper import Invocation

HEADERS = TraceHeaders(trace_id="123", parent_id="456", sampling_priority="1")

CANNED_RESPONSE = b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\nok"


class FakeSocket:
    """Collects everything written and answers with a canned 200."""

    def __init__(self):
        self.sent = bytearray()

    def sendall(self, data):
        self.sent += data

    def makefile(self, mode, *args, **kwargs):
        return io.BytesIO(CANNED_RESPONSE)

    def close(self):
        pass


class RecordingConnection(http.client.HTTPConnection):
    sockets = []

    def connect(self):
        self.sock = FakeSocket()
        RecordingConnection.sockets.append(self.sock)


class RecordingHTTPHandler(urllib.request.HTTPHandler):
    def http_open(self, req):
        return self.do_open(RecordingConnection, req)


def sent_headers(sock):
    """Header lines of the first request written to ``sock``, lower-cased names."""
    head = bytes(sock.sent).split(b"\r\n\r\n", 1)[0].decode("latin-1")
    lines = head.split("\r\n")[1:]
    return [(name.strip().lower(), value.strip()) for name, value in (line.split(":", 1) for line in lines)]


@pytest.fixture(autouse=True)
def reset_sockets():
    RecordingConnection.sockets = []
    yield


@pytest.fixture
def active_invocation():
    invocation = Invocation(config=Config(), trace_headers=HEADERS, batcher=MetricsBatcher())
    token = activate(invocation)
    yield invocation
    deactivate(token)


def request_once(headers=None):
    conn = RecordingConnection("www.example.com")
    conn.request("GET", "/", headers=headers or {})
    conn.getresponse().read()
    conn.close()
    return sent_headers(RecordingConnection.sockets[-1])


def test_patch_is_idempotent_and_reversible():
    original = http.client.HTTPConnection.endheaders
    assert patch_http_client() is True
    patched = http.client.HTTPConnection.endheaders
    assert patch_http_client() is True
    assert http.client.HTTPConnection.endheaders is patched
    assert is_patched()

    unpatch_http_client()
    assert http.client.HTTPConnection.endheaders is original
    assert not is_patched()


def test_unpatch_refuses_to_drop_a_later_patch():
    patch_http_client()
    ours = http.client.HTTPConnection.putheader

    def someone_elses_putheader(self, header, *values):
        return ours(self, header, *values)

    http.client.HTTPConnection.putheader = someone_elses_putheader
    try:
        with pytest.raises(InstrumentationError):
            unpatch_http_client()
    finally:
        http.client.HTTPConnection.putheader = ours
    unpatch_http_client()


def test_injects_headers_during_invocation(active_invocation):
    patch_http_client()

    headers = dict(request_once())

    assert headers["x-datadog-trace-id"] == "123"
    assert headers["x-datadog-parent-id"] == "456"
    assert headers["x-datadog-sampling-priority"] == "1"
    assert headers["host"] == "www.example.com"


def test_headers_set_by_the_caller_are_not_duplicated(active_invocation):
    patch_http_client()

    headers = request_once({"X-Datadog-Trace-Id": "999"})

    trace_ids = [value for name, value in headers if name == "x-datadog-trace-id"]
    assert trace_ids == ["999"]
    assert dict(headers)["x-datadog-parent-id"] == "456"


def test_no_headers_outside_invocation():
    patch_http_client()

    assert "x-datadog-trace-id" not in dict(request_once())


def test_no_headers_when_suppressed(active_invocation):
    patch_http_client()

    with suppress_propagation():
        headers = dict(request_once())

    assert "x-datadog-trace-id" not in headers


def test_no_headers_when_invocation_disabled_patching():
    invocation = Invocation(config=Config(auto_patch_http=False), trace_headers=HEADERS, batcher=MetricsBatcher())
    token = activate(invocation)
    try:
        patch_http_client()
        assert "x-datadog-trace-id" not in dict(request_once())
    finally:
        deactivate(token)


def test_urllib_request_inside_wrapped_handler():
    opener = urllib.request.build_opener(RecordingHTTPHandler)
    event = {
        "headers": {
            "x-datadog-trace-id": "123456",
            "x-datadog-parent-id": "9101112",
            "x-datadog-sampling-priority": "2",
        }
    }

    def handler(event, context):
        with opener.open("http://www.example.com/") as response:
            return response.read().decode()

    assert datadog(handler)(event, None) == "ok"

    headers = dict(sent_headers(RecordingConnection.sockets[0]))
    assert headers["x-datadog-trace-id"] == "123456"
    assert headers["x-datadog-parent-id"] == "9101112"
    assert headers["x-datadog-sampling-priority"] == "2"


def test_urllib_request_without_auto_patch():
    opener = urllib.request.build_opener(RecordingHTTPHandler)

    def handler(event, context):
        with opener.open("http://www.example.com/") as response:
            return response.read().decode()

    datadog(handler, auto_patch_http=False)({"headers": {"x-datadog-trace-id": "1"}}, None)

    assert "x-datadog-trace-id" not in dict(sent_headers(RecordingConnection.sockets[0]))
