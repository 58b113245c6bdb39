"""Instrumentation helpers and monkey patching."""

from ddlambda.instrumentation.http_client import inject_headers as inject_http_headers, suppress_propagation
from ddlambda.instrumentation.httplib import patch_http_client, unpatch_http_client
from ddlambda.instrumentation.inbound import event_headers, extract_parent_headers
from ddlambda.instrumentation.requests import patch_requests, unpatch_requests

__all__ = [
    "patch_requests",
    "unpatch_requests",
    "patch_http_client",
    "unpatch_http_client",
    "inject_http_headers",
    "suppress_propagation",
    "event_headers",
    "extract_parent_headers",
]
