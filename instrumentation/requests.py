"""requests monkey patching for Session.send."""

from __future__ import annotations

import functools
import logging

import requests

from ddlambda.errors import InstrumentationError
from ddlambda.instrumentation.http_client import inject_headers

logger = logging.getLogger(__name__)

_patched = False
_original_send = None
_installed_send = None


def patch_requests() -> bool:
    """Patch requests.Session.send; returns True once patched."""
    global _patched, _original_send, _installed_send
    if _patched:
        return True

    send_fn = requests.Session.send
    if getattr(send_fn, "_ddlambda_patched", False):
        _patched = True
        return True

    @functools.wraps(send_fn)
    def wrapped_send(self, request, **kwargs):
        inject_headers(request.headers)
        return send_fn(self, request, **kwargs)

    wrapped_send._ddlambda_patched = True
    _original_send = send_fn
    _installed_send = wrapped_send
    requests.Session.send = wrapped_send
    _patched = True
    logger.debug("Patched requests.Session.send for trace propagation")
    return True


def unpatch_requests() -> None:
    """
    Restore the original requests.Session.send.

    Raises:
        InstrumentationError: Session.send was re-patched by someone else since
    """
    global _patched, _original_send, _installed_send
    if not _patched:
        return

    if _installed_send is not None and requests.Session.send is not _installed_send:
        raise InstrumentationError("requests.Session.send was replaced after patching; refusing to restore it")
    if _original_send is not None:
        requests.Session.send = _original_send
    _original_send = None
    _installed_send = None
    _patched = False


def is_patched() -> bool:
    return _patched
