"""http.client monkey patching.

Everything built on the standard library client (``urllib.request``,
``urllib3`` and therefore ``requests``) goes through
``HTTPConnection.putrequest`` / ``putheader`` / ``endheaders``. Header names
sent through ``putheader`` are remembered per request, and any trace header the
caller did not send itself is added just before the header block is closed.
"""

from __future__ import annotations

import functools
import http.client
import logging
from typing import Dict

from ddlambda.errors import InstrumentationError
from ddlambda.instrumentation.http_client import inject_headers

logger = logging.getLogger(__name__)

_SENT_ATTR = "_ddlambda_sent_headers"
_PATCHED_METHODS = ("putrequest", "putheader", "endheaders")

_patched = False
_originals: Dict[str, object] = {}
_installed: Dict[str, object] = {}


def _header_name(name) -> str:
    if isinstance(name, bytes):
        name = name.decode("latin-1")
    return str(name).lower()


def patch_http_client() -> bool:
    """Patch http.client.HTTPConnection; returns True once patched."""
    global _patched
    if _patched:
        return True

    conn_cls = http.client.HTTPConnection
    if getattr(conn_cls.endheaders, "_ddlambda_patched", False):
        _patched = True
        return True

    putrequest_fn = conn_cls.putrequest
    putheader_fn = conn_cls.putheader
    endheaders_fn = conn_cls.endheaders

    @functools.wraps(putrequest_fn)
    def wrapped_putrequest(self, *args, **kwargs):
        # putrequest itself may emit Host and Accept-Encoding through putheader.
        setattr(self, _SENT_ATTR, set())
        return putrequest_fn(self, *args, **kwargs)

    @functools.wraps(putheader_fn)
    def wrapped_putheader(self, header, *values):
        sent = getattr(self, _SENT_ATTR, None)
        if sent is not None:
            sent.add(_header_name(header))
        return putheader_fn(self, header, *values)

    @functools.wraps(endheaders_fn)
    def wrapped_endheaders(self, *args, **kwargs):
        sent = getattr(self, _SENT_ATTR, None)
        if sent is not None:
            setattr(self, _SENT_ATTR, None)
            for name, value in inject_headers({}).items():
                if name not in sent:
                    putheader_fn(self, name, value)
        return endheaders_fn(self, *args, **kwargs)

    replacements = {
        "putrequest": wrapped_putrequest,
        "putheader": wrapped_putheader,
        "endheaders": wrapped_endheaders,
    }
    for name, wrapped in replacements.items():
        wrapped._ddlambda_patched = True
        _originals[name] = getattr(conn_cls, name)
        _installed[name] = wrapped
        setattr(conn_cls, name, wrapped)
    _patched = True
    logger.debug("Patched http.client.HTTPConnection for trace propagation")
    return True


def unpatch_http_client() -> None:
    """
    Restore the original HTTPConnection methods.

    Raises:
        InstrumentationError: one of the methods was re-patched by someone else since
    """
    global _patched
    if not _patched:
        return

    conn_cls = http.client.HTTPConnection
    for name in _PATCHED_METHODS:
        if name in _installed and getattr(conn_cls, name) is not _installed[name]:
            raise InstrumentationError(f"http.client.HTTPConnection.{name} was replaced after patching; refusing to restore it")
    for name, original in _originals.items():
        setattr(conn_cls, name, original)
    _originals.clear()
    _installed.clear()
    _patched = False


def is_patched() -> bool:
    return _patched
