"""HTTP client helpers for context propagation."""

from __future__ import annotations

import contextlib
import contextvars
from typing import Iterator, MutableMapping

from ddlambda.context import DatadogHeadersPropagator, current_invocation

_propagator = DatadogHeadersPropagator()

_suppressed: contextvars.ContextVar[bool] = contextvars.ContextVar("ddlambda_suppress_propagation", default=False)


@contextlib.contextmanager
def suppress_propagation() -> Iterator[None]:
    """Send requests made inside this block without trace headers."""
    token = _suppressed.set(True)
    try:
        yield
    finally:
        _suppressed.reset(token)


def inject_headers(headers: MutableMapping[str, str]) -> MutableMapping[str, str]:
    """
    Inject the active invocation's x-datadog-* headers into ``headers``.

    Nothing is added outside an invocation, after it finished, when the
    invocation has HTTP auto-patching turned off, or inside
    ``suppress_propagation()``.

    Returns the same headers mapping for convenience.
    """
    if _suppressed.get():
        return headers
    invocation = current_invocation()
    if invocation is None or not invocation.active:
        return headers
    if not invocation.config.auto_patch_http:
        return headers
    _propagator.inject(headers)
    return headers
