"""Handler wrapper that traces, times and flushes each serverless invocation."""

from __future__ import annotations

import asyncio
import contextvars
import functools
import inspect
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Set

from ddlambda.completion import Outcome, SettleCell
from ddlambda.config import Config, resolve_config
from ddlambda.context import activate, current, current_invocation, deactivate
from ddlambda.errors import HandlerError
from ddlambda.exporter.api_client import shared_client
from ddlambda.instrumentation.inbound import extract_parent_headers
from ddlambda.instrumentation.httplib import patch_http_client
from ddlambda.instrumentation.requests import patch_requests
from ddlambda.processors.metric import Number
from ddlambda.processors.metrics_batcher import MetricsBatcher
from ddlambda.tracer.trace_headers import TraceHeaders
from ddlambda.tracer.tracer import Tracer

logger = logging.getLogger(__name__)

# Time reserved for flushing before the host's own deadline.
FLUSH_MARGIN_MILLIS = 100
# Floor applied to DD_APM_FLUSH_DEADLINE_MILLISECONDS.
MIN_FLUSH_DEADLINE_MILLIS = 200
# Smallest request timeout handed to the metrics client once the budget is spent.
MIN_FLUSH_TIMEOUT_SECONDS = 0.01

_background_tasks: Set[asyncio.Task] = set()


class InvocationState(Enum):
    IDLE = "idle"
    CONTEXT_ESTABLISHED = "context_established"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FLUSHED = "flushed"
    RETURNED = "returned"


@dataclass
class Invocation:
    """Everything scoped to a single invocation."""

    config: Config
    trace_headers: TraceHeaders
    batcher: MetricsBatcher
    state: InvocationState = InvocationState.IDLE
    active: bool = True

    def transition(self, state: InvocationState) -> None:
        logger.debug("Invocation %s: %s -> %s", self.trace_headers.trace_id, self.state.value, state.value)
        self.state = state


def flush_deadline_seconds(context: Any, config: Config) -> Optional[float]:
    """
    Seconds until the wrapper stops waiting on the handler, or None for no deadline.

    Derived from ``context.get_remaining_time_in_millis()`` less a flush margin.
    A positive ``apm_flush_deadline_milliseconds`` that fits in the remaining
    time replaces it (never below MIN_FLUSH_DEADLINE_MILLIS).
    """
    return _deadline_from_remaining(remaining_millis(context), config)


def remaining_millis(context: Any) -> Optional[float]:
    """Milliseconds the host still grants the invocation, or None if unknown."""
    get_remaining = getattr(context, "get_remaining_time_in_millis", None)
    if not callable(get_remaining):
        return None
    try:
        return float(get_remaining())
    except (TypeError, ValueError):
        logger.warning("Ignoring unusable remaining time from the invocation context")
        return None


def _deadline_from_remaining(remaining: Optional[float], config: Config) -> Optional[float]:
    if remaining is None:
        return None

    flush_deadline = config.apm_flush_deadline_milliseconds
    if flush_deadline is not None and 0 < flush_deadline <= remaining:
        if flush_deadline < MIN_FLUSH_DEADLINE_MILLIS:
            logger.warning(
                "DD_APM_FLUSH_DEADLINE_MILLISECONDS will be overridden to %dms (was %dms); more time is needed to flush",
                MIN_FLUSH_DEADLINE_MILLIS,
                flush_deadline,
            )
            flush_deadline = min(MIN_FLUSH_DEADLINE_MILLIS, remaining)
        remaining = flush_deadline

    return max(remaining - FLUSH_MARGIN_MILLIS, 0) / 1000.0


def _accepts_callback(func: Callable[..., Any]) -> bool:
    """True when ``func`` takes a third positional parameter (event, context, callback)."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return False
    positional = [
        p
        for p in signature.parameters.values()
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    return len(positional) >= 3


async def _await(awaitable):
    return await awaitable


class InvocationWrapper:
    """
    Wraps a handler so that every invocation:

    - resolves its configuration,
    - inherits (or starts) a Datadog trace from the event headers,
    - exposes that trace to application code and outbound ``requests`` calls,
    - races the handler against the flush deadline,
    - flushes distribution metrics exactly once before returning.

    The handler may be a coroutine function, a plain function returning its
    result, or a callback-style function ``(event, context, callback)`` that
    reports through ``callback(error, result)``. Only the first completion is
    honoured.
    """

    def __init__(
        self,
        handler: Callable[..., Any],
        options: Optional[Mapping[str, Any]] = None,
        *,
        tracer: Optional[Tracer] = None,
    ) -> None:
        functools.update_wrapper(self, handler)
        self.handler = handler
        self.options = dict(options or {})
        self.tracer = tracer or Tracer()
        self._is_coroutine = inspect.iscoroutinefunction(handler)
        self._callback_style = _accepts_callback(handler)

    def __call__(self, event: Any, context: Any, callback: Optional[Callable[..., Any]] = None) -> Any:
        """Synchronous entry point; runs one invocation on a fresh event loop."""
        return asyncio.run(self.invoke(event, context, callback))

    async def invoke(self, event: Any, context: Any, callback: Optional[Callable[..., Any]] = None) -> Any:
        """
        Run one invocation on the current event loop.

        Returns the handler's result (None after a timeout). Handler errors are
        raised unchanged, or passed to ``callback`` when the host supplied one.
        """
        loop = asyncio.get_running_loop()
        config = resolve_config(self.options)
        invocation = Invocation(
            config=config,
            trace_headers=self.tracer.complete(extract_parent_headers(event)),
            batcher=MetricsBatcher(shared_client(config)),
        )
        if config.auto_patch_http:
            patch_requests()
            patch_http_client()
        token = activate(invocation)
        invocation.transition(InvocationState.CONTEXT_ESTABLISHED)

        remaining = remaining_millis(context)
        host_deadline = None if remaining is None else loop.time() + remaining / 1000.0
        cell = SettleCell(loop)
        timer = None
        try:
            invocation.transition(InvocationState.RUNNING)
            self._start(cell, loop, event, context)
            deadline = _deadline_from_remaining(remaining, config)
            if deadline is not None:
                timer = loop.call_later(deadline, cell.expire)
            outcome = await cell.wait()
            if outcome.timed_out:
                invocation.transition(InvocationState.TIMED_OUT)
            else:
                invocation.transition(InvocationState.COMPLETED)
        finally:
            if timer is not None:
                timer.cancel()
            cell.close()
            invocation.active = False
            flush_timeout = None
            if host_deadline is not None:
                flush_timeout = max(host_deadline - loop.time(), MIN_FLUSH_TIMEOUT_SECONDS)
            # Delivery blocks on the network; keep the host's loop free meanwhile.
            await loop.run_in_executor(None, functools.partial(invocation.batcher.flush, flush_timeout))
            invocation.transition(InvocationState.FLUSHED)
            deactivate(token)

        invocation.transition(InvocationState.RETURNED)
        return self._deliver(outcome, callback)

    # Internal
    def _start(self, cell: SettleCell, loop: asyncio.AbstractEventLoop, event: Any, context: Any) -> None:
        def complete(error: Any = None, result: Any = None) -> None:
            cell.settle(error=error, result=result)

        args = (event, context, complete) if self._callback_style else (event, context)

        if self._is_coroutine:
            task = loop.create_task(self._run_async(cell, args))
            _background_tasks.add(task)
            task.add_done_callback(_background_tasks.discard)
            return

        # Sync handlers may block; run them off the loop so the deadline can still fire.
        ctx = contextvars.copy_context()
        worker = threading.Thread(
            target=ctx.run,
            args=(self._run_sync, cell, loop, args),
            name=f"ddlambda-{getattr(self.handler, '__name__', 'handler')}",
            daemon=True,
        )
        worker.start()

    async def _run_async(self, cell: SettleCell, args) -> None:
        try:
            result = await self.handler(*args)
        except Exception as exc:
            cell.settle(error=exc)
            return
        cell.settle(result=result)

    def _run_sync(self, cell: SettleCell, loop: asyncio.AbstractEventLoop, args) -> None:
        try:
            result = self.handler(*args)
        except Exception as exc:
            cell.settle(error=exc)
            return

        if inspect.isawaitable(result):
            try:
                future = asyncio.run_coroutine_threadsafe(_await(result), loop)
            except RuntimeError:
                logger.debug("Event loop closed before the handler's awaitable could run")
                return
            future.add_done_callback(functools.partial(_settle_from_future, cell))
            return

        if result is None and self._callback_style:
            # Completion arrives (or already arrived) through the callback.
            return
        cell.settle(result=result)

    def _deliver(self, outcome: Outcome, callback: Optional[Callable[..., Any]]) -> Any:
        if outcome.timed_out:
            logger.warning("Handler did not complete before the flush deadline; telemetry was flushed early")
            if callback is not None:
                callback(None, None)
            return None

        if outcome.failed:
            if callback is not None:
                callback(outcome.error, None)
                return None
            if isinstance(outcome.error, BaseException):
                raise outcome.error
            raise HandlerError(outcome.error)

        if callback is not None:
            callback(None, outcome.result)
        return outcome.result


def _settle_from_future(cell: SettleCell, future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        cell.settle(error=error)
    else:
        cell.settle(result=future.result())


def datadog(
    handler: Optional[Callable[..., Any]] = None,
    options: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
):
    """
    Wrap a serverless handler.

    Usable as ``datadog(handler)``, ``@datadog`` or ``@datadog(api_key=...)``.
    Keyword options are merged over ``options``.
    """
    merged = dict(options or {})
    merged.update(kwargs)

    def decorator(func: Callable[..., Any]) -> InvocationWrapper:
        return InvocationWrapper(func, merged)

    if handler is None:
        return decorator
    return decorator(handler)


def get_trace_headers() -> Dict[str, str]:
    """Trace headers of the current invocation, keyed by header name."""
    return current().to_dict()


def send_distribution_metric(name: str, value: Number, *tags: str) -> None:
    """
    Record one distribution metric sample for the current invocation.

    Samples are buffered and delivered when the invocation finishes.
    """
    invocation = current_invocation()
    if invocation is None or not invocation.active:
        logger.warning("Dropping distribution metric %r recorded outside a wrapped invocation", name)
        return
    invocation.batcher.add(name, value, *tags)
