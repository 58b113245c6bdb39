"""Entry point that wraps the handler named by DD_LAMBDA_HANDLER.

Point the function's handler setting at ``ddlambda.handler.handler`` and set
``DD_LAMBDA_HANDLER`` to the original one.

Accepted formats:
- "path/to/module.function"
- "package.module.function"
- "package.module:function"
"""

from __future__ import annotations

import importlib
import os
import threading
from typing import Any, Optional, Tuple

from ddlambda.errors import InitializationError
from ddlambda.wrapper import InvocationWrapper, datadog

HANDLER_ENV_VAR = "DD_LAMBDA_HANDLER"

_lock = threading.Lock()
_wrapped: Optional[InvocationWrapper] = None


def _split_target(target_name: str) -> Optional[Tuple[str, str]]:
    if not target_name:
        return None
    target_name = target_name.strip().replace("/", ".")
    if ":" in target_name:
        mod, attr = target_name.split(":", 1)
    elif "." in target_name:
        mod, attr = target_name.rsplit(".", 1)
    else:
        return None
    mod, attr = mod.strip(), attr.strip()
    if not mod or not attr:
        return None
    return mod, attr


def load_handler(target_name: Optional[str] = None) -> InvocationWrapper:
    """
    Import the handler referenced by ``target_name`` (default: DD_LAMBDA_HANDLER) and wrap it.

    Raises:
        InitializationError: the handler cannot be located or is not callable
    """
    target_name = target_name if target_name is not None else os.environ.get(HANDLER_ENV_VAR)
    if not target_name:
        raise InitializationError(f"{HANDLER_ENV_VAR} is not set")

    parsed = _split_target(target_name)
    if not parsed:
        raise InitializationError(f"{HANDLER_ENV_VAR} must look like 'module.function'", {"value": target_name})
    module_name, attr_name = parsed

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise InitializationError(f"cannot import handler module {module_name!r}", {"error": exc}) from exc

    target = getattr(module, attr_name, None)
    if target is None or not callable(target):
        raise InitializationError(f"{module_name}.{attr_name} is not a callable handler")

    # Avoid double wrapping
    if isinstance(target, InvocationWrapper):
        return target
    return datadog(target)


def handler(event: Any, context: Any) -> Any:
    """Invoke the user's handler through the wrapper, loading it on first use."""
    global _wrapped
    if _wrapped is None:
        with _lock:
            if _wrapped is None:
                _wrapped = load_handler()
    return _wrapped(event, context)


def reset() -> None:
    """Forget the cached handler so the next invocation reloads it."""
    global _wrapped
    with _lock:
        _wrapped = None
