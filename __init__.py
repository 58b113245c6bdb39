"""ddlambda: Datadog trace propagation and distribution metrics for serverless handlers."""

from ddlambda.utils.log import LogLevel, configure_from_env as _configure_logging, set_log_level

_configure_logging()

from ddlambda.config import Config, resolve_config  # noqa: E402
from ddlambda.errors import (  # noqa: E402
    ConfigError,
    DDLambdaError,
    HandlerError,
    InitializationError,
    InstrumentationError,
    MetricsDeliveryError,
)
from ddlambda.tracer.trace_headers import TraceHeaders  # noqa: E402
from ddlambda.wrapper import (  # noqa: E402
    InvocationWrapper,
    datadog,
    get_trace_headers,
    send_distribution_metric,
)

__version__ = "0.5.0"

__all__ = [
    "__version__",
    "datadog",
    "InvocationWrapper",
    "get_trace_headers",
    "send_distribution_metric",
    "TraceHeaders",
    "Config",
    "resolve_config",
    "LogLevel",
    "set_log_level",
    "DDLambdaError",
    "ConfigError",
    "MetricsDeliveryError",
    "InitializationError",
    "InstrumentationError",
    "HandlerError",
]
